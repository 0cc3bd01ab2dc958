"""
Payments component.

Public API for payment submission and the approval side-effect dispatcher.
"""

from .component import (
    PaymentService,
    grant_entitlement,
    resolve_target,
)
from .models import (
    ApprovalResult,
    PaymentPage,
    PaymentTarget,
    TargetKind,
)

__all__ = [
    # Functions
    "grant_entitlement",
    "resolve_target",
    # Service
    "PaymentService",
    # Models
    "ApprovalResult",
    "PaymentPage",
    "PaymentTarget",
    "TargetKind",
]
