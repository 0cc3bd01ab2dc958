"""
Subscription component.

Public API for subscription validity, plan expiry and scheduled maintenance.
"""

from .component import (
    SubscriptionService,
    apply_plan_grant,
    compute_plan_expiry,
    is_agency_access_active,
    is_subscription_active,
    reminder_type_for,
    subscription_status,
)
from .models import (
    ExpirySweepResult,
    ReminderCandidate,
    ReminderRunResult,
    SubscriptionStatus,
)

__all__ = [
    # Functions
    "apply_plan_grant",
    "compute_plan_expiry",
    "is_agency_access_active",
    "is_subscription_active",
    "reminder_type_for",
    "subscription_status",
    # Service
    "SubscriptionService",
    # Models
    "ExpirySweepResult",
    "ReminderCandidate",
    "ReminderRunResult",
    "SubscriptionStatus",
]
