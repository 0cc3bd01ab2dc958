"""
Referrals component.

Public API for referral commissions, withdrawals and ledger reconciliation.
"""

from .component import (
    ReferralService,
    calculate_commission,
    post_commission,
)
from .models import (
    CommissionOutcome,
    CommissionSkipReason,
    LedgerReport,
    ReferralSummary,
    WithdrawalOutcome,
)

__all__ = [
    # Functions
    "calculate_commission",
    "post_commission",
    # Service
    "ReferralService",
    # Models
    "CommissionOutcome",
    "CommissionSkipReason",
    "LedgerReport",
    "ReferralSummary",
    "WithdrawalOutcome",
]
