"""
Referrals component models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Literal
from uuid import UUID

from promptshop.domain.entities import ReferralTransaction, WithdrawalRequest, WithdrawalStatus

CommissionSkipReason = Literal[
    "no_referrer",
    "referrer_missing",
    "self_referral",
    "zero_amount",
    "not_first_payment",
    "duplicate",
]


@dataclass(frozen=True)
class CommissionOutcome:
    posted: bool
    amount: Decimal | None = None
    referrer_id: UUID | None = None
    skipped_reason: CommissionSkipReason | None = None

    @classmethod
    def skipped(cls, reason: CommissionSkipReason, referrer_id: UUID | None = None) -> CommissionOutcome:
        return cls(posted=False, referrer_id=referrer_id, skipped_reason=reason)


@dataclass(frozen=True)
class WithdrawalOutcome:
    withdrawal_id: UUID
    status: WithdrawalStatus
    already_finalized: bool = False
    reason: str | None = None


@dataclass(frozen=True)
class LedgerReport:
    """Balance reconciliation for one referrer."""

    profile_id: UUID
    balance: Decimal
    total_earned: Decimal
    total_withdrawn: Decimal

    @property
    def expected_balance(self) -> Decimal:
        return self.total_earned - self.total_withdrawn

    @property
    def discrepancy(self) -> Decimal:
        return self.balance - self.expected_balance

    @property
    def is_consistent(self) -> bool:
        return self.discrepancy == 0


@dataclass
class ReferralSummary:
    profile_id: UUID
    referral_code: str
    balance: Decimal
    referred_count: int
    transactions: list[ReferralTransaction] = field(default_factory=list)
    withdrawals: list[WithdrawalRequest] = field(default_factory=list)
