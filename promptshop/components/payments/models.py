"""
Payments component models.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Literal
from uuid import UUID

from promptshop.domain.entities import Payment, PaymentStatus

TargetKind = Literal["plan", "course", "prompt"]


@dataclass(frozen=True)
class PaymentTarget:
    """What a payment buys. Exactly one per payment."""

    kind: TargetKind
    id: UUID


@dataclass(frozen=True)
class ApprovalResult:
    payment_id: UUID
    status: PaymentStatus
    granted_entitlement: bool = False
    commission_posted: bool = False
    commission_amount: Decimal | None = None
    already_finalized: bool = False


@dataclass(frozen=True)
class PaymentPage:
    items: list[Payment]
    total: int
    limit: int
    offset: int
