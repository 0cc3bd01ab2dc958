"""
Subscription component models.

Result types for the expiry sweep and the reminder run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from promptshop.domain.entities import ReminderType, SubscriptionTier

# Tiers whose validity never depends on an expiry date.
FREE_TIERS: frozenset[str] = frozenset({"free"})
PERPETUAL_TIERS: frozenset[str] = frozenset({"lifetime"})


@dataclass(frozen=True)
class SubscriptionStatus:
    """Evaluated view of a profile's subscription at a given instant."""

    tier: SubscriptionTier | None
    expires_at: datetime | None
    is_active: bool
    has_agency_access: bool


@dataclass(frozen=True)
class ExpirySweepResult:
    downgraded: int = 0
    agency_revoked: int = 0


@dataclass(frozen=True)
class ReminderCandidate:
    profile_id: UUID
    email: str
    full_name: str | None
    subscription_type: SubscriptionTier
    expires_at: datetime
    reminder_type: ReminderType


@dataclass
class ReminderRunResult:
    sent: int = 0
    skipped: int = 0
    failed: int = 0
    failures: list[str] = field(default_factory=list)
