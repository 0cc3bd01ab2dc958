"""
Subscription component.

Pure validity rules plus the expiry sweep and reminder run.

Every entitlement gate in the project calls `is_subscription_active`; nothing
else compares a subscription expiry against the clock.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from uuid import UUID

from promptshop.adapters.clock import SystemClock
from promptshop.core.ports.email import EmailMessage
from promptshop.domain.entities import (
    PricingPlan,
    Profile,
    ReminderType,
    SubscriptionReminder,
    SubscriptionTier,
)
from promptshop.domain.errors import DuplicateGrantError
from promptshop.rules.models import Rules

from ._emails import build_reminder
from .models import (
    FREE_TIERS,
    PERPETUAL_TIERS,
    ExpirySweepResult,
    ReminderCandidate,
    ReminderRunResult,
    SubscriptionStatus,
)
from .ports import ClockPort, EmailPort, ProfileRepoPort, StorePort

logger = logging.getLogger(__name__)

_WINDOW_TYPES: dict[int, ReminderType] = {7: "7_days", 3: "3_days", 1: "1_day"}


# --- Pure Functions ---


def is_subscription_active(
    tier: SubscriptionTier | None,
    expires_at: datetime | None,
    now: datetime,
) -> bool:
    """
    Decide whether a subscription grants access at `now`.

    - missing or `free` tier: never active
    - `lifetime`: always active, whatever `expires_at` says
    - any other tier: active when there is no expiry or it lies in the future
    """
    if tier is None or tier in FREE_TIERS:
        return False
    if tier in PERPETUAL_TIERS:
        return True
    return expires_at is None or expires_at > now


def is_agency_access_active(
    has_agency_access: bool,
    expires_at: datetime | None,
    now: datetime,
) -> bool:
    if not has_agency_access:
        return False
    return expires_at is None or expires_at > now


def compute_plan_expiry(
    tier: SubscriptionTier,
    duration_days: int | None,
    now: datetime,
) -> datetime | None:
    """None for lifetime plans and plans without a duration."""
    if tier in PERPETUAL_TIERS or not duration_days:
        return None
    return now + timedelta(days=duration_days)


def reminder_type_for(
    expires_at: datetime | None,
    now: datetime,
    windows_days: list[int] | None = None,
) -> ReminderType | None:
    """
    Classify an expiry into the narrowest reminder window it falls in.

    Returns "expired" once `expires_at <= now`, None when no window applies.
    """
    if expires_at is None:
        return None
    if expires_at <= now:
        return "expired"

    remaining = expires_at - now
    for days in sorted(windows_days if windows_days is not None else [7, 3, 1]):
        if remaining <= timedelta(days=days):
            return _WINDOW_TYPES[days]
    return None


def subscription_status(profile: Profile, now: datetime) -> SubscriptionStatus:
    return SubscriptionStatus(
        tier=profile.subscription_type,
        expires_at=profile.subscription_expires_at,
        is_active=is_subscription_active(
            profile.subscription_type, profile.subscription_expires_at, now
        ),
        has_agency_access=is_agency_access_active(
            profile.has_agency_access, profile.agency_access_expires_at, now
        ),
    )


def apply_plan_grant(
    profiles: ProfileRepoPort,
    profile_id: UUID,
    plan: PricingPlan,
    now: datetime,
    agency_tier: str = "vip",
) -> datetime | None:
    """
    Write a plan's tier and expiry onto a profile.

    The agency tier also grants agency access with the same expiry.
    Returns the new expiry.
    """
    expires_at = compute_plan_expiry(plan.subscription_type, plan.duration_days, now)
    grant_agency = plan.subscription_type == agency_tier
    profiles.apply_subscription(
        profile_id,
        plan.subscription_type,
        expires_at,
        grant_agency=grant_agency,
        now=now,
    )
    logger.info(
        "Applied plan %s (%s) to profile %s, expires %s%s",
        plan.slug,
        plan.subscription_type,
        profile_id,
        expires_at.isoformat() if expires_at else "never",
        " with agency access" if grant_agency else "",
    )
    return expires_at


# --- Service ---


class SubscriptionService:
    """Scheduled subscription maintenance: expiry sweep and reminder emails."""

    def __init__(
        self,
        store: StorePort,
        email: EmailPort,
        rules: Rules,
        clock: ClockPort | None = None,
    ):
        self.store = store
        self.email = email
        self.rules = rules
        self.clock = clock or SystemClock()

    def status(self, profile: Profile) -> SubscriptionStatus:
        return subscription_status(profile, self.clock.now_utc())

    def expire_lapsed(self) -> ExpirySweepResult:
        """
        Downgrade lapsed timed tiers to `free` and clear lapsed agency access.

        Idempotent: a second run finds nothing to change.
        """
        now = self.clock.now_utc()
        downgraded = 0
        revoked = 0
        with self.store.transaction() as uow:
            for profile in uow.profiles.list_lapsed_subscriptions(now):
                if uow.profiles.downgrade_to_free(profile.id, now):
                    downgraded += 1
            for profile in uow.profiles.list_lapsed_agency(now):
                if uow.profiles.revoke_agency(profile.id, now):
                    revoked += 1

        logger.info("Expiry sweep: %d downgraded, %d agency revoked", downgraded, revoked)
        return ExpirySweepResult(downgraded=downgraded, agency_revoked=revoked)

    def due_reminders(self) -> list[ReminderCandidate]:
        now = self.clock.now_utc()
        windows = self.rules.reminders.windows_days
        horizon = now + timedelta(days=max(windows, default=0))

        candidates = []
        for profile in self.store.repos.profiles.list_with_expiry_before(horizon):
            if not profile.email or profile.subscription_expires_at is None:
                continue
            reminder_type = reminder_type_for(profile.subscription_expires_at, now, windows)
            if reminder_type is None:
                continue
            candidates.append(
                ReminderCandidate(
                    profile_id=profile.id,
                    email=profile.email,
                    full_name=profile.full_name,
                    subscription_type=profile.subscription_type or "free",
                    expires_at=profile.subscription_expires_at,
                    reminder_type=reminder_type,
                )
            )
        return candidates

    def send_reminders(self) -> ReminderRunResult:
        """
        Send each due reminder at most once per (profile, type, expiry).

        A reminder is recorded only after the email went out, so a failed
        send is retried on the next run.
        """
        result = ReminderRunResult()
        reminders = self.store.repos.reminders
        project = self.rules.project

        for c in self.due_reminders():
            if reminders.exists(c.profile_id, c.reminder_type, c.expires_at):
                result.skipped += 1
                continue

            subject, html = build_reminder(
                c.reminder_type,
                c.subscription_type,
                c.expires_at,
                user_name=c.full_name or c.email.split("@")[0],
                site_name=project.site_name,
                site_url=project.site_url,
            )
            sent = self.email.send(
                EmailMessage(
                    recipient=c.email,
                    subject=subject,
                    body_html=html,
                    sender=self.rules.reminders.sender,
                )
            )
            if not sent.delivered:
                logger.warning(
                    "Reminder %s to %s failed: %s", c.reminder_type, c.email, sent.error
                )
                result.failed += 1
                result.failures.append(c.email)
                continue

            try:
                reminders.record(
                    SubscriptionReminder(
                        profile_id=c.profile_id,
                        reminder_type=c.reminder_type,
                        subscription_type=c.subscription_type,
                        expires_at=c.expires_at,
                        sent_at=self.clock.now_utc(),
                    )
                )
            except DuplicateGrantError:
                # Another run recorded it between our check and insert
                result.skipped += 1
                continue
            result.sent += 1

        logger.info(
            "Reminder run: %d sent, %d skipped, %d failed",
            result.sent,
            result.skipped,
            result.failed,
        )
        return result
