from datetime import UTC, datetime, timedelta
from unittest.mock import Mock
from uuid import uuid4

import pytest

from promptshop.components.subscription import (
    apply_plan_grant,
    compute_plan_expiry,
    is_agency_access_active,
    is_subscription_active,
    reminder_type_for,
    subscription_status,
)
from promptshop.domain.entities import PricingPlan, Profile

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
FUTURE = NOW + timedelta(days=10)
PAST = NOW - timedelta(seconds=1)


@pytest.mark.parametrize("expires_at", [None, PAST, FUTURE])
def test_free_tier_is_never_active(expires_at):
    assert is_subscription_active("free", expires_at, NOW) is False


def test_missing_tier_is_not_active():
    assert is_subscription_active(None, FUTURE, NOW) is False


@pytest.mark.parametrize("expires_at", [None, PAST, FUTURE])
def test_lifetime_is_always_active(expires_at):
    assert is_subscription_active("lifetime", expires_at, NOW) is True


@pytest.mark.parametrize("tier", ["single", "monthly", "yearly", "vip"])
def test_timed_tier_active_until_expiry(tier):
    assert is_subscription_active(tier, FUTURE, NOW) is True
    assert is_subscription_active(tier, PAST, NOW) is False
    assert is_subscription_active(tier, None, NOW) is True


def test_expiry_at_exactly_now_is_lapsed():
    assert is_subscription_active("monthly", NOW, NOW) is False


def test_agency_access():
    assert is_agency_access_active(False, FUTURE, NOW) is False
    assert is_agency_access_active(True, None, NOW) is True
    assert is_agency_access_active(True, FUTURE, NOW) is True
    assert is_agency_access_active(True, PAST, NOW) is False


def test_compute_plan_expiry():
    assert compute_plan_expiry("monthly", 30, NOW) == NOW + timedelta(days=30)
    assert compute_plan_expiry("lifetime", 30, NOW) is None
    assert compute_plan_expiry("vip", None, NOW) is None


class TestReminderType:
    def test_windows(self):
        assert reminder_type_for(NOW + timedelta(days=6), NOW) == "7_days"
        assert reminder_type_for(NOW + timedelta(days=2), NOW) == "3_days"
        assert reminder_type_for(NOW + timedelta(hours=5), NOW) == "1_day"

    def test_outside_all_windows(self):
        assert reminder_type_for(NOW + timedelta(days=8), NOW) is None

    def test_expired(self):
        assert reminder_type_for(NOW, NOW) == "expired"
        assert reminder_type_for(PAST, NOW) == "expired"

    def test_no_expiry(self):
        assert reminder_type_for(None, NOW) is None

    def test_custom_windows(self):
        assert reminder_type_for(NOW + timedelta(days=2), NOW, [7]) == "7_days"
        assert reminder_type_for(NOW + timedelta(days=2), NOW, []) is None


def test_subscription_status_reports_evaluated_flags():
    profile = Profile(
        user_id=uuid4(),
        referral_code="ABCDEFGH",
        subscription_type="monthly",
        subscription_expires_at=PAST,
        has_agency_access=True,
        agency_access_expires_at=FUTURE,
    )
    status = subscription_status(profile, NOW)
    assert status.tier == "monthly"
    assert status.is_active is False
    assert status.has_agency_access is True


def _plan(tier, days):
    return PricingPlan(name=tier, slug=tier, price=100, duration_days=days, subscription_type=tier)


def test_apply_plan_grant_timed_plan():
    profiles = Mock()
    profile_id = uuid4()
    expires = apply_plan_grant(profiles, profile_id, _plan("monthly", 30), NOW)
    assert expires == NOW + timedelta(days=30)
    profiles.apply_subscription.assert_called_once_with(
        profile_id, "monthly", expires, grant_agency=False, now=NOW
    )


def test_apply_plan_grant_agency_tier_grants_agency_access():
    profiles = Mock()
    profile_id = uuid4()
    apply_plan_grant(profiles, profile_id, _plan("vip", 30), NOW, agency_tier="vip")
    assert profiles.apply_subscription.call_args.kwargs["grant_agency"] is True


def test_apply_plan_grant_lifetime_has_no_expiry():
    profiles = Mock()
    assert apply_plan_grant(profiles, uuid4(), _plan("lifetime", 30), NOW) is None
