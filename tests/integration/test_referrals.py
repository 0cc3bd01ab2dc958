from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from promptshop.domain.errors import InsufficientBalance, NotFoundError, ValidationError


@pytest.fixture
def admin(make_user):
    user, _ = make_user(roles=("admin",))
    return user


@pytest.fixture
def earner(make_user):
    """A referrer holding a 200 000 balance."""
    return make_user(earnings=Decimal("200000"))


CARD = {"card_number": "8600 1234 5678 9012", "card_holder": "A. Karimov"}


class TestRequestWithdrawal:
    def test_cash(self, referral_service, earner):
        user, profile = earner
        request = referral_service.request_withdrawal(user.id, Decimal("60000"), **CARD)
        assert request.status == "pending"
        assert request.profile_id == profile.id
        assert request.card_number == "8600 1234 5678 9012"

    def test_over_balance(self, referral_service, earner):
        user, _ = earner
        with pytest.raises(InsufficientBalance):
            referral_service.request_withdrawal(user.id, Decimal("200000.01"), **CARD)

    def test_below_minimum(self, referral_service, earner):
        user, _ = earner
        with pytest.raises(ValidationError):
            referral_service.request_withdrawal(user.id, Decimal("1000"), **CARD)

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
    def test_non_positive(self, referral_service, earner, amount):
        user, _ = earner
        with pytest.raises(ValidationError):
            referral_service.request_withdrawal(user.id, amount, **CARD)

    def test_cash_needs_card(self, referral_service, earner):
        user, _ = earner
        with pytest.raises(ValidationError):
            referral_service.request_withdrawal(user.id, Decimal("60000"))

    def test_subscription_takes_plan_price(self, referral_service, earner, make_plan):
        user, _ = earner
        plan = make_plan(price=Decimal("150000"))
        request = referral_service.request_withdrawal(
            user.id, type="subscription", plan_id=plan.id
        )
        assert request.amount == Decimal("150000")
        assert request.plan_id == plan.id

    def test_subscription_needs_plan(self, referral_service, earner):
        user, _ = earner
        with pytest.raises(ValidationError):
            referral_service.request_withdrawal(user.id, type="subscription")

    def test_unknown_user(self, referral_service):
        with pytest.raises(NotFoundError):
            referral_service.request_withdrawal(uuid4(), Decimal("60000"), **CARD)


class TestApproveWithdrawal:
    def test_cash_debits_balance(self, referral_service, store, earner, admin):
        user, profile = earner
        request = referral_service.request_withdrawal(user.id, Decimal("60000"), **CARD)

        outcome = referral_service.approve_withdrawal(request.id, admin.id)

        assert outcome.status == "approved"
        assert store.repos.profiles.get_by_id(profile.id).referral_earnings == Decimal("140000")
        assert store.repos.referrals.get_withdrawal(request.id).approved_by == admin.id

    def test_subscription_applies_plan(
        self, referral_service, store, earner, admin, make_plan, now
    ):
        user, profile = earner
        plan = make_plan(tier="yearly", price=Decimal("150000"), duration_days=365)
        request = referral_service.request_withdrawal(user.id, type="subscription", plan_id=plan.id)

        referral_service.approve_withdrawal(request.id, admin.id)

        updated = store.repos.profiles.get_by_id(profile.id)
        assert updated.referral_earnings == Decimal("50000")
        assert updated.subscription_type == "yearly"
        assert updated.subscription_expires_at == now + timedelta(days=365)

    def test_balance_rechecked_at_approval(self, referral_service, store, earner, admin):
        user, profile = earner
        first = referral_service.request_withdrawal(user.id, Decimal("150000"), **CARD)
        second = referral_service.request_withdrawal(user.id, Decimal("150000"), **CARD)

        assert referral_service.approve_withdrawal(first.id, admin.id).status == "approved"
        outcome = referral_service.approve_withdrawal(second.id, admin.id)

        assert outcome.status == "rejected"
        assert outcome.reason == "insufficient_balance"
        assert store.repos.profiles.get_by_id(profile.id).referral_earnings == Decimal("50000")
        assert store.repos.referrals.get_withdrawal(second.id).status == "rejected"

    def test_second_approval_is_a_no_op(self, referral_service, store, earner, admin):
        user, profile = earner
        request = referral_service.request_withdrawal(user.id, Decimal("60000"), **CARD)
        referral_service.approve_withdrawal(request.id, admin.id)

        again = referral_service.approve_withdrawal(request.id, admin.id)

        assert again.already_finalized is True
        assert store.repos.profiles.get_by_id(profile.id).referral_earnings == Decimal("140000")

    def test_reject_keeps_balance(self, referral_service, store, earner, admin):
        user, profile = earner
        request = referral_service.request_withdrawal(user.id, Decimal("60000"), **CARD)

        assert referral_service.reject_withdrawal(request.id, admin.id, "card mismatch").status == "rejected"
        assert store.repos.profiles.get_by_id(profile.id).referral_earnings == Decimal("200000")
        assert referral_service.approve_withdrawal(request.id, admin.id).already_finalized

    def test_list_by_status(self, referral_service, earner, admin):
        user, _ = earner
        a = referral_service.request_withdrawal(user.id, Decimal("60000"), **CARD)
        referral_service.request_withdrawal(user.id, Decimal("60000"), **CARD)
        referral_service.reject_withdrawal(a.id, admin.id)

        assert len(referral_service.list_withdrawals("pending")) == 1
        assert len(referral_service.list_withdrawals()) == 2


class TestLedger:
    def test_consistent_after_commission_and_withdrawal(
        self, referral_service, payment_service, make_user, make_plan, make_payment, admin
    ):
        referrer_user, referrer = make_user()
        plan = make_plan(price=Decimal("1000000"))
        for _ in range(2):
            payer, _ = make_user(referred_by=referrer.id)
            payment_service.approve_payment(
                make_payment(payer.id, amount=Decimal("1000000"), plan_id=plan.id).id, admin.id
            )

        request = referral_service.request_withdrawal(referrer_user.id, Decimal("150000"), **CARD)
        referral_service.approve_withdrawal(request.id, admin.id)

        report = referral_service.ledger_report(referrer.id)
        assert report.total_earned == Decimal("200000")
        assert report.total_withdrawn == Decimal("150000")
        assert report.balance == Decimal("50000")
        assert report.is_consistent

    def test_detects_drift(self, referral_service, earner):
        _, profile = earner
        report = referral_service.ledger_report(profile.id)
        assert not report.is_consistent
        assert report.discrepancy == Decimal("200000")


def test_summary(referral_service, payment_service, make_user, make_plan, make_payment, admin):
    referrer_user, referrer = make_user()
    payer, _ = make_user(referred_by=referrer.id)
    make_user(referred_by=referrer.id)
    payment_service.approve_payment(make_payment(payer.id, plan_id=make_plan().id).id, admin.id)

    summary = referral_service.summary(referrer_user.id)

    assert summary.referral_code == referrer.referral_code
    assert summary.referred_count == 2
    assert summary.balance == Decimal("10000.00")
    assert len(summary.transactions) == 1
