"""
Referrals component.

Commission posting, withdrawal requests and ledger reconciliation.

Ledger invariant: for every referrer,
    referral_earnings == sum(transactions) - sum(approved withdrawals)
Every write that moves money keeps it by pairing the ledger row with an atomic
balance update inside the same transaction.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from promptshop.adapters.clock import SystemClock
from promptshop.components.subscription import apply_plan_grant
from promptshop.domain.entities import (
    ReferralTransaction,
    WithdrawalRequest,
    WithdrawalStatus,
    WithdrawalType,
)
from promptshop.domain.errors import (
    AlreadyFinalized,
    DuplicateGrantError,
    InsufficientBalance,
    NotFoundError,
    ValidationError,
)
from promptshop.rules.models import ReferralRules, Rules

from .models import (
    CommissionOutcome,
    LedgerReport,
    ReferralSummary,
    WithdrawalOutcome,
)
from .ports import ClockPort, StorePort, UnitOfWorkPort

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


# --- Pure Functions ---


def calculate_commission(amount: Decimal, rate: Decimal) -> Decimal:
    """`amount * rate`, rounded half-up to the cent."""
    return (Decimal(amount) * Decimal(rate)).quantize(CENT, rounding=ROUND_HALF_UP)


def post_commission(
    uow: UnitOfWorkPort,
    paying_user_id: UUID,
    payment_id: UUID,
    *,
    policy: ReferralRules,
    now: datetime,
) -> CommissionOutcome:
    """
    Credit the payer's referrer with a commission on `payment_id`.

    Runs on the caller's unit of work; it never commits. A payment carries at
    most one commission, so repeated calls post once.

    Raises:
        NotFoundError: payer profile or payment missing
    """
    payer = uow.profiles.get_by_user_id(paying_user_id)
    if payer is None:
        raise NotFoundError("Profile", paying_user_id)
    if payer.referred_by is None:
        return CommissionOutcome.skipped("no_referrer")

    payment = uow.payments.get_by_id(payment_id)
    if payment is None:
        raise NotFoundError("Payment", payment_id)

    referrer = uow.profiles.get_by_id(payer.referred_by)
    if referrer is None:
        logger.warning(
            "Referrer %s of profile %s no longer exists; no commission",
            payer.referred_by,
            payer.id,
        )
        return CommissionOutcome.skipped("referrer_missing")
    if referrer.id == payer.id:
        return CommissionOutcome.skipped("self_referral", referrer.id)

    amount = calculate_commission(payment.amount, policy.commission_rate)
    if amount <= 0:
        return CommissionOutcome.skipped("zero_amount", referrer.id)

    if (
        policy.commission_scope == "first_payment"
        and uow.referrals.count_for_referred(referrer.id, payer.id) > 0
    ):
        return CommissionOutcome.skipped("not_first_payment", referrer.id)

    try:
        uow.referrals.add_transaction(
            ReferralTransaction(
                referrer_id=referrer.id,
                referred_user_id=payer.id,
                payment_id=payment.id,
                amount=amount,
                created_at=now,
            )
        )
    except DuplicateGrantError:
        logger.info("Commission for payment %s already posted", payment.id)
        return CommissionOutcome.skipped("duplicate", referrer.id)

    uow.profiles.increment_earnings(referrer.id, amount, now)
    logger.info(
        "Posted commission %s to referrer %s for payment %s",
        amount,
        referrer.id,
        payment.id,
    )
    return CommissionOutcome(posted=True, amount=amount, referrer_id=referrer.id)


# --- Service ---


class ReferralService:
    def __init__(self, store: StorePort, rules: Rules, clock: ClockPort | None = None):
        self.store = store
        self.rules = rules
        self.clock = clock or SystemClock()

    def post_commission(self, paying_user_id: UUID, payment_id: UUID) -> CommissionOutcome:
        """Standalone commission post in its own transaction."""
        with self.store.transaction() as uow:
            return post_commission(
                uow,
                paying_user_id,
                payment_id,
                policy=self.rules.referrals,
                now=self.clock.now_utc(),
            )

    def summary(self, user_id: UUID) -> ReferralSummary:
        repos = self.store.repos
        profile = repos.profiles.get_by_user_id(user_id)
        if profile is None:
            raise NotFoundError("Profile", user_id)
        return ReferralSummary(
            profile_id=profile.id,
            referral_code=profile.referral_code,
            balance=profile.referral_earnings,
            referred_count=repos.referrals.count_referred_profiles(profile.id),
            transactions=repos.referrals.list_transactions(profile.id),
            withdrawals=repos.referrals.list_withdrawals(profile_id=profile.id),
        )

    def ledger_report(self, profile_id: UUID) -> LedgerReport:
        repos = self.store.repos
        profile = repos.profiles.get_by_id(profile_id)
        if profile is None:
            raise NotFoundError("Profile", profile_id)
        report = LedgerReport(
            profile_id=profile.id,
            balance=profile.referral_earnings,
            total_earned=repos.referrals.sum_transactions(profile.id),
            total_withdrawn=repos.referrals.sum_approved_withdrawals(profile.id),
        )
        if not report.is_consistent:
            logger.warning(
                "Ledger mismatch for profile %s: balance %s, expected %s",
                profile.id,
                report.balance,
                report.expected_balance,
            )
        return report

    # --- Withdrawals ---

    def request_withdrawal(
        self,
        user_id: UUID,
        amount: Decimal | None = None,
        type: WithdrawalType = "cash",
        plan_id: UUID | None = None,
        card_number: str | None = None,
        card_holder: str | None = None,
    ) -> WithdrawalRequest:
        """
        Create a pending withdrawal.

        Cash withdrawals need a positive amount and a card. Subscription
        conversions need a plan; the amount is that plan's price.
        """
        repos = self.store.repos
        profile = repos.profiles.get_by_user_id(user_id)
        if profile is None:
            raise NotFoundError("Profile", user_id)

        if type == "subscription":
            if plan_id is None:
                raise ValidationError("A plan is required for subscription withdrawals", "plan_id")
            plan = repos.catalog.get_plan(plan_id)
            if plan is None or not plan.is_active:
                raise NotFoundError("Plan", plan_id)
            amount = plan.price
        else:
            if amount is None:
                raise ValidationError("Amount is required", "amount")
            if not card_number or not card_number.strip():
                raise ValidationError("Card number is required for cash withdrawals", "card_number")

        amount = Decimal(amount)
        if amount <= 0:
            raise ValidationError("Amount must be positive", "amount")
        minimum = self.rules.withdrawals.min_amount
        if amount < minimum:
            raise ValidationError(f"Minimum withdrawal is {minimum}", "amount")
        if amount > profile.referral_earnings:
            raise InsufficientBalance(amount, profile.referral_earnings)

        request = repos.referrals.create_withdrawal(
            WithdrawalRequest(
                profile_id=profile.id,
                amount=amount,
                type=type,
                plan_id=plan_id if type == "subscription" else None,
                card_number=card_number.strip() if card_number else None,
                card_holder=card_holder,
                created_at=self.clock.now_utc(),
            )
        )
        logger.info(
            "Withdrawal %s requested by profile %s: %s (%s)",
            request.id,
            profile.id,
            amount,
            type,
        )
        return request

    def approve_withdrawal(
        self, withdrawal_id: UUID, admin_id: UUID, notes: str | None = None
    ) -> WithdrawalOutcome:
        """
        Approve a pending withdrawal.

        The balance is re-checked at approval time with a conditional atomic
        decrement; if it no longer covers the amount the request is rejected.
        """
        now = self.clock.now_utc()
        try:
            with self.store.transaction() as uow:
                request = self._pending_withdrawal(uow, withdrawal_id)

                if not uow.profiles.decrement_earnings_if_sufficient(
                    request.profile_id, request.amount, now
                ):
                    uow.referrals.finalize_withdrawal(
                        request.id, "rejected", admin_id, "Insufficient balance", now
                    )
                    logger.warning(
                        "Withdrawal %s rejected at approval: insufficient balance",
                        request.id,
                    )
                    return WithdrawalOutcome(request.id, "rejected", reason="insufficient_balance")

                if request.type == "subscription":
                    plan = uow.catalog.get_plan(request.plan_id) if request.plan_id else None
                    if plan is None:
                        raise NotFoundError("Plan", request.plan_id)
                    apply_plan_grant(
                        uow.profiles,
                        request.profile_id,
                        plan,
                        now,
                        agency_tier=self.rules.monetization.agency_tier,
                    )

                uow.referrals.finalize_withdrawal(request.id, "approved", admin_id, notes, now)
        except AlreadyFinalized as e:
            return WithdrawalOutcome(withdrawal_id, e.status, already_finalized=True)  # type: ignore[arg-type]

        logger.info("Withdrawal %s approved by %s", withdrawal_id, admin_id)
        return WithdrawalOutcome(withdrawal_id, "approved")

    def reject_withdrawal(
        self, withdrawal_id: UUID, admin_id: UUID, notes: str | None = None
    ) -> WithdrawalOutcome:
        now = self.clock.now_utc()
        try:
            with self.store.transaction() as uow:
                request = self._pending_withdrawal(uow, withdrawal_id)
                uow.referrals.finalize_withdrawal(request.id, "rejected", admin_id, notes, now)
        except AlreadyFinalized as e:
            return WithdrawalOutcome(withdrawal_id, e.status, already_finalized=True)  # type: ignore[arg-type]

        logger.info("Withdrawal %s rejected by %s", withdrawal_id, admin_id)
        return WithdrawalOutcome(withdrawal_id, "rejected")

    def list_withdrawals(self, status: WithdrawalStatus | None = None) -> list[WithdrawalRequest]:
        return self.store.repos.referrals.list_withdrawals(status=status)

    @staticmethod
    def _pending_withdrawal(uow: UnitOfWorkPort, withdrawal_id: UUID) -> WithdrawalRequest:
        request = uow.referrals.get_withdrawal(withdrawal_id)
        if request is None:
            raise NotFoundError("Withdrawal", withdrawal_id)
        if request.status != "pending":
            raise AlreadyFinalized("Withdrawal", withdrawal_id, request.status)
        return request
