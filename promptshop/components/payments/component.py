"""
Payments component.

Manual-receipt payments: the user submits a receipt, an administrator approves
or rejects it. Approval dispatches the side effects (entitlement grant and
referral commission) and flips the status inside one transaction, so either
all of them happen or the payment stays pending for a retry.

State machine: pending -> approved | rejected. Both are terminal.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from promptshop.adapters.clock import SystemClock
from promptshop.components.referrals import post_commission
from promptshop.components.subscription import apply_plan_grant
from promptshop.core.ports.email import EmailMessage
from promptshop.domain.entities import (
    CoursePurchase,
    Payment,
    PaymentStatus,
    PromptPurchase,
)
from promptshop.domain.errors import (
    AlreadyFinalized,
    DuplicateGrantError,
    NotFoundError,
    ValidationError,
)
from promptshop.rules.models import Rules

from ._emails import build_payment_email
from .models import ApprovalResult, PaymentPage, PaymentTarget
from .ports import ClockPort, EmailPort, StorePort, UnitOfWorkPort

logger = logging.getLogger(__name__)


# --- Pure Functions ---


def resolve_target(payment: Payment) -> PaymentTarget:
    """
    The single item a payment buys.

    Raises:
        ValidationError: the payment references no item or more than one
    """
    targets = payment.targets
    if not targets:
        raise ValidationError("Payment has no plan, course or prompt", "target")
    if len(targets) > 1:
        kinds = ", ".join(kind for kind, _ in targets)
        raise ValidationError(f"Payment references several items: {kinds}", "target")
    kind, target_id = targets[0]
    return PaymentTarget(kind=kind, id=target_id)  # type: ignore[arg-type]


def grant_entitlement(
    uow: UnitOfWorkPort,
    payment: Payment,
    target: PaymentTarget,
    now: datetime,
    agency_tier: str = "vip",
) -> bool:
    """
    Apply the grant for `target` to the paying user.

    A live purchase record counts as granted; a lapsed one is renewed.
    """
    if target.kind == "plan":
        plan = uow.catalog.get_plan(target.id)
        if plan is None:
            raise NotFoundError("Plan", target.id)
        profile = uow.profiles.get_by_user_id(payment.user_id)
        if profile is None:
            raise NotFoundError("Profile", payment.user_id)
        apply_plan_grant(uow.profiles, profile.id, plan, now, agency_tier=agency_tier)
        return True

    if target.kind == "course":
        if uow.catalog.get_course(target.id) is None:
            raise NotFoundError("Course", target.id)
        try:
            uow.purchases.add_course_purchase(
                CoursePurchase(
                    user_id=payment.user_id,
                    course_id=target.id,
                    payment_id=payment.id,
                    purchased_at=now,
                )
            )
        except DuplicateGrantError:
            logger.info("User %s already owns course %s", payment.user_id, target.id)
        return True

    if uow.catalog.get_prompt(target.id) is None:
        raise NotFoundError("Prompt", target.id)
    try:
        uow.purchases.add_prompt_purchase(
            PromptPurchase(user_id=payment.user_id, prompt_id=target.id, purchased_at=now)
        )
    except DuplicateGrantError:
        logger.info("User %s already owns prompt %s", payment.user_id, target.id)
    return True


# --- Service ---


class PaymentService:
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

    def submit_payment(
        self,
        user_id: UUID,
        target: PaymentTarget,
        receipt_url: str | None = None,
        payment_method: str | None = None,
    ) -> Payment:
        """Create a pending payment priced from the catalog."""
        amount = self._price_of(target)
        payment = Payment(
            user_id=user_id,
            amount=amount,
            plan_id=target.id if target.kind == "plan" else None,
            course_id=target.id if target.kind == "course" else None,
            prompt_id=target.id if target.kind == "prompt" else None,
            receipt_url=receipt_url,
            payment_method=payment_method,
            created_at=self.clock.now_utc(),
        )
        self.store.repos.payments.create(payment)
        logger.info(
            "Payment %s submitted by %s for %s %s: %s",
            payment.id,
            user_id,
            target.kind,
            target.id,
            amount,
        )
        return payment

    def approve_payment(
        self, payment_id: UUID, admin_id: UUID, notes: str | None = None
    ) -> ApprovalResult:
        """
        Grant, post commission and mark approved, atomically.

        Approving a payment that is no longer pending is a no-op reported with
        `already_finalized=True`.
        """
        now = self.clock.now_utc()
        try:
            with self.store.transaction() as uow:
                payment = self._pending_payment(uow, payment_id)
                target = resolve_target(payment)
                granted = grant_entitlement(
                    uow, payment, target, now, agency_tier=self.rules.monetization.agency_tier
                )
                commission = post_commission(
                    uow,
                    payment.user_id,
                    payment.id,
                    policy=self.rules.referrals,
                    now=now,
                )
                if not uow.payments.finalize(payment.id, "approved", admin_id, notes, now):
                    raise AlreadyFinalized("Payment", payment.id, "finalized")
        except AlreadyFinalized:
            return self._already_finalized(payment_id)

        logger.info(
            "Payment %s approved by %s (%s %s, commission %s)",
            payment.id,
            admin_id,
            target.kind,
            target.id,
            commission.amount if commission.posted else "none",
        )
        self._notify(payment, target, approved=True)
        return ApprovalResult(
            payment_id=payment.id,
            status="approved",
            granted_entitlement=granted,
            commission_posted=commission.posted,
            commission_amount=commission.amount,
        )

    def reject_payment(
        self, payment_id: UUID, admin_id: UUID, notes: str | None = None
    ) -> ApprovalResult:
        now = self.clock.now_utc()
        try:
            with self.store.transaction() as uow:
                payment = self._pending_payment(uow, payment_id)
                if not uow.payments.finalize(payment.id, "rejected", admin_id, notes, now):
                    raise AlreadyFinalized("Payment", payment.id, "finalized")
        except AlreadyFinalized:
            return self._already_finalized(payment_id)

        logger.info("Payment %s rejected by %s", payment.id, admin_id)
        targets = payment.targets
        if len(targets) == 1:
            self._notify(payment, PaymentTarget(*targets[0]), approved=False)  # type: ignore[arg-type]
        return ApprovalResult(payment_id=payment.id, status="rejected")

    def list_payments(
        self,
        status: PaymentStatus | None = None,
        user_id: UUID | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> PaymentPage:
        items, total = self.store.repos.payments.list_payments(
            status=status, user_id=user_id, limit=limit, offset=offset
        )
        return PaymentPage(items=items, total=total, limit=limit, offset=offset)

    def get_payment(self, payment_id: UUID) -> Payment:
        payment = self.store.repos.payments.get_by_id(payment_id)
        if payment is None:
            raise NotFoundError("Payment", payment_id)
        return payment

    # --- Internals ---

    @staticmethod
    def _pending_payment(uow: UnitOfWorkPort, payment_id: UUID) -> Payment:
        payment = uow.payments.get_by_id(payment_id)
        if payment is None:
            raise NotFoundError("Payment", payment_id)
        if payment.status != "pending":
            raise AlreadyFinalized("Payment", payment_id, payment.status)
        return payment

    def _already_finalized(self, payment_id: UUID) -> ApprovalResult:
        current = self.get_payment(payment_id)
        logger.info("Payment %s already %s; nothing to do", payment_id, current.status)
        return ApprovalResult(
            payment_id=payment_id, status=current.status, already_finalized=True
        )

    def _price_of(self, target: PaymentTarget) -> Decimal:
        catalog = self.store.repos.catalog
        price: Decimal | None
        if target.kind == "plan":
            plan = catalog.get_plan(target.id)
            if plan is None or not plan.is_active:
                raise NotFoundError("Plan", target.id)
            price = plan.price
        elif target.kind == "course":
            course = catalog.get_course(target.id)
            if course is None or not course.is_published:
                raise NotFoundError("Course", target.id)
            price = course.effective_price
        else:
            prompt = catalog.get_prompt(target.id)
            if prompt is None or not prompt.is_published:
                raise NotFoundError("Prompt", target.id)
            price = prompt.price

        if price is None or price <= 0:
            raise ValidationError(f"This {target.kind} is not for sale", "target")
        return price

    def _item_name(self, target: PaymentTarget) -> str:
        catalog = self.store.repos.catalog
        if target.kind == "plan":
            plan = catalog.get_plan(target.id)
            return plan.name if plan else "Subscription"
        if target.kind == "course":
            course = catalog.get_course(target.id)
            return course.title if course else "Course"
        prompt = catalog.get_prompt(target.id)
        return prompt.title if prompt else "Prompt"

    def _notify(self, payment: Payment, target: PaymentTarget, approved: bool) -> None:
        """Best-effort decision email, sent after commit. Never raises."""
        try:
            profile = self.store.repos.profiles.get_by_user_id(payment.user_id)
            if profile is None or not profile.email:
                logger.info("No email on file for user %s; skipping notification", payment.user_id)
                return
            subject, html = build_payment_email(
                approved=approved,
                user_name=profile.full_name or profile.email.split("@")[0],
                item_name=self._item_name(target),
                amount=payment.amount,
                currency=self.rules.monetization.currency,
                site_name=self.rules.project.site_name,
                site_url=self.rules.project.site_url,
            )
            result = self.email.send(
                EmailMessage(recipient=profile.email, subject=subject, body_html=html)
            )
            if not result.delivered:
                logger.warning(
                    "Payment %s notification to %s failed: %s",
                    payment.id,
                    profile.email,
                    result.error,
                )
        except Exception:
            logger.exception("Payment %s notification failed", payment.id)
