"""
Database Adapter Interfaces.

Protocol-based interfaces for repository operations.
Implementation: SQLite (`promptshop.adapters.sqlite.repos`).

Repositories raise `DuplicateGrantError` on unique collisions for grants,
commissions and reminders; services treat that as already satisfied.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import datetime
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from promptshop.domain.entities import (
    Course,
    CourseLesson,
    CourseMaterial,
    CoursePurchase,
    Payment,
    PaymentStatus,
    PricingPlan,
    Profile,
    Prompt,
    PromptFile,
    PromptPurchase,
    ReferralTransaction,
    SubscriptionReminder,
    SubscriptionTier,
    User,
    WithdrawalRequest,
    WithdrawalStatus,
)

# -----------------------------------------------------------------------------
# Users & Profiles
# -----------------------------------------------------------------------------


class UserRepoPort(Protocol):
    def save(self, user: User) -> User: ...

    def get_by_id(self, user_id: UUID) -> User | None: ...

    def get_by_email(self, email: str) -> User | None: ...

    def add_role(self, user_id: UUID, role: str) -> None: ...


class ProfileRepoPort(Protocol):
    """
    Repository for profiles.

    Balance changes are single atomic statements; never read-modify-write.
    """

    def create(self, profile: Profile) -> Profile: ...

    def get_by_id(self, profile_id: UUID) -> Profile | None: ...

    def get_by_user_id(self, user_id: UUID) -> Profile | None: ...

    def get_by_referral_code(self, code: str) -> Profile | None: ...

    def referral_code_exists(self, code: str) -> bool: ...

    def apply_subscription(
        self,
        profile_id: UUID,
        tier: SubscriptionTier,
        expires_at: datetime | None,
        grant_agency: bool,
        now: datetime,
    ) -> bool: ...

    def increment_earnings(self, profile_id: UUID, amount: Decimal, now: datetime) -> bool: ...

    def decrement_earnings_if_sufficient(
        self, profile_id: UUID, amount: Decimal, now: datetime
    ) -> bool:
        """False when the balance is below `amount`; nothing is written."""
        ...

    def list_lapsed_subscriptions(self, now: datetime) -> list[Profile]: ...

    def list_lapsed_agency(self, now: datetime) -> list[Profile]: ...

    def list_with_expiry_before(self, horizon: datetime) -> list[Profile]: ...

    def downgrade_to_free(self, profile_id: UUID, now: datetime) -> bool: ...

    def revoke_agency(self, profile_id: UUID, now: datetime) -> bool: ...


# -----------------------------------------------------------------------------
# Catalog & Purchases
# -----------------------------------------------------------------------------


class CatalogRepoPort(Protocol):
    def get_plan(self, plan_id: UUID) -> PricingPlan | None: ...

    def list_plans(self, active_only: bool = True) -> list[PricingPlan]: ...

    def get_prompt(self, prompt_id: UUID) -> Prompt | None: ...

    def get_prompt_by_slug(self, slug: str) -> Prompt | None: ...

    def list_prompts(self, published_only: bool = True) -> list[Prompt]: ...

    def get_course(self, course_id: UUID) -> Course | None: ...

    def get_course_by_slug(self, slug: str) -> Course | None: ...

    def list_courses(self, published_only: bool = True) -> list[Course]: ...

    def get_lesson_by_id(self, lesson_id: UUID) -> CourseLesson | None: ...

    def get_lesson(self, course_id: UUID, slug: str) -> CourseLesson | None: ...

    def list_lessons(self, course_id: UUID) -> list[CourseLesson]: ...

    def find_lessons_by_video(self, file_url: str) -> list[CourseLesson]: ...

    def find_lessons_by_material(self, file_url: str) -> list[CourseLesson]: ...

    def find_prompts_by_file(self, file_url: str) -> list[Prompt]: ...

    def save_plan(self, plan: PricingPlan) -> PricingPlan: ...

    def save_prompt(self, prompt: Prompt) -> Prompt: ...

    def save_prompt_file(self, prompt_file: PromptFile) -> PromptFile: ...

    def save_course(self, course: Course) -> Course: ...

    def save_lesson(self, lesson: CourseLesson) -> CourseLesson: ...

    def save_material(self, material: CourseMaterial) -> CourseMaterial: ...


class PurchaseRepoPort(Protocol):
    def add_prompt_purchase(self, purchase: PromptPurchase) -> PromptPurchase: ...

    def add_course_purchase(self, purchase: CoursePurchase) -> CoursePurchase: ...

    def get_prompt_purchase(self, user_id: UUID, prompt_id: UUID) -> PromptPurchase | None: ...

    def get_course_purchase(self, user_id: UUID, course_id: UUID) -> CoursePurchase | None: ...


# -----------------------------------------------------------------------------
# Payments, Referrals, Reminders
# -----------------------------------------------------------------------------


class PaymentRepoPort(Protocol):
    """
    Repository for payments.

    State machine: pending -> approved | rejected (terminal).
    """

    def create(self, payment: Payment) -> Payment: ...

    def get_by_id(self, payment_id: UUID) -> Payment | None: ...

    def list_payments(
        self,
        status: PaymentStatus | None = None,
        user_id: UUID | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Payment], int]: ...

    def finalize(
        self,
        payment_id: UUID,
        status: PaymentStatus,
        admin_id: UUID | None,
        notes: str | None,
        at: datetime,
    ) -> bool:
        """Conditional on `status = 'pending'`. False when already finalized."""
        ...


class ReferralRepoPort(Protocol):
    def add_transaction(self, tx: ReferralTransaction) -> ReferralTransaction: ...

    def list_transactions(self, referrer_id: UUID) -> list[ReferralTransaction]: ...

    def count_for_referred(self, referrer_id: UUID, referred_id: UUID) -> int: ...

    def count_referred_profiles(self, referrer_id: UUID) -> int: ...

    def sum_transactions(self, referrer_id: UUID) -> Decimal: ...

    def sum_approved_withdrawals(self, profile_id: UUID) -> Decimal: ...

    def create_withdrawal(self, request: WithdrawalRequest) -> WithdrawalRequest: ...

    def get_withdrawal(self, withdrawal_id: UUID) -> WithdrawalRequest | None: ...

    def list_withdrawals(
        self,
        status: WithdrawalStatus | None = None,
        profile_id: UUID | None = None,
    ) -> list[WithdrawalRequest]: ...

    def finalize_withdrawal(
        self,
        withdrawal_id: UUID,
        status: WithdrawalStatus,
        admin_id: UUID | None,
        notes: str | None,
        at: datetime,
    ) -> bool: ...


class ReminderRepoPort(Protocol):
    def exists(
        self, profile_id: UUID, reminder_type: str, expires_at: datetime | None
    ) -> bool: ...

    def record(self, reminder: SubscriptionReminder) -> SubscriptionReminder: ...


# -----------------------------------------------------------------------------
# Unit of Work
# -----------------------------------------------------------------------------


class UnitOfWorkPort(Protocol):
    users: UserRepoPort
    profiles: ProfileRepoPort
    catalog: CatalogRepoPort
    purchases: PurchaseRepoPort
    payments: PaymentRepoPort
    referrals: ReferralRepoPort
    reminders: ReminderRepoPort


class StorePort(Protocol):
    """
    `repos` autocommit each call; `transaction()` commits all writes made
    through the yielded unit of work together, or none of them.
    """

    @property
    def repos(self) -> UnitOfWorkPort: ...

    def transaction(self) -> AbstractContextManager[UnitOfWorkPort]: ...
