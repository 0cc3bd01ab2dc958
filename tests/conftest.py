"""
Shared fixtures: a migrated temporary SQLite database, the project rules,
a pinned clock and factories for catalog and account rows.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from pathlib import Path
from uuid import UUID, uuid4

import pytest

from promptshop.adapters.clock import FixedClock
from promptshop.adapters.dev_email import DevEmailAdapter
from promptshop.adapters.sqlite.migrator import SQLiteMigrator
from promptshop.adapters.sqlite.repos import SQLiteStore
from promptshop.components.access import AccessService
from promptshop.components.payments import PaymentService
from promptshop.components.referrals import ReferralService
from promptshop.components.subscription import SubscriptionService
from promptshop.domain.entities import (
    Course,
    CourseLesson,
    Payment,
    PricingPlan,
    Profile,
    Prompt,
    User,
)
from promptshop.rules.loader import load_rules
from promptshop.rules.models import Rules

ROOT = Path(__file__).resolve().parents[1]
NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def rules() -> Rules:
    return load_rules(ROOT / "rules.yaml")


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    path = str(tmp_path / "promptshop.db")
    SQLiteMigrator(path, ROOT / "migrations").run_migrations()
    return path


@pytest.fixture
def store(db_path: str) -> SQLiteStore:
    return SQLiteStore(db_path)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def email() -> DevEmailAdapter:
    return DevEmailAdapter()


# --- Services ---


@pytest.fixture
def payment_service(store, email, rules, clock) -> PaymentService:
    return PaymentService(store, email, rules, clock=clock)


@pytest.fixture
def referral_service(store, rules, clock) -> ReferralService:
    return ReferralService(store, rules, clock=clock)


@pytest.fixture
def subscription_service(store, email, rules, clock) -> SubscriptionService:
    return SubscriptionService(store, email, rules, clock=clock)


@pytest.fixture
def access_service(store, rules, clock) -> AccessService:
    return AccessService(store, rules, clock=clock)


# --- Factories ---


@pytest.fixture
def make_user(store):
    """Create a user with a profile. Returns (user, profile)."""

    def _make(
        email: str | None = None,
        roles: tuple[str, ...] = ("user",),
        referred_by: UUID | None = None,
        tier: str = "free",
        expires_at: datetime | None = None,
        agency: bool = False,
        agency_expires_at: datetime | None = None,
        earnings: Decimal = Decimal("0"),
        full_name: str | None = None,
    ) -> tuple[User, Profile]:
        email = email or f"user-{uuid4().hex[:8]}@example.com"
        user = User(
            email=email,
            display_name=email.split("@")[0],
            password_hash="hash",
            roles=list(roles),
            created_at=NOW,
            updated_at=NOW,
        )
        store.repos.users.save(user)
        profile = Profile(
            user_id=user.id,
            email=email,
            full_name=full_name,
            subscription_type=tier,
            subscription_expires_at=expires_at,
            has_agency_access=agency,
            agency_access_expires_at=agency_expires_at,
            referral_code=uuid4().hex[:8].upper(),
            referral_earnings=earnings,
            referred_by=referred_by,
            created_at=NOW,
            updated_at=NOW,
        )
        store.repos.profiles.create(profile)
        return user, profile

    return _make


@pytest.fixture
def make_plan(store):
    def _make(
        tier: str = "monthly",
        price: Decimal = Decimal("100000"),
        duration_days: int | None = 30,
        slug: str | None = None,
        is_active: bool = True,
    ) -> PricingPlan:
        plan = PricingPlan(
            name=f"{tier.title()} plan",
            slug=slug or f"{tier}-{uuid4().hex[:6]}",
            price=price,
            duration_days=duration_days,
            subscription_type=tier,
            is_active=is_active,
        )
        return store.repos.catalog.save_plan(plan)

    return _make


@pytest.fixture
def make_prompt(store):
    def _make(
        is_premium: bool = True,
        is_agency_only: bool = False,
        price: Decimal | None = Decimal("20000"),
        slug: str | None = None,
        is_published: bool = True,
    ) -> Prompt:
        slug = slug or f"prompt-{uuid4().hex[:6]}"
        prompt = Prompt(
            title=slug.replace("-", " ").title(),
            slug=slug,
            description="A prompt",
            content="SECRET CONTENT",
            instructions="SECRET INSTRUCTIONS",
            examples="SECRET EXAMPLES",
            is_premium=is_premium,
            is_agency_only=is_agency_only,
            price=price,
            is_published=is_published,
        )
        return store.repos.catalog.save_prompt(prompt)

    return _make


@pytest.fixture
def make_course(store):
    def _make(
        price: Decimal = Decimal("300000"),
        discount_price: Decimal | None = None,
        slug: str | None = None,
        is_published: bool = True,
    ) -> Course:
        course = Course(
            title="Course",
            slug=slug or f"course-{uuid4().hex[:6]}",
            price=price,
            discount_price=discount_price,
            is_published=is_published,
        )
        return store.repos.catalog.save_course(course)

    return _make


@pytest.fixture
def make_lesson(store):
    def _make(
        course_id: UUID,
        slug: str | None = None,
        is_preview: bool = False,
        video_file_url: str | None = None,
        sort_order: int = 0,
        is_published: bool = True,
    ) -> CourseLesson:
        lesson = CourseLesson(
            course_id=course_id,
            title="Lesson",
            slug=slug or f"lesson-{uuid4().hex[:6]}",
            content_html="<p>SECRET LESSON</p>",
            video_url="https://video.example.com/secret",
            video_file_url=video_file_url,
            is_preview=is_preview,
            sort_order=sort_order,
            is_published=is_published,
        )
        return store.repos.catalog.save_lesson(lesson)

    return _make


@pytest.fixture
def make_payment(store):
    """Insert a pending payment directly, bypassing catalog pricing."""

    def _make(
        user_id: UUID,
        amount: Decimal = Decimal("100000"),
        plan_id: UUID | None = None,
        course_id: UUID | None = None,
        prompt_id: UUID | None = None,
    ) -> Payment:
        payment = Payment(
            user_id=user_id,
            amount=amount,
            plan_id=plan_id,
            course_id=course_id,
            prompt_id=prompt_id,
            created_at=NOW - timedelta(minutes=5),
        )
        return store.repos.payments.create(payment)

    return _make
