from datetime import UTC, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

# --- Enums / Literals ---
RoleType = Literal["admin", "moderator", "user"]
SubscriptionTier = Literal["free", "single", "monthly", "yearly", "lifetime", "vip"]
PaymentStatus = Literal["pending", "approved", "rejected"]
WithdrawalType = Literal["cash", "subscription"]
WithdrawalStatus = Literal["pending", "approved", "rejected"]
ReminderType = Literal["7_days", "3_days", "1_day", "expired"]
UserStatus = Literal["active", "disabled"]

SUBSCRIPTION_TIERS: tuple[SubscriptionTier, ...] = (
    "free",
    "single",
    "monthly",
    "yearly",
    "lifetime",
    "vip",
)


def utc_now() -> datetime:
    return datetime.now(UTC)


# --- User & Profile ---

class User(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    email: str
    display_name: str
    password_hash: str
    roles: list[RoleType] = Field(default_factory=list)
    status: UserStatus = "active"
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_admin(self) -> bool:
        return "admin" in self.roles


class Profile(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    email: str | None = None
    full_name: str | None = None
    subscription_type: SubscriptionTier | None = "free"
    subscription_expires_at: datetime | None = None
    has_agency_access: bool = False
    agency_access_expires_at: datetime | None = None
    referral_code: str
    referral_earnings: Decimal = Decimal("0")
    referred_by: UUID | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


# --- Catalog ---

class PricingPlan(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    name: str
    slug: str
    price: Decimal
    duration_days: int | None = None
    subscription_type: SubscriptionTier
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now)


class Prompt(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    title: str
    slug: str
    description: str | None = None
    content: str
    instructions: str | None = None
    examples: str | None = None
    is_premium: bool = False
    is_agency_only: bool = False
    price: Decimal | None = None
    is_published: bool = True
    category_id: UUID | None = None
    created_at: datetime = Field(default_factory=utc_now)


class PromptFile(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    prompt_id: UUID
    file_name: str
    file_url: str


class Course(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    title: str
    slug: str
    description: str | None = None
    price: Decimal
    discount_price: Decimal | None = None
    is_published: bool = True
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def effective_price(self) -> Decimal:
        if self.discount_price is not None:
            return self.discount_price
        return self.price


class CourseLesson(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    course_id: UUID
    title: str
    slug: str
    content_html: str | None = None
    video_url: str | None = None
    video_file_url: str | None = None
    is_preview: bool = False
    is_published: bool = True
    sort_order: int = 0


class CourseMaterial(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    lesson_id: UUID
    title: str
    file_url: str


# --- Purchases ---

class PromptPurchase(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    prompt_id: UUID
    purchased_at: datetime = Field(default_factory=utc_now)


class CoursePurchase(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    course_id: UUID
    payment_id: UUID | None = None
    access_expires_at: datetime | None = None
    purchased_at: datetime = Field(default_factory=utc_now)


# --- Payments & Referrals ---

class Payment(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    amount: Decimal
    status: PaymentStatus = "pending"
    plan_id: UUID | None = None
    course_id: UUID | None = None
    prompt_id: UUID | None = None
    receipt_url: str | None = None
    payment_method: str | None = None
    admin_notes: str | None = None
    approved_by: UUID | None = None
    created_at: datetime = Field(default_factory=utc_now)
    approved_at: datetime | None = None

    @property
    def targets(self) -> list[tuple[str, UUID]]:
        found = []
        if self.plan_id is not None:
            found.append(("plan", self.plan_id))
        if self.course_id is not None:
            found.append(("course", self.course_id))
        if self.prompt_id is not None:
            found.append(("prompt", self.prompt_id))
        return found


class ReferralTransaction(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    referrer_id: UUID
    referred_user_id: UUID
    payment_id: UUID
    amount: Decimal
    created_at: datetime = Field(default_factory=utc_now)


class WithdrawalRequest(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    profile_id: UUID
    amount: Decimal
    type: WithdrawalType = "cash"
    status: WithdrawalStatus = "pending"
    plan_id: UUID | None = None
    card_number: str | None = None
    card_holder: str | None = None
    admin_notes: str | None = None
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)


class SubscriptionReminder(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    profile_id: UUID
    reminder_type: ReminderType
    subscription_type: SubscriptionTier
    expires_at: datetime | None = None
    sent_at: datetime = Field(default_factory=utc_now)
