from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from promptshop.domain.entities import (
    PaymentStatus,
    SubscriptionTier,
    WithdrawalStatus,
    WithdrawalType,
)


# --- Auth ---
class RegisterRequest(BaseModel):
    email: str
    password: str
    full_name: str | None = None
    referral_code: str | None = None


class Token(BaseModel):
    access_token: str
    token_type: str


class MeResponse(BaseModel):
    id: UUID
    email: str
    display_name: str
    roles: list[str]
    subscription_type: SubscriptionTier | None = None
    subscription_expires_at: datetime | None = None
    subscription_active: bool = False
    has_agency_access: bool = False
    referral_code: str | None = None


# --- Catalog ---
class PlanResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    price: Decimal
    duration_days: int | None = None
    subscription_type: SubscriptionTier


class CourseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    slug: str
    description: str | None = None
    price: Decimal
    discount_price: Decimal | None = None


# --- Media ---
class SignedUrlRequest(BaseModel):
    bucket: str
    path: str


class SignedUrlResponse(BaseModel):
    url: str
    expires_at: datetime


# --- Payments ---
class PaymentCreateRequest(BaseModel):
    plan_id: UUID | None = None
    course_id: UUID | None = None
    prompt_id: UUID | None = None
    receipt_url: str | None = None
    payment_method: str | None = None

    @model_validator(mode="after")
    def _exactly_one_target(self) -> "PaymentCreateRequest":
        targets = [t for t in (self.plan_id, self.course_id, self.prompt_id) if t is not None]
        if len(targets) != 1:
            raise ValueError("Exactly one of plan_id, course_id or prompt_id is required")
        return self


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    amount: Decimal
    status: PaymentStatus
    plan_id: UUID | None = None
    course_id: UUID | None = None
    prompt_id: UUID | None = None
    receipt_url: str | None = None
    payment_method: str | None = None
    admin_notes: str | None = None
    created_at: datetime
    approved_at: datetime | None = None


class PaymentListResponse(BaseModel):
    items: list[PaymentResponse]
    total: int
    limit: int
    offset: int


class DecisionRequest(BaseModel):
    notes: str | None = None


class ApprovalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    payment_id: UUID
    status: PaymentStatus
    granted_entitlement: bool
    commission_posted: bool
    commission_amount: Decimal | None = None
    already_finalized: bool


# --- Referrals ---
class ReferralTransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    referred_user_id: UUID
    payment_id: UUID
    amount: Decimal
    created_at: datetime


class WithdrawalCreateRequest(BaseModel):
    type: WithdrawalType = "cash"
    amount: Decimal | None = None
    plan_id: UUID | None = None
    card_number: str | None = None
    card_holder: str | None = None


class WithdrawalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    profile_id: UUID
    amount: Decimal
    type: WithdrawalType
    status: WithdrawalStatus
    plan_id: UUID | None = None
    card_holder: str | None = None
    admin_notes: str | None = None
    created_at: datetime
    approved_at: datetime | None = None


class WithdrawalDecisionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    withdrawal_id: UUID
    status: WithdrawalStatus
    already_finalized: bool
    reason: str | None = None


class ReferralSummaryResponse(BaseModel):
    referral_code: str
    balance: Decimal
    referred_count: int
    transactions: list[ReferralTransactionResponse] = []
    withdrawals: list[WithdrawalResponse] = []


class LedgerResponse(BaseModel):
    profile_id: UUID
    balance: Decimal
    total_earned: Decimal
    total_withdrawn: Decimal
    expected_balance: Decimal
    is_consistent: bool


# --- Admin catalog ---
class PlanCreateRequest(BaseModel):
    name: str
    slug: str
    price: Decimal = Field(ge=0)
    duration_days: int | None = Field(default=None, ge=1)
    subscription_type: SubscriptionTier
    is_active: bool = True


class PromptCreateRequest(BaseModel):
    title: str
    slug: str
    description: str | None = None
    content: str
    instructions: str | None = None
    examples: str | None = None
    is_premium: bool = False
    is_agency_only: bool = False
    price: Decimal | None = Field(default=None, ge=0)
    is_published: bool = True


class PromptFileCreateRequest(BaseModel):
    file_name: str
    file_url: str


class CourseCreateRequest(BaseModel):
    title: str
    slug: str
    description: str | None = None
    price: Decimal = Field(ge=0)
    discount_price: Decimal | None = Field(default=None, ge=0)
    is_published: bool = True


class LessonCreateRequest(BaseModel):
    title: str
    slug: str
    content_html: str | None = None
    video_url: str | None = None
    video_file_url: str | None = None
    is_preview: bool = False
    is_published: bool = True
    sort_order: int = 0


class MaterialCreateRequest(BaseModel):
    title: str
    file_url: str


class CreatedResponse(BaseModel):
    id: UUID
    kind: Literal["plan", "prompt", "prompt_file", "course", "lesson", "material"]


# --- Admin subscriptions ---
class ExpirySweepResponse(BaseModel):
    downgraded: int
    agency_revoked: int


class ReminderRunResponse(BaseModel):
    sent: int
    skipped: int
    failed: int
