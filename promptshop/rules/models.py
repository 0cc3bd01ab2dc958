from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field, field_validator


class ProjectRules(BaseModel):
    slug: str
    rules_version: str
    site_name: str = "promptshop"
    site_url: str = "http://localhost:3000"


class RbacRules(BaseModel):
    roles: dict[str, list[str]]
    public_permissions: list[str]


class MonetizationRules(BaseModel):
    currency: str = "UZS"
    agency_tier: str = "vip"


class ReferralRules(BaseModel):
    commission_rate: Decimal = Decimal("0.10")
    commission_scope: Literal["all_payments", "first_payment"] = "all_payments"
    code_length: int = Field(default=8, ge=6, le=16)

    @field_validator("commission_rate")
    @classmethod
    def _rate_in_range(cls, v: Decimal) -> Decimal:
        if v < 0 or v > 1:
            raise ValueError("commission_rate must be between 0 and 1")
        return v


class WithdrawalRules(BaseModel):
    min_amount: Decimal = Decimal("0")


class MediaRules(BaseModel):
    signed_url_ttl_seconds: int = 3600
    base_url: str = "http://localhost:8000/media"
    buckets: list[str] = Field(
        default_factory=lambda: ["lesson-videos", "course-materials", "prompt-files"]
    )


class ReminderRules(BaseModel):
    windows_days: list[int] = Field(default_factory=lambda: [7, 3, 1])
    sender: str = "onboarding@resend.dev"

    @field_validator("windows_days")
    @classmethod
    def _known_windows(cls, v: list[int]) -> list[int]:
        unknown = set(v) - {7, 3, 1}
        if unknown:
            raise ValueError(f"Unsupported reminder windows: {sorted(unknown)}")
        return sorted(set(v), reverse=True)


class OpsRules(BaseModel):
    required_env: list[str] = Field(default_factory=list)


class Rules(BaseModel):
    project: ProjectRules
    rbac: RbacRules
    monetization: MonetizationRules = Field(default_factory=MonetizationRules)
    referrals: ReferralRules = Field(default_factory=ReferralRules)
    withdrawals: WithdrawalRules = Field(default_factory=WithdrawalRules)
    media: MediaRules = Field(default_factory=MediaRules)
    reminders: ReminderRules = Field(default_factory=ReminderRules)
    ops: OpsRules = Field(default_factory=OpsRules)
