"""
Access component models.

Viewer and item descriptions fed to the resolver, the decision it returns, and
the redacted views that are safe to serialize.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel

from promptshop.domain.entities import (
    CourseLesson,
    Profile,
    Prompt,
    SubscriptionTier,
    User,
)

ItemKind = Literal["prompt", "course", "lesson"]

AccessReason = Literal[
    "public",
    "admin",
    "subscription",
    "purchase",
    "agency",
    "login_required",
    "agency_required",
    "entitlement_required",
]


@dataclass(frozen=True)
class Viewer:
    """The caller's identity and entitlements, as seen by the resolver."""

    user_id: UUID | None = None
    is_admin: bool = False
    subscription_type: SubscriptionTier | None = None
    subscription_expires_at: datetime | None = None
    has_agency_access: bool = False
    agency_access_expires_at: datetime | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @classmethod
    def anonymous(cls) -> Viewer:
        return cls()

    @classmethod
    def from_user(cls, user: User, profile: Profile | None) -> Viewer:
        if profile is None:
            return cls(user_id=user.id, is_admin=user.is_admin)
        return cls(
            user_id=user.id,
            is_admin=user.is_admin,
            subscription_type=profile.subscription_type,
            subscription_expires_at=profile.subscription_expires_at,
            has_agency_access=profile.has_agency_access,
            agency_access_expires_at=profile.agency_access_expires_at,
        )


@dataclass(frozen=True)
class AccessibleItem:
    """
    A gated catalog item.

    Course lessons are premium unless marked as preview; their purchase
    record is the one for `course_id`.
    """

    kind: ItemKind
    id: UUID
    is_premium: bool
    is_preview: bool = False
    is_agency_only: bool = False
    course_id: UUID | None = None

    @classmethod
    def for_prompt(cls, prompt: Prompt) -> AccessibleItem:
        return cls(
            kind="prompt",
            id=prompt.id,
            is_premium=prompt.is_premium or prompt.is_agency_only,
            is_agency_only=prompt.is_agency_only,
        )

    @classmethod
    def for_lesson(cls, lesson: CourseLesson) -> AccessibleItem:
        return cls(
            kind="lesson",
            id=lesson.id,
            is_premium=True,
            is_preview=lesson.is_preview,
            course_id=lesson.course_id,
        )

    @property
    def purchase_key(self) -> tuple[str, UUID]:
        """Which purchase record unlocks this item."""
        if self.kind == "lesson" and self.course_id is not None:
            return "course", self.course_id
        return self.kind, self.id


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: AccessReason

    def __bool__(self) -> bool:
        return self.allowed


# --- Serializable views ---


class PromptView(BaseModel):
    id: UUID
    title: str
    slug: str
    description: str | None = None
    is_premium: bool
    is_agency_only: bool
    price: Decimal | None = None
    locked: bool
    content: str | None = None
    instructions: str | None = None
    examples: str | None = None


class LessonView(BaseModel):
    id: UUID
    course_id: UUID
    title: str
    slug: str
    is_preview: bool
    sort_order: int
    locked: bool
    content_html: str | None = None
    video_url: str | None = None
    video_file_url: str | None = None
