"""
Access component.

Server-side content gating. `can_access` decides; `redact_prompt` and
`redact_lesson` make sure premium fields never leave the process for a caller
the decision denied.
"""

from __future__ import annotations

import logging
from datetime import datetime

from promptshop.adapters.clock import SystemClock
from promptshop.components.subscription import (
    is_agency_access_active,
    is_subscription_active,
)
from promptshop.domain.entities import CourseLesson, Prompt, User
from promptshop.domain.errors import AccessDenied, NotFoundError, ValidationError
from promptshop.rules.models import Rules

from .models import (
    AccessDecision,
    AccessibleItem,
    LessonView,
    PromptView,
    Viewer,
)
from .ports import ClockPort, MediaSignerPort, SignedUrl, StorePort

logger = logging.getLogger(__name__)


# --- Pure Functions ---


def can_access(
    item: AccessibleItem,
    viewer: Viewer,
    *,
    has_purchase: bool,
    now: datetime,
) -> AccessDecision:
    """
    Resolve whether `viewer` may see the premium fields of `item`.

    Evaluated in order:
    1. non-premium items and preview lessons are public
    2. anonymous callers are denied
    3. administrators are allowed
    4. agency-only items require active agency access
    5. an active subscription or a purchase record allows
    """
    if not item.is_premium or (item.kind == "lesson" and item.is_preview):
        return AccessDecision(True, "public")

    if not viewer.is_authenticated:
        return AccessDecision(False, "login_required")

    if viewer.is_admin:
        return AccessDecision(True, "admin")

    if item.is_agency_only:
        if is_agency_access_active(
            viewer.has_agency_access, viewer.agency_access_expires_at, now
        ):
            return AccessDecision(True, "agency")
        return AccessDecision(False, "agency_required")

    if is_subscription_active(viewer.subscription_type, viewer.subscription_expires_at, now):
        return AccessDecision(True, "subscription")

    if has_purchase:
        return AccessDecision(True, "purchase")

    return AccessDecision(False, "entitlement_required")


def redact_prompt(prompt: Prompt, decision: AccessDecision) -> PromptView:
    unlocked = decision.allowed
    return PromptView(
        id=prompt.id,
        title=prompt.title,
        slug=prompt.slug,
        description=prompt.description,
        is_premium=prompt.is_premium,
        is_agency_only=prompt.is_agency_only,
        price=prompt.price,
        locked=not unlocked,
        content=prompt.content if unlocked else None,
        instructions=prompt.instructions if unlocked else None,
        examples=prompt.examples if unlocked else None,
    )


def redact_lesson(lesson: CourseLesson, decision: AccessDecision) -> LessonView:
    unlocked = decision.allowed
    return LessonView(
        id=lesson.id,
        course_id=lesson.course_id,
        title=lesson.title,
        slug=lesson.slug,
        is_preview=lesson.is_preview,
        sort_order=lesson.sort_order,
        locked=not unlocked,
        content_html=lesson.content_html if unlocked else None,
        video_url=lesson.video_url if unlocked else None,
        video_file_url=lesson.video_file_url if unlocked else None,
    )


# --- Service ---


class AccessService:
    """Loads entitlements from the store and applies `can_access` to catalog reads."""

    def __init__(
        self,
        store: StorePort,
        rules: Rules,
        signer: MediaSignerPort | None = None,
        clock: ClockPort | None = None,
    ):
        self.store = store
        self.rules = rules
        self.signer = signer
        self.clock = clock or SystemClock()

    def viewer_for(self, user: User | None) -> Viewer:
        if user is None:
            return Viewer.anonymous()
        profile = self.store.repos.profiles.get_by_user_id(user.id)
        return Viewer.from_user(user, profile)

    def has_purchase(self, item: AccessibleItem, viewer: Viewer, now: datetime) -> bool:
        if viewer.user_id is None:
            return False
        purchases = self.store.repos.purchases
        kind, target_id = item.purchase_key
        if kind == "prompt":
            return purchases.get_prompt_purchase(viewer.user_id, target_id) is not None
        course_purchase = purchases.get_course_purchase(viewer.user_id, target_id)
        if course_purchase is None:
            return False
        expires = course_purchase.access_expires_at
        return expires is None or expires > now

    def decide(self, item: AccessibleItem, user: User | None) -> AccessDecision:
        now = self.clock.now_utc()
        viewer = self.viewer_for(user)
        purchased = self._needs_purchase_lookup(item, viewer) and self.has_purchase(
            item, viewer, now
        )
        return can_access(item, viewer, has_purchase=purchased, now=now)

    def prompt_detail(self, slug: str, user: User | None) -> PromptView:
        prompt = self.store.repos.catalog.get_prompt_by_slug(slug)
        if prompt is None or not prompt.is_published:
            raise NotFoundError("Prompt", slug)
        decision = self.decide(AccessibleItem.for_prompt(prompt), user)
        return redact_prompt(prompt, decision)

    def course_lessons(self, course_slug: str, user: User | None) -> list[LessonView]:
        course = self.store.repos.catalog.get_course_by_slug(course_slug)
        if course is None or not course.is_published:
            raise NotFoundError("Course", course_slug)
        return [
            redact_lesson(lesson, self.decide(AccessibleItem.for_lesson(lesson), user))
            for lesson in self.store.repos.catalog.list_lessons(course.id)
        ]

    def lesson_detail(self, course_slug: str, lesson_slug: str, user: User | None) -> LessonView:
        catalog = self.store.repos.catalog
        course = catalog.get_course_by_slug(course_slug)
        if course is None or not course.is_published:
            raise NotFoundError("Course", course_slug)
        lesson = catalog.get_lesson(course.id, lesson_slug)
        if lesson is None or not lesson.is_published:
            raise NotFoundError("Lesson", lesson_slug)
        return redact_lesson(lesson, self.decide(AccessibleItem.for_lesson(lesson), user))

    def authorize_media(self, user: User, bucket: str, path: str) -> SignedUrl:
        """
        Issue a signed URL for a private object after re-checking access to
        every published item that references it.

        Raises:
            ValidationError: unknown bucket or no signer configured
            NotFoundError: no published catalog item references the object
            AccessDenied: the caller may not see one of the owning items
        """
        if self.signer is None:
            raise ValidationError("Media signing is not configured")
        if bucket not in self.rules.media.buckets:
            raise ValidationError(f"Unknown bucket: {bucket}", field="bucket")

        owners = self._media_owners(bucket, path)
        if not owners:
            raise NotFoundError("Media", f"{bucket}/{path}")

        # A shared object is only as open as its most restricted owner
        for item in owners:
            decision = self.decide(item, user)
            if not decision.allowed:
                logger.info(
                    "Denied media %s/%s to user %s (%s)", bucket, path, user.id, decision.reason
                )
                raise AccessDenied(decision.reason)

        return self.signer.sign(bucket, path, self.rules.media.signed_url_ttl_seconds)

    def _media_owners(self, bucket: str, path: str) -> list[AccessibleItem]:
        catalog = self.store.repos.catalog
        if bucket == "lesson-videos":
            return [AccessibleItem.for_lesson(x) for x in catalog.find_lessons_by_video(path)]
        if bucket == "course-materials":
            return [AccessibleItem.for_lesson(x) for x in catalog.find_lessons_by_material(path)]
        if bucket == "prompt-files":
            return [AccessibleItem.for_prompt(x) for x in catalog.find_prompts_by_file(path)]
        return []

    @staticmethod
    def _needs_purchase_lookup(item: AccessibleItem, viewer: Viewer) -> bool:
        if not viewer.is_authenticated or viewer.is_admin:
            return False
        if not item.is_premium or item.is_preview or item.is_agency_only:
            return False
        return True
