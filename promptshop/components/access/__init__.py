"""
Access component.

Public API for server-side premium content gating and media URL signing.
"""

from .component import (
    AccessService,
    can_access,
    redact_lesson,
    redact_prompt,
)
from .models import (
    AccessDecision,
    AccessibleItem,
    AccessReason,
    ItemKind,
    LessonView,
    PromptView,
    Viewer,
)

__all__ = [
    # Functions
    "can_access",
    "redact_lesson",
    "redact_prompt",
    # Service
    "AccessService",
    # Models
    "AccessDecision",
    "AccessibleItem",
    "AccessReason",
    "ItemKind",
    "LessonView",
    "PromptView",
    "Viewer",
]
