from fastapi import APIRouter, Depends

from promptshop.adapters.sqlite.repos import SQLiteStore
from promptshop.api.deps import get_access_service, get_optional_user, get_store
from promptshop.api.schemas import CourseResponse, PlanResponse
from promptshop.components.access import (
    AccessibleItem,
    AccessService,
    LessonView,
    PromptView,
    redact_prompt,
)
from promptshop.domain.entities import User

router = APIRouter()


@router.get("/plans", response_model=list[PlanResponse])
def list_plans(store: SQLiteStore = Depends(get_store)) -> list[PlanResponse]:
    return [PlanResponse.model_validate(p) for p in store.repos.catalog.list_plans()]


@router.get("/prompts", response_model=list[PromptView])
def list_prompts(
    user: User | None = Depends(get_optional_user),
    access: AccessService = Depends(get_access_service),
) -> list[PromptView]:
    """Published prompts; premium fields are withheld per item."""
    return [
        redact_prompt(p, access.decide(AccessibleItem.for_prompt(p), user))
        for p in access.store.repos.catalog.list_prompts()
    ]


@router.get("/prompts/{slug}", response_model=PromptView)
def get_prompt(
    slug: str,
    user: User | None = Depends(get_optional_user),
    access: AccessService = Depends(get_access_service),
) -> PromptView:
    return access.prompt_detail(slug, user)


@router.get("/courses", response_model=list[CourseResponse])
def list_courses(store: SQLiteStore = Depends(get_store)) -> list[CourseResponse]:
    return [CourseResponse.model_validate(c) for c in store.repos.catalog.list_courses()]


@router.get("/courses/{course_slug}/lessons", response_model=list[LessonView])
def list_lessons(
    course_slug: str,
    user: User | None = Depends(get_optional_user),
    access: AccessService = Depends(get_access_service),
) -> list[LessonView]:
    return access.course_lessons(course_slug, user)


@router.get("/courses/{course_slug}/lessons/{lesson_slug}", response_model=LessonView)
def get_lesson(
    course_slug: str,
    lesson_slug: str,
    user: User | None = Depends(get_optional_user),
    access: AccessService = Depends(get_access_service),
) -> LessonView:
    return access.lesson_detail(course_slug, lesson_slug, user)
