from uuid import UUID

from fastapi import APIRouter, Depends, status

from promptshop.adapters.sqlite.repos import SQLiteStore
from promptshop.api.deps import get_store, require_permission
from promptshop.api.schemas import (
    CourseCreateRequest,
    CreatedResponse,
    LessonCreateRequest,
    MaterialCreateRequest,
    PlanCreateRequest,
    PromptCreateRequest,
    PromptFileCreateRequest,
)
from promptshop.domain.entities import (
    Course,
    CourseLesson,
    CourseMaterial,
    PricingPlan,
    Prompt,
    PromptFile,
    User,
)
from promptshop.domain.errors import NotFoundError

router = APIRouter()

CatalogWriter = Depends(require_permission("catalog:write"))


@router.post("/plans", response_model=CreatedResponse, status_code=status.HTTP_201_CREATED)
def create_plan(
    body: PlanCreateRequest,
    _user: User = CatalogWriter,
    store: SQLiteStore = Depends(get_store),
) -> CreatedResponse:
    plan = store.repos.catalog.save_plan(PricingPlan(**body.model_dump()))
    return CreatedResponse(id=plan.id, kind="plan")


@router.post("/prompts", response_model=CreatedResponse, status_code=status.HTTP_201_CREATED)
def create_prompt(
    body: PromptCreateRequest,
    _user: User = CatalogWriter,
    store: SQLiteStore = Depends(get_store),
) -> CreatedResponse:
    prompt = store.repos.catalog.save_prompt(Prompt(**body.model_dump()))
    return CreatedResponse(id=prompt.id, kind="prompt")


@router.post(
    "/prompts/{prompt_id}/files",
    response_model=CreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_prompt_file(
    prompt_id: UUID,
    body: PromptFileCreateRequest,
    _user: User = CatalogWriter,
    store: SQLiteStore = Depends(get_store),
) -> CreatedResponse:
    if store.repos.catalog.get_prompt(prompt_id) is None:
        raise NotFoundError("Prompt", prompt_id)
    f = store.repos.catalog.save_prompt_file(PromptFile(prompt_id=prompt_id, **body.model_dump()))
    return CreatedResponse(id=f.id, kind="prompt_file")


@router.post("/courses", response_model=CreatedResponse, status_code=status.HTTP_201_CREATED)
def create_course(
    body: CourseCreateRequest,
    _user: User = CatalogWriter,
    store: SQLiteStore = Depends(get_store),
) -> CreatedResponse:
    course = store.repos.catalog.save_course(Course(**body.model_dump()))
    return CreatedResponse(id=course.id, kind="course")


@router.post(
    "/courses/{course_id}/lessons",
    response_model=CreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_lesson(
    course_id: UUID,
    body: LessonCreateRequest,
    _user: User = CatalogWriter,
    store: SQLiteStore = Depends(get_store),
) -> CreatedResponse:
    if store.repos.catalog.get_course(course_id) is None:
        raise NotFoundError("Course", course_id)
    lesson = store.repos.catalog.save_lesson(CourseLesson(course_id=course_id, **body.model_dump()))
    return CreatedResponse(id=lesson.id, kind="lesson")


@router.post(
    "/lessons/{lesson_id}/materials",
    response_model=CreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_material(
    lesson_id: UUID,
    body: MaterialCreateRequest,
    _user: User = CatalogWriter,
    store: SQLiteStore = Depends(get_store),
) -> CreatedResponse:
    if store.repos.catalog.get_lesson_by_id(lesson_id) is None:
        raise NotFoundError("Lesson", lesson_id)
    material = store.repos.catalog.save_material(
        CourseMaterial(lesson_id=lesson_id, **body.model_dump())
    )
    return CreatedResponse(id=material.id, kind="material")
