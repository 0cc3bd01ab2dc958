from datetime import timedelta

import pytest

from promptshop.domain.entities import CourseMaterial, PromptFile


@pytest.fixture
def course_video(make_course, make_lesson):
    course = make_course()
    make_lesson(course.id, slug="paid", video_file_url="course/intro.mp4")
    return course


def _sign(client, headers, bucket, path):
    return client.post("/api/media/signed-url", json={"bucket": bucket, "path": path}, headers=headers)


def test_subscriber_gets_signed_url(client, course_video, make_user, auth_headers, now):
    user, _ = make_user(tier="monthly", expires_at=now + timedelta(days=3))
    resp = _sign(client, auth_headers(user), "lesson-videos", "course/intro.mp4")
    assert resp.status_code == 200
    assert "/lesson-videos/course/intro.mp4?token=" in resp.json()["url"]


def test_unentitled_user_forbidden(client, course_video, make_user, auth_headers):
    user, _ = make_user()
    resp = _sign(client, auth_headers(user), "lesson-videos", "course/intro.mp4")
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Access denied: entitlement_required"


def test_anonymous_unauthorized(client, course_video):
    assert _sign(client, {}, "lesson-videos", "course/intro.mp4").status_code == 401


def test_unknown_object_404(client, make_user, auth_headers):
    user, _ = make_user(tier="lifetime")
    assert _sign(client, auth_headers(user), "lesson-videos", "nothing.mp4").status_code == 404


def test_unknown_bucket_400(client, make_user, auth_headers):
    user, _ = make_user(tier="lifetime")
    assert _sign(client, auth_headers(user), "secrets", "x").status_code == 400


def test_course_material_follows_lesson(client, store, make_course, make_lesson, make_user, auth_headers):
    course = make_course()
    lesson = make_lesson(course.id)
    store.repos.catalog.save_material(
        CourseMaterial(lesson_id=lesson.id, title="Slides", file_url="slides.pdf")
    )
    admin, _ = make_user(roles=("admin",))
    user, _ = make_user()
    assert _sign(client, auth_headers(admin), "course-materials", "slides.pdf").status_code == 200
    assert _sign(client, auth_headers(user), "course-materials", "slides.pdf").status_code == 403


def test_prompt_file_needs_agency_for_agency_prompt(client, store, make_prompt, make_user, auth_headers, now):
    prompt = make_prompt(is_agency_only=True)
    store.repos.catalog.save_prompt_file(
        PromptFile(prompt_id=prompt.id, file_name="kit.zip", file_url="kit.zip")
    )
    agent, _ = make_user(agency=True, agency_expires_at=now + timedelta(days=1))
    lifer, _ = make_user(tier="lifetime")
    assert _sign(client, auth_headers(agent), "prompt-files", "kit.zip").status_code == 200
    assert _sign(client, auth_headers(lifer), "prompt-files", "kit.zip").status_code == 403


def test_video_shared_with_preview_lesson_stays_locked(client, make_course, make_lesson, make_user, auth_headers):
    course = make_course()
    make_lesson(course.id, slug="teaser", is_preview=True, video_file_url="shared.mp4")
    make_lesson(course.id, slug="full", video_file_url="shared.mp4")
    user, _ = make_user()
    lifer, _ = make_user(tier="lifetime")

    assert _sign(client, auth_headers(user), "lesson-videos", "shared.mp4").status_code == 403
    assert _sign(client, auth_headers(lifer), "lesson-videos", "shared.mp4").status_code == 200


def test_unpublished_lesson_does_not_expose_media(client, make_course, make_lesson, make_user, auth_headers):
    course = make_course()
    make_lesson(course.id, is_preview=True, is_published=False, video_file_url="draft.mp4")
    hidden = make_course(is_published=False)
    make_lesson(hidden.id, is_preview=True, video_file_url="hidden.mp4")
    user, _ = make_user()

    assert _sign(client, auth_headers(user), "lesson-videos", "draft.mp4").status_code == 404
    assert _sign(client, auth_headers(user), "lesson-videos", "hidden.mp4").status_code == 404


def test_preview_lesson_video_is_open(client, make_course, make_lesson, make_user, auth_headers):
    course = make_course()
    make_lesson(course.id, is_preview=True, video_file_url="teaser.mp4")
    user, _ = make_user()
    assert _sign(client, auth_headers(user), "lesson-videos", "teaser.mp4").status_code == 200
