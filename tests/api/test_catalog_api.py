from datetime import timedelta

import pytest


@pytest.fixture
def premium(make_prompt):
    return make_prompt(slug="premium-prompt")


def test_anonymous_sees_locked_prompt(client, premium):
    resp = client.get("/api/catalog/prompts/premium-prompt")
    assert resp.status_code == 200
    body = resp.json()
    assert body["locked"] is True
    assert body["content"] is None
    assert "SECRET" not in resp.text


def test_subscriber_sees_content(client, premium, make_user, auth_headers, now):
    user, _ = make_user(tier="monthly", expires_at=now + timedelta(days=10))
    body = client.get("/api/catalog/prompts/premium-prompt", headers=auth_headers(user)).json()
    assert body["locked"] is False
    assert body["content"] == "SECRET CONTENT"


def test_lapsed_subscriber_is_locked_out(client, premium, make_user, auth_headers, now):
    user, _ = make_user(tier="monthly", expires_at=now - timedelta(seconds=1))
    body = client.get("/api/catalog/prompts/premium-prompt", headers=auth_headers(user)).json()
    assert body["locked"] is True


def test_agency_only_prompt(client, make_prompt, make_user, auth_headers, now):
    make_prompt(slug="agency", is_agency_only=True, is_premium=False)
    lifer, _ = make_user(tier="lifetime")
    agent, _ = make_user(agency=True, agency_expires_at=now + timedelta(days=1))

    assert client.get("/api/catalog/prompts/agency", headers=auth_headers(lifer)).json()["locked"]
    assert not client.get("/api/catalog/prompts/agency", headers=auth_headers(agent)).json()["locked"]


def test_list_prompts_redacts_each_item(client, make_prompt):
    make_prompt(slug="free-one", is_premium=False)
    make_prompt(slug="paid-one")
    items = {p["slug"]: p for p in client.get("/api/catalog/prompts").json()}
    assert items["free-one"]["content"] == "SECRET CONTENT"
    assert items["paid-one"]["content"] is None


def test_unknown_prompt_404(client):
    assert client.get("/api/catalog/prompts/nope").status_code == 404


def test_unpublished_prompt_404(client, make_prompt):
    make_prompt(slug="draft", is_published=False)
    assert client.get("/api/catalog/prompts/draft").status_code == 404


def test_lessons_preview_and_purchase(
    client, store, make_course, make_lesson, make_user, make_payment, auth_headers, payment_service
):
    course = make_course(slug="python")
    make_lesson(course.id, slug="intro", is_preview=True, sort_order=0)
    make_lesson(course.id, slug="deep-dive", sort_order=1)
    buyer, _ = make_user()
    admin, _ = make_user(roles=("admin",))

    anon = {lesson["slug"]: lesson for lesson in client.get("/api/catalog/courses/python/lessons").json()}
    assert anon["intro"]["locked"] is False
    assert anon["deep-dive"]["locked"] is True
    assert anon["deep-dive"]["video_url"] is None

    payment_service.approve_payment(make_payment(buyer.id, course_id=course.id).id, admin.id)
    resp = client.get("/api/catalog/courses/python/lessons/deep-dive", headers=auth_headers(buyer))
    assert resp.json()["locked"] is False
    assert resp.json()["video_url"] == "https://video.example.com/secret"


def test_plans_and_courses_listing(client, make_plan, make_course):
    make_plan(tier="monthly")
    make_plan(tier="yearly", is_active=False)
    make_course(slug="c1")
    assert [p["subscription_type"] for p in client.get("/api/catalog/plans").json()] == ["monthly"]
    assert [c["slug"] for c in client.get("/api/catalog/courses").json()] == ["c1"]


def test_bad_token_is_treated_as_anonymous(client, premium):
    resp = client.get(
        "/api/catalog/prompts/premium-prompt", headers={"Authorization": "Bearer garbage"}
    )
    assert resp.status_code == 200
    assert resp.json()["locked"] is True
