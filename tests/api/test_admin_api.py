from datetime import timedelta


def test_catalog_write_requires_permission(client, make_user, auth_headers):
    user, _ = make_user()
    body = {"name": "Monthly", "slug": "monthly", "price": "100000", "duration_days": 30, "subscription_type": "monthly"}
    assert client.post("/api/admin/catalog/plans", json=body, headers=auth_headers(user)).status_code == 403


def test_moderator_builds_catalog(client, store, make_user, auth_headers):
    mod, _ = make_user(roles=("moderator",))
    headers = auth_headers(mod)

    course = client.post(
        "/api/admin/catalog/courses",
        json={"title": "Prompting", "slug": "prompting", "price": "250000"},
        headers=headers,
    )
    assert course.status_code == 201
    course_id = course.json()["id"]

    lesson = client.post(
        f"/api/admin/catalog/courses/{course_id}/lessons",
        json={"title": "Intro", "slug": "intro", "is_preview": True},
        headers=headers,
    )
    assert lesson.status_code == 201

    material = client.post(
        f"/api/admin/catalog/lessons/{lesson.json()['id']}/materials",
        json={"title": "Slides", "file_url": "slides.pdf"},
        headers=headers,
    )
    assert material.json()["kind"] == "material"

    prompt = client.post(
        "/api/admin/catalog/prompts",
        json={"title": "Copy", "slug": "copy", "content": "Write...", "is_premium": True, "price": "20000"},
        headers=headers,
    )
    assert prompt.status_code == 201
    assert store.repos.catalog.get_prompt_by_slug("copy").is_premium is True


def test_lesson_for_unknown_course_404(client, make_user, auth_headers):
    admin, _ = make_user(roles=("admin",))
    resp = client.post(
        "/api/admin/catalog/courses/00000000-0000-0000-0000-000000000000/lessons",
        json={"title": "x", "slug": "x"},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 404


def test_subscription_maintenance(client, store, email, make_user, auth_headers, now):
    admin, _ = make_user(roles=("admin",))
    _, soon = make_user(email="soon@example.com", tier="monthly", expires_at=now + timedelta(days=1))
    _, lapsed = make_user(tier="monthly", expires_at=now - timedelta(days=1))
    headers = auth_headers(admin)

    reminders = client.post("/api/admin/subscriptions/reminders", headers=headers).json()
    assert reminders["sent"] == 2

    sweep = client.post("/api/admin/subscriptions/expire", headers=headers).json()
    assert sweep == {"downgraded": 1, "agency_revoked": 0}
    assert store.repos.profiles.get_by_id(lapsed.id).subscription_type == "free"
    assert store.repos.profiles.get_by_id(soon.id).subscription_type == "monthly"


def test_subscription_maintenance_forbidden_for_moderator(client, make_user, auth_headers):
    mod, _ = make_user(roles=("moderator",))
    assert client.post("/api/admin/subscriptions/expire", headers=auth_headers(mod)).status_code == 403
