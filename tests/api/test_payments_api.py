from decimal import Decimal
from uuid import uuid4

import pytest


@pytest.fixture
def admin(make_user):
    user, _ = make_user(roles=("admin",))
    return user


def test_submit_requires_auth(client, make_plan):
    resp = client.post("/api/payments", json={"plan_id": str(make_plan().id)})
    assert resp.status_code == 401


def test_submit_and_list(client, make_user, make_plan, auth_headers):
    user, _ = make_user()
    plan = make_plan(price=Decimal("99000"))
    headers = auth_headers(user)

    resp = client.post(
        "/api/payments",
        json={"plan_id": str(plan.id), "receipt_url": "https://r/1", "payment_method": "click"},
        headers=headers,
    )
    assert resp.status_code == 201
    assert Decimal(str(resp.json()["amount"])) == Decimal("99000")

    listing = client.get("/api/payments", headers=headers).json()
    assert listing["total"] == 1


def test_submit_needs_exactly_one_target(client, make_user, make_plan, make_course, auth_headers):
    user, _ = make_user()
    body = {"plan_id": str(make_plan().id), "course_id": str(make_course().id)}
    assert client.post("/api/payments", json=body, headers=auth_headers(user)).status_code == 422
    assert client.post("/api/payments", json={}, headers=auth_headers(user)).status_code == 422


def test_submit_unknown_plan(client, make_user, auth_headers):
    user, _ = make_user()
    resp = client.post("/api/payments", json={"plan_id": str(uuid4())}, headers=auth_headers(user))
    assert resp.status_code == 404


def test_admin_routes_forbidden_for_users(client, make_user, make_plan, make_payment, auth_headers):
    user, _ = make_user()
    payment = make_payment(user.id, plan_id=make_plan().id)
    headers = auth_headers(user)
    assert client.get("/api/admin/payments", headers=headers).status_code == 403
    assert client.post(f"/api/admin/payments/{payment.id}/approve", headers=headers).status_code == 403


def test_moderator_can_read_but_not_approve(client, make_user, make_plan, make_payment, auth_headers):
    mod, _ = make_user(roles=("moderator",))
    payment = make_payment(mod.id, plan_id=make_plan().id)
    headers = auth_headers(mod)
    assert client.get("/api/admin/payments", headers=headers).status_code == 200
    assert client.post(f"/api/admin/payments/{payment.id}/approve", headers=headers).status_code == 403


def test_admin_approves(client, store, make_user, make_plan, make_payment, admin, auth_headers):
    _, referrer = make_user()
    payer, profile = make_user(referred_by=referrer.id)
    payment = make_payment(payer.id, plan_id=make_plan(tier="yearly", duration_days=365).id)

    resp = client.post(
        f"/api/admin/payments/{payment.id}/approve",
        json={"notes": "checked"},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "approved"
    assert body["commission_posted"] is True
    assert store.repos.profiles.get_by_id(profile.id).subscription_type == "yearly"

    again = client.post(f"/api/admin/payments/{payment.id}/approve", headers=auth_headers(admin))
    assert again.status_code == 200
    assert again.json()["already_finalized"] is True


def test_admin_rejects_and_lists(client, make_user, make_plan, make_payment, admin, auth_headers):
    user, _ = make_user()
    payment = make_payment(user.id, plan_id=make_plan().id)
    headers = auth_headers(admin)

    assert client.post(f"/api/admin/payments/{payment.id}/reject", headers=headers).json()["status"] == "rejected"
    listing = client.get("/api/admin/payments", params={"status": "rejected"}, headers=headers).json()
    assert [p["id"] for p in listing["items"]] == [str(payment.id)]


def test_approve_unknown_payment_404(client, admin, auth_headers):
    resp = client.post(f"/api/admin/payments/{uuid4()}/approve", headers=auth_headers(admin))
    assert resp.status_code == 404


def test_approve_malformed_payment_400(client, make_user, make_payment, admin, auth_headers):
    user, _ = make_user()
    payment = make_payment(user.id)
    resp = client.post(f"/api/admin/payments/{payment.id}/approve", headers=auth_headers(admin))
    assert resp.status_code == 400
    assert resp.json() == {"detail": "Payment has no plan, course or prompt"}
