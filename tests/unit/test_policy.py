from pathlib import Path

import pytest

from promptshop.domain.entities import User
from promptshop.domain.policy import PolicyEngine
from promptshop.rules.loader import load_rules

ROOT = Path(__file__).resolve().parents[2]


@pytest.fixture
def policy():
    return PolicyEngine(load_rules(ROOT / "rules.yaml"))


def _user(*roles, status="active"):
    return User(email="u@example.com", display_name="u", password_hash="h", roles=list(roles), status=status)


def test_public_permission_needs_no_user(policy):
    assert policy.check_permission(None, "catalog:read")


def test_anonymous_denied_private_action(policy):
    assert not policy.check_permission(None, "payments:create")


def test_admin_wildcard(policy):
    assert policy.check_permission(_user("admin"), "payments:approve")
    assert policy.check_permission(_user("admin"), "subscriptions:run")


def test_moderator_scoped_wildcard(policy):
    mod = _user("moderator")
    assert policy.check_permission(mod, "catalog:write")
    assert policy.check_permission(mod, "payments:read")
    assert not policy.check_permission(mod, "payments:approve")


def test_plain_user(policy):
    user = _user("user")
    assert policy.check_permission(user, "payments:create")
    assert not policy.check_permission(user, "payments:read")


def test_disabled_user_denied(policy):
    assert not policy.check_permission(_user("admin", status="disabled"), "payments:approve")
