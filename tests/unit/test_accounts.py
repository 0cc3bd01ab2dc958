from unittest.mock import Mock
from uuid import uuid4

import pytest

from promptshop.adapters.auth.crypto import JWTAuthAdapter
from promptshop.components.accounts import (
    GrantRoleInput,
    LoginInput,
    generate_referral_code,
    run_grant_role,
    run_login,
)
from promptshop.components.accounts.component import REFERRAL_ALPHABET
from promptshop.domain.entities import User


def test_referral_code_shape():
    code = generate_referral_code(8, lambda c: False)
    assert len(code) == 8
    assert set(code) <= set(REFERRAL_ALPHABET)


def test_referral_code_retries_on_collision():
    taken = iter([True, True, False])
    code = generate_referral_code(10, lambda c: next(taken))
    assert len(code) == 10


def test_referral_code_gives_up():
    with pytest.raises(RuntimeError):
        generate_referral_code(8, lambda c: True, max_attempts=3)


@pytest.fixture
def user():
    return User(id=uuid4(), email="test@example.com", display_name="Test", password_hash="hash")


def test_login_success(user):
    repo, auth = Mock(), Mock()
    repo.get_by_email.return_value = user
    auth.verify_password.return_value = True
    auth.create_token.return_value = "tok"

    out = run_login(LoginInput(email=" Test@Example.com ", password="pw"), repo, auth)

    assert out.success and out.token_raw == "tok"
    repo.get_by_email.assert_called_once_with("test@example.com")


def test_login_wrong_password(user):
    repo, auth = Mock(), Mock()
    repo.get_by_email.return_value = user
    auth.verify_password.return_value = False
    out = run_login(LoginInput(email="test@example.com", password="pw"), repo, auth)
    assert not out.success
    assert out.error == "Invalid credentials"


def test_login_disabled_user(user):
    repo, auth = Mock(), Mock()
    repo.get_by_email.return_value = user.model_copy(update={"status": "disabled"})
    auth.verify_password.return_value = True
    assert run_login(LoginInput(email="test@example.com", password="pw"), repo, auth).error == (
        "User account is disabled"
    )


def test_grant_role_rejects_unknown_role():
    out = run_grant_role(GrantRoleInput(email="a@example.com", role="owner"), Mock())
    assert not out.success


def test_grant_role(user):
    repo = Mock()
    repo.get_by_email.return_value = user
    out = run_grant_role(GrantRoleInput(email="test@example.com", role="admin"), repo)
    assert out.success
    repo.add_role.assert_called_once_with(user.id, "admin")


def test_jwt_adapter_roundtrip():
    adapter = JWTAuthAdapter("test-secret")
    hashed = adapter.hash_password("correct horse")
    assert adapter.verify_password("correct horse", hashed)
    assert not adapter.verify_password("wrong", hashed)
    user_id = uuid4()
    assert adapter.validate_token(adapter.create_token(user_id, 5)) == str(user_id)
    assert adapter.validate_token("garbage") is None


def test_jwt_adapter_rejects_foreign_secret():
    token = JWTAuthAdapter("one-secret").create_token(uuid4(), 5)
    assert JWTAuthAdapter("other-secret").validate_token(token) is None


def test_unknown_hash_format_does_not_verify():
    assert JWTAuthAdapter("test-secret").verify_password("anything", "hash") is False
