from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from promptshop.adapters.auth.crypto import JWTAuthAdapter
from promptshop.api.deps import (
    Settings,
    get_clock,
    get_email_adapter,
    get_rules,
    get_settings,
)
from promptshop.api.main import app


@pytest.fixture
def settings(db_path, tmp_path) -> Settings:
    s = Settings()
    s.data_dir = tmp_path
    s.db_path = db_path
    s.secret_key = "test-secret"
    s.resend_api_key = ""
    return s


@pytest.fixture
def client(settings, rules, clock, email):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_rules] = lambda: rules
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_email_adapter] = lambda: email
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(settings):
    adapter = JWTAuthAdapter(settings.secret_key)

    def _headers(user) -> dict[str, str]:
        token = adapter.create_token(user.id, 60)
        return {"Authorization": f"Bearer {token}"}

    return _headers
