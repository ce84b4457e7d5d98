from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from jobboard.core.config import get_settings
from jobboard.core.security import _resolve_role_hint
from jobboard.main import app


def test_admin_role_is_only_trusted_from_app_metadata() -> None:
    assert _resolve_role_hint({"app_metadata": {"role": "admin"}}) == "ADMIN"
    assert _resolve_role_hint({"app_metadata": {"roles": ["viewer", "employer"]}}) == "EMPLOYER"
    assert _resolve_role_hint({"user_metadata": {"role": "admin"}}) is None
    assert _resolve_role_hint({"user_metadata": {"role": "job_seeker"}}) == "JOBSEEKER"
    assert _resolve_role_hint({"app_metadata": "broken", "user_metadata": None}) is None


def test_missing_supabase_config_returns_503(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("JB_STORAGE_BACKEND", "memory")
    monkeypatch.delenv("JB_SUPABASE_URL", raising=False)
    monkeypatch.delenv("JB_SUPABASE_ANON_KEY", raising=False)
    get_settings.cache_clear()

    with TestClient(app) as client:
        response = client.get("/auth/user", headers={"Authorization": "Bearer token"})

    assert response.status_code == 503


@pytest.fixture
def trusted_header_client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    monkeypatch.setenv("JB_STORAGE_BACKEND", "memory")
    monkeypatch.setenv("JB_IDENTITY_PROVIDER", "trusted_header")
    get_settings.cache_clear()

    with TestClient(app) as client:
        yield client

    get_settings.cache_clear()


def test_trusted_header_identity(trusted_header_client: TestClient) -> None:
    response = trusted_header_client.get(
        "/auth/user",
        headers={
            "X-Auth-Subject": "gateway-user-1",
            "X-Auth-Email": "gateway@example.com",
            "X-Auth-Name": "Gateway User",
            "X-Auth-Role": "employer",
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["role"] == "EMPLOYER"
    assert body["email"] == "gateway@example.com"


def test_trusted_header_requires_subject(trusted_header_client: TestClient) -> None:
    response = trusted_header_client.get("/auth/user", headers={"X-Auth-Email": "gateway@example.com"})

    assert response.status_code == 401
