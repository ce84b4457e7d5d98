import pytest
from fastapi.testclient import TestClient

from jobboard.core.config import get_settings
from jobboard.main import app


def test_healthz() -> None:
    client = TestClient(app)
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_readyz_with_memory_storage(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("JB_STORAGE_BACKEND", "memory")
    get_settings.cache_clear()

    with TestClient(app) as client:
        response = client.get("/readyz")

    assert response.status_code == 200
    assert response.json() == {"status": "ready"}


@pytest.fixture
def degraded_client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    # Postgres backend without JB_DATABASE_URL behaves like an unreachable database.
    monkeypatch.setenv("JB_STORAGE_BACKEND", "postgres")
    monkeypatch.delenv("JB_DATABASE_URL", raising=False)
    get_settings.cache_clear()

    with TestClient(app) as client:
        yield client

    get_settings.cache_clear()


def test_readyz_reports_unavailable_storage(degraded_client: TestClient) -> None:
    assert degraded_client.get("/readyz").status_code == 503


def test_public_listing_falls_back_when_database_is_down(degraded_client: TestClient) -> None:
    response = degraded_client.get("/jobs", params={"location": "qatar", "limit": 2})

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 3
    assert body["total_pages"] == 2
    assert [item["id"] for item in body["items"]] == ["fallback-1", "fallback-2"]


def test_job_detail_falls_back_only_for_known_entries(degraded_client: TestClient) -> None:
    known = degraded_client.get("/jobs/fallback-2")
    assert known.status_code == 200
    assert known.json()["company"] == "Qatar Cloud"

    assert degraded_client.get("/jobs/not-a-fallback").status_code == 503
