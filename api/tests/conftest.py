from __future__ import annotations

import os
from typing import Any

import pytest
from fastapi import HTTPException

# jobboard.main reads settings at import time.
os.environ.setdefault("JB_OTEL_ENABLED", "false")
os.environ.setdefault("JB_STORAGE_BACKEND", "memory")

import jobboard.core.security as security  # noqa: E402
from jobboard.core.config import get_settings  # noqa: E402
from jobboard.services.store import InMemoryRepository  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_settings_cache() -> Any:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def repo() -> InMemoryRepository:
    return InMemoryRepository()


def mock_supabase_users(monkeypatch: pytest.MonkeyPatch, users_by_token: dict[str, dict[str, Any]]) -> None:
    async def _fake_fetch(*, token: str, **_: Any) -> dict[str, Any]:
        if token not in users_by_token:
            raise HTTPException(status_code=401, detail="invalid bearer token")
        return users_by_token[token]

    monkeypatch.setattr(security, "_fetch_supabase_user", _fake_fetch)


async def seed_user(
    repo: InMemoryRepository,
    *,
    subject: str,
    role: str,
    email: str | None = None,
    name: str | None = None,
    company_name: str | None = None,
) -> dict[str, Any]:
    user = await repo.create_user(
        auth_subject_id=subject,
        email=email or f"{subject}@example.com",
        name=name,
        role=role,
        image_url=None,
    )
    if company_name is not None:
        await repo.upsert_employer_profile(
            user_id=user["id"],
            company_name=company_name,
            website=None,
            description=None,
        )
    return await repo.get_user(user["id"])


async def seed_job(repo: InMemoryRepository, employer_id: str, **overrides: Any) -> dict[str, Any]:
    fields = {
        "title": "Backend Engineer",
        "description": "Build and run APIs.",
        "location": "Remote - Qatar",
        "company": "Qatar Cloud",
        "salary_min": 10000,
        "salary_max": 17000,
        "status": "ACTIVE",
    }
    fields.update(overrides)
    return await repo.create_job(employer_id=employer_id, **fields)
