from __future__ import annotations

import asyncio
from typing import Any

import pytest
from asyncpg import exceptions as pg_exc  # type: ignore[import-untyped]
from conftest import seed_job, seed_user

from jobboard.core.config import Settings
from jobboard.services.job_filters import JobFilters
from jobboard.services.jobs import JobCatalog, load_fallback_jobs
from jobboard.services.repository import (
    PostgresRepository,
    RepositoryForbiddenError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
)
from jobboard.services.store import InMemoryRepository


class UnavailableJobRepository:
    async def list_jobs(self, **_: Any) -> tuple[list[dict[str, Any]], int]:
        raise RepositoryUnavailableError("database unavailable")

    async def get_job(self, job_id: str) -> dict[str, Any]:
        raise RepositoryUnavailableError("database unavailable")


def _fallback_catalog() -> JobCatalog:
    return JobCatalog(UnavailableJobRepository(), fallback_jobs=load_fallback_jobs(Settings()))


def test_list_serves_fallback_when_storage_is_down() -> None:
    result = asyncio.run(_fallback_catalog().list(page=1, page_size=10, filters=JobFilters()))

    assert result["total"] == 3
    assert result["total_pages"] == 1
    assert [job["id"] for job in result["items"]] == ["fallback-1", "fallback-2", "fallback-3"]


def test_fallback_listing_applies_filters() -> None:
    catalog = _fallback_catalog()

    result = asyncio.run(
        catalog.list(page=1, page_size=10, filters=JobFilters.build(search="backend", location="qatar"))
    )

    assert [job["title"] for job in result["items"]] == ["Backend Engineer"]
    assert result["items"][0]["company"] == "Qatar Cloud"


def test_get_by_id_falls_back_only_for_known_entries() -> None:
    catalog = _fallback_catalog()

    assert asyncio.run(catalog.get_by_id("fallback-2"))["title"] == "Backend Engineer"
    with pytest.raises(RepositoryUnavailableError):
        asyncio.run(catalog.get_by_id("unknown"))


def test_fallback_json_override() -> None:
    raw = """[
      {
        "id": "only",
        "title": "Data Analyst",
        "description": "SQL",
        "location": "Doha",
        "company": "Stats Co",
        "employer_id": "emp",
        "employer": {"id": "emp", "name": null, "company_name": "Stats Co"},
        "created_at": "2025-01-01T00:00:00Z",
        "updated_at": "2025-01-01T00:00:00Z"
      }
    ]"""

    jobs = load_fallback_jobs(Settings(fallback_jobs_json=raw))

    assert [job["id"] for job in jobs] == ["only"]
    assert jobs[0]["status"] == "ACTIVE"


def test_invalid_fallback_json_is_rejected() -> None:
    with pytest.raises(ValueError):
        load_fallback_jobs(Settings(fallback_jobs_json='[{"id": "broken"}]'))


def test_create_requires_employer_role(repo: InMemoryRepository) -> None:
    async def scenario() -> None:
        seeker = await seed_user(repo, subject="seeker-1", role="JOBSEEKER")
        with pytest.raises(RepositoryForbiddenError):
            await JobCatalog(repo).create(
                seeker["id"],
                {"title": "T", "description": "D", "location": "L", "company": "C"},
            )

    asyncio.run(scenario())
    assert repo.jobs == {}


def test_create_validates_fields(repo: InMemoryRepository) -> None:
    async def scenario() -> None:
        employer = await seed_user(repo, subject="emp-1", role="EMPLOYER")
        catalog = JobCatalog(repo)
        with pytest.raises(RepositoryValidationError, match="description"):
            await catalog.create(employer["id"], {"title": "T", "description": " ", "location": "L", "company": "C"})
        with pytest.raises(RepositoryValidationError, match="salary_min"):
            await catalog.create(
                employer["id"],
                {
                    "title": "T",
                    "description": "D",
                    "location": "L",
                    "company": "C",
                    "salary_min": 20000,
                    "salary_max": 10000,
                },
            )

    asyncio.run(scenario())
    assert repo.jobs == {}


def test_create_publishes_active_job(repo: InMemoryRepository) -> None:
    async def scenario() -> dict[str, Any]:
        employer = await seed_user(repo, subject="emp-1", role="EMPLOYER", company_name="Qatar Cloud")
        return await JobCatalog(repo).create(
            employer["id"],
            {"title": " Backend Engineer ", "description": "APIs", "location": "Doha", "company": "Qatar Cloud"},
        )

    job = asyncio.run(scenario())

    assert job["status"] == "ACTIVE"
    assert job["title"] == "Backend Engineer"
    assert job["employer"]["company_name"] == "Qatar Cloud"
    assert job["application_count"] == 0


def test_update_is_scoped_to_owner(repo: InMemoryRepository) -> None:
    async def scenario() -> str:
        owner = await seed_user(repo, subject="emp-1", role="EMPLOYER")
        other = await seed_user(repo, subject="emp-2", role="EMPLOYER")
        job = await seed_job(repo, owner["id"])
        catalog = JobCatalog(repo)

        with pytest.raises(RepositoryNotFoundError):
            await catalog.update(job["id"], other["id"], {"status": "CLOSED"})
        closed = await catalog.update(job["id"], owner["id"], {"status": "CLOSED"})
        assert closed["status"] == "CLOSED"
        return job["id"]

    job_id = asyncio.run(scenario())
    assert repo.jobs[job_id]["status"] == "CLOSED"


def test_update_checks_merged_salary_range(repo: InMemoryRepository) -> None:
    async def scenario() -> None:
        owner = await seed_user(repo, subject="emp-1", role="EMPLOYER")
        job = await seed_job(repo, owner["id"], salary_min=10000, salary_max=17000)
        with pytest.raises(RepositoryValidationError):
            await JobCatalog(repo).update(job["id"], owner["id"], {"salary_min": 18000})

    asyncio.run(scenario())


def test_update_rejects_unknown_fields(repo: InMemoryRepository) -> None:
    async def scenario() -> None:
        owner = await seed_user(repo, subject="emp-1", role="EMPLOYER")
        job = await seed_job(repo, owner["id"])
        with pytest.raises(RepositoryValidationError):
            await JobCatalog(repo).update(job["id"], owner["id"], {"employer_id": "someone-else"})

    asyncio.run(scenario())


def test_closed_jobs_leave_the_public_listing(repo: InMemoryRepository) -> None:
    async def scenario() -> dict[str, Any]:
        owner = await seed_user(repo, subject="emp-1", role="EMPLOYER")
        await seed_job(repo, owner["id"], title="Open role")
        await seed_job(repo, owner["id"], title="Closed role", status="CLOSED")
        return await JobCatalog(repo).list(page=1, page_size=10, filters=JobFilters())

    result = asyncio.run(scenario())

    assert [job["title"] for job in result["items"]] == ["Open role"]
    assert result["total"] == 1


class ShuttingDownPool:
    """Pool whose queries fail the way they do while Postgres restarts or runs out of slots."""

    def __init__(self, error: Exception) -> None:
        self.error = error

    async def fetchval(self, *_: Any) -> Any:
        raise self.error

    async def fetch(self, *_: Any) -> Any:
        raise self.error

    async def fetchrow(self, *_: Any) -> Any:
        raise self.error


def _repository_with_pool(pool: Any) -> PostgresRepository:
    repository = PostgresRepository("postgresql://jobboard@localhost/jobboard", min_pool_size=1, max_pool_size=1)
    repository._pool = pool
    return repository


@pytest.mark.parametrize(
    "error",
    [
        pg_exc.AdminShutdownError("terminating connection due to administrator command"),
        pg_exc.TooManyConnectionsError("sorry, too many clients already"),
    ],
)
def test_listing_degrades_when_server_is_shutting_down_or_full(error: Exception) -> None:
    catalog = JobCatalog(_repository_with_pool(ShuttingDownPool(error)), fallback_jobs=load_fallback_jobs(Settings()))

    result = asyncio.run(catalog.list(page=1, page_size=10, filters=JobFilters()))
    fallback = asyncio.run(catalog.get_by_id("fallback-3"))

    assert result["total"] == 3
    assert [job["id"] for job in result["items"]] == ["fallback-1", "fallback-2", "fallback-3"]
    assert fallback["company"] == "Gulf Design Studio"


def test_readiness_ping_reports_admin_shutdown_as_unavailable() -> None:
    repository = _repository_with_pool(ShuttingDownPool(pg_exc.AdminShutdownError("shutting down")))

    with pytest.raises(RepositoryUnavailableError):
        asyncio.run(repository.ping())


def test_zero_salary_bounds_do_not_filter(repo: InMemoryRepository) -> None:
    async def scenario() -> dict[str, Any]:
        owner = await seed_user(repo, subject="emp-1", role="EMPLOYER")
        await seed_job(repo, owner["id"], title="Salary undisclosed", salary_min=None, salary_max=None)
        return await JobCatalog(repo).list(
            page=1, page_size=10, filters=JobFilters.build(salary_min=0, salary_max=0)
        )

    result = asyncio.run(scenario())

    assert [job["title"] for job in result["items"]] == ["Salary undisclosed"]
