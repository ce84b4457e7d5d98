from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError

from jobboard.core.config import Settings
from jobboard.core.telemetry import mark_degraded
from jobboard.schemas.jobs import JobOut
from jobboard.services.job_filters import JobFilters, filter_active_jobs, page_offset, total_pages
from jobboard.services.repository import (
    JOB_MUTABLE_FIELDS,
    JOB_STATUSES,
    RepositoryForbiddenError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
)

logger = logging.getLogger(__name__)

BUNDLED_FALLBACK_JOBS_PATH = Path(__file__).resolve().parents[1] / "data" / "fallback_jobs.json"
REQUIRED_JOB_FIELDS = ("title", "description", "location", "company")

_FALLBACK_ADAPTER = TypeAdapter(list[JobOut])


def load_fallback_jobs(settings: Settings) -> list[dict[str, Any]]:
    """Load the static listing served while the database is unreachable."""
    if settings.fallback_jobs_json:
        raw = settings.fallback_jobs_json
        source = "JB_FALLBACK_JOBS_JSON"
    else:
        path = Path(settings.fallback_jobs_path) if settings.fallback_jobs_path else BUNDLED_FALLBACK_JOBS_PATH
        raw = path.read_text(encoding="utf-8")
        source = str(path)

    try:
        jobs = _FALLBACK_ADAPTER.validate_python(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise ValueError(f"invalid fallback jobs in {source}: {exc}") from exc
    return [job.model_dump() for job in jobs]


class JobCatalog:
    def __init__(
        self,
        repository: Any,
        *,
        fallback_jobs: list[dict[str, Any]] | None = None,
        include_open_ended_salaries: bool = False,
    ) -> None:
        self.repository = repository
        self.fallback_jobs = fallback_jobs or []
        self.include_open_ended_salaries = include_open_ended_salaries

    async def list(self, *, page: int, page_size: int, filters: JobFilters) -> dict[str, Any]:
        offset = page_offset(page, page_size)
        try:
            items, total = await self.repository.list_jobs(
                limit=page_size,
                offset=offset,
                filters=filters,
                include_open_ended_salaries=self.include_open_ended_salaries,
            )
        except RepositoryUnavailableError as exc:
            logger.warning("database unreachable, serving fallback jobs: %s", exc)
            mark_degraded("storage_unavailable", operation="list_jobs")
            matched = filter_active_jobs(
                self.fallback_jobs,
                filters,
                include_open_ended_salaries=self.include_open_ended_salaries,
            )
            items, total = matched[offset : offset + page_size], len(matched)

        return {
            "items": items,
            "total": total,
            "total_pages": total_pages(total, page_size),
            "page": page,
            "page_size": page_size,
        }

    async def get_by_id(self, job_id: str) -> dict[str, Any]:
        try:
            return await self.repository.get_job(job_id)
        except RepositoryUnavailableError:
            fallback = next((job for job in self.fallback_jobs if job["id"] == job_id), None)
            if fallback is None:
                raise
            logger.warning("database unreachable, serving fallback job id=%s", job_id)
            mark_degraded("storage_unavailable", operation="get_job", job_id=job_id)
            return fallback

    async def list_by_employer(self, employer_id: str) -> list[dict[str, Any]]:
        return await self.repository.list_jobs_by_employer(employer_id)

    async def create(self, employer_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        employer = await self.repository.get_user(employer_id)
        if employer is None:
            raise RepositoryNotFoundError("employer not found")
        if employer["role"] != "EMPLOYER":
            raise RepositoryForbiddenError("only employers can post jobs")

        values = {field: _required_text(fields.get(field)) for field in REQUIRED_JOB_FIELDS}
        missing = [field for field, value in values.items() if value is None]
        if missing:
            raise RepositoryValidationError(f"missing required fields: {', '.join(missing)}")
        salary_min, salary_max = fields.get("salary_min"), fields.get("salary_max")
        _validate_salary_range(salary_min, salary_max)

        job = await self.repository.create_job(
            employer_id=employer_id,
            salary_min=salary_min,
            salary_max=salary_max,
            status="ACTIVE",
            **values,
        )
        logger.info("job created id=%s employer_id=%s", job["id"], employer_id)
        return job

    async def update(self, job_id: str, employer_id: str, patch: dict[str, Any]) -> dict[str, Any]:
        unknown = sorted(set(patch) - set(JOB_MUTABLE_FIELDS))
        if unknown:
            raise RepositoryValidationError(f"unsupported job fields: {', '.join(unknown)}")

        changes = dict(patch)
        for field in REQUIRED_JOB_FIELDS:
            if field not in changes:
                continue
            value = _required_text(changes[field])
            if value is None:
                raise RepositoryValidationError(f"{field} must not be empty")
            changes[field] = value
        if "status" in changes and changes["status"] not in JOB_STATUSES:
            raise RepositoryValidationError(f"invalid job status: {changes['status']}")
        _validate_salary_range(changes.get("salary_min"), changes.get("salary_max"))

        return await self.repository.update_job(job_id=job_id, employer_id=employer_id, changes=changes)


def _required_text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def _validate_salary_range(salary_min: Any, salary_max: Any) -> None:
    for value in (salary_min, salary_max):
        if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
            raise RepositoryValidationError("salary bounds must be integers")
    if salary_min is not None and salary_max is not None and salary_min > salary_max:
        raise RepositoryValidationError("salary_min must not exceed salary_max")
