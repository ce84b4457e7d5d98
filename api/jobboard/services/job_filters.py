"""Job listing filters shared by the in-memory store and the degraded-mode fallback.

The PostgreSQL repository expresses the same predicates in SQL; keep both in step.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable


@dataclass(slots=True, frozen=True)
class JobFilters:
    search: str | None = None
    location: str | None = None
    company: str | None = None
    salary_min: int | None = None
    salary_max: int | None = None

    @classmethod
    def build(
        cls,
        *,
        search: str | None = None,
        location: str | None = None,
        company: str | None = None,
        salary_min: int | None = None,
        salary_max: int | None = None,
    ) -> JobFilters:
        return cls(
            search=_clean(search),
            location=_clean(location),
            company=_clean(company),
            salary_min=salary_min or None,
            salary_max=salary_max or None,
        )


def matches_job_filters(job: dict[str, Any], filters: JobFilters, *, include_open_ended_salaries: bool) -> bool:
    if filters.search:
        needle = filters.search.lower()
        haystacks = (job.get("title"), job.get("description"), job.get("company"))
        if not any(needle in (value or "").lower() for value in haystacks):
            return False
    if filters.location and filters.location.lower() not in (job.get("location") or "").lower():
        return False
    if filters.company and filters.company.lower() not in (job.get("company") or "").lower():
        return False

    if filters.salary_min is not None:
        job_min = job.get("salary_min")
        if job_min is None:
            if not include_open_ended_salaries:
                return False
        elif job_min < filters.salary_min:
            return False

    if filters.salary_max is not None:
        job_max = job.get("salary_max")
        if job_max is None:
            if not include_open_ended_salaries:
                return False
        elif job_max > filters.salary_max:
            return False

    return True


def filter_active_jobs(
    jobs: Iterable[dict[str, Any]],
    filters: JobFilters,
    *,
    include_open_ended_salaries: bool,
) -> list[dict[str, Any]]:
    """Return matching ACTIVE jobs, newest first."""
    matched = [
        job
        for job in jobs
        if job.get("status") == "ACTIVE"
        and matches_job_filters(job, filters, include_open_ended_salaries=include_open_ended_salaries)
    ]
    return sort_newest_first(matched)


def sort_newest_first(rows: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    # Stable tie-break on id mirrors "order by created_at desc, id asc".
    by_id = sorted(rows, key=lambda row: str(row.get("id")))
    return sorted(by_id, key=lambda row: _sort_timestamp(row.get("created_at")), reverse=True)


def page_offset(page: int, page_size: int) -> int:
    return (max(1, page) - 1) * page_size


def total_pages(total: int, page_size: int) -> int:
    if page_size <= 0:
        return 1
    return max(1, math.ceil(total / page_size))


def _sort_timestamp(value: Any) -> float:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    return float("-inf")


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None
