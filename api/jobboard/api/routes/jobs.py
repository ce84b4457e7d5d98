from typing import Any

from fastapi import APIRouter, Depends, Query, status

from jobboard.api.deps import get_application_ledger, get_current_user, get_job_catalog, http_error
from jobboard.core.config import Settings, get_settings
from jobboard.schemas.applications import ApplicationOut, AppliedStatusOut, ApplyRequest
from jobboard.schemas.jobs import JobListOut, JobOut
from jobboard.services.applications import ApplicationLedger
from jobboard.services.job_filters import JobFilters
from jobboard.services.jobs import JobCatalog
from jobboard.services.repository import RepositoryError

router = APIRouter()


@router.get("", response_model=JobListOut)
async def list_jobs(
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    search: str | None = Query(default=None),
    location: str | None = Query(default=None),
    company: str | None = Query(default=None),
    salary_min: int | None = Query(default=None, ge=0),
    salary_max: int | None = Query(default=None, ge=0),
    catalog: JobCatalog = Depends(get_job_catalog),
    settings: Settings = Depends(get_settings),
) -> JobListOut:
    page_size = min(limit or settings.default_page_size, settings.max_page_size)
    filters = JobFilters.build(
        search=search,
        location=location,
        company=company,
        salary_min=salary_min,
        salary_max=salary_max,
    )
    result = await catalog.list(page=page, page_size=page_size, filters=filters)
    return JobListOut(**result)


@router.get("/{job_id}", response_model=JobOut)
async def get_job(job_id: str, catalog: JobCatalog = Depends(get_job_catalog)) -> JobOut:
    try:
        job = await catalog.get_by_id(job_id)
    except RepositoryError as exc:
        raise http_error(exc) from exc
    return JobOut(**job)


@router.post("/{job_id}/apply", response_model=ApplicationOut, status_code=status.HTTP_201_CREATED)
async def apply_for_job(
    job_id: str,
    payload: ApplyRequest,
    user: dict[str, Any] = Depends(get_current_user),
    ledger: ApplicationLedger = Depends(get_application_ledger),
) -> ApplicationOut:
    try:
        application = await ledger.submit(job_id, user["id"], payload.cover_letter)
    except RepositoryError as exc:
        raise http_error(exc) from exc
    return ApplicationOut(**application)


@router.get("/{job_id}/application-status", response_model=AppliedStatusOut)
async def get_application_status(
    job_id: str,
    user: dict[str, Any] = Depends(get_current_user),
    ledger: ApplicationLedger = Depends(get_application_ledger),
) -> AppliedStatusOut:
    try:
        has_applied = await ledger.has_applied(job_id, user["id"])
    except RepositoryError as exc:
        raise http_error(exc) from exc
    return AppliedStatusOut(has_applied=has_applied)
