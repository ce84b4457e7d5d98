from typing import Any

from fastapi import APIRouter, Depends, status

from jobboard.api.deps import get_application_ledger, get_current_user, get_job_catalog, http_error
from jobboard.schemas.applications import ApplicationOut, ApplicationStatsOut
from jobboard.schemas.jobs import JobCreateRequest, JobOut, JobPatchRequest
from jobboard.services.applications import ApplicationLedger
from jobboard.services.jobs import JobCatalog
from jobboard.services.repository import RepositoryError

router = APIRouter()


@router.get("/jobs", response_model=list[JobOut])
async def list_employer_jobs(
    user: dict[str, Any] = Depends(get_current_user),
    catalog: JobCatalog = Depends(get_job_catalog),
) -> list[JobOut]:
    try:
        jobs = await catalog.list_by_employer(user["id"])
    except RepositoryError as exc:
        raise http_error(exc) from exc
    return [JobOut(**job) for job in jobs]


@router.post("/jobs", response_model=JobOut, status_code=status.HTTP_201_CREATED)
async def create_job(
    payload: JobCreateRequest,
    user: dict[str, Any] = Depends(get_current_user),
    catalog: JobCatalog = Depends(get_job_catalog),
) -> JobOut:
    try:
        job = await catalog.create(user["id"], payload.model_dump())
    except RepositoryError as exc:
        raise http_error(exc) from exc
    return JobOut(**job)


@router.patch("/jobs/{job_id}", response_model=JobOut)
async def update_job(
    job_id: str,
    payload: JobPatchRequest,
    user: dict[str, Any] = Depends(get_current_user),
    catalog: JobCatalog = Depends(get_job_catalog),
) -> JobOut:
    try:
        job = await catalog.update(job_id, user["id"], payload.model_dump(exclude_unset=True))
    except RepositoryError as exc:
        raise http_error(exc) from exc
    return JobOut(**job)


@router.get("/jobs/{job_id}/applications", response_model=list[ApplicationOut])
async def list_job_applications(
    job_id: str,
    user: dict[str, Any] = Depends(get_current_user),
    ledger: ApplicationLedger = Depends(get_application_ledger),
) -> list[ApplicationOut]:
    try:
        applications = await ledger.list_for_job(job_id, user["id"])
    except RepositoryError as exc:
        raise http_error(exc) from exc
    return [ApplicationOut(**row) for row in applications]


@router.get("/stats", response_model=ApplicationStatsOut)
async def get_application_stats(
    user: dict[str, Any] = Depends(get_current_user),
    ledger: ApplicationLedger = Depends(get_application_ledger),
) -> ApplicationStatsOut:
    try:
        stats = await ledger.stats_for_employer(user["id"])
    except RepositoryError as exc:
        raise http_error(exc) from exc
    return ApplicationStatsOut(**stats)
