from typing import Any

from fastapi import APIRouter, Depends

from jobboard.api.deps import get_current_user, get_user_directory, http_error
from jobboard.core.auth import UserRole
from jobboard.schemas.users import (
    EmployerProfileEnvelope,
    EmployerProfileRequest,
    JobSeekerProfileEnvelope,
    JobSeekerProfileRequest,
    SuccessOut,
)
from jobboard.services.repository import RepositoryError
from jobboard.services.users import UserDirectory

router = APIRouter()


@router.get("/job-seeker", response_model=JobSeekerProfileEnvelope)
async def get_job_seeker_profile(user: dict[str, Any] = Depends(get_current_user)) -> JobSeekerProfileEnvelope:
    try:
        profile = UserDirectory.get_profile(user, UserRole.JOBSEEKER.value)
    except RepositoryError as exc:
        raise http_error(exc) from exc
    return JobSeekerProfileEnvelope(profile=profile)


@router.post("/job-seeker", response_model=SuccessOut)
async def set_job_seeker_profile(
    payload: JobSeekerProfileRequest,
    user: dict[str, Any] = Depends(get_current_user),
    directory: UserDirectory = Depends(get_user_directory),
) -> SuccessOut:
    try:
        success = await directory.set_role_profile(user["id"], UserRole.JOBSEEKER.value, payload.model_dump())
    except RepositoryError as exc:
        raise http_error(exc) from exc
    return SuccessOut(success=success)


@router.get("/employer", response_model=EmployerProfileEnvelope)
async def get_employer_profile(user: dict[str, Any] = Depends(get_current_user)) -> EmployerProfileEnvelope:
    try:
        profile = UserDirectory.get_profile(user, UserRole.EMPLOYER.value)
    except RepositoryError as exc:
        raise http_error(exc) from exc
    return EmployerProfileEnvelope(profile=profile)


@router.post("/employer", response_model=SuccessOut)
async def set_employer_profile(
    payload: EmployerProfileRequest,
    user: dict[str, Any] = Depends(get_current_user),
    directory: UserDirectory = Depends(get_user_directory),
) -> SuccessOut:
    try:
        success = await directory.set_role_profile(user["id"], UserRole.EMPLOYER.value, payload.model_dump())
    except RepositoryError as exc:
        raise http_error(exc) from exc
    return SuccessOut(success=success)
