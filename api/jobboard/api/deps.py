from typing import Any

from fastapi import Depends, HTTPException, Request, status

from jobboard.core.auth import Identity
from jobboard.core.config import Settings, get_settings
from jobboard.core.security import get_identity
from jobboard.services.applications import ApplicationLedger
from jobboard.services.jobs import JobCatalog
from jobboard.services.repository import (
    RepositoryConflictError,
    RepositoryError,
    RepositoryForbiddenError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
)
from jobboard.services.users import UserDirectory


def get_repository(request: Request) -> Any:
    return request.app.state.repository


def get_fallback_jobs(request: Request) -> list[dict[str, Any]]:
    return getattr(request.app.state, "fallback_jobs", [])


def get_user_directory(
    repository=Depends(get_repository),
    settings: Settings = Depends(get_settings),
) -> UserDirectory:
    return UserDirectory(repository, auto_provision=settings.auto_provision_users)


def get_job_catalog(
    repository=Depends(get_repository),
    fallback_jobs: list[dict[str, Any]] = Depends(get_fallback_jobs),
    settings: Settings = Depends(get_settings),
) -> JobCatalog:
    return JobCatalog(
        repository,
        fallback_jobs=fallback_jobs,
        include_open_ended_salaries=settings.salary_open_ended_policy == "include",
    )


def get_application_ledger(
    repository=Depends(get_repository),
    settings: Settings = Depends(get_settings),
) -> ApplicationLedger:
    return ApplicationLedger(repository, strict_transitions=settings.application_transition_policy == "strict")


async def get_current_user(
    identity: Identity = Depends(get_identity),
    directory: UserDirectory = Depends(get_user_directory),
) -> dict[str, Any]:
    user = await directory.resolve(identity.subject)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="user not found")
    return user


def http_error(exc: RepositoryError) -> HTTPException:
    if isinstance(exc, RepositoryUnavailableError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    if isinstance(exc, RepositoryNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, RepositoryForbiddenError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    # Conflicts are client-input errors told apart from validation by message.
    if isinstance(exc, (RepositoryValidationError, RepositoryConflictError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="internal error")
