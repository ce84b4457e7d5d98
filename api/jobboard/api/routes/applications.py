from typing import Any

from fastapi import APIRouter, Depends

from jobboard.api.deps import get_application_ledger, get_current_user, http_error
from jobboard.schemas.applications import ApplicationOut, ApplicationStatusPatchRequest
from jobboard.services.applications import ApplicationLedger
from jobboard.services.repository import RepositoryError

router = APIRouter()


@router.get("/mine", response_model=list[ApplicationOut])
async def list_my_applications(
    user: dict[str, Any] = Depends(get_current_user),
    ledger: ApplicationLedger = Depends(get_application_ledger),
) -> list[ApplicationOut]:
    try:
        applications = await ledger.list_for_applicant(user["id"])
    except RepositoryError as exc:
        raise http_error(exc) from exc
    return [ApplicationOut(**row) for row in applications]


@router.get("/{application_id}", response_model=ApplicationOut)
async def get_application(
    application_id: str,
    user: dict[str, Any] = Depends(get_current_user),
    ledger: ApplicationLedger = Depends(get_application_ledger),
) -> ApplicationOut:
    try:
        application = await ledger.get_by_id(application_id, user["id"])
    except RepositoryError as exc:
        raise http_error(exc) from exc
    return ApplicationOut(**application)


@router.patch("/{application_id}/status", response_model=ApplicationOut)
async def update_application_status(
    application_id: str,
    payload: ApplicationStatusPatchRequest,
    user: dict[str, Any] = Depends(get_current_user),
    ledger: ApplicationLedger = Depends(get_application_ledger),
) -> ApplicationOut:
    try:
        application = await ledger.update_status(application_id, user["id"], payload.status)
    except RepositoryError as exc:
        raise http_error(exc) from exc
    return ApplicationOut(**application)
