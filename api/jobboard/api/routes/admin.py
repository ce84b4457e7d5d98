from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status

from jobboard.api.deps import get_current_user, get_user_directory, http_error
from jobboard.core.auth import UserRole
from jobboard.schemas.users import UserStatsOut
from jobboard.services.repository import RepositoryError
from jobboard.services.users import UserDirectory

router = APIRouter()


@router.get("/stats", response_model=UserStatsOut)
async def get_user_stats(
    user: dict[str, Any] = Depends(get_current_user),
    directory: UserDirectory = Depends(get_user_directory),
) -> UserStatsOut:
    if user["role"] != UserRole.ADMIN.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="admin role required")

    try:
        stats = await directory.user_stats()
    except RepositoryError as exc:
        raise http_error(exc) from exc
    return UserStatsOut(**stats)
