from fastapi import APIRouter, Depends

from jobboard.api.deps import get_user_directory, http_error
from jobboard.core.auth import Identity
from jobboard.core.security import get_identity
from jobboard.schemas.users import UserSummaryOut
from jobboard.services.repository import RepositoryError
from jobboard.services.users import UserDirectory

router = APIRouter()


@router.get("/user", response_model=UserSummaryOut)
async def get_current_user_summary(
    identity: Identity = Depends(get_identity),
    directory: UserDirectory = Depends(get_user_directory),
) -> UserSummaryOut:
    try:
        user = await directory.resolve_or_provision(identity)
    except RepositoryError as exc:
        raise http_error(exc) from exc
    return UserSummaryOut(**directory.summarize(user))
