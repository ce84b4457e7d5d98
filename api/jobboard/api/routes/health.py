from fastapi import APIRouter, Depends, HTTPException, status

from jobboard.api.deps import get_repository
from jobboard.services.repository import RepositoryUnavailableError

router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(repository=Depends(get_repository)) -> dict[str, str]:
    """Storage round-trip; the public listing keeps working even when this fails."""
    try:
        await repository.ping()
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return {"status": "ready"}
