from typing import Any

import httpx
from fastapi import Depends, Header, HTTPException, Request, status

from jobboard.core.auth import SELF_ASSIGNABLE_ROLES, Identity, normalize_role
from jobboard.core.config import Settings, get_settings

TRUSTED_SUBJECT_HEADER = "X-Auth-Subject"
TRUSTED_EMAIL_HEADER = "X-Auth-Email"
TRUSTED_NAME_HEADER = "X-Auth-Name"
TRUSTED_ROLE_HEADER = "X-Auth-Role"
TRUSTED_IMAGE_HEADER = "X-Auth-Image-Url"


async def get_identity(
    request: Request,
    settings: Settings = Depends(get_settings),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> Identity:
    if settings.identity_provider == "trusted_header":
        return _identity_from_trusted_headers(request)

    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="authentication required")

    token = authorization.split(" ", maxsplit=1)[1].strip()
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="empty bearer token")

    if not settings.supabase_url or not settings.supabase_anon_key:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Supabase auth is not configured",
        )

    user = await _fetch_supabase_user(
        supabase_url=settings.supabase_url,
        supabase_anon_key=settings.supabase_anon_key,
        token=token,
        timeout_seconds=settings.auth_timeout_seconds,
    )
    subject = user.get("id")
    if not isinstance(subject, str) or not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid bearer token")

    user_metadata = user.get("user_metadata")
    if not isinstance(user_metadata, dict):
        user_metadata = {}

    return Identity(
        subject=subject,
        email=_text(user.get("email")),
        name=_text(user_metadata.get("full_name")) or _text(user_metadata.get("name")),
        image_url=_text(user_metadata.get("avatar_url")),
        role_hint=_resolve_role_hint(user),
    )


async def _fetch_supabase_user(
    *,
    supabase_url: str,
    supabase_anon_key: str,
    token: str,
    timeout_seconds: float,
) -> dict[str, Any]:
    headers = {
        "Authorization": f"Bearer {token}",
        "apikey": supabase_anon_key,
    }
    url = f"{supabase_url.rstrip('/')}/auth/v1/user"

    try:
        async with httpx.AsyncClient(timeout=timeout_seconds) as client:
            response = await client.get(url, headers=headers)
    except httpx.HTTPError as exc:  # pragma: no cover - network dependent
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Supabase auth verification unavailable",
        ) from exc

    if response.status_code in {401, 403}:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid bearer token")
    if response.status_code != 200:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Supabase auth verification failed",
        )

    return response.json()


def _resolve_role_hint(user: dict[str, Any]) -> str | None:
    """Role requested at sign-up; ADMIN is honoured only from app_metadata."""
    app_metadata = user.get("app_metadata")
    if isinstance(app_metadata, dict):
        role = normalize_role(app_metadata.get("role"))
        if role:
            return role
        roles = app_metadata.get("roles")
        if isinstance(roles, list):
            for candidate in roles:
                role = normalize_role(candidate)
                if role:
                    return role

    user_metadata = user.get("user_metadata")
    if isinstance(user_metadata, dict):
        role = normalize_role(user_metadata.get("role"))
        if role in SELF_ASSIGNABLE_ROLES:
            return role

    return None


def _identity_from_trusted_headers(request: Request) -> Identity:
    subject = _text(request.headers.get(TRUSTED_SUBJECT_HEADER))
    if not subject:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"authentication requires {TRUSTED_SUBJECT_HEADER}",
        )
    return Identity(
        subject=subject,
        email=_text(request.headers.get(TRUSTED_EMAIL_HEADER)),
        name=_text(request.headers.get(TRUSTED_NAME_HEADER)),
        image_url=_text(request.headers.get(TRUSTED_IMAGE_HEADER)),
        role_hint=normalize_role(request.headers.get(TRUSTED_ROLE_HEADER)),
    )


def _text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None
