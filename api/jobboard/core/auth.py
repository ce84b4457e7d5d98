from dataclasses import dataclass
from enum import Enum
from typing import Any


class UserRole(str, Enum):
    JOBSEEKER = "JOBSEEKER"
    EMPLOYER = "EMPLOYER"
    ADMIN = "ADMIN"


SELF_ASSIGNABLE_ROLES = {UserRole.JOBSEEKER.value, UserRole.EMPLOYER.value}


@dataclass(slots=True)
class Identity:
    """An authenticated subject as reported by the identity provider."""

    subject: str
    email: str | None = None
    name: str | None = None
    image_url: str | None = None
    role_hint: str | None = None


def normalize_role(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    candidate = value.strip().upper().replace("-", "").replace("_", "")
    if candidate in {"JOBSEEKER", "SEEKER", "CANDIDATE"}:
        return UserRole.JOBSEEKER.value
    if candidate in {"EMPLOYER", "RECRUITER"}:
        return UserRole.EMPLOYER.value
    if candidate == "ADMIN":
        return UserRole.ADMIN.value
    return None
