from __future__ import annotations

import logging
from typing import Any

from jobboard.core.auth import Identity, UserRole, normalize_role
from jobboard.services.repository import (
    USER_ROLES,
    RepositoryConflictError,
    RepositoryForbiddenError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
)

logger = logging.getLogger(__name__)


class UserDirectory:
    """Maps identity-provider subjects to internal users and their role profiles."""

    def __init__(self, repository: Any, *, auto_provision: bool = True) -> None:
        self.repository = repository
        self.auto_provision = auto_provision

    async def resolve(self, auth_subject_id: str) -> dict[str, Any] | None:
        try:
            return await self.repository.get_user_by_subject(auth_subject_id)
        except RepositoryUnavailableError as exc:
            logger.warning("user lookup failed subject=%s error=%s", auth_subject_id, exc)
            return None

    async def provision(
        self,
        auth_subject_id: str,
        *,
        email_hint: str,
        name_hint: str | None = None,
        role_hint: str | None = None,
        image_hint: str | None = None,
    ) -> dict[str, Any]:
        existing = await self.resolve(auth_subject_id)
        if existing is not None:
            return existing

        role = normalize_role(role_hint) or UserRole.JOBSEEKER.value
        try:
            user = await self.repository.create_user(
                auth_subject_id=auth_subject_id,
                email=email_hint,
                name=name_hint,
                role=role,
                image_url=image_hint,
            )
        except RepositoryConflictError:
            # A concurrent first request created the row; read the winner.
            logger.warning("user provisioning race resolved by re-read subject=%s", auth_subject_id)
            winner = await self.resolve(auth_subject_id)
            if winner is None:
                raise RepositoryNotFoundError("user not found") from None
            return winner

        logger.info("provisioned user id=%s role=%s", user["id"], role)
        return user

    async def resolve_or_provision(self, identity: Identity) -> dict[str, Any]:
        user = await self.resolve(identity.subject)
        if user is not None:
            return user
        if not self.auto_provision or not identity.email:
            raise RepositoryNotFoundError("user not found; complete registration first")
        return await self.provision(
            identity.subject,
            email_hint=identity.email,
            name_hint=identity.name,
            role_hint=identity.role_hint,
            image_hint=identity.image_url,
        )

    async def set_role_profile(self, user_id: str, role: str, profile_fields: dict[str, Any]) -> bool:
        if role not in USER_ROLES or role == UserRole.ADMIN.value:
            raise RepositoryValidationError(f"unsupported profile role: {role}")

        user = await self.repository.get_user(user_id)
        if user is None:
            raise RepositoryNotFoundError("user not found")
        if user["role"] != role:
            raise RepositoryForbiddenError(f"only {_role_label(role)} can manage {_role_label(role, profile=True)}")

        if role == UserRole.JOBSEEKER.value:
            skills = profile_fields.get("skills")
            await self.repository.upsert_job_seeker_profile(
                user_id=user_id,
                bio=profile_fields.get("bio"),
                skills=[str(skill) for skill in skills] if isinstance(skills, list) else [],
                resume_url=profile_fields.get("resume_url"),
            )
            return True

        company_name = profile_fields.get("company_name")
        if not isinstance(company_name, str) or not company_name.strip():
            raise RepositoryValidationError("company name is required")
        await self.repository.upsert_employer_profile(
            user_id=user_id,
            company_name=company_name.strip(),
            website=profile_fields.get("website"),
            description=profile_fields.get("description"),
        )
        return True

    @staticmethod
    def get_profile(user: dict[str, Any], role: str) -> dict[str, Any] | None:
        if user["role"] != role:
            raise RepositoryForbiddenError(f"only {_role_label(role)} can access {_role_label(role, profile=True)}")
        if role == UserRole.JOBSEEKER.value:
            return user.get("job_seeker_profile")
        return user.get("employer_profile")

    @staticmethod
    def summarize(user: dict[str, Any]) -> dict[str, Any]:
        seeker = user.get("job_seeker_profile")
        employer = user.get("employer_profile")
        if user["role"] == UserRole.JOBSEEKER.value:
            complete = seeker is not None
        elif user["role"] == UserRole.EMPLOYER.value:
            complete = employer is not None and bool(employer.get("company_name"))
        else:
            complete = True
        return {
            "id": user["id"],
            "email": user["email"],
            "name": user.get("name"),
            "role": user["role"],
            "image_url": user.get("image_url"),
            "has_job_seeker_profile": seeker is not None,
            "has_employer_profile": employer is not None,
            "profile_complete": complete,
        }

    async def user_stats(self) -> dict[str, int]:
        counts = await self.repository.count_users_by_role()
        return {
            "total_users": sum(counts.values()),
            "job_seekers": counts.get(UserRole.JOBSEEKER.value, 0),
            "employers": counts.get(UserRole.EMPLOYER.value, 0),
            "admins": counts.get(UserRole.ADMIN.value, 0),
        }


def _role_label(role: str, *, profile: bool = False) -> str:
    label = "job seeker" if role == UserRole.JOBSEEKER.value else "employer"
    return f"{label} profiles" if profile else f"{label}s"
