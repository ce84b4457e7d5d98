from __future__ import annotations

import logging
from typing import Any

from jobboard.services.repository import (
    APPLICATION_STATUSES,
    RepositoryConflictError,
    RepositoryForbiddenError,
    RepositoryNotFoundError,
    RepositoryValidationError,
)

logger = logging.getLogger(__name__)

INITIAL_APPLICATION_STATUS = "PENDING"
APPLICATION_TRANSITIONS: dict[str, set[str]] = {
    "PENDING": {"REVIEWED", "ACCEPTED", "REJECTED"},
    "REVIEWED": {"ACCEPTED", "REJECTED"},
    "ACCEPTED": set(),
    "REJECTED": set(),
}


def validate_application_transition(*, from_status: str, to_status: str) -> None:
    if to_status == from_status:
        return
    if to_status not in APPLICATION_TRANSITIONS.get(from_status, set()):
        raise RepositoryConflictError(f"invalid application status transition: {from_status} -> {to_status}")


class ApplicationLedger:
    """Application lifecycle and its authorization rules.

    Existence is never leaked to actors who may not see an application: reads and
    status updates by strangers fail exactly like a missing row would.

    With ``strict_transitions`` the status machine above is enforced; otherwise an
    owning employer may set any status, which lets them correct mistakes.
    """

    def __init__(self, repository: Any, *, strict_transitions: bool = False) -> None:
        self.repository = repository
        self.strict_transitions = strict_transitions

    async def submit(self, job_id: str, applicant_id: str, cover_letter: str | None = None) -> dict[str, Any]:
        applicant = await self.repository.get_user(applicant_id)
        if applicant is None:
            raise RepositoryNotFoundError("user not found")
        if applicant["role"] != "JOBSEEKER":
            raise RepositoryForbiddenError("only job seekers can apply for jobs")

        # Fast path only; the unique key on (job_id, applicant_id) decides races.
        if await self.repository.find_application(job_id=job_id, applicant_id=applicant_id) is not None:
            raise RepositoryConflictError("already applied for this job")

        application = await self.repository.create_application(
            job_id=job_id,
            applicant_id=applicant_id,
            cover_letter=cover_letter or None,
            status=INITIAL_APPLICATION_STATUS,
        )
        logger.info("application submitted id=%s job_id=%s", application["id"], job_id)
        return application

    async def has_applied(self, job_id: str, applicant_id: str) -> bool:
        return await self.repository.find_application(job_id=job_id, applicant_id=applicant_id) is not None

    async def list_for_job(self, job_id: str, requesting_employer_id: str) -> list[dict[str, Any]]:
        try:
            job = await self.repository.get_job(job_id)
        except RepositoryNotFoundError:
            return []
        if job["employer_id"] != requesting_employer_id:
            return []
        return await self.repository.list_applications_for_job(job_id)

    async def list_for_applicant(self, applicant_id: str) -> list[dict[str, Any]]:
        return await self.repository.list_applications_for_applicant(applicant_id)

    async def get_by_id(self, application_id: str, requesting_user_id: str) -> dict[str, Any]:
        application = await self.repository.get_application(application_id)
        if requesting_user_id not in {application["applicant_id"], application["job"]["employer_id"]}:
            raise RepositoryNotFoundError("application not found")
        return application

    async def update_status(
        self,
        application_id: str,
        requesting_employer_id: str,
        new_status: str,
    ) -> dict[str, Any]:
        if new_status not in APPLICATION_STATUSES:
            raise RepositoryValidationError(f"invalid status: {new_status}")

        expected_status = None
        if self.strict_transitions:
            current = await self.repository.get_application(application_id)
            if current["job"]["employer_id"] != requesting_employer_id:
                raise RepositoryNotFoundError("application not found")
            validate_application_transition(from_status=current["status"], to_status=new_status)
            # The write only lands if nobody moved the status since the read above.
            expected_status = current["status"]

        application = await self.repository.update_application_status(
            application_id=application_id,
            employer_id=requesting_employer_id,
            status=new_status,
            expected_status=expected_status,
        )
        logger.info("application status updated id=%s status=%s", application_id, new_status)
        return application

    async def stats_for_employer(self, employer_id: str) -> dict[str, int]:
        counts = await self.repository.count_applications_by_status(employer_id)
        stats = {status.lower(): counts.get(status, 0) for status in sorted(APPLICATION_STATUSES)}
        stats["total"] = sum(counts.values())
        return stats
