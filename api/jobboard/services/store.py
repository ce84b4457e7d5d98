from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import uuid4

from jobboard.services.job_filters import JobFilters, filter_active_jobs, sort_newest_first
from jobboard.services.repository import (
    JOB_MUTABLE_FIELDS,
    RepositoryConflictError,
    RepositoryNotFoundError,
    RepositoryValidationError,
)


class InMemoryRepository:
    """Process-local storage for local development and tests.

    Mirrors the PostgreSQL repository contract, including the unique keys on
    users.auth_subject_id and applications(job_id, applicant_id). Each method
    checks and writes without awaiting in between, so the checks are atomic on
    the event loop.
    """

    def __init__(self) -> None:
        self.users: dict[str, dict[str, Any]] = {}
        self.user_ids_by_subject: dict[str, str] = {}
        self.job_seeker_profiles: dict[str, dict[str, Any]] = {}
        self.employer_profiles: dict[str, dict[str, Any]] = {}
        self.jobs: dict[str, dict[str, Any]] = {}
        self.applications: dict[str, dict[str, Any]] = {}
        self.application_ids_by_pair: dict[tuple[str, str], str] = {}
        self._last_timestamp = datetime.fromtimestamp(0, tz=timezone.utc)

    async def close(self) -> None:
        return None

    async def ping(self) -> None:
        return None

    async def get_user_by_subject(self, auth_subject_id: str) -> dict[str, Any] | None:
        user_id = self.user_ids_by_subject.get(auth_subject_id)
        return self._hydrate_user(user_id) if user_id else None

    async def get_user(self, user_id: str) -> dict[str, Any] | None:
        return self._hydrate_user(user_id)

    async def create_user(
        self,
        *,
        auth_subject_id: str,
        email: str,
        name: str | None,
        role: str,
        image_url: str | None,
    ) -> dict[str, Any]:
        if auth_subject_id in self.user_ids_by_subject:
            raise RepositoryConflictError("user already exists")
        now = self._next_timestamp()
        user_id = str(uuid4())
        self.users[user_id] = {
            "id": user_id,
            "auth_subject_id": auth_subject_id,
            "email": email,
            "name": name,
            "role": role,
            "image_url": image_url,
            "created_at": now,
            "updated_at": now,
        }
        self.user_ids_by_subject[auth_subject_id] = user_id
        return self._hydrate_user(user_id)

    async def upsert_job_seeker_profile(
        self,
        *,
        user_id: str,
        bio: str | None,
        skills: list[str],
        resume_url: str | None,
    ) -> dict[str, Any]:
        if user_id not in self.users:
            raise RepositoryNotFoundError("user not found")
        self.job_seeker_profiles[user_id] = {
            "bio": bio,
            "skills": list(skills),
            "resume_url": resume_url,
            "updated_at": self._next_timestamp(),
        }
        return dict(self.job_seeker_profiles[user_id])

    async def upsert_employer_profile(
        self,
        *,
        user_id: str,
        company_name: str,
        website: str | None,
        description: str | None,
    ) -> dict[str, Any]:
        if user_id not in self.users:
            raise RepositoryNotFoundError("user not found")
        self.employer_profiles[user_id] = {
            "company_name": company_name,
            "website": website,
            "description": description,
            "updated_at": self._next_timestamp(),
        }
        return dict(self.employer_profiles[user_id])

    async def count_users_by_role(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for user in self.users.values():
            counts[user["role"]] = counts.get(user["role"], 0) + 1
        return counts

    async def list_jobs(
        self,
        *,
        limit: int,
        offset: int,
        filters: JobFilters,
        include_open_ended_salaries: bool,
    ) -> tuple[list[dict[str, Any]], int]:
        matched = filter_active_jobs(
            self.jobs.values(),
            filters,
            include_open_ended_salaries=include_open_ended_salaries,
        )
        return [self._hydrate_job(job["id"]) for job in matched[offset : offset + limit]], len(matched)

    async def get_job(self, job_id: str) -> dict[str, Any]:
        if job_id not in self.jobs:
            raise RepositoryNotFoundError("job not found")
        return self._hydrate_job(job_id)

    async def list_jobs_by_employer(self, employer_id: str) -> list[dict[str, Any]]:
        owned = [job for job in self.jobs.values() if job["employer_id"] == employer_id]
        return [self._hydrate_job(job["id"]) for job in sort_newest_first(owned)]

    async def create_job(
        self,
        *,
        employer_id: str,
        title: str,
        description: str,
        location: str,
        company: str,
        salary_min: int | None,
        salary_max: int | None,
        status: str,
    ) -> dict[str, Any]:
        if employer_id not in self.users:
            raise RepositoryNotFoundError("employer not found")
        self._check_salary_range(salary_min, salary_max)
        now = self._next_timestamp()
        job_id = str(uuid4())
        self.jobs[job_id] = {
            "id": job_id,
            "title": title,
            "description": description,
            "location": location,
            "company": company,
            "salary_min": salary_min,
            "salary_max": salary_max,
            "status": status,
            "employer_id": employer_id,
            "created_at": now,
            "updated_at": now,
        }
        return self._hydrate_job(job_id)

    async def update_job(self, *, job_id: str, employer_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        job = self.jobs.get(job_id)
        if job is None or job["employer_id"] != employer_id:
            raise RepositoryNotFoundError("job not found")
        updated = {**job, **{field: changes[field] for field in JOB_MUTABLE_FIELDS if field in changes}}
        self._check_salary_range(updated["salary_min"], updated["salary_max"])
        updated["updated_at"] = self._next_timestamp()
        self.jobs[job_id] = updated
        return self._hydrate_job(job_id)

    async def find_application(self, *, job_id: str, applicant_id: str) -> dict[str, Any] | None:
        application_id = self.application_ids_by_pair.get((job_id, applicant_id))
        return self._hydrate_application(application_id) if application_id else None

    async def create_application(
        self,
        *,
        job_id: str,
        applicant_id: str,
        cover_letter: str | None,
        status: str,
    ) -> dict[str, Any]:
        if (job_id, applicant_id) in self.application_ids_by_pair:
            raise RepositoryConflictError("already applied for this job")
        job = self.jobs.get(job_id)
        if job is None or job["status"] != "ACTIVE":
            raise RepositoryConflictError("job not found or not open")
        if applicant_id not in self.users:
            raise RepositoryNotFoundError("applicant not found")
        now = self._next_timestamp()
        application_id = str(uuid4())
        self.applications[application_id] = {
            "id": application_id,
            "job_id": job_id,
            "applicant_id": applicant_id,
            "cover_letter": cover_letter,
            "status": status,
            "created_at": now,
            "updated_at": now,
        }
        self.application_ids_by_pair[(job_id, applicant_id)] = application_id
        return self._hydrate_application(application_id)

    async def list_applications_for_job(self, job_id: str) -> list[dict[str, Any]]:
        rows = [row for row in self.applications.values() if row["job_id"] == job_id]
        return [self._hydrate_application(row["id"]) for row in sort_newest_first(rows)]

    async def list_applications_for_applicant(self, applicant_id: str) -> list[dict[str, Any]]:
        rows = [row for row in self.applications.values() if row["applicant_id"] == applicant_id]
        return [self._hydrate_application(row["id"]) for row in sort_newest_first(rows)]

    async def get_application(self, application_id: str) -> dict[str, Any]:
        if application_id not in self.applications:
            raise RepositoryNotFoundError("application not found")
        return self._hydrate_application(application_id)

    async def update_application_status(
        self,
        *,
        application_id: str,
        employer_id: str,
        status: str,
        expected_status: str | None = None,
    ) -> dict[str, Any]:
        row = self.applications.get(application_id)
        if row is None or self.jobs[row["job_id"]]["employer_id"] != employer_id:
            raise RepositoryNotFoundError("application not found")
        if expected_status is not None and row["status"] != expected_status:
            raise RepositoryConflictError("application status changed concurrently")
        row["status"] = status
        row["updated_at"] = self._next_timestamp()
        return self._hydrate_application(application_id)

    async def count_applications_by_status(self, employer_id: str) -> dict[str, int]:
        counts: dict[str, int] = {}
        for row in self.applications.values():
            if self.jobs[row["job_id"]]["employer_id"] != employer_id:
                continue
            counts[row["status"]] = counts.get(row["status"], 0) + 1
        return counts

    def _next_timestamp(self) -> datetime:
        # Strictly increasing so newest-first ordering is deterministic.
        now = datetime.now(timezone.utc)
        if now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now

    @staticmethod
    def _check_salary_range(salary_min: int | None, salary_max: int | None) -> None:
        if salary_min is not None and salary_max is not None and salary_min > salary_max:
            raise RepositoryValidationError("salary_min must not exceed salary_max")

    def _hydrate_user(self, user_id: str | None) -> dict[str, Any] | None:
        user = self.users.get(user_id) if user_id else None
        if user is None:
            return None
        seeker = self.job_seeker_profiles.get(user["id"])
        employer = self.employer_profiles.get(user["id"])
        return {
            **user,
            "job_seeker_profile": {**seeker, "skills": list(seeker["skills"])} if seeker else None,
            "employer_profile": dict(employer) if employer else None,
        }

    def _hydrate_job(self, job_id: str) -> dict[str, Any]:
        job = self.jobs[job_id]
        employer = self.users.get(job["employer_id"], {})
        profile = self.employer_profiles.get(job["employer_id"])
        return {
            **job,
            "employer": {
                "id": job["employer_id"],
                "name": employer.get("name"),
                "company_name": profile["company_name"] if profile else None,
            },
            "application_count": sum(1 for row in self.applications.values() if row["job_id"] == job_id),
        }

    def _hydrate_application(self, application_id: str) -> dict[str, Any]:
        row = self.applications[application_id]
        job = self.jobs[row["job_id"]]
        employer = self.users.get(job["employer_id"], {})
        applicant = self.users.get(row["applicant_id"], {})
        seeker = self.job_seeker_profiles.get(row["applicant_id"])
        return {
            **row,
            "job": {
                "id": job["id"],
                "title": job["title"],
                "company": job["company"],
                "location": job["location"],
                "status": job["status"],
                "employer_id": job["employer_id"],
                "employer": {
                    "id": job["employer_id"],
                    "name": employer.get("name"),
                    "email": employer.get("email"),
                },
            },
            "applicant": {
                "id": row["applicant_id"],
                "name": applicant.get("name"),
                "email": applicant.get("email"),
                "profile": (
                    {"bio": seeker["bio"], "skills": list(seeker["skills"]), "resume_url": seeker["resume_url"]}
                    if seeker
                    else None
                ),
            },
        }
