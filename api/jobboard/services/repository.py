from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc

from jobboard.services.job_filters import JobFilters


class RepositoryError(Exception):
    """Base repository error."""


class RepositoryUnavailableError(RepositoryError):
    """Raised when the database is unavailable or not configured."""


class RepositoryNotFoundError(RepositoryError):
    """Raised when the requested entity does not exist or is not visible to the actor."""


class RepositoryConflictError(RepositoryError):
    """Raised when an operation violates uniqueness or state transition rules."""


class RepositoryForbiddenError(RepositoryError):
    """Raised when an operation is not permitted for the actor."""


class RepositoryValidationError(RepositoryError):
    """Raised when payload validation fails before persistence."""


USER_ROLES = {"JOBSEEKER", "EMPLOYER", "ADMIN"}
JOB_STATUSES = {"ACTIVE", "CLOSED", "DRAFT"}
APPLICATION_STATUSES = {"PENDING", "REVIEWED", "ACCEPTED", "REJECTED"}
JOB_MUTABLE_FIELDS = ("title", "description", "location", "company", "salary_min", "salary_max", "status")

_CONNECTION_ERRORS = (
    OSError,
    TimeoutError,
    pg_exc.InterfaceError,
    pg_exc.PostgresConnectionError,
    pg_exc.CannotConnectNowError,
    # Server shutting down or restarting.
    pg_exc.OperatorInterventionError,
    # Connection slots or memory exhausted.
    pg_exc.InsufficientResourcesError,
)
_BAD_ID_ERRORS = (pg_exc.InvalidTextRepresentationError, asyncpg.DataError)

_USER_SELECT_SQL = """
select
  u.id::text as id,
  u.auth_subject_id,
  u.email,
  u.name,
  u.role::text as role,
  u.image_url,
  u.created_at,
  u.updated_at,
  sp.user_id is not null as has_job_seeker_profile,
  sp.bio as seeker_bio,
  sp.skills as seeker_skills,
  sp.resume_url as seeker_resume_url,
  sp.updated_at as seeker_updated_at,
  ep.user_id is not null as has_employer_profile,
  ep.company_name as employer_company_name,
  ep.website as employer_website,
  ep.description as employer_description,
  ep.updated_at as employer_updated_at
from users u
left join job_seeker_profiles sp on sp.user_id = u.id
left join employer_profiles ep on ep.user_id = u.id
"""

_JOB_SELECT_SQL = """
select
  j.id::text as id,
  j.title,
  j.description,
  j.location,
  j.company,
  j.salary_min,
  j.salary_max,
  j.status::text as status,
  j.employer_id::text as employer_id,
  j.created_at,
  j.updated_at,
  u.name as employer_name,
  ep.company_name as employer_company_name,
  (select count(*) from applications a where a.job_id = j.id) as application_count
from jobs j
join users u on u.id = j.employer_id
left join employer_profiles ep on ep.user_id = j.employer_id
"""

_APPLICATION_SELECT_SQL = """
select
  a.id::text as id,
  a.job_id::text as job_id,
  a.applicant_id::text as applicant_id,
  a.cover_letter,
  a.status::text as status,
  a.created_at,
  a.updated_at,
  j.title as job_title,
  j.company as job_company,
  j.location as job_location,
  j.status::text as job_status,
  j.employer_id::text as employer_id,
  e.name as employer_name,
  e.email as employer_email,
  s.name as applicant_name,
  s.email as applicant_email,
  sp.user_id is not null as has_applicant_profile,
  sp.bio as applicant_bio,
  sp.skills as applicant_skills,
  sp.resume_url as applicant_resume_url
from applications a
join jobs j on j.id = a.job_id
join users e on e.id = j.employer_id
join users s on s.id = a.applicant_id
left join job_seeker_profiles sp on sp.user_id = a.applicant_id
"""


class PostgresRepository:
    def __init__(self, database_url: str | None, min_pool_size: int, max_pool_size: int) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self._pool: asyncpg.Pool | None = None

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def ping(self) -> None:
        pool = await self._get_pool()
        with self._guard():
            await pool.fetchval("select 1")

    async def get_user_by_subject(self, auth_subject_id: str) -> dict[str, Any] | None:
        pool = await self._get_pool()
        with self._guard():
            row = await pool.fetchrow(f"{_USER_SELECT_SQL} where u.auth_subject_id = $1", auth_subject_id)
        return self._user_row_to_dict(row) if row else None

    async def get_user(self, user_id: str) -> dict[str, Any] | None:
        pool = await self._get_pool()
        try:
            with self._guard():
                row = await pool.fetchrow(f"{_USER_SELECT_SQL} where u.id = $1::uuid", user_id)
        except _BAD_ID_ERRORS:
            return None
        return self._user_row_to_dict(row) if row else None

    async def create_user(
        self,
        *,
        auth_subject_id: str,
        email: str,
        name: str | None,
        role: str,
        image_url: str | None,
    ) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            with self._guard():
                user_id = await pool.fetchval(
                    """
                    insert into users (auth_subject_id, email, name, role, image_url)
                    values ($1, $2, $3, $4::user_role, $5)
                    returning id::text
                    """,
                    auth_subject_id,
                    email,
                    name,
                    role,
                    image_url,
                )
        except pg_exc.UniqueViolationError as exc:
            raise RepositoryConflictError("user already exists") from exc
        user = await self.get_user(user_id)
        if user is None:
            raise RepositoryNotFoundError("user not found")
        return user

    async def upsert_job_seeker_profile(
        self,
        *,
        user_id: str,
        bio: str | None,
        skills: list[str],
        resume_url: str | None,
    ) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            with self._guard():
                await pool.execute(
                    """
                    insert into job_seeker_profiles (user_id, bio, skills, resume_url)
                    values ($1::uuid, $2, $3::text[], $4)
                    on conflict (user_id) do update
                    set
                      bio = excluded.bio,
                      skills = excluded.skills,
                      resume_url = excluded.resume_url,
                      updated_at = now()
                    """,
                    user_id,
                    bio,
                    skills,
                    resume_url,
                )
        except (pg_exc.ForeignKeyViolationError, *_BAD_ID_ERRORS) as exc:
            raise RepositoryNotFoundError("user not found") from exc
        user = await self.get_user(user_id)
        if user is None or user["job_seeker_profile"] is None:
            raise RepositoryNotFoundError("user not found")
        return user["job_seeker_profile"]

    async def upsert_employer_profile(
        self,
        *,
        user_id: str,
        company_name: str,
        website: str | None,
        description: str | None,
    ) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            with self._guard():
                await pool.execute(
                    """
                    insert into employer_profiles (user_id, company_name, website, description)
                    values ($1::uuid, $2, $3, $4)
                    on conflict (user_id) do update
                    set
                      company_name = excluded.company_name,
                      website = excluded.website,
                      description = excluded.description,
                      updated_at = now()
                    """,
                    user_id,
                    company_name,
                    website,
                    description,
                )
        except (pg_exc.ForeignKeyViolationError, *_BAD_ID_ERRORS) as exc:
            raise RepositoryNotFoundError("user not found") from exc
        user = await self.get_user(user_id)
        if user is None or user["employer_profile"] is None:
            raise RepositoryNotFoundError("user not found")
        return user["employer_profile"]

    async def count_users_by_role(self) -> dict[str, int]:
        pool = await self._get_pool()
        with self._guard():
            rows = await pool.fetch("select role::text as role, count(*) as total from users group by role")
        return {row["role"]: int(row["total"]) for row in rows}

    async def list_jobs(
        self,
        *,
        limit: int,
        offset: int,
        filters: JobFilters,
        include_open_ended_salaries: bool,
    ) -> tuple[list[dict[str, Any]], int]:
        pool = await self._get_pool()
        conditions: list[str] = ["j.status = 'ACTIVE'"]
        params: list[Any] = []

        def bind(value: Any) -> str:
            params.append(value)
            return f"${len(params)}"

        if filters.search:
            token = bind(self._like_pattern(filters.search))
            conditions.append(f"(j.title ilike {token} or j.description ilike {token} or j.company ilike {token})")
        if filters.location:
            conditions.append(f"j.location ilike {bind(self._like_pattern(filters.location))}")
        if filters.company:
            conditions.append(f"j.company ilike {bind(self._like_pattern(filters.company))}")
        if filters.salary_min is not None:
            bound = f"j.salary_min >= {bind(filters.salary_min)}"
            conditions.append(f"(j.salary_min is null or {bound})" if include_open_ended_salaries else bound)
        if filters.salary_max is not None:
            bound = f"j.salary_max <= {bind(filters.salary_max)}"
            conditions.append(f"(j.salary_max is null or {bound})" if include_open_ended_salaries else bound)

        where_sql = " and ".join(conditions)
        filter_params = list(params)
        limit_token = bind(limit)
        offset_token = bind(offset)

        with self._guard():
            total = await pool.fetchval(f"select count(*) from jobs j where {where_sql}", *filter_params)
            rows = await pool.fetch(
                f"""
                {_JOB_SELECT_SQL}
                where {where_sql}
                order by j.created_at desc, j.id asc
                limit {limit_token}
                offset {offset_token}
                """,
                *params,
            )
        return [self._job_row_to_dict(row) for row in rows], int(total or 0)

    async def get_job(self, job_id: str) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            with self._guard():
                row = await pool.fetchrow(f"{_JOB_SELECT_SQL} where j.id = $1::uuid", job_id)
        except _BAD_ID_ERRORS as exc:
            raise RepositoryNotFoundError("job not found") from exc
        if not row:
            raise RepositoryNotFoundError("job not found")
        return self._job_row_to_dict(row)

    async def list_jobs_by_employer(self, employer_id: str) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        try:
            with self._guard():
                rows = await pool.fetch(
                    f"{_JOB_SELECT_SQL} where j.employer_id = $1::uuid order by j.created_at desc, j.id asc",
                    employer_id,
                )
        except _BAD_ID_ERRORS:
            return []
        return [self._job_row_to_dict(row) for row in rows]

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
        pool = await self._get_pool()
        try:
            with self._guard():
                job_id = await pool.fetchval(
                    """
                    insert into jobs (employer_id, title, description, location, company, salary_min, salary_max, status)
                    values ($1::uuid, $2, $3, $4, $5, $6, $7, $8::job_status)
                    returning id::text
                    """,
                    employer_id,
                    title,
                    description,
                    location,
                    company,
                    salary_min,
                    salary_max,
                    status,
                )
        except (pg_exc.ForeignKeyViolationError, *_BAD_ID_ERRORS) as exc:
            raise RepositoryNotFoundError("employer not found") from exc
        except pg_exc.CheckViolationError as exc:
            raise RepositoryValidationError("salary_min must not exceed salary_max") from exc
        return await self.get_job(job_id)

    async def update_job(self, *, job_id: str, employer_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        pool = await self._get_pool()
        assignments: list[str] = []
        params: list[Any] = [job_id, employer_id]
        for field in JOB_MUTABLE_FIELDS:
            if field not in changes:
                continue
            params.append(changes[field])
            cast = "::job_status" if field == "status" else ""
            assignments.append(f"{field} = ${len(params)}{cast}")
        assignments.append("updated_at = now()")

        try:
            with self._guard():
                updated_id = await pool.fetchval(
                    f"""
                    update jobs
                    set {", ".join(assignments)}
                    where id = $1::uuid
                      and employer_id = $2::uuid
                    returning id::text
                    """,
                    *params,
                )
        except _BAD_ID_ERRORS as exc:
            raise RepositoryNotFoundError("job not found") from exc
        except pg_exc.CheckViolationError as exc:
            raise RepositoryValidationError("salary_min must not exceed salary_max") from exc
        if not updated_id:
            raise RepositoryNotFoundError("job not found")
        return await self.get_job(updated_id)

    async def find_application(self, *, job_id: str, applicant_id: str) -> dict[str, Any] | None:
        pool = await self._get_pool()
        try:
            with self._guard():
                row = await pool.fetchrow(
                    f"{_APPLICATION_SELECT_SQL} where a.job_id = $1::uuid and a.applicant_id = $2::uuid",
                    job_id,
                    applicant_id,
                )
        except _BAD_ID_ERRORS:
            return None
        return self._application_row_to_dict(row) if row else None

    async def create_application(
        self,
        *,
        job_id: str,
        applicant_id: str,
        cover_letter: str | None,
        status: str,
    ) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            with self._guard():
                # The job status check and the insert run as one statement.
                application_id = await pool.fetchval(
                    """
                    insert into applications (job_id, applicant_id, cover_letter, status)
                    select j.id, $2::uuid, $3, $4::application_status
                    from jobs j
                    where j.id = $1::uuid
                      and j.status = 'ACTIVE'
                    returning id::text
                    """,
                    job_id,
                    applicant_id,
                    cover_letter,
                    status,
                )
        except pg_exc.UniqueViolationError as exc:
            raise RepositoryConflictError("already applied for this job") from exc
        except pg_exc.ForeignKeyViolationError as exc:
            raise RepositoryNotFoundError("applicant not found") from exc
        except _BAD_ID_ERRORS as exc:
            raise RepositoryConflictError("job not found or not open") from exc
        if not application_id:
            raise RepositoryConflictError("job not found or not open")
        return await self.get_application(application_id)

    async def list_applications_for_job(self, job_id: str) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        try:
            with self._guard():
                rows = await pool.fetch(
                    f"{_APPLICATION_SELECT_SQL} where a.job_id = $1::uuid order by a.created_at desc, a.id asc",
                    job_id,
                )
        except _BAD_ID_ERRORS:
            return []
        return [self._application_row_to_dict(row) for row in rows]

    async def list_applications_for_applicant(self, applicant_id: str) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        try:
            with self._guard():
                rows = await pool.fetch(
                    f"{_APPLICATION_SELECT_SQL} where a.applicant_id = $1::uuid order by a.created_at desc, a.id asc",
                    applicant_id,
                )
        except _BAD_ID_ERRORS:
            return []
        return [self._application_row_to_dict(row) for row in rows]

    async def get_application(self, application_id: str) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            with self._guard():
                row = await pool.fetchrow(f"{_APPLICATION_SELECT_SQL} where a.id = $1::uuid", application_id)
        except _BAD_ID_ERRORS as exc:
            raise RepositoryNotFoundError("application not found") from exc
        if not row:
            raise RepositoryNotFoundError("application not found")
        return self._application_row_to_dict(row)

    async def update_application_status(
        self,
        *,
        application_id: str,
        employer_id: str,
        status: str,
        expected_status: str | None = None,
    ) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            with self._guard():
                updated_id = await pool.fetchval(
                    """
                    update applications a
                    set
                      status = $3::application_status,
                      updated_at = now()
                    from jobs j
                    where a.id = $1::uuid
                      and j.id = a.job_id
                      and j.employer_id = $2::uuid
                      and ($4::application_status is null or a.status = $4::application_status)
                    returning a.id::text
                    """,
                    application_id,
                    employer_id,
                    status,
                    expected_status,
                )
        except _BAD_ID_ERRORS as exc:
            raise RepositoryNotFoundError("application not found") from exc
        if not updated_id:
            if expected_status is not None:
                # Caller already checked ownership, so the status moved since it was read.
                raise RepositoryConflictError("application status changed concurrently")
            raise RepositoryNotFoundError("application not found")
        return await self.get_application(updated_id)

    async def count_applications_by_status(self, employer_id: str) -> dict[str, int]:
        pool = await self._get_pool()
        try:
            with self._guard():
                rows = await pool.fetch(
                    """
                    select a.status::text as status, count(*) as total
                    from applications a
                    join jobs j on j.id = a.job_id
                    where j.employer_id = $1::uuid
                    group by a.status
                    """,
                    employer_id,
                )
        except _BAD_ID_ERRORS:
            return {}
        return {row["status"]: int(row["total"]) for row in rows}

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise RepositoryUnavailableError("JB_DATABASE_URL is required")

        if self._pool is not None:
            return self._pool

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.database_url,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
                command_timeout=15,
            )
            return self._pool
        except Exception as exc:  # pragma: no cover - depends on environment
            raise RepositoryUnavailableError("database unavailable") from exc

    @staticmethod
    @contextmanager
    def _guard() -> Iterator[None]:
        try:
            yield
        except asyncpg.DataError:
            raise
        except _CONNECTION_ERRORS as exc:
            raise RepositoryUnavailableError("database unavailable") from exc

    @staticmethod
    def _like_pattern(value: str) -> str:
        escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        return f"%{escaped}%"

    @staticmethod
    def _user_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        job_seeker_profile = None
        if row["has_job_seeker_profile"]:
            job_seeker_profile = {
                "bio": row["seeker_bio"],
                "skills": list(row["seeker_skills"] or []),
                "resume_url": row["seeker_resume_url"],
                "updated_at": row["seeker_updated_at"],
            }
        employer_profile = None
        if row["has_employer_profile"]:
            employer_profile = {
                "company_name": row["employer_company_name"],
                "website": row["employer_website"],
                "description": row["employer_description"],
                "updated_at": row["employer_updated_at"],
            }
        return {
            "id": row["id"],
            "auth_subject_id": row["auth_subject_id"],
            "email": row["email"],
            "name": row["name"],
            "role": row["role"],
            "image_url": row["image_url"],
            "job_seeker_profile": job_seeker_profile,
            "employer_profile": employer_profile,
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
        }

    @staticmethod
    def _job_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        return {
            "id": row["id"],
            "title": row["title"],
            "description": row["description"],
            "location": row["location"],
            "company": row["company"],
            "salary_min": row["salary_min"],
            "salary_max": row["salary_max"],
            "status": row["status"],
            "employer_id": row["employer_id"],
            "employer": {
                "id": row["employer_id"],
                "name": row["employer_name"],
                "company_name": row["employer_company_name"],
            },
            "application_count": int(row["application_count"] or 0),
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
        }

    @staticmethod
    def _application_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        profile = None
        if row["has_applicant_profile"]:
            profile = {
                "bio": row["applicant_bio"],
                "skills": list(row["applicant_skills"] or []),
                "resume_url": row["applicant_resume_url"],
            }
        return {
            "id": row["id"],
            "job_id": row["job_id"],
            "applicant_id": row["applicant_id"],
            "cover_letter": row["cover_letter"],
            "status": row["status"],
            "job": {
                "id": row["job_id"],
                "title": row["job_title"],
                "company": row["job_company"],
                "location": row["job_location"],
                "status": row["job_status"],
                "employer_id": row["employer_id"],
                "employer": {
                    "id": row["employer_id"],
                    "name": row["employer_name"],
                    "email": row["employer_email"],
                },
            },
            "applicant": {
                "id": row["applicant_id"],
                "name": row["applicant_name"],
                "email": row["applicant_email"],
                "profile": profile,
            },
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
        }
