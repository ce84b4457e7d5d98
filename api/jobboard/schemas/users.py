from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

UserRoleName = Literal["JOBSEEKER", "EMPLOYER", "ADMIN"]


class UserSummaryOut(BaseModel):
    id: str
    email: str
    name: str | None = None
    role: UserRoleName
    image_url: str | None = None
    has_job_seeker_profile: bool = False
    has_employer_profile: bool = False
    profile_complete: bool = False


class JobSeekerProfileOut(BaseModel):
    bio: str | None = None
    skills: list[str] = Field(default_factory=list)
    resume_url: str | None = None
    updated_at: datetime | None = None


class EmployerProfileOut(BaseModel):
    company_name: str
    website: str | None = None
    description: str | None = None
    updated_at: datetime | None = None


class JobSeekerProfileEnvelope(BaseModel):
    profile: JobSeekerProfileOut | None = None


class EmployerProfileEnvelope(BaseModel):
    profile: EmployerProfileOut | None = None


class JobSeekerProfileRequest(BaseModel):
    bio: str | None = None
    skills: list[str] | None = None
    resume_url: str | None = None


class EmployerProfileRequest(BaseModel):
    company_name: str | None = None
    website: str | None = None
    description: str | None = None


class SuccessOut(BaseModel):
    success: bool


class UserStatsOut(BaseModel):
    total_users: int
    job_seekers: int
    employers: int
    admins: int
