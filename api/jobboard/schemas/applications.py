from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

ApplicationStatus = Literal["PENDING", "REVIEWED", "ACCEPTED", "REJECTED"]

COVER_LETTER_MAX_LENGTH = 5000


class ApplicationEmployerOut(BaseModel):
    id: str
    name: str | None = None
    email: str | None = None


class ApplicationJobOut(BaseModel):
    id: str
    title: str
    company: str
    location: str
    status: str
    employer_id: str
    employer: ApplicationEmployerOut


class ApplicantProfileOut(BaseModel):
    bio: str | None = None
    skills: list[str] = Field(default_factory=list)
    resume_url: str | None = None


class ApplicantOut(BaseModel):
    id: str
    name: str | None = None
    email: str | None = None
    profile: ApplicantProfileOut | None = None


class ApplicationOut(BaseModel):
    id: str
    job_id: str
    applicant_id: str
    cover_letter: str | None = None
    status: ApplicationStatus
    job: ApplicationJobOut
    applicant: ApplicantOut
    created_at: datetime
    updated_at: datetime


class ApplyRequest(BaseModel):
    cover_letter: str | None = Field(default=None, max_length=COVER_LETTER_MAX_LENGTH)


class ApplicationStatusPatchRequest(BaseModel):
    # Plain str so unknown values reach the ledger and come back as 400.
    status: str


class AppliedStatusOut(BaseModel):
    has_applied: bool


class ApplicationStatsOut(BaseModel):
    total: int = 0
    pending: int = 0
    reviewed: int = 0
    accepted: int = 0
    rejected: int = 0
