from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

JobStatus = Literal["ACTIVE", "CLOSED", "DRAFT"]


class JobEmployerOut(BaseModel):
    id: str
    name: str | None = None
    company_name: str | None = None


class JobOut(BaseModel):
    id: str
    title: str
    description: str
    location: str
    company: str
    salary_min: int | None = None
    salary_max: int | None = None
    status: JobStatus = "ACTIVE"
    employer_id: str
    employer: JobEmployerOut
    application_count: int = 0
    created_at: datetime
    updated_at: datetime


class JobListOut(BaseModel):
    items: list[JobOut] = Field(default_factory=list)
    total: int
    total_pages: int
    page: int
    page_size: int


class JobCreateRequest(BaseModel):
    title: str | None = None
    description: str | None = None
    location: str | None = None
    company: str | None = None
    salary_min: int | None = Field(default=None, ge=0)
    salary_max: int | None = Field(default=None, ge=0)


class JobPatchRequest(BaseModel):
    title: str | None = None
    description: str | None = None
    location: str | None = None
    company: str | None = None
    salary_min: int | None = Field(default=None, ge=0)
    salary_max: int | None = Field(default=None, ge=0)
    status: JobStatus | None = None
