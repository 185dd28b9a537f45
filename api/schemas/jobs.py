"""Request and response schemas for job postings and job search."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from api.schemas.common import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, PaginationMeta
from database.models.jobs import (
    EmploymentType,
    ExperienceLevel,
    JobStatus,
    RemoteType,
    SalaryType,
)

SALARY_RANGE_MESSAGE = "Maximum salary must be greater than or equal to minimum salary"

ENUM_FIELDS = (
    "remote_type",
    "employment_type",
    "experience_level",
    "salary_type",
    "status",
)

CREATABLE_STATUSES = (JobStatus.ACTIVE, JobStatus.DRAFT)

# Columns an update may change but never clear
NON_NULLABLE_FIELDS = (
    "title",
    "description",
    "remote_type",
    "employment_type",
    "currency",
    "salary_type",
    "skills_required",
    "nice_to_have_skills",
    "status",
    "is_featured",
    "is_urgent",
)


def _lower(value: Any) -> Any:
    return value.strip().lower() if isinstance(value, str) else value


def _split_values(value: Any) -> Any:
    """Accept repeated query params as well as comma-separated values."""
    if value is None:
        return None
    if isinstance(value, str):
        value = [value]
    items = []
    for item in value:
        if isinstance(item, str):
            items.extend(part.strip().lower() for part in item.split(",") if part.strip())
        else:
            items.append(item)
    return items


class JobCreate(BaseModel):
    """Payload for creating a job posting."""

    category_id: Optional[int] = None
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=10000)
    requirements: Optional[str] = Field(None, max_length=5000)
    responsibilities: Optional[str] = Field(None, max_length=5000)
    benefits: Optional[str] = Field(None, max_length=3000)
    location: Optional[str] = Field(None, max_length=200)
    remote_type: RemoteType = RemoteType.OFFICE
    employment_type: EmploymentType
    experience_level: Optional[ExperienceLevel] = None
    salary_min: Optional[int] = Field(None, ge=0)
    salary_max: Optional[int] = Field(None, ge=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    salary_type: SalaryType = SalaryType.YEARLY
    skills_required: list[str] = Field(default_factory=list)
    nice_to_have_skills: list[str] = Field(default_factory=list)
    application_deadline: Optional[datetime] = None
    is_featured: bool = False
    is_urgent: bool = False
    status: JobStatus = JobStatus.ACTIVE

    @field_validator(*ENUM_FIELDS, mode="before")
    @classmethod
    def normalize_enum(cls, v: Any) -> Any:
        return _lower(v)

    @field_validator("status")
    @classmethod
    def initial_status(cls, v: JobStatus) -> JobStatus:
        # New postings are either published straight away or saved as drafts
        if v not in CREATABLE_STATUSES:
            raise ValueError("New jobs must be created as active or draft")
        return v

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Job title is required")
        return v.strip()

    @model_validator(mode="after")
    def check_salary_range(self) -> "JobCreate":
        if (
            self.salary_min is not None
            and self.salary_max is not None
            and self.salary_max < self.salary_min
        ):
            raise ValueError(SALARY_RANGE_MESSAGE)
        return self


class JobUpdate(BaseModel):
    """Partial update; only fields present in the payload are applied."""

    category_id: Optional[int] = None
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1, max_length=10000)
    requirements: Optional[str] = Field(None, max_length=5000)
    responsibilities: Optional[str] = Field(None, max_length=5000)
    benefits: Optional[str] = Field(None, max_length=3000)
    location: Optional[str] = Field(None, max_length=200)
    remote_type: Optional[RemoteType] = None
    employment_type: Optional[EmploymentType] = None
    experience_level: Optional[ExperienceLevel] = None
    salary_min: Optional[int] = Field(None, ge=0)
    salary_max: Optional[int] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    salary_type: Optional[SalaryType] = None
    skills_required: Optional[list[str]] = None
    nice_to_have_skills: Optional[list[str]] = None
    application_deadline: Optional[datetime] = None
    status: Optional[JobStatus] = None
    is_featured: Optional[bool] = None
    is_urgent: Optional[bool] = None

    @field_validator(*ENUM_FIELDS, mode="before")
    @classmethod
    def normalize_enum(cls, v: Any) -> Any:
        return _lower(v)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if not v.strip():
            raise ValueError("Job title is required")
        return v.strip()

    @model_validator(mode="after")
    def check_fields(self) -> "JobUpdate":
        for name in NON_NULLABLE_FIELDS:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        if (
            self.salary_min is not None
            and self.salary_max is not None
            and self.salary_max < self.salary_min
        ):
            raise ValueError(SALARY_RANGE_MESSAGE)
        return self


class JobSearchParams(BaseModel):
    """Query parameters for ``GET /jobs/search``."""

    search: Optional[str] = Field(None, max_length=200)
    category_id: Optional[int] = None
    location: Optional[str] = Field(None, max_length=200)
    remote_type: Optional[list[RemoteType]] = None
    employment_type: Optional[list[EmploymentType]] = None
    experience_level: Optional[list[ExperienceLevel]] = None
    salary_min: Optional[int] = Field(None, ge=0)
    salary_max: Optional[int] = Field(None, ge=0)
    company_id: Optional[int] = None
    is_featured: Optional[bool] = None
    is_urgent: Optional[bool] = None
    posted_within: Optional[int] = Field(
        None, ge=1, le=365, description="Only jobs posted in the last N days"
    )
    page: int = Field(1, ge=1)
    limit: int = Field(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    # Unknown values fall back to the default ordering instead of failing
    sort_by: str = "created_at"
    sort_order: str = "desc"

    @field_validator("remote_type", "employment_type", "experience_level", mode="before")
    @classmethod
    def split_values(cls, v: Any) -> Any:
        return _split_values(v)

    @field_validator("search", "location")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None


class JobListResponse(BaseModel):
    """A page of hydrated jobs."""

    jobs: list[dict[str, Any]]
    pagination: PaginationMeta
