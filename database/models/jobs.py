"""
Jobs Module

Job postings, their categories and the enumerations that describe them.
Enum members are persisted by name (upper-case) and serialized by value
(lower-case).
"""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    Boolean,
    ForeignKey,
    BigInteger,
    Integer,
    DateTime,
    func,
    Text,
    JSON,
    Enum as SQLEnum,
    Index,
    UniqueConstraint,
)
from database.engine import Base, BigIntPK
from datetime import datetime
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.applications import Application
    from database.models.companies import Company
    from database.models.users import User


# ==================== Job Enums ===================== #
class JobStatus(str, PyEnum):
    """Job posting status."""

    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    CLOSED = "closed"
    FILLED = "filled"


class RemoteType(str, PyEnum):
    OFFICE = "office"
    REMOTE = "remote"
    HYBRID = "hybrid"


class EmploymentType(str, PyEnum):
    FULL_TIME = "full_time"
    PART_TIME = "part_time"
    CONTRACT = "contract"
    INTERNSHIP = "internship"


class ExperienceLevel(str, PyEnum):
    ENTRY = "entry"
    MID = "mid"
    SENIOR = "senior"
    LEAD = "lead"
    EXECUTIVE = "executive"


class SalaryType(str, PyEnum):
    YEARLY = "yearly"
    MONTHLY = "monthly"
    WEEKLY = "weekly"
    HOURLY = "hourly"


# Allowed status changes; closed and filled are terminal
JOB_STATUS_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.DRAFT: frozenset({JobStatus.ACTIVE}),
    JobStatus.ACTIVE: frozenset(
        {JobStatus.PAUSED, JobStatus.CLOSED, JobStatus.FILLED}
    ),
    JobStatus.PAUSED: frozenset(
        {JobStatus.ACTIVE, JobStatus.CLOSED, JobStatus.FILLED}
    ),
    JobStatus.CLOSED: frozenset(),
    JobStatus.FILLED: frozenset(),
}


class JobCategory(Base):
    """Lookup table of job categories."""

    __tablename__ = "job_categories"

    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    icon: Mapped[str | None] = mapped_column(String(50))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    jobs: Mapped[list["Job"]] = relationship("Job", back_populates="category")


class Job(Base):
    """
    Job posting.

    The slug is unique per company; the constraint backs the retry loop in
    the job service when two postings race for the same slug.
    """

    __tablename__ = "jobs"
    __table_args__ = (
        UniqueConstraint("company_id", "slug", name="uq_jobs_company_slug"),
        Index("ix_jobs_status_created_at", "status", "created_at"),
    )

    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    company_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    posted_by: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False, index=True
    )
    category_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("job_categories.id", ondelete="SET NULL"), index=True
    )

    # Content
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[str] = mapped_column(String(250), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    requirements: Mapped[str | None] = mapped_column(Text)
    responsibilities: Mapped[str | None] = mapped_column(Text)
    benefits: Mapped[str | None] = mapped_column(Text)
    location: Mapped[str | None] = mapped_column(String(200))

    # Facets
    remote_type: Mapped[RemoteType] = mapped_column(
        SQLEnum(RemoteType, native_enum=False, length=20),
        nullable=False,
        default=RemoteType.OFFICE,
    )
    employment_type: Mapped[EmploymentType] = mapped_column(
        SQLEnum(EmploymentType, native_enum=False, length=20), nullable=False
    )
    experience_level: Mapped[ExperienceLevel | None] = mapped_column(
        SQLEnum(ExperienceLevel, native_enum=False, length=20)
    )

    # Compensation
    salary_min: Mapped[int | None] = mapped_column(Integer)
    salary_max: Mapped[int | None] = mapped_column(Integer)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    salary_type: Mapped[SalaryType] = mapped_column(
        SQLEnum(SalaryType, native_enum=False, length=20),
        nullable=False,
        default=SalaryType.YEARLY,
    )

    skills_required: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=list
    )
    nice_to_have_skills: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=list
    )
    application_deadline: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )

    status: Mapped[JobStatus] = mapped_column(
        SQLEnum(JobStatus, native_enum=False, length=20),
        nullable=False,
        default=JobStatus.ACTIVE,
    )
    views_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_urgent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships
    company: Mapped["Company"] = relationship("Company", back_populates="jobs")
    category: Mapped["JobCategory | None"] = relationship(
        "JobCategory", back_populates="jobs"
    )
    posted_by_user: Mapped["User"] = relationship(
        "User", back_populates="posted_jobs"
    )
    applications: Mapped[list["Application"]] = relationship(
        "Application",
        back_populates="job",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
