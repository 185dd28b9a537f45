"""Import every model so the mappers register on ``Base.metadata``."""

from database.models.users import User, UserProfile, UserRole
from database.models.companies import (
    Company,
    CompanyMember,
    CompanyMemberRole,
    JOB_MANAGER_ROLES,
)
from database.models.jobs import (
    Job,
    JobCategory,
    JobStatus,
    RemoteType,
    EmploymentType,
    ExperienceLevel,
    SalaryType,
    JOB_STATUS_TRANSITIONS,
)
from database.models.applications import Application, ApplicationStatus

__all__ = [
    "User",
    "UserProfile",
    "UserRole",
    "Company",
    "CompanyMember",
    "CompanyMemberRole",
    "JOB_MANAGER_ROLES",
    "Job",
    "JobCategory",
    "JobStatus",
    "RemoteType",
    "EmploymentType",
    "ExperienceLevel",
    "SalaryType",
    "JOB_STATUS_TRANSITIONS",
    "Application",
    "ApplicationStatus",
]
