"""
Job search query building.

Pure functions that turn validated search parameters into SQLAlchemy
clauses. Nothing here touches a session, so the builders can be tested by
compiling or by running them against any database.
"""

import math
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Iterable, Optional

from sqlalchemy import ColumnElement, func, or_, select

from core.exceptions import ValidationError
from database.models.applications import Application
from database.models.companies import Company
from database.models.jobs import (
    EmploymentType,
    ExperienceLevel,
    Job,
    JobStatus,
    RemoteType,
)

DEFAULT_SORT = ("created_at", "desc")

SORT_FIELDS = (
    "created_at",
    "title",
    "salary_min",
    "salary_max",
    "views_count",
    "applications_count",
)

# camelCase spellings used by existing clients
SORT_FIELD_ALIASES = {
    "createdAt": "created_at",
    "salaryMin": "salary_min",
    "salaryMax": "salary_max",
    "viewsCount": "views_count",
    "applicationsCount": "applications_count",
}

SORT_DIRECTIONS = ("asc", "desc")


def applications_count_expr():
    """Correlated scalar subquery counting a job's applications."""
    return (
        select(func.count(Application.id))
        .where(Application.job_id == Job.id)
        .correlate(Job)
        .scalar_subquery()
    )


def _enum_members(enum_cls: type[Enum], values: Iterable[Any], field: str) -> list[Enum]:
    """Normalize raw values to enum members, matching values case-insensitively."""
    members = []
    for value in values:
        if isinstance(value, enum_cls):
            members.append(value)
            continue
        try:
            members.append(enum_cls(str(value).strip().lower()))
        except ValueError:
            raise ValidationError.for_field(field, f"Invalid {field}: {value}")
    return members


def build_search_filters(params: Any) -> list[ColumnElement[bool]]:
    """
    Build the WHERE clauses for a job search.

    Only active jobs are ever returned, so the first clause is always the
    status filter. The remaining clauses are added for each parameter that
    is set and are meant to be ANDed together.

    Salary filters match on range overlap: a ``salary_min`` of 80000 keeps
    jobs whose maximum reaches at least 80000.

    Raises:
        ValidationError: If a facet value is not a known enum value
    """
    filters: list[ColumnElement[bool]] = [Job.status == JobStatus.ACTIVE]

    search = getattr(params, "search", None)
    if search:
        # autoescape keeps % and _ in user input literal
        filters.append(
            or_(
                Job.title.icontains(search, autoescape=True),
                Job.description.icontains(search, autoescape=True),
                Job.company.has(Company.name.icontains(search, autoescape=True)),
            )
        )

    category_id = getattr(params, "category_id", None)
    if category_id is not None:
        filters.append(Job.category_id == category_id)

    location = getattr(params, "location", None)
    if location:
        filters.append(Job.location.icontains(location, autoescape=True))

    facets = (
        ("remote_type", RemoteType, Job.remote_type),
        ("employment_type", EmploymentType, Job.employment_type),
        ("experience_level", ExperienceLevel, Job.experience_level),
    )
    for field, enum_cls, column in facets:
        values = getattr(params, field, None)
        if values:
            filters.append(column.in_(_enum_members(enum_cls, values, field)))

    salary_min = getattr(params, "salary_min", None)
    if salary_min is not None:
        filters.append(Job.salary_max >= salary_min)

    salary_max = getattr(params, "salary_max", None)
    if salary_max is not None:
        filters.append(Job.salary_min <= salary_max)

    company_id = getattr(params, "company_id", None)
    if company_id is not None:
        filters.append(Job.company_id == company_id)

    is_featured = getattr(params, "is_featured", None)
    if is_featured is not None:
        filters.append(Job.is_featured.is_(is_featured))

    is_urgent = getattr(params, "is_urgent", None)
    if is_urgent is not None:
        filters.append(Job.is_urgent.is_(is_urgent))

    posted_within = getattr(params, "posted_within", None)
    if posted_within:
        since = datetime.now(timezone.utc) - timedelta(days=posted_within)
        filters.append(Job.created_at >= since)

    return filters


def resolve_sort(field: Optional[str], direction: Optional[str]) -> tuple[str, str]:
    """
    Resolve a requested ordering against the sort whitelist.

    An unknown field silently falls back to newest first; an unknown
    direction on a known field falls back to descending.
    """
    field = SORT_FIELD_ALIASES.get(field, field)
    if field not in SORT_FIELDS:
        return DEFAULT_SORT

    direction = (direction or "").lower()
    if direction not in SORT_DIRECTIONS:
        direction = "desc"
    return field, direction


def build_order_by(field: str, direction: str) -> list:
    """ORDER BY clauses for a resolved sort, with the job id as tie-breaker."""
    if field == "applications_count":
        column = applications_count_expr()
    else:
        column = getattr(Job, field)

    ordered = column.asc() if direction == "asc" else column.desc()
    tie_breaker = Job.id.asc() if direction == "asc" else Job.id.desc()
    return [ordered, tie_breaker]


def paginate(page: int, limit: int) -> int:
    """Offset of the first row on ``page``."""
    return (page - 1) * limit


def build_pagination(page: int, limit: int, total: int) -> dict[str, Any]:
    """Pagination envelope for a result page."""
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }
