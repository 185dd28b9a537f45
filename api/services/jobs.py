"""Job service: create, read, update, delete and search job postings."""

from typing import Any, Dict, Optional
import logging

from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from api.schemas.jobs import SALARY_RANGE_MESSAGE, JobCreate, JobUpdate
from api.services.search import (
    applications_count_expr,
    build_order_by,
    build_pagination,
    build_search_filters,
    paginate,
    resolve_sort,
)
from core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from core.middleware.authorization import check_can_modify_job, check_can_post_jobs
from core.utils.formatting import slugify
from database.engine import Database
from database.models.companies import Company
from database.models.jobs import Job, JobCategory, JobStatus, JOB_STATUS_TRANSITIONS

logger = logging.getLogger(__name__)

# Attempts at inserting a job before a slug collision is reported
SLUG_ALLOCATION_ATTEMPTS = 5

DEFAULT_SLUG = "job"


def _enum_value(value: Any) -> Any:
    return value.value if value is not None else None


def job_to_dict(job: Job, applications_count: int = 0) -> Dict[str, Any]:
    """Serialize a job with its company, category and poster."""
    company = job.company
    category = job.category
    poster = job.posted_by_user
    return {
        "id": job.id,
        "company_id": job.company_id,
        "posted_by": job.posted_by,
        "category_id": job.category_id,
        "title": job.title,
        "slug": job.slug,
        "description": job.description,
        "requirements": job.requirements,
        "responsibilities": job.responsibilities,
        "benefits": job.benefits,
        "location": job.location,
        "remote_type": _enum_value(job.remote_type),
        "employment_type": _enum_value(job.employment_type),
        "experience_level": _enum_value(job.experience_level),
        "salary_min": job.salary_min,
        "salary_max": job.salary_max,
        "currency": job.currency,
        "salary_type": _enum_value(job.salary_type),
        "skills_required": list(job.skills_required or []),
        "nice_to_have_skills": list(job.nice_to_have_skills or []),
        "application_deadline": job.application_deadline,
        "status": _enum_value(job.status),
        "views_count": job.views_count,
        "is_featured": job.is_featured,
        "is_urgent": job.is_urgent,
        "created_at": job.created_at,
        "updated_at": job.updated_at,
        "company": {
            "id": company.id,
            "name": company.name,
            "slug": company.slug,
            "logo_url": company.logo_url,
            "location": company.location,
            "is_verified": company.is_verified,
        },
        "category": {
            "id": category.id,
            "name": category.name,
            "slug": category.slug,
        }
        if category is not None
        else None,
        "posted_by_user": {
            "id": poster.id,
            "first_name": poster.first_name,
            "last_name": poster.last_name,
        },
        "applications_count": applications_count or 0,
    }


class JobService:
    """
    Orchestrates job postings.

    Every public method opens its own session from the database handle it
    was constructed with and returns plain dictionaries ready for JSON.
    """

    def __init__(self, database: Database):
        self.db = database

    # ==================== Queries ==================== #

    @staticmethod
    def _hydrated_query():
        return select(Job, applications_count_expr().label("applications_count")).options(
            joinedload(Job.company),
            joinedload(Job.category),
            joinedload(Job.posted_by_user),
        )

    async def _fetch_hydrated(self, session: AsyncSession, job_id: int) -> Dict[str, Any]:
        result = await session.execute(
            self._hydrated_query()
            .where(Job.id == job_id)
            .execution_options(populate_existing=True)
        )
        row = result.one_or_none()
        if row is None:
            raise NotFoundError("Job not found")
        job, applications_count = row
        return job_to_dict(job, applications_count)

    async def _page(
        self, session: AsyncSession, filters: list, order_by: list, page: int, limit: int
    ) -> Dict[str, Any]:
        total_result = await session.execute(
            select(func.count(Job.id)).where(*filters)
        )
        total = total_result.scalar() or 0

        result = await session.execute(
            self._hydrated_query()
            .where(*filters)
            .order_by(*order_by)
            .offset(paginate(page, limit))
            .limit(limit)
        )
        jobs = [job_to_dict(job, count) for job, count in result.all()]

        return {
            "jobs": jobs,
            "pagination": build_pagination(page, limit, total),
        }

    # ==================== Slugs ==================== #

    async def _existing_slugs(
        self,
        session: AsyncSession,
        company_id: int,
        base: str,
        exclude_job_id: Optional[int] = None,
    ) -> set[str]:
        query = select(Job.slug).where(
            Job.company_id == company_id,
            (Job.slug == base) | Job.slug.like(f"{base}-%"),
        )
        if exclude_job_id is not None:
            query = query.where(Job.id != exclude_job_id)
        result = await session.execute(query)
        return set(result.scalars().all())

    async def _allocate_slug(
        self,
        session: AsyncSession,
        company_id: int,
        title: str,
        exclude_job_id: Optional[int] = None,
    ) -> str:
        """
        Pick the first free slug for a title within a company.

        Tries ``base``, then ``base-1``, ``base-2`` and so on. The choice is
        only a probe; the unique constraint on (company_id, slug) is what
        settles concurrent inserts.
        """
        base = slugify(title) or DEFAULT_SLUG
        existing = await self._existing_slugs(session, company_id, base, exclude_job_id)
        if base not in existing:
            return base

        suffix = 1
        while f"{base}-{suffix}" in existing:
            suffix += 1
        return f"{base}-{suffix}"

    # ==================== Validation helpers ==================== #

    @staticmethod
    async def _check_category(session: AsyncSession, category_id: Optional[int]) -> None:
        if category_id is None:
            return
        category = await session.get(JobCategory, category_id)
        if category is None or not category.is_active:
            raise ValidationError.for_field("category_id", "Category not found")

    @staticmethod
    def _check_status_transition(current: JobStatus, new: JobStatus) -> None:
        if new == current:
            return
        if new not in JOB_STATUS_TRANSITIONS[current]:
            raise ValidationError.for_field(
                "status",
                f"Cannot change job status from {current.value} to {new.value}",
            )

    # ==================== Operations ==================== #

    async def create_job(self, user_id: int, data: JobCreate) -> Dict[str, Any]:
        """
        Create a job for the poster's company.

        Raises:
            NotFoundError: If the user doesn't exist
            ForbiddenError: If the user may not post jobs
            ValidationError: If the category doesn't exist
            ConflictError: If no unique slug could be stored
        """
        values = data.model_dump()

        async with self.db.session() as session:
            company_id = await check_can_post_jobs(session, user_id)
            await self._check_category(session, data.category_id)

            for attempt in range(1, SLUG_ALLOCATION_ATTEMPTS + 1):
                try:
                    async with session.begin_nested():
                        slug = await self._allocate_slug(session, company_id, data.title)
                        job = Job(
                            company_id=company_id,
                            posted_by=user_id,
                            slug=slug,
                            views_count=0,
                            **values,
                        )
                        session.add(job)
                    break
                except IntegrityError:
                    logger.warning(
                        f"Slug collision creating job in company {company_id} "
                        f"(attempt {attempt}/{SLUG_ALLOCATION_ATTEMPTS})"
                    )
            else:
                raise ConflictError("Could not allocate a unique slug for this job")

            await session.commit()
            job_id = job.id
            logger.info(f"Job {job_id} created by user {user_id} with slug {slug}")

            return await self._fetch_hydrated(session, job_id)

    async def search_jobs(self, params: Any) -> Dict[str, Any]:
        """Search active jobs; returns ``{jobs, pagination}``."""
        filters = build_search_filters(params)
        sort_field, sort_direction = resolve_sort(params.sort_by, params.sort_order)

        async with self.db.session() as session:
            return await self._page(
                session,
                filters,
                build_order_by(sort_field, sort_direction),
                params.page,
                params.limit,
            )

    async def _view(self, session: AsyncSession, job_id: int) -> Dict[str, Any]:
        # Single UPDATE so concurrent views never lose an increment
        result = await session.execute(
            update(Job)
            .where(Job.id == job_id)
            .values(views_count=Job.views_count + 1, updated_at=Job.updated_at)
        )
        if result.rowcount == 0:
            raise NotFoundError("Job not found")
        await session.commit()
        return await self._fetch_hydrated(session, job_id)

    async def get_job_by_id(self, job_id: int) -> Dict[str, Any]:
        """
        Fetch a job and count the view.

        Raises:
            NotFoundError: If the job doesn't exist
        """
        async with self.db.session() as session:
            return await self._view(session, job_id)

    async def get_job_by_slug(self, company_slug: str, job_slug: str) -> Dict[str, Any]:
        """Fetch a job by its company's slug and its own slug, counting the view."""
        async with self.db.session() as session:
            result = await session.execute(
                select(Job.id)
                .join(Company, Company.id == Job.company_id)
                .where(Company.slug == company_slug, Job.slug == job_slug)
            )
            job_id = result.scalar_one_or_none()
            if job_id is None:
                raise NotFoundError("Job not found")
            return await self._view(session, job_id)

    async def update_job(self, job_id: int, user_id: int, data: JobUpdate) -> Dict[str, Any]:
        """
        Apply a partial update to a job.

        A title change re-slugs the job; a status change must follow the
        job lifecycle.

        Raises:
            NotFoundError: If the job doesn't exist
            ForbiddenError: If the user may not modify the job
            ValidationError: Invalid status transition, salary range or category
        """
        changes = data.model_dump(exclude_unset=True)

        async with self.db.session() as session:
            if not await check_can_modify_job(session, job_id, user_id):
                raise ForbiddenError("You do not have permission to edit this job")

            job = await session.get(Job, job_id)
            company_id = job.company_id

            if "status" in changes:
                self._check_status_transition(job.status, changes["status"])

            salary_min = changes.get("salary_min", job.salary_min)
            salary_max = changes.get("salary_max", job.salary_max)
            if salary_min is not None and salary_max is not None and salary_max < salary_min:
                raise ValidationError.for_field("salary_max", SALARY_RANGE_MESSAGE)

            if "category_id" in changes:
                await self._check_category(session, changes["category_id"])

            title_changed = "title" in changes and changes["title"] != job.title

            for attempt in range(1, SLUG_ALLOCATION_ATTEMPTS + 1):
                try:
                    async with session.begin_nested():
                        if title_changed:
                            changes["slug"] = await self._allocate_slug(
                                session, company_id, changes["title"], exclude_job_id=job_id
                            )
                        for field, value in changes.items():
                            setattr(job, field, value)
                    break
                except IntegrityError:
                    if not title_changed:
                        raise
                    logger.warning(
                        f"Slug collision updating job {job_id} "
                        f"(attempt {attempt}/{SLUG_ALLOCATION_ATTEMPTS})"
                    )
            else:
                raise ConflictError("Could not allocate a unique slug for this job")

            await session.commit()
            logger.info(f"Job {job_id} updated by user {user_id}: {sorted(changes)}")

            return await self._fetch_hydrated(session, job_id)

    async def delete_job(self, job_id: int, user_id: int) -> None:
        """
        Permanently delete a job and its applications.

        Raises:
            NotFoundError: If the job doesn't exist
            ForbiddenError: If the user may not modify the job
        """
        async with self.db.session() as session:
            if not await check_can_modify_job(session, job_id, user_id):
                raise ForbiddenError("You do not have permission to delete this job")

            job = await session.get(Job, job_id)
            await session.delete(job)
            await session.commit()

        logger.info(f"Job {job_id} deleted by user {user_id}")

    async def get_user_jobs(self, user_id: int, page: int = 1, limit: int = 12) -> Dict[str, Any]:
        """Jobs posted by a user in any status, newest first."""
        async with self.db.session() as session:
            return await self._page(
                session,
                [Job.posted_by == user_id],
                build_order_by("created_at", "desc"),
                page,
                limit,
            )

    async def list_categories(self) -> list[Dict[str, Any]]:
        """Active categories by name, each with its number of active jobs."""
        async with self.db.session() as session:
            result = await session.execute(
                select(JobCategory, func.count(Job.id).label("jobs_count"))
                .outerjoin(
                    Job,
                    and_(Job.category_id == JobCategory.id, Job.status == JobStatus.ACTIVE),
                )
                .where(JobCategory.is_active.is_(True))
                .group_by(JobCategory.id)
                .order_by(JobCategory.name)
            )

            return [
                {
                    "id": category.id,
                    "name": category.name,
                    "slug": category.slug,
                    "description": category.description,
                    "icon": category.icon,
                    "jobs_count": jobs_count,
                }
                for category, jobs_count in result.all()
            ]
