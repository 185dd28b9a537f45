"""
Tests for JobService.

Runs the service against a seeded SQLite database: posting rules, slug
allocation, view counting, the status lifecycle and deletion.
"""

import asyncio
from unittest.mock import patch

import pytest
from sqlalchemy import func, select

from api.schemas.jobs import JobCreate, JobUpdate
from api.services.jobs import SLUG_ALLOCATION_ATTEMPTS, JobService
from core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from database.models import Application, Job, JobStatus

pytestmark = pytest.mark.asyncio


def new_job(**overrides) -> JobCreate:
    payload = {
        "title": "Senior Engineer",
        "description": "Ship features.",
        "employment_type": "full_time",
    }
    payload.update(overrides)
    return JobCreate(**payload)


class TestCreateJob:
    """Test job creation."""

    async def test_create_for_member_company(self, job_service, seed):
        job = await job_service.create_job(
            seed.recruiter_id,
            new_job(category_id=seed.software_category_id, skills_required=["python"]),
        )

        assert job["company_id"] == seed.acme_id
        assert job["posted_by"] == seed.recruiter_id
        assert job["slug"] == "senior-engineer"
        assert job["status"] == "active"
        assert job["views_count"] == 0
        assert job["applications_count"] == 0
        assert job["company"]["name"] == "Acme Corp"
        assert job["category"]["slug"] == "software-development"
        assert job["skills_required"] == ["python"]
        assert job["created_at"] is not None

    async def test_create_draft(self, job_service, seed):
        job = await job_service.create_job(seed.employer_id, new_job(status="draft"))

        assert job["status"] == "draft"

    async def test_job_seeker_forbidden(self, job_service, seed):
        with pytest.raises(ForbiddenError, match="Only employers can post jobs"):
            await job_service.create_job(seed.seeker_id, new_job())

    async def test_employer_without_company_forbidden(self, job_service, seed):
        with pytest.raises(ForbiddenError):
            await job_service.create_job(seed.unaffiliated_employer_id, new_job())

    async def test_unknown_category(self, job_service, seed):
        with pytest.raises(ValidationError) as exc_info:
            await job_service.create_job(seed.employer_id, new_job(category_id=9999))

        assert exc_info.value.details[0]["field"] == "category_id"


class TestSlugAllocation:
    """Slugs are unique per company."""

    async def test_suffixes(self, job_service, seed):
        slugs = [
            (await job_service.create_job(seed.employer_id, new_job(title="Data Engineer")))["slug"]
            for _ in range(3)
        ]

        assert slugs == ["data-engineer", "data-engineer-1", "data-engineer-2"]

    async def test_same_slug_in_other_company(self, job_service, seed):
        acme = await job_service.create_job(seed.employer_id, new_job(title="Designer"))
        globex = await job_service.create_job(seed.globex_employer_id, new_job(title="Designer"))

        assert acme["slug"] == globex["slug"] == "designer"

    async def test_fills_first_gap(self, job_service, seed, make_job):
        await make_job(seed.acme_id, seed.employer_id, title="X", slug="x")
        await make_job(seed.acme_id, seed.employer_id, title="X", slug="x-2")

        job = await job_service.create_job(seed.employer_id, new_job(title="X"))

        assert job["slug"] == "x-1"

    async def test_unrelated_prefix_ignored(self, job_service, seed, make_job):
        await make_job(seed.acme_id, seed.employer_id, title="Xylophone", slug="xylophone")

        job = await job_service.create_job(seed.employer_id, new_job(title="X"))

        assert job["slug"] == "x"

    async def test_title_without_slug_characters(self, job_service, seed):
        job = await job_service.create_job(seed.employer_id, new_job(title="日本語"))

        assert job["slug"] == "job"

    async def test_retries_after_concurrent_insert(self, job_service, seed, make_job):
        """A slug taken between the probe and the insert is retried."""
        await make_job(seed.acme_id, seed.employer_id, title="X", slug="x")
        real_existing = JobService._existing_slugs
        calls = []

        async def stale_then_real(self, session, company_id, base, exclude_job_id=None):
            calls.append(base)
            if len(calls) == 1:
                return set()
            return await real_existing(self, session, company_id, base, exclude_job_id)

        with patch.object(JobService, "_existing_slugs", stale_then_real):
            job = await job_service.create_job(seed.employer_id, new_job(title="X"))

        assert job["slug"] == "x-1"
        assert len(calls) == 2

    async def test_concurrent_creates_get_distinct_slugs(self, job_service, seed):
        jobs = await asyncio.gather(
            job_service.create_job(seed.employer_id, new_job(title="Race")),
            job_service.create_job(seed.recruiter_id, new_job(title="Race")),
        )

        assert {job["slug"] for job in jobs} == {"race", "race-1"}

    async def test_gives_up_after_repeated_collisions(self, job_service, seed, make_job, database):
        await make_job(seed.acme_id, seed.employer_id, title="X", slug="x")

        async def always_stale(self, session, company_id, base, exclude_job_id=None):
            return set()

        with patch.object(JobService, "_existing_slugs", always_stale):
            with pytest.raises(ConflictError):
                await job_service.create_job(seed.employer_id, new_job(title="X"))

        async with database.session() as session:
            count = await session.scalar(select(func.count(Job.id)))
        assert count == 1
        assert SLUG_ALLOCATION_ATTEMPTS == 5


class TestViews:

    async def test_each_fetch_counts_a_view(self, job_service, seed, make_job):
        job_id = await make_job(seed.acme_id, seed.employer_id)

        first = await job_service.get_job_by_id(job_id)
        second = await job_service.get_job_by_id(job_id)

        assert first["views_count"] == 1
        assert second["views_count"] == 2

    async def test_view_does_not_touch_updated_at(self, job_service, seed, make_job):
        job_id = await make_job(seed.acme_id, seed.employer_id)

        first = await job_service.get_job_by_id(job_id)
        second = await job_service.get_job_by_id(job_id)

        assert first["updated_at"] == second["updated_at"]

    async def test_by_slug(self, job_service, seed, make_job):
        job_id = await make_job(seed.acme_id, seed.employer_id, slug="backend-engineer")

        job = await job_service.get_job_by_slug("acme", "backend-engineer")

        assert job["id"] == job_id
        assert job["views_count"] == 1

    async def test_slug_scoped_to_company(self, job_service, seed, make_job):
        await make_job(seed.acme_id, seed.employer_id, slug="backend-engineer")

        with pytest.raises(NotFoundError):
            await job_service.get_job_by_slug("globex", "backend-engineer")

    async def test_missing(self, job_service, seed):
        with pytest.raises(NotFoundError, match="Job not found"):
            await job_service.get_job_by_id(12345)

    async def test_non_active_jobs_are_readable(self, job_service, seed, make_job):
        job_id = await make_job(seed.acme_id, seed.employer_id, status=JobStatus.DRAFT)

        assert (await job_service.get_job_by_id(job_id))["status"] == "draft"


class TestUpdateJob:

    async def test_partial_update(self, job_service, seed, make_job):
        job_id = await make_job(seed.acme_id, seed.employer_id, location="Berlin")

        job = await job_service.update_job(
            job_id, seed.employer_id, JobUpdate(salary_min=50000, salary_max=70000)
        )

        assert job["salary_min"] == 50000
        assert job["salary_max"] == 70000
        assert job["location"] == "Berlin"
        assert job["slug"] == "backend-engineer"

    async def test_title_change_reslugs(self, job_service, seed, make_job):
        job_id = await make_job(seed.acme_id, seed.employer_id)
        await make_job(seed.acme_id, seed.employer_id, title="Staff Engineer", slug="staff-engineer")

        job = await job_service.update_job(job_id, seed.employer_id, JobUpdate(title="Staff Engineer"))

        assert job["title"] == "Staff Engineer"
        assert job["slug"] == "staff-engineer-1"

    async def test_same_title_keeps_slug(self, job_service, seed, make_job):
        job_id = await make_job(seed.acme_id, seed.employer_id, slug="backend-engineer-3")

        job = await job_service.update_job(
            job_id, seed.employer_id, JobUpdate(title="Backend Engineer")
        )

        assert job["slug"] == "backend-engineer-3"

    async def test_company_admin_may_edit_recruiter_job(self, job_service, seed, make_job):
        job_id = await make_job(seed.acme_id, seed.recruiter_id)

        job = await job_service.update_job(job_id, seed.employer_id, JobUpdate(is_urgent=True))

        assert job["is_urgent"] is True

    @pytest.mark.parametrize("attr", ["member_id", "globex_employer_id", "seeker_id"])
    async def test_outsiders_forbidden(self, job_service, seed, make_job, attr):
        job_id = await make_job(seed.acme_id, seed.recruiter_id)

        with pytest.raises(ForbiddenError, match="permission to edit"):
            await job_service.update_job(job_id, getattr(seed, attr), JobUpdate(title="Nope"))

    async def test_missing_job(self, job_service, seed):
        with pytest.raises(NotFoundError):
            await job_service.update_job(999, seed.employer_id, JobUpdate(title="Nope"))

    async def test_salary_checked_against_stored_values(self, job_service, seed, make_job):
        job_id = await make_job(seed.acme_id, seed.employer_id, salary_min=80000, salary_max=90000)

        with pytest.raises(ValidationError) as exc_info:
            await job_service.update_job(job_id, seed.employer_id, JobUpdate(salary_max=70000))

        assert exc_info.value.details[0]["field"] == "salary_max"

    @pytest.mark.parametrize(
        "current,new",
        [
            (JobStatus.DRAFT, JobStatus.ACTIVE),
            (JobStatus.ACTIVE, JobStatus.PAUSED),
            (JobStatus.ACTIVE, JobStatus.CLOSED),
            (JobStatus.PAUSED, JobStatus.ACTIVE),
            (JobStatus.PAUSED, JobStatus.FILLED),
            (JobStatus.CLOSED, JobStatus.CLOSED),
        ],
    )
    async def test_allowed_transitions(self, job_service, seed, make_job, current, new):
        job_id = await make_job(seed.acme_id, seed.employer_id, status=current)

        job = await job_service.update_job(job_id, seed.employer_id, JobUpdate(status=new))

        assert job["status"] == new.value

    @pytest.mark.parametrize(
        "current,new",
        [
            (JobStatus.CLOSED, JobStatus.ACTIVE),
            (JobStatus.FILLED, JobStatus.PAUSED),
            (JobStatus.DRAFT, JobStatus.PAUSED),
            (JobStatus.ACTIVE, JobStatus.DRAFT),
        ],
    )
    async def test_rejected_transitions(self, job_service, seed, make_job, current, new):
        job_id = await make_job(seed.acme_id, seed.employer_id, status=current)

        with pytest.raises(ValidationError, match=f"from {current.value} to {new.value}"):
            await job_service.update_job(job_id, seed.employer_id, JobUpdate(status=new))


class TestDeleteJob:

    async def test_delete_removes_applications(self, job_service, seed, make_job, database):
        job_id = await make_job(seed.acme_id, seed.employer_id)
        async with database.session() as session:
            session.add(Application(job_id=job_id, applicant_id=seed.seeker_id))
            await session.commit()

        await job_service.delete_job(job_id, seed.employer_id)

        async with database.session() as session:
            assert await session.get(Job, job_id) is None
            remaining = await session.scalar(select(func.count(Application.id)))
        assert remaining == 0

    async def test_delete_forbidden(self, job_service, seed, make_job):
        job_id = await make_job(seed.acme_id, seed.employer_id)

        with pytest.raises(ForbiddenError, match="permission to delete"):
            await job_service.delete_job(job_id, seed.globex_employer_id)

    async def test_delete_missing(self, job_service, seed):
        with pytest.raises(NotFoundError):
            await job_service.delete_job(404, seed.employer_id)


class TestListings:

    async def test_user_jobs_include_every_status(self, job_service, seed, make_job):
        await make_job(seed.acme_id, seed.employer_id, slug="a", status=JobStatus.DRAFT)
        await make_job(seed.acme_id, seed.employer_id, slug="b", status=JobStatus.CLOSED)
        await make_job(seed.acme_id, seed.recruiter_id, slug="c")

        result = await job_service.get_user_jobs(seed.employer_id)

        assert {job["slug"] for job in result["jobs"]} == {"a", "b"}
        assert result["pagination"]["total"] == 2

    async def test_categories_count_active_jobs(self, job_service, seed, make_job):
        await make_job(seed.acme_id, seed.employer_id, slug="a", category_id=seed.design_category_id)
        await make_job(
            seed.acme_id, seed.employer_id, slug="b",
            category_id=seed.design_category_id, status=JobStatus.PAUSED,
        )

        categories = await job_service.list_categories()

        assert [c["name"] for c in categories] == ["Design", "Software Development"]
        counts = {c["slug"]: c["jobs_count"] for c in categories}
        assert counts == {"design": 1, "software-development": 0}
