"""
Authorization policy for job postings.

Two checks guard every mutating job operation:
1. ``check_can_post_jobs``: the caller is an employer with an active admin
   or recruiter membership, and the job is posted for that company
2. ``check_can_modify_job``: the caller created the job, or manages the
   company that owns it
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import ForbiddenError, NotFoundError
from database.models.companies import CompanyMember, JOB_MANAGER_ROLES
from database.models.jobs import Job
from database.models.users import User, UserRole

logger = logging.getLogger(__name__)


async def check_can_post_jobs(db: AsyncSession, user_id: int) -> int:
    """
    Check that a user may post jobs and return the company to post for.

    Args:
        db: Database session
        user_id: Posting user

    Returns:
        Company id of the user's first active admin/recruiter membership

    Raises:
        NotFoundError: If the user doesn't exist
        ForbiddenError: If the user is not an employer or manages no company
    """
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")

    if user.role != UserRole.EMPLOYER:
        logger.warning(f"User {user_id} with role {user.role.value} attempted to post a job")
        raise ForbiddenError("Only employers can post jobs")

    result = await db.execute(
        select(CompanyMember.company_id)
        .where(
            CompanyMember.user_id == user_id,
            CompanyMember.is_active.is_(True),
            CompanyMember.role.in_(JOB_MANAGER_ROLES),
        )
        .order_by(CompanyMember.id)
        .limit(1)
    )
    company_id = result.scalar_one_or_none()

    if company_id is None:
        logger.warning(f"Employer {user_id} has no company membership allowing job posts")
        raise ForbiddenError("You must be associated with a company to post jobs")

    return company_id


async def check_can_modify_job(db: AsyncSession, job_id: int, user_id: int) -> bool:
    """
    Check whether a user may edit or delete a job.

    Raises:
        NotFoundError: If the job doesn't exist
    """
    result = await db.execute(
        select(Job.posted_by, Job.company_id).where(Job.id == job_id)
    )
    row = result.one_or_none()
    if row is None:
        raise NotFoundError("Job not found")

    posted_by, company_id = row
    if posted_by == user_id:
        return True

    result = await db.execute(
        select(CompanyMember.id).where(
            CompanyMember.user_id == user_id,
            CompanyMember.company_id == company_id,
            CompanyMember.is_active.is_(True),
            CompanyMember.role.in_(JOB_MANAGER_ROLES),
        )
    )
    if result.first() is not None:
        return True

    logger.warning(f"User {user_id} denied modification of job {job_id}")
    return False
