"""
Job posting endpoints.

Public search and detail views, plus employer-only create, update and
delete. Literal paths are declared before ``/{job_id}`` so they are not
captured by it.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Path, Query, status

from api.dependencies import get_job_service, get_optional_user, require_employer
from api.schemas.common import MessageResponse, PaginationParams
from api.schemas.jobs import JobCreate, JobListResponse, JobSearchParams, JobUpdate
from api.services.jobs import JobService
from core.middleware.authentication import CurrentUser

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.get(
    "/search",
    response_model=JobListResponse,
    summary="Search Jobs",
    description="Search active jobs with filters, sorting and pagination.",
)
async def search_jobs(
    params: Annotated[JobSearchParams, Query()],
    current_user: Optional[CurrentUser] = Depends(get_optional_user),
    job_service: JobService = Depends(get_job_service),
):
    return await job_service.search_jobs(params)


@router.get("/categories", summary="List Job Categories")
async def list_categories(job_service: JobService = Depends(get_job_service)):
    """Active categories with their number of active jobs."""
    categories = await job_service.list_categories()
    return {"categories": categories}


@router.get("/mine", response_model=JobListResponse, summary="List My Jobs")
async def list_my_jobs(
    pagination: Annotated[PaginationParams, Query()],
    current_user: CurrentUser = Depends(require_employer),
    job_service: JobService = Depends(get_job_service),
):
    """Jobs posted by the current employer, in any status."""
    return await job_service.get_user_jobs(
        current_user.id, page=pagination.page, limit=pagination.limit
    )


@router.get("/{company_slug}/{job_slug}", summary="Get Job By Slug")
async def get_job_by_slug(
    company_slug: str = Path(..., max_length=200),
    job_slug: str = Path(..., max_length=250),
    current_user: Optional[CurrentUser] = Depends(get_optional_user),
    job_service: JobService = Depends(get_job_service),
):
    job = await job_service.get_job_by_slug(company_slug, job_slug)
    return {"job": job}


@router.get("/{job_id}", summary="Get Job Details")
async def get_job(
    job_id: int = Path(..., ge=1, description="Job ID"),
    current_user: Optional[CurrentUser] = Depends(get_optional_user),
    job_service: JobService = Depends(get_job_service),
):
    """Retrieve a job posting. Each call counts as a view."""
    job = await job_service.get_job_by_id(job_id)
    return {"job": job}


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create Job")
async def create_job(
    data: JobCreate,
    current_user: CurrentUser = Depends(require_employer),
    job_service: JobService = Depends(get_job_service),
):
    job = await job_service.create_job(current_user.id, data)
    return {"message": "Job created successfully", "job": job}


@router.put("/{job_id}", summary="Update Job")
async def update_job(
    data: JobUpdate,
    job_id: int = Path(..., ge=1, description="Job ID"),
    current_user: CurrentUser = Depends(require_employer),
    job_service: JobService = Depends(get_job_service),
):
    job = await job_service.update_job(job_id, current_user.id, data)
    return {"message": "Job updated successfully", "job": job}


@router.delete("/{job_id}", response_model=MessageResponse, summary="Delete Job")
async def delete_job(
    job_id: int = Path(..., ge=1, description="Job ID"),
    current_user: CurrentUser = Depends(require_employer),
    job_service: JobService = Depends(get_job_service),
):
    await job_service.delete_job(job_id, current_user.id)
    return {"message": "Job deleted successfully"}
