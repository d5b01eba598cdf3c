"""
Job posting endpoints.

Anyone may browse active jobs. Employers manage their own postings; admins
may edit, toggle or delete any posting.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_identity_resolver, get_optional_actor, get_scoped_db
from api.schemas.applications import ApplicationCreate
from api.schemas.common import ERROR_RESPONSES, PaginatedResponse, PaginationParams
from api.schemas.jobs import JobActiveUpdate, JobCreate, JobUpdate
from api.services import applications as application_service
from api.services import jobs as job_service
from core.authorization import Actor
from core.identity import IdentityResolver

router = APIRouter(prefix="/jobs", tags=["jobs"], responses=ERROR_RESPONSES)


@router.get(
    "",
    response_model=PaginatedResponse[dict],
    summary="List Jobs",
    description="Active job postings, newest first. Open to anonymous visitors.",
)
async def list_jobs(
    q: Optional[str] = Query(None, description="Keyword in title, description or company name"),
    location: Optional[str] = Query(None, description="Location substring"),
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_scoped_db),
    actor: Optional[Actor] = Depends(get_optional_actor),
    resolver: IdentityResolver = Depends(get_identity_resolver),
):
    return await job_service.list_public_jobs(
        db,
        actor,
        keyword=q,
        location=location,
        page=pagination.page,
        page_size=pagination.page_size,
        revalidate=resolver.revalidate,
    )


@router.get(
    "/mine",
    summary="List My Jobs",
    description="The signed-in employer's postings in every state, with application counts.",
)
async def list_my_jobs(
    db: AsyncSession = Depends(get_scoped_db),
    actor: Optional[Actor] = Depends(get_optional_actor),
    resolver: IdentityResolver = Depends(get_identity_resolver),
):
    return await job_service.list_employer_jobs(db, actor, revalidate=resolver.revalidate)


@router.post("", status_code=status.HTTP_201_CREATED, summary="Post Job")
async def create_job(
    body: JobCreate,
    db: AsyncSession = Depends(get_scoped_db),
    actor: Optional[Actor] = Depends(get_optional_actor),
):
    return await job_service.create_job(db, actor, body.model_dump())


@router.get(
    "/{job_id}",
    summary="Get Job Details",
    description="Inactive postings are only visible to their employer and admins.",
)
async def get_job(
    job_id: int = Path(..., description="Job ID"),
    db: AsyncSession = Depends(get_scoped_db),
    actor: Optional[Actor] = Depends(get_optional_actor),
):
    return await job_service.get_job(db, actor, job_id)


@router.patch("/{job_id}", summary="Edit Job")
async def update_job(
    body: JobUpdate,
    job_id: int = Path(..., description="Job ID"),
    db: AsyncSession = Depends(get_scoped_db),
    actor: Optional[Actor] = Depends(get_optional_actor),
):
    return await job_service.update_job(db, actor, job_id, body.model_dump(exclude_unset=True))


@router.post("/{job_id}/toggle", summary="Toggle Job Active")
async def toggle_job(
    job_id: int = Path(..., description="Job ID"),
    db: AsyncSession = Depends(get_scoped_db),
    actor: Optional[Actor] = Depends(get_optional_actor),
):
    return await job_service.toggle_job(db, actor, job_id)


@router.put("/{job_id}/active", summary="Set Job Active")
async def set_job_active(
    body: JobActiveUpdate,
    job_id: int = Path(..., description="Job ID"),
    db: AsyncSession = Depends(get_scoped_db),
    actor: Optional[Actor] = Depends(get_optional_actor),
):
    return await job_service.set_job_active(db, actor, job_id, body.is_active)


@router.delete("/{job_id}", summary="Delete Job")
async def delete_job(
    job_id: int = Path(..., description="Job ID"),
    db: AsyncSession = Depends(get_scoped_db),
    actor: Optional[Actor] = Depends(get_optional_actor),
):
    """Deletes the posting together with every application to it."""
    return await job_service.delete_job(db, actor, job_id)


@router.get("/{job_id}/applications", summary="List Applicants")
async def list_job_applications(
    job_id: int = Path(..., description="Job ID"),
    db: AsyncSession = Depends(get_scoped_db),
    actor: Optional[Actor] = Depends(get_optional_actor),
    resolver: IdentityResolver = Depends(get_identity_resolver),
):
    return await application_service.list_job_applications(
        db, actor, job_id, revalidate=resolver.revalidate
    )


@router.post(
    "/{job_id}/applications",
    status_code=status.HTTP_201_CREATED,
    summary="Apply To Job",
    description="Requires a resume on file. A second application to the same job is a 409.",
)
async def apply_to_job(
    body: ApplicationCreate,
    job_id: int = Path(..., description="Job ID"),
    db: AsyncSession = Depends(get_scoped_db),
    actor: Optional[Actor] = Depends(get_optional_actor),
):
    return await application_service.apply_to_job(db, actor, job_id, body.cover_letter)


@router.get("/{job_id}/application-status", summary="Has Applied")
async def application_status(
    job_id: int = Path(..., description="Job ID"),
    db: AsyncSession = Depends(get_scoped_db),
    actor: Optional[Actor] = Depends(get_optional_actor),
):
    return await application_service.has_applied(db, actor, job_id)
