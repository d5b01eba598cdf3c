"""Application endpoints for candidates and the employers reviewing them."""

from typing import Optional

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_identity_resolver, get_optional_actor, get_scoped_db
from api.schemas.applications import ApplicationStatusUpdate
from api.schemas.common import ERROR_RESPONSES
from api.services import applications as application_service
from core.authorization import Actor
from core.identity import IdentityResolver

router = APIRouter(prefix="/applications", tags=["applications"], responses=ERROR_RESPONSES)


@router.get("/mine", summary="List My Applications")
async def list_my_applications(
    db: AsyncSession = Depends(get_scoped_db),
    actor: Optional[Actor] = Depends(get_optional_actor),
    resolver: IdentityResolver = Depends(get_identity_resolver),
):
    """The signed-in candidate's applications, newest first, with job and company."""
    return await application_service.list_candidate_applications(
        db, actor, revalidate=resolver.revalidate
    )


@router.get("/{application_id}", summary="Get Application")
async def get_application(
    application_id: int = Path(..., description="Application ID"),
    db: AsyncSession = Depends(get_scoped_db),
    actor: Optional[Actor] = Depends(get_optional_actor),
):
    return await application_service.get_application(db, actor, application_id)


@router.patch(
    "/{application_id}/status",
    summary="Change Application Status",
    description="Employer owning the job, or an admin. Any status may follow any other.",
)
async def update_application_status(
    body: ApplicationStatusUpdate,
    application_id: int = Path(..., description="Application ID"),
    db: AsyncSession = Depends(get_scoped_db),
    actor: Optional[Actor] = Depends(get_optional_actor),
):
    return await application_service.update_application_status(
        db, actor, application_id, body.status
    )
