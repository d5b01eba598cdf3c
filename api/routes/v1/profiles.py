"""Own-profile endpoints, including resume upload."""

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_blob_storage, get_scoped_db, require_actor
from api.schemas.common import ERROR_RESPONSES
from api.schemas.profiles import CandidateDetailsUpdate, EmployerDetailsUpdate, ProfileUpdate
from api.services import profiles as profile_service
from core.authorization import Actor
from core.storage.base import BlobStorage

router = APIRouter(prefix="/profiles", tags=["profiles"], responses=ERROR_RESPONSES)


@router.get("/me", summary="Get My Profile")
async def get_my_profile(
    db: AsyncSession = Depends(get_scoped_db),
    actor: Actor = Depends(require_actor),
):
    return await profile_service.get_profile(db, actor, actor.principal_id)


@router.patch("/me", summary="Edit My Profile")
async def update_my_profile(
    body: ProfileUpdate,
    db: AsyncSession = Depends(get_scoped_db),
    actor: Actor = Depends(require_actor),
):
    return await profile_service.update_profile(
        db, actor, actor.principal_id, body.model_dump(exclude_unset=True)
    )


@router.patch("/me/candidate", summary="Edit My Candidate Details")
async def update_my_candidate_details(
    body: CandidateDetailsUpdate,
    db: AsyncSession = Depends(get_scoped_db),
    actor: Actor = Depends(require_actor),
):
    return await profile_service.update_candidate_details(
        db, actor, actor.principal_id, body.model_dump(exclude_unset=True)
    )


@router.patch("/me/employer", summary="Edit My Company Details")
async def update_my_employer_details(
    body: EmployerDetailsUpdate,
    db: AsyncSession = Depends(get_scoped_db),
    actor: Actor = Depends(require_actor),
):
    return await profile_service.update_employer_details(
        db, actor, actor.principal_id, body.model_dump(exclude_unset=True)
    )


@router.post(
    "/me/resume",
    summary="Upload Resume",
    description="PDF, DOC or DOCX. Replaces any previous resume.",
)
async def upload_my_resume(
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_scoped_db),
    actor: Actor = Depends(require_actor),
    storage: BlobStorage = Depends(get_blob_storage),
):
    data = await file.read()
    return await profile_service.upload_resume(
        db,
        actor,
        storage,
        filename=file.filename or "",
        data=data,
        content_type=file.content_type,
    )
