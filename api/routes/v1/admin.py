"""
Admin moderation endpoints.

Overview counts, user search and edits, full-cascade user deletion and the
all-jobs listing. Every endpoint requires the admin role.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import (
    get_blob_storage,
    get_notifier,
    get_scoped_db,
    get_session_store,
    require_actor,
)
from api.schemas.common import ERROR_RESPONSES, PaginatedResponse, PaginationParams
from api.schemas.profiles import AdminUserUpdate, CandidateDetailsUpdate, EmployerDetailsUpdate
from api.services import jobs as job_service
from api.services import profiles as profile_service
from api.services import users as user_service
from core.authorization import Actor
from core.identity import PrincipalChangeNotifier
from core.sessions import SessionStore
from core.storage.base import BlobStorage
from database.models.users import UserRole

router = APIRouter(prefix="/admin", tags=["admin"], responses=ERROR_RESPONSES)


@router.get("/overview", summary="Admin Overview")
async def overview(
    db: AsyncSession = Depends(get_scoped_db),
    actor: Actor = Depends(require_actor),
):
    return await user_service.get_overview(db, actor)


@router.get("/users", response_model=PaginatedResponse[dict], summary="List Users")
async def list_users(
    search: Optional[str] = Query(None, description="Name or email substring"),
    role: Optional[UserRole] = Query(None, description="Filter by role"),
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_scoped_db),
    actor: Actor = Depends(require_actor),
):
    return await user_service.list_users(
        db,
        actor,
        search=search,
        role=role,
        page=pagination.page,
        page_size=pagination.page_size,
    )


@router.get("/users/{user_id}", summary="Get User")
async def get_user(
    user_id: str = Path(..., description="Principal ID"),
    db: AsyncSession = Depends(get_scoped_db),
    actor: Actor = Depends(require_actor),
):
    return await user_service.get_user(db, actor, user_id)


@router.patch("/users/{user_id}", summary="Edit User")
async def update_user(
    body: AdminUserUpdate,
    user_id: str = Path(..., description="Principal ID"),
    db: AsyncSession = Depends(get_scoped_db),
    actor: Actor = Depends(require_actor),
    notifier: PrincipalChangeNotifier = Depends(get_notifier),
):
    return await user_service.update_user(
        db, actor, user_id, body.model_dump(exclude_unset=True), notifier=notifier
    )


@router.patch("/users/{user_id}/candidate", summary="Edit User Candidate Details")
async def update_user_candidate_details(
    body: CandidateDetailsUpdate,
    user_id: str = Path(..., description="Principal ID"),
    db: AsyncSession = Depends(get_scoped_db),
    actor: Actor = Depends(require_actor),
):
    return await profile_service.update_candidate_details(
        db, actor, user_id, body.model_dump(exclude_unset=True)
    )


@router.patch("/users/{user_id}/employer", summary="Edit User Company Details")
async def update_user_employer_details(
    body: EmployerDetailsUpdate,
    user_id: str = Path(..., description="Principal ID"),
    db: AsyncSession = Depends(get_scoped_db),
    actor: Actor = Depends(require_actor),
):
    return await profile_service.update_employer_details(
        db, actor, user_id, body.model_dump(exclude_unset=True)
    )


@router.delete(
    "/users/{user_id}",
    summary="Delete User",
    description=(
        "Removes the account, its profiles, the employer's jobs and every "
        "affected application. Admin accounts cannot be deleted here."
    ),
)
async def delete_user(
    user_id: str = Path(..., description="Principal ID"),
    db: AsyncSession = Depends(get_scoped_db),
    actor: Actor = Depends(require_actor),
    sessions: SessionStore = Depends(get_session_store),
    notifier: PrincipalChangeNotifier = Depends(get_notifier),
    storage: BlobStorage = Depends(get_blob_storage),
):
    return await user_service.delete_user(db, actor, user_id, sessions, notifier, storage)


@router.get("/jobs", response_model=PaginatedResponse[dict], summary="List All Jobs")
async def list_all_jobs(
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_scoped_db),
    actor: Actor = Depends(require_actor),
):
    return await job_service.list_all_jobs(
        db, actor, page=pagination.page, page_size=pagination.page_size
    )
