"""Site content endpoints (About page copy)."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_scoped_db, require_actor
from api.schemas.common import ERROR_RESPONSES
from api.schemas.content import AboutContentUpdate
from api.services import content as content_service
from core.authorization import Actor

router = APIRouter(prefix="/content", tags=["content"], responses=ERROR_RESPONSES)


@router.get("/about", summary="Get About Page")
async def get_about(db: AsyncSession = Depends(get_scoped_db)):
    """Every copy key is present; unset keys are null."""
    return await content_service.get_about_content(db)


@router.put("/about", summary="Update About Page")
async def update_about(
    body: AboutContentUpdate,
    db: AsyncSession = Depends(get_scoped_db),
    actor: Actor = Depends(require_actor),
):
    return await content_service.update_about_content(
        db, actor, body.model_dump(exclude_unset=True)
    )
