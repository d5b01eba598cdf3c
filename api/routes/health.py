"""Health check endpoints."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_db
from core.exceptions import RequestTimeout
from core.timeouts import with_deadline

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Liveness: the process is up."""
    return HealthResponse(status="healthy", version="0.1.0")


@router.get("/ready")
async def readiness_check(db: AsyncSession = Depends(get_db)):
    """Readiness for load balancers: the database answers."""
    try:
        await with_deadline(lambda: db.execute(text("SELECT 1")), operation="health.database")
    except (SQLAlchemyError, RequestTimeout) as e:
        logger.warning(f"Readiness check failed: {type(e).__name__}")
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "checks": {"database": "error"}},
        )
    return {"status": "ready", "checks": {"database": "ok"}}
