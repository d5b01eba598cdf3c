"""Application schemas."""

from typing import Optional
from pydantic import BaseModel, Field

from database.models.applications import ApplicationStatus


class ApplicationCreate(BaseModel):
    cover_letter: Optional[str] = Field(None, max_length=10000)


class ApplicationStatusUpdate(BaseModel):
    """Any status may move to any other status."""

    status: ApplicationStatus
