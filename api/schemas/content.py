"""Site content schemas."""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class AboutContentUpdate(BaseModel):
    """About page copy. Omitted keys keep their stored value; blank clears."""

    model_config = ConfigDict(extra="forbid")

    hero_title: Optional[str] = Field(None, max_length=255)
    hero_description: Optional[str] = None
    mission_title: Optional[str] = Field(None, max_length=255)
    mission_body: Optional[str] = None
    contact_email: Optional[str] = Field(None, max_length=255)
    contact_phone: Optional[str] = Field(None, max_length=50)
    contact_address: Optional[str] = None
    social_linkedin: Optional[str] = Field(None, max_length=2048)
    social_twitter: Optional[str] = Field(None, max_length=2048)
    social_facebook: Optional[str] = Field(None, max_length=2048)
    social_instagram: Optional[str] = Field(None, max_length=2048)
