"""
PetServices Backend — Lead Scraping Schemas
============================================
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ScrapeRequest(BaseModel):
    """Search criteria forwarded verbatim to the scraping webhook."""
    nom: Optional[str] = None
    email: Optional[str] = None
    telephone: Optional[str] = None
    ville: Optional[str] = None
    country: Optional[str] = None
    max_leads: Optional[int] = Field(default=None, alias="maxLeads", ge=1, le=1000)

    model_config = ConfigDict(populate_by_name=True)


class ScrapeResponse(BaseModel):
    success: bool = True
    data: Any = None
