"""
PetServices Backend — Favorites Schemas
========================================

Request body for POST/DELETE /favorites and the favorites responses.
The listing joined into each list item keeps the `services_animaliers` key
existing frontends read.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from petservices.schemas.listing import ListingResponse


class FavoriteRequest(BaseModel):
    # Optional so a missing id reaches the service's ownership check first
    user_id: Optional[int] = None
    service_id: Optional[int] = None


class FavoriteResponse(BaseModel):
    id: int
    user_id: int
    service_id: int
    created_at: datetime

    model_config = {"from_attributes": True}


class FavoriteWithListing(FavoriteResponse):
    services_animaliers: ListingResponse


class FavoritesListResponse(BaseModel):
    success: bool = True
    favorites: List[FavoriteWithListing]
    count: int


class FavoriteAddedResponse(BaseModel):
    success: bool = True
    message: str = "Service added to favorites"
    favorite: FavoriteResponse


class FavoriteRemovedResponse(BaseModel):
    success: bool = True
    message: str = "Favorite removed"
    deleted_count: int
