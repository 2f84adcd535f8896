"""
PetServices Backend — Favorites Routes
=======================================

All routes require a token.

    GET    /favorites/{user_id}   own favorites (admins: anyone's)
    POST   /favorites             {"user_id", "service_id"}
    DELETE /favorites             {"user_id", "service_id"}
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from petservices.database import get_db_session
from petservices.dependencies import ProtectedRoute, get_current_claims, get_favorites_service
from petservices.schemas.auth import TokenClaims
from petservices.schemas.common import ErrorResponse
from petservices.schemas.favorite import (
    FavoriteAddedResponse,
    FavoriteRemovedResponse,
    FavoriteRequest,
    FavoriteResponse,
    FavoritesListResponse,
    FavoriteWithListing,
)
from petservices.schemas.listing import ListingResponse
from petservices.services.favorites_service import FavoritesService

router = APIRouter(prefix="/favorites", tags=["Favorites"], route_class=ProtectedRoute)


@router.get(
    "/{user_id}",
    response_model=FavoritesListResponse,
    responses={403: {"description": "Not your favorites", "model": ErrorResponse}},
    summary="List a user's favorites",
)
async def list_favorites(
    user_id: int,
    claims: TokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db_session),
    favorites_service: FavoritesService = Depends(get_favorites_service),
) -> FavoritesListResponse:
    favorites = await favorites_service.list(db, user_id, claims)
    items = [
        FavoriteWithListing(
            id=favorite.id,
            user_id=favorite.user_id,
            service_id=favorite.service_id,
            created_at=favorite.created_at,
            services_animaliers=ListingResponse.model_validate(favorite.service),
        )
        for favorite in favorites
    ]
    return FavoritesListResponse(favorites=items, count=len(items))


@router.post(
    "",
    response_model=FavoriteAddedResponse,
    responses={
        400: {"description": "Already a favorite, or missing ids", "model": ErrorResponse},
        403: {"description": "user_id is not the caller", "model": ErrorResponse},
        404: {"description": "Service not found", "model": ErrorResponse},
    },
    summary="Add a favorite",
)
async def add_favorite(
    body: FavoriteRequest,
    claims: TokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db_session),
    favorites_service: FavoritesService = Depends(get_favorites_service),
) -> FavoriteAddedResponse:
    favorite = await favorites_service.add(db, body.user_id, body.service_id, claims)
    return FavoriteAddedResponse(favorite=FavoriteResponse.model_validate(favorite))


@router.delete(
    "",
    response_model=FavoriteRemovedResponse,
    responses={
        400: {"description": "Missing ids", "model": ErrorResponse},
        403: {"description": "user_id is not the caller", "model": ErrorResponse},
    },
    summary="Remove a favorite",
)
async def remove_favorite(
    body: FavoriteRequest,
    claims: TokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db_session),
    favorites_service: FavoritesService = Depends(get_favorites_service),
) -> FavoriteRemovedResponse:
    deleted = await favorites_service.remove(db, body.user_id, body.service_id, claims)
    return FavoriteRemovedResponse(deleted_count=deleted)
