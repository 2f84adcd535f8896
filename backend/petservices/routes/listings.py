"""
PetServices Backend — Service Listing Routes
=============================================

Endpoints:
    GET    /services               public   all listings, newest first
    GET    /services/search        public   ?type=&ville=
    GET    /services/{id}          public   one listing (404 if absent)
    POST   /services               token    multipart form + optional image
    PUT    /services/{id}          token    multipart form + optional image
    DELETE /services/{id}          token

Multipart fields: nom, type, ville, tarifs, services, horaires, statut,
image (≤ 5MB; jpeg, jpg, png, gif, webp).

The uploaded file is Starlette's spooled temporary file. At most one byte
more than the size limit is read into an ImageUpload, and the file is
closed in a `finally` whatever the outcome.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from petservices.database import get_db_session
from petservices.dependencies import ProtectedRoute, get_catalog_service, get_current_claims
from petservices.schemas.auth import TokenClaims
from petservices.schemas.common import ErrorResponse, MessageResponse
from petservices.schemas.listing import (
    ListingCreatedResponse,
    ListingResponse,
    ListingUpdatedResponse,
)
from petservices.services.catalog_service import CatalogService
from petservices.services.upload_manager import ImageUpload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/services", tags=["Services"])
protected_router = APIRouter(prefix="/services", tags=["Services"], route_class=ProtectedRoute)


async def read_image(image: Optional[UploadFile], max_bytes: int) -> Optional[ImageUpload]:
    """
    Read the multipart `image` part; None when no file was sent.

    Reads at most `max_bytes + 1` bytes: enough for UploadManager.validate
    to see that a file is oversized without buffering all of it.
    """
    if image is None:
        return None
    try:
        if not image.filename:
            return None
        content = await image.read(max_bytes + 1)
        return ImageUpload(
            filename=image.filename,
            content_type=image.content_type or "",
            content=content,
        )
    finally:
        await image.close()


# ── Public reads ──────────────────────────────────────────────────────────

@router.get("", response_model=List[ListingResponse], summary="List all services")
async def list_services(
    db: AsyncSession = Depends(get_db_session),
    catalog: CatalogService = Depends(get_catalog_service),
) -> List[ListingResponse]:
    listings = await catalog.list(db)
    return [ListingResponse.model_validate(listing) for listing in listings]


@router.get("/search", response_model=List[ListingResponse], summary="Search services")
async def search_services(
    type: Optional[str] = Query(None, description="Exact type, or 'all'"),
    ville: Optional[str] = Query(None, description="Case-insensitive substring of the city"),
    db: AsyncSession = Depends(get_db_session),
    catalog: CatalogService = Depends(get_catalog_service),
) -> List[ListingResponse]:
    listings = await catalog.search(db, type=type, ville=ville)
    return [ListingResponse.model_validate(listing) for listing in listings]


@router.get(
    "/{listing_id}",
    response_model=ListingResponse,
    responses={404: {"description": "Service not found", "model": ErrorResponse}},
    summary="Get one service",
)
async def get_service(
    listing_id: int,
    db: AsyncSession = Depends(get_db_session),
    catalog: CatalogService = Depends(get_catalog_service),
) -> ListingResponse:
    listing = await catalog.get(db, listing_id)
    return ListingResponse.model_validate(listing)


# ── Protected writes ──────────────────────────────────────────────────────

@protected_router.post(
    "",
    response_model=ListingCreatedResponse,
    responses={
        400: {"description": "Missing fields or invalid image", "model": ErrorResponse},
        401: {"description": "No token", "model": ErrorResponse},
        403: {"description": "Invalid or expired token", "model": ErrorResponse},
        413: {"description": "Image larger than 5MB", "model": ErrorResponse},
        500: {"description": "Storage or database failure", "model": ErrorResponse},
    },
    summary="Create a service",
)
async def create_service(
    nom: Optional[str] = Form(None),
    type: Optional[str] = Form(None),
    ville: Optional[str] = Form(None),
    tarifs: Optional[str] = Form(None),
    services: Optional[str] = Form(None),
    horaires: Optional[str] = Form(None),
    statut: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    claims: TokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db_session),
    catalog: CatalogService = Depends(get_catalog_service),
) -> ListingCreatedResponse:
    upload = await read_image(image, catalog.upload_manager.max_bytes)
    fields = {
        "nom": nom,
        "type": type,
        "ville": ville,
        "tarifs": tarifs,
        "services": services,
        "horaires": horaires,
        "statut": statut,
    }
    listing = await catalog.create(db, fields, upload, claims)
    return ListingCreatedResponse(service=ListingResponse.model_validate(listing))


@protected_router.put(
    "/{listing_id}",
    response_model=ListingUpdatedResponse,
    responses={
        400: {"description": "Missing fields or invalid image", "model": ErrorResponse},
        403: {"description": "Invalid token, or status change by a non-admin", "model": ErrorResponse},
        404: {"description": "Service not found", "model": ErrorResponse},
    },
    summary="Replace a service",
)
async def update_service(
    listing_id: int,
    nom: Optional[str] = Form(None),
    type: Optional[str] = Form(None),
    ville: Optional[str] = Form(None),
    tarifs: Optional[str] = Form(None),
    services: Optional[str] = Form(None),
    horaires: Optional[str] = Form(None),
    statut: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    claims: TokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db_session),
    catalog: CatalogService = Depends(get_catalog_service),
) -> ListingUpdatedResponse:
    upload = await read_image(image, catalog.upload_manager.max_bytes)
    fields = {
        "nom": nom,
        "type": type,
        "ville": ville,
        "tarifs": tarifs,
        "services": services,
        "horaires": horaires,
        "statut": statut,
    }
    listing = await catalog.update(db, listing_id, fields, upload, claims)
    return ListingUpdatedResponse(service=ListingResponse.model_validate(listing))


@protected_router.delete(
    "/{listing_id}",
    response_model=MessageResponse,
    responses={404: {"description": "Service not found", "model": ErrorResponse}},
    summary="Delete a service",
)
async def delete_service(
    listing_id: int,
    claims: TokenClaims = Depends(get_current_claims),
    db: AsyncSession = Depends(get_db_session),
    catalog: CatalogService = Depends(get_catalog_service),
) -> MessageResponse:
    await catalog.delete(db, listing_id)
    logger.info("Service %s deleted by user %s", listing_id, claims.user_id)
    return MessageResponse(message="Service deleted successfully")
