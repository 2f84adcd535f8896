"""
PetServices Backend — Catalog Service
======================================

What:  CRUD and search over service listings, including their images.
How:   Receives the db session per call (commit happens in get_db_session);
       images go through the UploadManager.
Who:   /services routes.

Create flow:
    ┌────────────┐   ┌──────────────┐   ┌──────────────┐   ┌──────────┐
    │ Parse form │──▶│ Validate img │──▶│ Store image  │──▶│ INSERT   │
    └────────────┘   └──────────────┘   │ (3 attempts) │   │ + flush  │
                                        └──────────────┘   └──────────┘
    Both validations run before any upload, so a rejected request never
    leaves an object behind. A failed INSERT releases the stored image.

Update flow:
    load (404) → parse form → status rule → store new image → overwrite
    every editable column in one UPDATE → release the old image after the
    commit. A rolled-back update keeps the old image; the new one may be
    orphaned.
    Writing every column makes concurrent updates last-write-wins per row,
    never a mix of two payloads.

Status rule:
    Admins set `statut` freely (default en_attente). Other users always
    create en_attente listings and cannot change an existing statut.
"""

import logging
from functools import partial
from typing import Any, List, Mapping, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from petservices.database import after_commit
from petservices.exceptions import (
    DatabaseError,
    ForbiddenError,
    NotFoundError,
    PetServicesError,
)
from petservices.models.listing import STATUS_PENDING, ServiceListing
from petservices.schemas.auth import TokenClaims
from petservices.schemas.listing import ListingForm
from petservices.services.upload_manager import ImageUpload, UploadManager

logger = logging.getLogger(__name__)


class CatalogService:

    def __init__(self, upload_manager: UploadManager):
        self.upload_manager = upload_manager

    # ── Reads ─────────────────────────────────────────────────────────────

    async def list(self, db: AsyncSession) -> List[ServiceListing]:
        """All listings, most recent first, whatever their statut."""
        return await self.search(db)

    async def search(
        self,
        db: AsyncSession,
        type: Optional[str] = None,
        ville: Optional[str] = None,
    ) -> List[ServiceListing]:
        """
        Filter listings.

        `type` is an exact match unless absent or "all"; `ville` is a
        case-insensitive substring match. Filters AND-combine.
        """
        query = select(ServiceListing)

        if type and type.strip() and type.strip().lower() != "all":
            query = query.where(ServiceListing.type == type.strip())

        if ville and ville.strip():
            query = query.where(
                ServiceListing.ville.icontains(ville.strip(), autoescape=True)
            )

        query = query.order_by(ServiceListing.created_at.desc(), ServiceListing.id.desc())

        try:
            result = await db.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error searching listings: %s", str(e), exc_info=True)
            raise DatabaseError(context={"operation": "search", "type": type, "ville": ville})

    async def get(self, db: AsyncSession, listing_id: int) -> ServiceListing:
        try:
            listing = await db.get(ServiceListing, listing_id)
        except SQLAlchemyError as e:
            logger.error("Database error fetching listing %s: %s", listing_id, str(e))
            raise DatabaseError(context={"operation": "get", "listing_id": listing_id})

        if listing is None:
            raise NotFoundError(resource="service", resource_id=listing_id)
        return listing

    # ── Writes ────────────────────────────────────────────────────────────

    async def create(
        self,
        db: AsyncSession,
        fields: Mapping[str, Any],
        image: Optional[ImageUpload],
        actor: TokenClaims,
    ) -> ServiceListing:
        """
        Validate, store the optional image, and insert a listing.

        Raises:
            ValidationError / PayloadTooLargeError: bad form or image (nothing stored).
            StorageError: the image upload failed on every attempt.
            DatabaseError: the insert failed (the stored image is released).
        """
        form = ListingForm.parse(**fields)
        if image is not None:
            self.upload_manager.validate(image)

        statut = form.statut if (actor.is_admin and form.statut) else STATUS_PENDING

        image_url: Optional[str] = None
        if image is not None:
            image_url = await self.upload_manager.store(image)

        try:
            listing = ServiceListing(
                nom=form.nom,
                type=form.type,
                ville=form.ville,
                tarifs=form.tarifs,
                services=form.services,
                horaires=form.horaires,
                statut=statut,
                image=image_url,
            )
            db.add(listing)
            await db.flush()
            await db.refresh(listing)
        except Exception as e:
            await self.upload_manager.release(image_url)
            if isinstance(e, PetServicesError):
                raise
            logger.error("Database error creating listing: %s", str(e), exc_info=True)
            raise DatabaseError(context={"operation": "create", "error_type": type(e).__name__})

        logger.info(
            "Listing created: id=%s type=%s statut=%s by user %s",
            listing.id,
            listing.type,
            listing.statut,
            actor.user_id,
        )
        return listing

    async def update(
        self,
        db: AsyncSession,
        listing_id: int,
        fields: Mapping[str, Any],
        image: Optional[ImageUpload],
        actor: TokenClaims,
    ) -> ServiceListing:
        """
        Overwrite every editable field of a listing.

        nom, type and ville stay required. Omitted optional fields take
        their defaults (tarifs 0, services and horaires "", statut
        en_attente for admins). A new image replaces the old one, which is
        released once the transaction commits.

        Raises:
            NotFoundError: no listing with this id (checked before the form).
            ValidationError: bad form or image.
            ForbiddenError: a non-admin tried to change the statut.
        """
        listing = await self.get(db, listing_id)
        form = ListingForm.parse(**fields)

        if actor.is_admin:
            statut = form.statut or STATUS_PENDING
        else:
            if form.statut is not None and form.statut != listing.statut:
                raise ForbiddenError(message="Only administrators can change a listing's status")
            statut = listing.statut

        if image is not None:
            self.upload_manager.validate(image)

        old_image = listing.image
        new_image: Optional[str] = None
        if image is not None:
            new_image = await self.upload_manager.store(image)

        values = {
            "nom": form.nom,
            "type": form.type,
            "ville": form.ville,
            "tarifs": form.tarifs,
            "services": form.services,
            "horaires": form.horaires,
            "statut": statut,
        }
        if new_image is not None:
            values["image"] = new_image

        try:
            await db.execute(
                update(ServiceListing)
                .where(ServiceListing.id == listing_id)
                .values(**values)
            )
            await db.flush()
            await db.refresh(listing)
        except SQLAlchemyError as e:
            await self.upload_manager.release(new_image)
            logger.error("Database error updating listing %s: %s", listing_id, str(e), exc_info=True)
            raise DatabaseError(context={"operation": "update", "listing_id": listing_id})

        if new_image is not None and old_image and old_image != new_image:
            after_commit(db, partial(self.upload_manager.release, old_image))

        logger.info("Listing updated: id=%s by user %s", listing_id, actor.user_id)
        return listing

    async def delete(self, db: AsyncSession, listing_id: int) -> None:
        """Delete a listing (favorites cascade); its image goes once the delete commits."""
        listing = await self.get(db, listing_id)
        image = listing.image

        try:
            await db.delete(listing)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error deleting listing %s: %s", listing_id, str(e), exc_info=True)
            raise DatabaseError(context={"operation": "delete", "listing_id": listing_id})

        if image:
            after_commit(db, partial(self.upload_manager.release, image))
        logger.info("Listing deleted: id=%s", listing_id)
