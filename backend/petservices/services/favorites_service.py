"""
PetServices Backend — Favorites Service
========================================

What:  A user's bookmarks of service listings.
How:   Ownership is checked before anything else: a requester may only add
       or remove their own favorites; admins may additionally read anyone's.
Who:   /favorites routes.

Duplicate handling:
    add() looks for an existing (user, service) row and answers Conflict.
    Two concurrent adds can both pass that check; the UNIQUE constraint
    then rejects the second INSERT and the IntegrityError becomes the same
    Conflict.
"""

import logging
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from petservices.exceptions import (
    ConflictError,
    DatabaseError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from petservices.models.favorite import Favorite
from petservices.models.listing import ServiceListing
from petservices.schemas.auth import TokenClaims

logger = logging.getLogger(__name__)

ALREADY_FAVORITE = "This service is already in your favorites"


class FavoritesService:

    async def list(
        self,
        db: AsyncSession,
        owner_id: int,
        requester: TokenClaims,
    ) -> List[Favorite]:
        """Favorites of `owner_id` with their listings, newest first."""
        if requester.user_id != owner_id and not requester.is_admin:
            raise ForbiddenError()

        try:
            result = await db.execute(
                select(Favorite)
                .where(Favorite.user_id == owner_id)
                .options(selectinload(Favorite.service))
                .order_by(Favorite.created_at.desc(), Favorite.id.desc())
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing favorites of %s: %s", owner_id, str(e))
            raise DatabaseError(context={"operation": "list_favorites", "owner_id": owner_id})

    async def add(
        self,
        db: AsyncSession,
        user_id: Optional[int],
        service_id: Optional[int],
        requester: TokenClaims,
    ) -> Favorite:
        """
        Raises:
            ForbiddenError: `user_id` is not the requester.
            ValidationError: `service_id` missing.
            NotFoundError: no such listing.
            ConflictError: already a favorite (including a lost race).
        """
        if user_id != requester.user_id:
            raise ForbiddenError()
        if service_id is None:
            raise ValidationError(message="user_id and service_id are required", field="service_id")

        try:
            if await db.get(ServiceListing, service_id) is None:
                raise NotFoundError(resource="service", resource_id=service_id)

            existing = await db.execute(
                select(Favorite.id).where(
                    Favorite.user_id == user_id,
                    Favorite.service_id == service_id,
                )
            )
            if existing.scalar_one_or_none() is not None:
                raise ConflictError(message=ALREADY_FAVORITE)

            favorite = Favorite(user_id=user_id, service_id=service_id)
            db.add(favorite)
            try:
                await db.flush()
            except IntegrityError:
                await db.rollback()
                logger.info(
                    "Concurrent favorite insert rejected by constraint: user=%s service=%s",
                    user_id,
                    service_id,
                )
                raise ConflictError(message=ALREADY_FAVORITE)

        except SQLAlchemyError as e:
            logger.error("Database error adding favorite: %s", str(e))
            raise DatabaseError(context={"operation": "add_favorite"})

        logger.info("Favorite added: user=%s service=%s", user_id, service_id)
        return favorite

    async def remove(
        self,
        db: AsyncSession,
        user_id: Optional[int],
        service_id: Optional[int],
        requester: TokenClaims,
    ) -> int:
        """
        Delete a favorite and return the number of rows removed.

        Removing a favorite that does not exist succeeds with 0.
        """
        if user_id != requester.user_id:
            raise ForbiddenError()
        if user_id is None or service_id is None:
            raise ValidationError(message="user_id and service_id are required")

        try:
            result = await db.execute(
                delete(Favorite).where(
                    Favorite.user_id == user_id,
                    Favorite.service_id == service_id,
                )
            )
        except SQLAlchemyError as e:
            logger.error("Database error removing favorite: %s", str(e))
            raise DatabaseError(context={"operation": "remove_favorite"})

        logger.info(
            "Favorite removed: user=%s service=%s (%d rows)",
            user_id,
            service_id,
            result.rowcount,
        )
        return result.rowcount
