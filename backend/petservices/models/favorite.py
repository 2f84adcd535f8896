"""
PetServices Backend — Favorite SQLAlchemy Model
================================================

What:  Many-to-many edge between users and service listings.

Constraints:
    - UNIQUE (user_id, service_id): at most one favorite per user/listing.
      FavoritesService checks first; the constraint catches the race.
    - Both foreign keys ON DELETE CASCADE.
"""

from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from petservices.database import Base

if TYPE_CHECKING:
    from petservices.models.listing import ServiceListing
    from petservices.models.user import User


class Favorite(Base):
    __tablename__ = "favorites"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    service_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("services_animaliers.id", ondelete="CASCADE"),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    user: Mapped["User"] = relationship(back_populates="favorites")
    service: Mapped["ServiceListing"] = relationship(back_populates="favorites")

    __table_args__ = (
        UniqueConstraint("user_id", "service_id", name="uq_favorites_user_service"),
    )

    def __repr__(self) -> str:
        return f"<Favorite(user_id={self.user_id}, service_id={self.service_id})>"


Index("idx_favorites_user_created", Favorite.user_id, Favorite.created_at.desc())
