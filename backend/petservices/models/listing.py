"""
PetServices Backend — Service Listing SQLAlchemy Model
=======================================================

What:  ORM model for the `services_animaliers` table (one pet-service
       catalog entry).
Who:   CatalogService owns the lifecycle; FavoritesService joins on it.

Status state machine:
    en_attente (initial) → actif | inactif, cycling freely between the two.
    Only admins change it. DELETE is the only terminal operation.

Index on created_at DESC:
    Every list/search query orders by most recent first.
"""

from datetime import datetime, timezone
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import DateTime, Index, Integer, Numeric, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from petservices.database import Base

if TYPE_CHECKING:
    from petservices.models.favorite import Favorite

LISTING_TYPES = ("vet", "grooming", "boarding", "training", "walking", "other")

STATUS_PENDING = "en_attente"
STATUS_ACTIVE = "actif"
STATUS_INACTIVE = "inactif"
LISTING_STATUSES = (STATUS_PENDING, STATUS_ACTIVE, STATUS_INACTIVE)


class ServiceListing(Base):
    """A pet-service provider entry in the directory."""

    __tablename__ = "services_animaliers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    nom: Mapped[str] = mapped_column(String(255), nullable=False)

    type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="vet, grooming, boarding, training, walking, other",
    )

    ville: Mapped[str] = mapped_column(String(255), nullable=False)

    # asdecimal=False: the API exposes tarifs as a JSON number
    tarifs: Mapped[float] = mapped_column(
        Numeric(10, 2, asdecimal=False),
        nullable=False,
        default=0,
        server_default=text("0"),
    )

    services: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Free-text description of the services offered",
    )

    horaires: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    statut: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=STATUS_PENDING,
        server_default=text("'en_attente'"),
    )

    # Public URL in the object store; a reference, not an ownership relation
    image: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    favorites: Mapped[List["Favorite"]] = relationship(
        back_populates="service",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("idx_services_type", "type"),
    )

    def __repr__(self) -> str:
        return (
            f"<ServiceListing(id={self.id}, nom='{self.nom}', type='{self.type}', "
            f"statut='{self.statut}')>"
        )


Index("idx_services_created_at", ServiceListing.created_at.desc())
