"""
ORM models. Importing this package registers every table on Base.metadata.
"""

from petservices.models.user import User, ROLES, ROLE_ADMIN, ROLE_USER
from petservices.models.listing import (
    ServiceListing,
    LISTING_TYPES,
    LISTING_STATUSES,
    STATUS_PENDING,
    STATUS_ACTIVE,
    STATUS_INACTIVE,
)
from petservices.models.favorite import Favorite

__all__ = [
    "User",
    "ROLES",
    "ROLE_ADMIN",
    "ROLE_USER",
    "ServiceListing",
    "LISTING_TYPES",
    "LISTING_STATUSES",
    "STATUS_PENDING",
    "STATUS_ACTIVE",
    "STATUS_INACTIVE",
    "Favorite",
]
