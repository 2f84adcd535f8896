"""
PetServices Backend — Request Dependencies and the Auth Gate
=============================================================

What:  FastAPI dependencies that hand route handlers the services built by
       `create_app()`, plus `ProtectedRoute`, the bearer-token gate.

How the gate works:
    Protected routers are declared with `route_class=ProtectedRoute`. Its
    route handler verifies the `Authorization: Bearer <token>` header
    before FastAPI reads the body or resolves any dependency, so an
    unauthenticated upload is rejected without its multipart payload ever
    being parsed. The decoded claims land on `request.state.claims`, where
    `get_current_claims` picks them up.

    no header / not "Bearer <token>" → UnauthorizedError (401)
    invalid or expired token         → ForbiddenError (403)
"""

from typing import Callable, Optional

from fastapi import Request, Response
from fastapi.routing import APIRoute

from petservices.exceptions import UnauthorizedError
from petservices.schemas.auth import TokenClaims
from petservices.services.auth_service import AuthService
from petservices.services.catalog_service import CatalogService
from petservices.services.favorites_service import FavoritesService
from petservices.services.scrape_service import ScrapeService
from petservices.services.storage_base import ObjectStore


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Token part of an `Authorization: Bearer <token>` header, else None."""
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


class ProtectedRoute(APIRoute):
    """APIRoute whose handler only runs once the bearer token verified."""

    def get_route_handler(self) -> Callable:
        original_handler = super().get_route_handler()

        async def protected_handler(request: Request) -> Response:
            auth_service: AuthService = request.app.state.auth_service
            token = extract_bearer_token(request.headers.get("Authorization"))
            request.state.claims = auth_service.verify_token(token)
            return await original_handler(request)

        return protected_handler


def get_current_claims(request: Request) -> TokenClaims:
    claims = getattr(request.state, "claims", None)
    if claims is None:
        # Only reachable from a route that is not behind ProtectedRoute
        raise UnauthorizedError()
    return claims


# ── Service accessors ─────────────────────────────────────────────────────

def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_catalog_service(request: Request) -> CatalogService:
    return request.app.state.catalog_service


def get_favorites_service(request: Request) -> FavoritesService:
    return request.app.state.favorites_service


def get_scrape_service(request: Request) -> ScrapeService:
    return request.app.state.scrape_service


def get_object_store(request: Request) -> ObjectStore:
    return request.app.state.object_store
