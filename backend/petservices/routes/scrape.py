"""
PetServices Backend — Lead Scraping Route
==========================================

POST /scrape (token): forwards the search to the automation webhook and
returns whatever JSON it answered, as `data`.
"""

from fastapi import APIRouter, Depends

from petservices.dependencies import ProtectedRoute, get_current_claims, get_scrape_service
from petservices.schemas.auth import TokenClaims
from petservices.schemas.common import ErrorResponse
from petservices.schemas.scrape import ScrapeRequest, ScrapeResponse
from petservices.services.scrape_service import ScrapeService

router = APIRouter(tags=["Scraping"], route_class=ProtectedRoute)


@router.post(
    "/scrape",
    response_model=ScrapeResponse,
    responses={
        500: {"description": "SCRAPING_WEBHOOK_URL not configured", "model": ErrorResponse},
        502: {"description": "Webhook failed after retries", "model": ErrorResponse},
    },
    summary="Request a lead scraping run",
)
async def scrape(
    body: ScrapeRequest,
    claims: TokenClaims = Depends(get_current_claims),
    scrape_service: ScrapeService = Depends(get_scrape_service),
) -> ScrapeResponse:
    data = await scrape_service.trigger(body, claims)
    return ScrapeResponse(data=data)
