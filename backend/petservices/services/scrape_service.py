"""
PetServices Backend — Lead Scraping Webhook Client
===================================================

What:  Forwards a lead-scraping request to the configured automation
       webhook and returns its JSON answer.
How:   httpx POST under the same RetryPolicy budget as image uploads.
       Non-2xx answers and transport errors are retried; once attempts
       run out the failure becomes IntegrationError (502).
Who:   POST /scrape.

Payload sent:
    {"nom", "email", "telephone", "ville", "country", "maxLeads",
     "userId": <requester id>, "timestamp": <ISO 8601 UTC>}
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from petservices.exceptions import ConfigurationError, IntegrationError, PetServicesError
from petservices.schemas.auth import TokenClaims
from petservices.schemas.scrape import ScrapeRequest
from petservices.services.retry import RetryPolicy

logger = logging.getLogger(__name__)


class ScrapeService:

    def __init__(
        self,
        webhook_url: str,
        retry_policy: RetryPolicy,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.webhook_url = webhook_url
        self.retry_policy = retry_policy
        self.timeout = timeout
        self.transport = transport

    def build_payload(
        self,
        request: ScrapeRequest,
        requester: TokenClaims,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        payload = request.model_dump(by_alias=True)
        payload["userId"] = requester.user_id
        payload["timestamp"] = (now or datetime.now(timezone.utc)).isoformat()
        return payload

    async def _post(self, payload: Dict[str, Any]) -> Any:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(self.webhook_url, json=payload)
            response.raise_for_status()

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def trigger(self, request: ScrapeRequest, requester: TokenClaims) -> Any:
        """
        Raises:
            ConfigurationError: SCRAPING_WEBHOOK_URL is not set.
            IntegrationError: the webhook failed on every attempt.
        """
        if not self.webhook_url:
            raise ConfigurationError("SCRAPING_WEBHOOK_URL")

        payload = self.build_payload(request, requester)
        logger.info(
            "Scraping request from user %s: ville=%s country=%s maxLeads=%s",
            requester.user_id,
            request.ville,
            request.country,
            request.max_leads,
        )

        try:
            return await self.retry_policy.call(self._post, payload, operation="Scraping webhook")
        except PetServicesError:
            raise
        except httpx.HTTPStatusError as e:
            logger.error(
                "Scraping webhook answered %d after %d attempts",
                e.response.status_code,
                self.retry_policy.max_attempts,
            )
            raise IntegrationError(context={"status": e.response.status_code})
        except httpx.HTTPError as e:
            logger.error("Scraping webhook unreachable: %s", str(e))
            raise IntegrationError(context={"error": str(e)})
