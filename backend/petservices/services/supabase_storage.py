"""
PetServices Backend — Supabase Storage Object Store
====================================================

What:  ObjectStore backed by a Supabase Storage bucket.
How:   Talks to the Storage REST API directly with httpx; no SDK.
       Each call opens a short-lived AsyncClient.
Who:   Selected by STORAGE_BACKEND=supabase.

Endpoints used:
    POST   /storage/v1/object/{bucket}/{key}        upload (x-upsert: true)
    DELETE /storage/v1/object/{bucket}              remove {"prefixes": [key]}
    GET    /storage/v1/bucket/{bucket}              health probe
    Public URL: /storage/v1/object/public/{bucket}/{key}

Non-2xx responses raise httpx.HTTPStatusError, which the Upload Manager's
retry policy treats as transient. Missing credentials raise
ConfigurationError, which it does not retry.
"""

import logging
from typing import Dict, Optional

import httpx

from petservices.exceptions import ConfigurationError
from petservices.services.storage_base import ObjectStore

logger = logging.getLogger(__name__)


class SupabaseObjectStore(ObjectStore):

    def __init__(
        self,
        url: str,
        service_key: str,
        bucket: str = "service-image",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url.rstrip("/")
        self.service_key = service_key
        self.bucket = bucket
        self.timeout = timeout
        # Injected in tests (httpx.MockTransport)
        self.transport = transport

    def _require_config(self) -> None:
        if not self.url:
            raise ConfigurationError("SUPABASE_URL")
        if not self.service_key:
            raise ConfigurationError("SUPABASE_SERVICE_ROLE_KEY")

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=f"{self.url}/storage/v1",
            headers=self._headers(),
            timeout=self.timeout,
            transport=self.transport,
        )

    async def put(self, key: str, content: bytes, content_type: str) -> None:
        self._require_config()
        async with self._client() as client:
            response = await client.post(
                f"/object/{self.bucket}/{key}",
                content=content,
                headers={
                    "Content-Type": content_type,
                    "x-upsert": "true",
                    "cache-control": "3600",
                },
            )
            response.raise_for_status()
        logger.info("Uploaded %s to bucket %s (%d bytes)", key, self.bucket, len(content))

    def public_url(self, key: str) -> str:
        return f"{self.url}/storage/v1/object/public/{self.bucket}/{key}"

    def key_from_url(self, url: str) -> Optional[str]:
        prefix = f"{self.url}/storage/v1/object/public/{self.bucket}/"
        if not self.url or not url or not url.startswith(prefix):
            return None
        # Drop any transform query string Supabase may have appended
        key = url[len(prefix):].split("?", 1)[0]
        return key or None

    async def delete(self, key: str) -> None:
        self._require_config()
        async with self._client() as client:
            response = await client.request(
                "DELETE",
                f"/object/{self.bucket}",
                json={"prefixes": [key]},
            )
            response.raise_for_status()
        logger.info("Removed %s from bucket %s", key, self.bucket)

    async def health_check(self) -> bool:
        if not self.url or not self.service_key:
            return False
        try:
            async with self._client() as client:
                response = await client.get(f"/bucket/{self.bucket}")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning("Supabase storage health check failed: %s", str(e))
            return False
