"""
PetServices Backend — Upload Manager
=====================================

What:  Validates listing images, derives their storage keys, and uploads
       them to the object store under the retry policy.
How:   validate → build key → RetryPolicy.call(store.put) → public URL.
       Nothing touches the network until validation passed.
Who:   CatalogService (create/update/delete).

Validation order (cheapest first):
    1. Extension allow-list     .jpeg .jpg .png .gif .webp
    2. MIME type allow-list     image/jpeg image/png image/gif image/webp
    3. Non-empty content
    4. Size limit               MAX_IMAGE_SIZE (5MB) → PayloadTooLargeError

Key format:
    services/<epoch ms>_<normalized name><.ext>
    e.g. "Golden Paws!.JPG" uploaded at 1718000000000
         → services/1718000000000_goldenpaws.jpg

Release is cleanup: it never raises, only logs.
"""

import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from petservices.exceptions import (
    PayloadTooLargeError,
    PetServicesError,
    StorageError,
    ValidationError,
)
from petservices.services.retry import RetryPolicy
from petservices.services.storage_base import ObjectStore

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".jpeg", ".jpg", ".png", ".gif", ".webp"}

ALLOWED_MIME_TYPES = {
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
}

KEY_PREFIX = "services"

_NON_ALNUM = re.compile(r"[^a-z0-9]")


@dataclass(frozen=True)
class ImageUpload:
    """An image received from a multipart request, fully read into memory."""
    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


def normalize_name(filename: str) -> str:
    """Lower-cased file stem with everything outside [a-z0-9] removed."""
    stem = Path(filename).stem.lower()
    return _NON_ALNUM.sub("", stem) or "image"


class UploadManager:

    def __init__(
        self,
        object_store: ObjectStore,
        retry_policy: RetryPolicy,
        max_bytes: int = 5_242_880,
    ):
        self.object_store = object_store
        self.retry_policy = retry_policy
        self.max_bytes = max_bytes

    def validate(self, upload: ImageUpload) -> str:
        """
        Check an upload against the allow-lists and the size limit.

        Returns:
            The lower-cased extension (with dot).
        Raises:
            ValidationError, PayloadTooLargeError
        """
        ext = Path(upload.filename or "").suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message="Only image files are allowed (jpeg, jpg, png, gif, webp)",
                field="image",
                context={"extension": ext},
            )

        mime_type = (upload.content_type or "").split(";", 1)[0].strip().lower()
        if mime_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                message="Only image files are allowed (jpeg, jpg, png, gif, webp)",
                field="image",
                context={"content_type": mime_type},
            )

        if upload.size == 0:
            raise ValidationError(message="The uploaded image is empty", field="image")

        if upload.size > self.max_bytes:
            raise PayloadTooLargeError(max_bytes=self.max_bytes, actual_bytes=upload.size)

        return ext

    def build_key(self, filename: str, now_ms: Optional[int] = None) -> str:
        if now_ms is None:
            now_ms = int(time.time() * 1000)
        ext = Path(filename).suffix.lower()
        return f"{KEY_PREFIX}/{now_ms}_{normalize_name(filename)}{ext}"

    async def store(self, upload: ImageUpload) -> str:
        """
        Validate and upload an image; return its public URL.

        Raises:
            ValidationError / PayloadTooLargeError before any upload attempt.
            ConfigurationError when the store is not configured.
            StorageError once every attempt has failed.
        """
        self.validate(upload)
        key = self.build_key(upload.filename)

        try:
            await self.retry_policy.call(
                self.object_store.put,
                key,
                upload.content,
                upload.content_type,
                operation=f"Image upload {key}",
            )
        except PetServicesError:
            raise
        except Exception as e:
            logger.error(
                "Image upload failed after %d attempts: %s (%s)",
                self.retry_policy.max_attempts,
                key,
                str(e),
            )
            raise StorageError(
                context={
                    "key": key,
                    "attempts": self.retry_policy.max_attempts,
                    "error": str(e),
                },
            ) from e

        url = self.object_store.public_url(key)
        logger.info("Image stored: %s (%d bytes)", key, upload.size)
        return url

    async def release(self, url: Optional[str]) -> bool:
        """
        Best-effort removal of a previously stored image.

        Returns True when an object was deleted. Empty URLs and URLs that
        do not belong to the configured store are ignored.
        """
        if not url:
            return False

        key = self.object_store.key_from_url(url)
        if key is None:
            logger.debug("Release skipped, URL not owned by the object store: %s", url)
            return False

        try:
            await self.object_store.delete(key)
            return True
        except Exception as e:
            # Orphaned objects are acceptable; failing the request is not
            logger.warning("Failed to release image %s: %s", key, str(e))
            return False
