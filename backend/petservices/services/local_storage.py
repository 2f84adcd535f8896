"""
PetServices Backend — Local Filesystem Object Store
====================================================

What:  ObjectStore backed by a directory on disk.
How:   Objects are written with aiofiles to a private `.part` file and
       renamed into place, so readers never observe a half-written image.
       Public URLs are `<public_base>/<key>` and are served by the
       /uploads route.
Who:   Default backend (STORAGE_BACKEND=local) and the test suite.

Directory Structure:
    storage/
    └── services/
        ├── 1718000000000_golden_paws.jpg
        └── 1718000004211_image.png
"""

import logging
import uuid
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os

from petservices.exceptions import StorageError
from petservices.services.storage_base import ObjectStore

logger = logging.getLogger(__name__)


class LocalObjectStore(ObjectStore):

    def __init__(self, root: str, public_base: str = "/uploads"):
        self.root = Path(root).resolve()
        self.public_base = public_base.rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)
        logger.info("LocalObjectStore initialized with root=%s", self.root)

    def resolve(self, key: str) -> Path:
        """
        Absolute path for `key`.

        Raises:
            StorageError if the key escapes the storage root (../ tricks).
        """
        path = (self.root / key).resolve()
        if path != self.root and self.root not in path.parents:
            raise StorageError(
                message="Invalid storage key",
                context={"key": key},
            )
        return path

    async def put(self, key: str, content: bytes, content_type: str) -> None:
        path = self.resolve(key)
        # Private per call: concurrent puts of the same key never share a temp file
        tmp_path = path.with_name(f"{path.name}.{uuid.uuid4().hex[:8]}.part")
        path.parent.mkdir(parents=True, exist_ok=True)

        try:
            async with aiofiles.open(tmp_path, "wb") as f:
                await f.write(content)
            await aiofiles.os.replace(tmp_path, path)
        finally:
            # Only present when the write or rename failed
            if tmp_path.exists():
                tmp_path.unlink()

        logger.info("Object stored: %s (%d bytes, %s)", key, len(content), content_type)

    def public_url(self, key: str) -> str:
        return f"{self.public_base}/{key}"

    def key_from_url(self, url: str) -> Optional[str]:
        prefix = f"{self.public_base}/"
        if not url or not url.startswith(prefix):
            return None
        key = url[len(prefix):]
        return key or None

    async def delete(self, key: str) -> None:
        path = self.resolve(key)
        if not path.exists():
            logger.debug("Delete: object already gone: %s", key)
            return
        await aiofiles.os.remove(path)
        logger.info("Object deleted: %s", key)

    async def health_check(self) -> bool:
        return self.root.is_dir()
