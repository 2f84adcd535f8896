"""
PetServices Backend — Abstract Object Store Interface
======================================================

What:  Contract for the external object store that holds listing images.
How:   Concrete backends implement put/delete on opaque keys and map keys
       to and from public URLs.
Who:   UploadManager (store/release), the health route, the /uploads route.

Implementations:
    - LocalObjectStore:    files under STORAGE_ROOT, served by /uploads
    - SupabaseObjectStore: Supabase Storage bucket over its REST API

Backends raise on failure and do not retry; UploadManager wraps `put` in
the RetryPolicy.
"""

from abc import ABC, abstractmethod
from typing import Optional


class ObjectStore(ABC):
    """Key/value blob storage with publicly readable objects."""

    @abstractmethod
    async def put(self, key: str, content: bytes, content_type: str) -> None:
        """
        Store `content` under `key`, overwriting any existing object.

        Raises:
            Any exception on failure. Transient errors are retried by the
            caller; PetServicesError subclasses are not.
        """
        ...

    @abstractmethod
    def public_url(self, key: str) -> str:
        """Publicly reachable URL for `key`."""
        ...

    @abstractmethod
    def key_from_url(self, url: str) -> Optional[str]:
        """
        Inverse of public_url(). Returns None when the URL does not point
        into this store (e.g. an image hosted elsewhere).
        """
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove the object. Deleting a missing key is not an error."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Cheap reachability probe used by GET /health."""
        ...
