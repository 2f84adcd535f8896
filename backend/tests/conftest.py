"""
PetServices Backend — Test Configuration (conftest.py)
=======================================================

Shared pytest fixtures for the whole suite.

Fixture Hierarchy (all function-scoped):
    test_settings ── per-test SQLite file database, temp storage root
    database      ── Database handle with every table created
    db_session    ── one AsyncSession on that database
    recorded_sleep / retry_policy ── linear 3 x 2s policy that records
                     its delays instead of sleeping
    fake_store    ── in-memory ObjectStore with failure injection
    upload_manager, auth_service, catalog_service, favorites_service
    app / client  ── create_app(...) wired to the fixtures above, behind an
                     httpx AsyncClient over ASGITransport
"""

import os
import tempfile
from typing import Dict, List, Optional, Tuple

# Set before any petservices import: the module-level settings and app read them
os.environ["DATABASE_URL"] = ""
os.environ["JWT_SECRET"] = "test-secret-not-real"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="petservices_test_")
os.environ["LOG_LEVEL"] = "WARNING"

from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from petservices.config import Settings
from petservices.database import Database
from petservices.main import create_app
from petservices.schemas.auth import TokenClaims
from petservices.services.auth_service import AuthService
from petservices.services.catalog_service import CatalogService
from petservices.services.favorites_service import FavoritesService
from petservices.services.retry import RetryPolicy
from petservices.services.storage_base import ObjectStore
from petservices.services.upload_manager import ImageUpload, UploadManager

TEST_SECRET = "test-secret-not-real"

# Minimal JPEG: SOI + JFIF APP0 header + EOI
JPEG_BYTES = (
    b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00"
    b"\xff\xd9"
)


# ══════════════════════════════════════════════════════════════════════════
# Test doubles
# ══════════════════════════════════════════════════════════════════════════

class RecordingSleep:
    """Stands in for asyncio.sleep; remembers every requested delay."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class InMemoryObjectStore(ObjectStore):
    """
    ObjectStore kept in a dict.

    `fail_next_puts = n` makes the next n put() calls raise ConnectionError;
    `fail_deletes = True` makes every delete() raise.
    """

    base_url = "https://cdn.test/service-image"

    def __init__(self):
        self.objects: Dict[str, Tuple[bytes, str]] = {}
        self.put_attempts = 0
        self.fail_next_puts = 0
        self.fail_deletes = False
        self.deleted: List[str] = []

    async def put(self, key: str, content: bytes, content_type: str) -> None:
        self.put_attempts += 1
        if self.fail_next_puts > 0:
            self.fail_next_puts -= 1
            raise ConnectionError("object store unreachable")
        self.objects[key] = (content, content_type)

    def public_url(self, key: str) -> str:
        return f"{self.base_url}/{key}"

    def key_from_url(self, url: str) -> Optional[str]:
        prefix = f"{self.base_url}/"
        if not url or not url.startswith(prefix):
            return None
        return url[len(prefix):]

    async def delete(self, key: str) -> None:
        if self.fail_deletes:
            raise ConnectionError("object store unreachable")
        self.deleted.append(key)
        self.objects.pop(key, None)

    async def health_check(self) -> bool:
        return True


# ══════════════════════════════════════════════════════════════════════════
# Configuration & database
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        jwt_secret=TEST_SECRET,
        bcrypt_rounds=10,
        storage_root=str(tmp_path / "storage"),
        upload_max_attempts=3,
        upload_base_delay=2.0,
        scraping_webhook_url="https://hooks.test/scrape",
        log_level="WARNING",
    )


@pytest_asyncio.fixture
async def database(test_settings):
    db = Database(test_settings.database_url)
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def db_session(database):
    session = database.session()
    try:
        yield session
    finally:
        await session.close()


# ══════════════════════════════════════════════════════════════════════════
# Services
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def recorded_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def retry_policy(recorded_sleep) -> RetryPolicy:
    return RetryPolicy.linear(3, 2.0, sleep=recorded_sleep)


@pytest.fixture
def fake_store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def upload_manager(fake_store, retry_policy) -> UploadManager:
    return UploadManager(fake_store, retry_policy, max_bytes=5_242_880)


@pytest.fixture
def auth_service() -> AuthService:
    return AuthService(jwt_secret=TEST_SECRET, bcrypt_rounds=10)


@pytest.fixture
def catalog_service(upload_manager) -> CatalogService:
    return CatalogService(upload_manager)


@pytest.fixture
def favorites_service() -> FavoritesService:
    return FavoritesService()


def make_claims(user_id: int, role: str = "user", email: Optional[str] = None) -> TokenClaims:
    now = datetime.now(timezone.utc)
    return TokenClaims(
        user_id=user_id,
        email=email or f"user{user_id}@example.com",
        name=f"User {user_id}",
        role=role,
        issued_at=now,
        expires_at=now,
    )


@pytest.fixture
def user_claims() -> TokenClaims:
    return make_claims(1)


@pytest.fixture
def admin_claims() -> TokenClaims:
    return make_claims(99, role="admin")


@pytest.fixture
def sample_image_bytes() -> bytes:
    return JPEG_BYTES


@pytest.fixture
def sample_image() -> ImageUpload:
    return ImageUpload(filename="Golden Paws.jpg", content_type="image/jpeg", content=JPEG_BYTES)


# ══════════════════════════════════════════════════════════════════════════
# Application
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def app(test_settings, database, fake_store, retry_policy):
    return create_app(
        settings=test_settings,
        database=database,
        object_store=fake_store,
        retry_policy=retry_policy,
    )


@pytest_asyncio.fixture
async def client(app):
    # raise_app_exceptions=False: unexpected errors come back as the 500 response
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def register_and_login(
    client: AsyncClient,
    name: str = "Alice",
    email: str = "a@x.com",
    password: str = "secret123",
) -> Tuple[Dict[str, str], dict]:
    """Create an account through the API; returns (auth headers, user json)."""
    response = await client.post(
        "/register", json={"name": name, "email": email, "password": password}
    )
    assert response.status_code == 201, response.text
    response = await client.post("/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    body = response.json()
    return {"Authorization": f"Bearer {body['token']}"}, body["user"]
