"""
PetServices Backend — Upload Manager Unit Tests
================================================

What we test:
    ✅ Extension / MIME / size validation, all before any upload attempt
    ✅ Storage key format and name normalization
    ✅ Transient store failures retried (3 attempts, 2s then 4s)
    ✅ Exhausted retries surface as StorageError
    ✅ release() is best effort and ignores foreign URLs
"""

import pytest

from petservices.exceptions import (
    ConfigurationError,
    PayloadTooLargeError,
    StorageError,
    ValidationError,
)
from petservices.services.supabase_storage import SupabaseObjectStore
from petservices.services.upload_manager import ImageUpload, UploadManager, normalize_name


def make_upload(filename="photo.jpg", content_type="image/jpeg", content=b"\xff\xd8\xff\xd9"):
    return ImageUpload(filename=filename, content_type=content_type, content=content)


class TestValidation:

    @pytest.mark.parametrize("filename", ["doc.pdf", "script.exe", "noextension", "image.svg"])
    def test_rejects_disallowed_extensions(self, upload_manager, filename):
        with pytest.raises(ValidationError) as exc_info:
            upload_manager.validate(make_upload(filename=filename))
        assert "Only image files are allowed" in exc_info.value.message

    def test_rejects_disallowed_mime_type(self, upload_manager):
        with pytest.raises(ValidationError):
            upload_manager.validate(make_upload(filename="photo.png", content_type="text/plain"))

    @pytest.mark.parametrize(
        "filename,content_type",
        [
            ("a.JPG", "image/jpeg"),
            ("b.jpeg", "image/jpeg; charset=binary"),
            ("c.png", "image/png"),
            ("d.gif", "image/gif"),
            ("e.webp", "image/webp"),
        ],
    )
    def test_accepts_allowed_images(self, upload_manager, filename, content_type):
        ext = upload_manager.validate(make_upload(filename=filename, content_type=content_type))
        assert ext == "." + filename.rsplit(".", 1)[1].lower()

    def test_rejects_empty_file(self, upload_manager):
        with pytest.raises(ValidationError):
            upload_manager.validate(make_upload(content=b""))

    def test_size_limit_is_inclusive(self, fake_store, retry_policy):
        manager = UploadManager(fake_store, retry_policy, max_bytes=1024)
        manager.validate(make_upload(content=b"x" * 1024))
        with pytest.raises(PayloadTooLargeError) as exc_info:
            manager.validate(make_upload(content=b"x" * 1025))
        assert exc_info.value.actual_bytes == 1025


class TestKeys:

    def test_build_key_format(self, upload_manager):
        key = upload_manager.build_key("Golden Paws!.JPG", now_ms=1718000000000)
        assert key == "services/1718000000000_goldenpaws.jpg"

    def test_build_key_uses_current_time(self, upload_manager):
        key = upload_manager.build_key("dog.png")
        prefix, name = key.split("/")
        timestamp, rest = name.split("_", 1)
        assert prefix == "services"
        assert timestamp.isdigit() and len(timestamp) == 13
        assert rest == "dog.png"

    @pytest.mark.parametrize(
        "filename,expected",
        [
            ("Chez Médor.png", "chezmdor"),
            ("dog-walk_2024.jpg", "dogwalk2024"),
            ("???.gif", "image"),
        ],
    )
    def test_normalize_name(self, filename, expected):
        assert normalize_name(filename) == expected


class TestStore:

    @pytest.mark.asyncio
    async def test_store_returns_public_url(self, upload_manager, fake_store):
        url = await upload_manager.store(make_upload(filename="Rex.PNG", content_type="image/png"))
        key = fake_store.key_from_url(url)
        assert key.startswith("services/") and key.endswith("_rex.png")
        assert fake_store.objects[key][1] == "image/png"
        assert fake_store.put_attempts == 1

    @pytest.mark.asyncio
    async def test_invalid_upload_never_reaches_the_store(self, upload_manager, fake_store):
        with pytest.raises(ValidationError):
            await upload_manager.store(make_upload(filename="notes.txt", content_type="text/plain"))
        assert fake_store.put_attempts == 0

    @pytest.mark.asyncio
    async def test_oversized_upload_never_reaches_the_store(self, fake_store, retry_policy):
        manager = UploadManager(fake_store, retry_policy, max_bytes=1024)
        with pytest.raises(PayloadTooLargeError):
            await manager.store(make_upload(content=b"x" * 2048))
        assert fake_store.put_attempts == 0

    @pytest.mark.asyncio
    async def test_transient_failures_are_retried(self, upload_manager, fake_store, recorded_sleep):
        fake_store.fail_next_puts = 2
        url = await upload_manager.store(make_upload())
        assert fake_store.put_attempts == 3
        assert recorded_sleep.delays == [2.0, 4.0]
        assert fake_store.key_from_url(url) in fake_store.objects

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_storage_error(self, upload_manager, fake_store, recorded_sleep):
        fake_store.fail_next_puts = 3
        with pytest.raises(StorageError) as exc_info:
            await upload_manager.store(make_upload())
        assert fake_store.put_attempts == 3
        assert recorded_sleep.delays == [2.0, 4.0]
        assert fake_store.objects == {}
        assert exc_info.value.context["attempts"] == 3

    @pytest.mark.asyncio
    async def test_unconfigured_store_fails_without_retrying(self, retry_policy, recorded_sleep):
        manager = UploadManager(SupabaseObjectStore(url="", service_key=""), retry_policy)
        with pytest.raises(ConfigurationError):
            await manager.store(make_upload())
        assert recorded_sleep.delays == []


class TestRelease:

    @pytest.mark.asyncio
    async def test_release_deletes_owned_object(self, upload_manager, fake_store):
        url = await upload_manager.store(make_upload())
        assert await upload_manager.release(url) is True
        assert fake_store.objects == {}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", [None, "", "https://elsewhere.example.com/dog.jpg"])
    async def test_release_ignores_empty_and_foreign_urls(self, upload_manager, fake_store, url):
        assert await upload_manager.release(url) is False
        assert fake_store.deleted == []

    @pytest.mark.asyncio
    async def test_release_swallows_store_errors(self, upload_manager, fake_store):
        url = await upload_manager.store(make_upload())
        fake_store.fail_deletes = True
        assert await upload_manager.release(url) is False
