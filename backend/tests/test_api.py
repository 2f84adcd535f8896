"""
PetServices Backend — API Integration Tests
============================================

What:  Drives the whole application over HTTP (httpx ASGITransport) with a
       real SQLite database and the in-memory object store.

What we test:
    ✅ Register → login → create listing → favorite → delete, end to end
    ✅ Image upload retried through the API (3 attempts, 2s then 4s)
    ✅ Auth gate: 401 without token, 403 with a bad one, before the body
       is processed
    ✅ Error envelope, unknown routes, request validation
    ✅ Health, /me, /uploads, /scrape
"""

import io

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from starlette.datastructures import Headers, UploadFile

from petservices.config import Settings
from petservices.main import create_app
from petservices.routes.listings import read_image

from conftest import JPEG_BYTES, register_and_login


def listing_form(**overrides):
    data = {
        "nom": "Clinique du Parc",
        "type": "vet",
        "ville": "Paris",
        "tarifs": "45.50",
        "services": "Vaccins",
        "horaires": "9h-18h",
    }
    data.update(overrides)
    return data


def image_file(filename="dog.jpg", content=JPEG_BYTES, content_type="image/jpeg"):
    return {"image": (filename, content, content_type)}


async def admin_headers(client, auth_service, database):
    """Register an account, promote it, and sign in again for an admin token."""
    _, user = await register_and_login(client, name="Admin", email="admin@x.com")
    async with database.transaction() as session:
        await auth_service.set_role(session, user["id"], "admin")
    response = await client.post("/login", json={"email": "admin@x.com", "password": "secret123"})
    return {"Authorization": f"Bearer {response.json()['token']}"}


class TestEndToEnd:

    @pytest.mark.asyncio
    async def test_register_login_create_delete(self, client):
        response = await client.post(
            "/register", json={"name": "Alice", "email": "a@x.com", "password": "secret123"}
        )
        assert response.status_code == 201

        response = await client.post("/login", json={"email": "a@x.com", "password": "secret123"})
        assert response.status_code == 200
        headers = {"Authorization": f"Bearer {response.json()['token']}"}

        response = await client.post(
            "/services",
            data={"nom": "VetCare", "type": "vet", "ville": "Paris", "tarifs": "45.50"},
            headers=headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["service"]["tarifs"] == 45.5
        assert body["service"]["statut"] == "en_attente"
        listing_id = body["service"]["id"]

        response = await client.get(f"/services/{listing_id}")
        assert response.status_code == 200
        assert response.json() == body["service"]

        response = await client.delete(f"/services/{listing_id}", headers=headers)
        assert response.status_code == 200
        assert response.json()["success"] is True

        response = await client.get(f"/services/{listing_id}")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_full_listing_and_favorite_flow(self, client, fake_store):
        headers, user = await register_and_login(client)

        response = await client.post(
            "/services", data=listing_form(), files=image_file(), headers=headers
        )
        assert response.status_code == 200, response.text
        service = response.json()["service"]
        assert service["statut"] == "en_attente"
        assert service["tarifs"] == 45.5
        assert fake_store.key_from_url(service["image"]) in fake_store.objects

        response = await client.get(f"/services/{service['id']}")
        assert response.status_code == 200
        assert response.json()["nom"] == "Clinique du Parc"

        response = await client.get("/services/search", params={"type": "vet", "ville": "par"})
        assert [item["id"] for item in response.json()] == [service["id"]]

        response = await client.post(
            "/favorites", json={"user_id": user["id"], "service_id": service["id"]}, headers=headers
        )
        assert response.status_code == 200
        assert response.json()["message"] == "Service added to favorites"

        response = await client.get(f"/favorites/{user['id']}", headers=headers)
        body = response.json()
        assert body["count"] == 1
        assert body["favorites"][0]["services_animaliers"]["id"] == service["id"]

        response = await client.delete(f"/services/{service['id']}", headers=headers)
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Service deleted successfully"}

        response = await client.get(f"/favorites/{user['id']}", headers=headers)
        assert response.json()["count"] == 0
        assert fake_store.objects == {}

        response = await client.get(f"/services/{service['id']}")
        assert response.status_code == 404


class TestUploadRetries:

    @pytest.mark.asyncio
    async def test_upload_succeeds_on_third_attempt(self, client, fake_store, recorded_sleep):
        headers, _ = await register_and_login(client)
        fake_store.fail_next_puts = 2

        response = await client.post(
            "/services", data=listing_form(), files=image_file(), headers=headers
        )

        assert response.status_code == 200, response.text
        assert fake_store.put_attempts == 3
        assert recorded_sleep.delays == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_upload_gives_up_after_three_attempts(self, client, fake_store):
        headers, _ = await register_and_login(client)
        fake_store.fail_next_puts = 5

        response = await client.post(
            "/services", data=listing_form(), files=image_file(), headers=headers
        )

        assert response.status_code == 500
        assert response.json()["success"] is False
        assert fake_store.put_attempts == 3
        assert (await client.get("/services")).json() == []

    @pytest.mark.asyncio
    async def test_invalid_image_rejected_before_upload(self, client, fake_store):
        headers, _ = await register_and_login(client)

        response = await client.post(
            "/services",
            data=listing_form(),
            files=image_file(filename="menu.pdf", content=b"%PDF-1.4", content_type="application/pdf"),
            headers=headers,
        )

        assert response.status_code == 400
        assert "Only image files are allowed" in response.json()["error"]
        assert fake_store.put_attempts == 0

    @pytest.mark.asyncio
    async def test_oversized_image_is_413(self, client, fake_store):
        headers, _ = await register_and_login(client)

        response = await client.post(
            "/services",
            data=listing_form(),
            files=image_file(content=b"x" * (5 * 1024 * 1024 + 1)),
            headers=headers,
        )

        assert response.status_code == 413
        assert fake_store.put_attempts == 0

    @pytest.mark.asyncio
    async def test_image_read_stops_past_the_limit(self):
        upload = UploadFile(
            file=io.BytesIO(b"x" * 4096),
            filename="big.jpg",
            headers=Headers({"content-type": "image/jpeg"}),
        )

        image = await read_image(upload, max_bytes=1024)

        assert image.size == 1025
        assert image.content_type == "image/jpeg"
        assert upload.file.closed


class TestAuthGate:

    @pytest.mark.asyncio
    async def test_missing_token_is_401_and_nothing_is_stored(self, client, fake_store):
        response = await client.post("/services", data=listing_form(), files=image_file())

        assert response.status_code == 401
        assert response.json()["error"] == "Access denied. Please log in."
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert fake_store.put_attempts == 0
        assert (await client.get("/services")).json() == []

    @pytest.mark.asyncio
    async def test_invalid_token_is_403(self, client, fake_store):
        response = await client.post(
            "/services",
            data=listing_form(),
            files=image_file(),
            headers={"Authorization": "Bearer not-a-real-token"},
        )
        assert response.status_code == 403
        assert fake_store.put_attempts == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "method,path",
        [("PUT", "/services/1"), ("DELETE", "/services/1"), ("GET", "/favorites/1"), ("POST", "/scrape")],
    )
    async def test_every_write_route_is_protected(self, client, method, path):
        response = await client.request(method, path)
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_non_admin_cannot_change_statut(self, client):
        headers, _ = await register_and_login(client)
        created = await client.post("/services", data=listing_form(), headers=headers)
        listing_id = created.json()["service"]["id"]

        response = await client.put(
            f"/services/{listing_id}", data=listing_form(statut="actif"), headers=headers
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_admin_publishes_listing(self, client, auth_service, database):
        headers = await admin_headers(client, auth_service, database)
        created = await client.post("/services", data=listing_form(statut="actif"), headers=headers)
        assert created.json()["service"]["statut"] == "actif"

        response = await client.put(
            f"/services/{created.json()['service']['id']}",
            data=listing_form(nom="Clinique Renommée", statut="inactif"),
            headers=headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Service updated successfully"
        assert body["service"]["nom"] == "Clinique Renommée"
        assert body["service"]["statut"] == "inactif"

    @pytest.mark.asyncio
    async def test_favorites_of_another_user(self, client):
        alice_headers, alice = await register_and_login(client)
        bob_headers, bob = await register_and_login(client, name="Bob", email="bob@x.com")

        response = await client.get(f"/favorites/{alice['id']}", headers=bob_headers)
        assert response.status_code == 403

        response = await client.post(
            "/favorites", json={"user_id": alice["id"], "service_id": 1}, headers=bob_headers
        )
        assert response.status_code == 403


class TestAccounts:

    @pytest.mark.asyncio
    async def test_register_response(self, client):
        response = await client.post(
            "/register", json={"name": "Alice", "email": "Alice@X.com", "password": "secret123"}
        )
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["user"]["email"] == "alice@x.com"
        assert "token" not in body
        assert "password_hash" not in body["user"]

    @pytest.mark.asyncio
    async def test_auth_register_returns_token(self, client):
        response = await client.post(
            "/auth/register", json={"name": "Alice", "email": "a@x.com", "password": "secret123"}
        )
        assert response.status_code == 201
        token = response.json()["token"]

        response = await client.get("/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json()["user"]["email"] == "a@x.com"

    @pytest.mark.asyncio
    async def test_duplicate_registration(self, client):
        await register_and_login(client)
        response = await client.post(
            "/register", json={"name": "Again", "email": "A@X.COM", "password": "secret123"}
        )
        assert response.status_code == 400
        assert response.json()["error"] == "An account with this email already exists"

    @pytest.mark.asyncio
    async def test_bad_credentials(self, client):
        await register_and_login(client)
        response = await client.post("/auth/login", json={"email": "a@x.com", "password": "wrong-one"})
        assert response.status_code == 401
        assert response.json()["error"] == "Incorrect email or password"

    @pytest.mark.asyncio
    async def test_me_with_invalid_token_is_401(self, client):
        response = await client.get("/me", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401

        response = await client.get("/me")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_short_password(self, client):
        response = await client.post(
            "/register", json={"name": "Alice", "email": "a@x.com", "password": "123"}
        )
        assert response.status_code == 400
        assert response.json()["error"].startswith("password")


class TestEnvelope:

    @pytest.mark.asyncio
    async def test_unknown_route(self, client):
        response = await client.get("/api/nothing-here")
        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "API endpoint not found"
        assert body["path"] == "/api/nothing-here"

    @pytest.mark.asyncio
    async def test_malformed_json_is_400(self, client):
        response = await client.post(
            "/login", content="{not json", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_missing_fields_message(self, client):
        headers, _ = await register_and_login(client)
        response = await client.post("/services", data={"nom": "Sans ville", "type": "vet"}, headers=headers)
        assert response.status_code == 400
        assert response.json()["error"] == "nom, type and ville are required"

    @pytest.mark.asyncio
    async def test_request_id_header(self, client):
        response = await client.get("/services")
        assert len(response.headers["X-Request-ID"]) == 8

        response = await client.get("/services", headers={"X-Request-ID": "trace-123"})
        assert response.headers["X-Request-ID"] == "trace-123"

    @pytest.mark.asyncio
    async def test_error_carries_request_id(self, client):
        response = await client.get("/services/9999", headers={"X-Request-ID": "trace-404"})
        assert response.status_code == 404
        assert response.json()["request_id"] == "trace-404"


    @pytest.mark.asyncio
    async def test_update_of_missing_listing_is_404(self, client):
        headers, _ = await register_and_login(client)
        response = await client.put("/services/9999", data={"services": "x"}, headers=headers)
        assert response.status_code == 404
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_unexpected_error_is_internal_error(self, app, client, caplog):
        @app.get("/explode")
        async def explode():
            raise RuntimeError("connection pool exhausted")

        response = await client.get("/explode")

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Internal server error"
        assert "connection pool" not in response.text
        assert "'error_type': 'RuntimeError'" in caplog.text


class TestOperations:

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["storage"] == "available"

    @pytest.mark.asyncio
    async def test_unconfigured_database(self, tmp_path, fake_store):
        app = create_app(
            settings=Settings(
                database_url="",
                jwt_secret="secret",
                storage_root=str(tmp_path / "storage"),
            ),
            object_store=fake_store,
        )
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.get("/services")
            assert response.status_code == 500
            assert "DATABASE_URL" in response.json()["error"]

            response = await ac.get("/health")
            assert response.status_code == 200
            assert response.json()["status"] == "unhealthy"
            assert response.json()["database"] == "unconfigured"

    @pytest.mark.asyncio
    async def test_uploads_served_from_local_store(self, test_settings, database, retry_policy):
        app = create_app(settings=test_settings, database=database, retry_policy=retry_policy)
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            headers, _ = await register_and_login(ac)
            created = await ac.post("/services", data=listing_form(), files=image_file(), headers=headers)
            image_url = created.json()["service"]["image"]
            assert image_url.startswith("/uploads/services/")

            response = await ac.get(image_url)
            assert response.status_code == 200
            assert response.content == JPEG_BYTES

            response = await ac.get("/uploads/services/missing.jpg")
            assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_scrape_forwards_to_webhook(self, test_settings, database, fake_store, retry_policy):
        def webhook(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"leads": 2})

        app = create_app(
            settings=test_settings,
            database=database,
            object_store=fake_store,
            retry_policy=retry_policy,
            webhook_transport=httpx.MockTransport(webhook),
        )
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            headers, _ = await register_and_login(ac)
            response = await ac.post(
                "/scrape", json={"ville": "Paris", "maxLeads": 10}, headers=headers
            )
            assert response.status_code == 200
            assert response.json() == {"success": True, "data": {"leads": 2}}
