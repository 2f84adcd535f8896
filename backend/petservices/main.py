"""
PetServices Backend — FastAPI Application Factory
==================================================

What:  Builds the FastAPI application: services, middleware, error
       handlers, routers.
How:   `create_app()` constructs every collaborator explicitly (database
       handle, object store, retry policy, services) and stores them on
       `app.state`. Nothing is a module-level singleton, so tests build
       isolated apps by passing their own collaborators.
Who:   uvicorn (`petservices.main:app`), the test suite.

Application Architecture:
    ┌───────────────────────────────────────────────────────────┐
    │                       FastAPI App                         │
    │                                                           │
    │  Middleware:  Request ID → Access Log → GZip → CORS       │
    │                                                           │
    │  Routes:                                                  │
    │   public     /health /services[/search|/{id}] /uploads    │
    │              /register /login /auth/* /me                 │
    │   protected  POST|PUT|DELETE /services  /favorites        │
    │              /scrape                (ProtectedRoute gate) │
    │                                                           │
    │  Exception handlers:                                      │
    │   PetServicesError family → status table                  │
    │   RequestValidationError → 400                            │
    │   unmatched path → 404 {"error": "API endpoint not found"}│
    │   anything else → 500                                     │
    └───────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  configure logging, report missing settings (never fatal)
    Shutdown: dispose the database engine
"""

import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Optional, Type

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from petservices import __version__
from petservices.config import Settings
from petservices.config import settings as default_settings
from petservices.database import Database
from petservices.exceptions import (
    ConfigurationError,
    ConflictError,
    DatabaseError,
    ForbiddenError,
    IntegrationError,
    InternalError,
    NotFoundError,
    PayloadTooLargeError,
    PetServicesError,
    StorageError,
    UnauthorizedError,
    ValidationError,
)
from petservices.middleware.logging import RequestLoggingMiddleware
from petservices.middleware.request_id import RequestIDMiddleware, request_id_var
from petservices.routes import auth, favorites, files, health, listings, scrape
from petservices.services.auth_service import AuthService
from petservices.services.catalog_service import CatalogService
from petservices.services.favorites_service import FavoritesService
from petservices.services.local_storage import LocalObjectStore
from petservices.services.retry import RetryPolicy
from petservices.services.scrape_service import ScrapeService
from petservices.services.storage_base import ObjectStore
from petservices.services.supabase_storage import SupabaseObjectStore
from petservices.services.upload_manager import UploadManager

logger = logging.getLogger(__name__)

ERROR_STATUS: Dict[Type[PetServicesError], int] = {
    ValidationError: 400,
    UnauthorizedError: 401,
    ForbiddenError: 403,
    NotFoundError: 404,
    ConflictError: 400,
    PayloadTooLargeError: 413,
    StorageError: 500,
    ConfigurationError: 500,
    DatabaseError: 500,
    IntegrationError: 502,
    InternalError: 500,
}


def status_for(exc: PetServicesError) -> int:
    """HTTP status for an application error, most specific class first."""
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 500


# ══════════════════════════════════════════════════════════════════════════
# Logging
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger once for the whole process.

    Format: 2024-06-10T12:00:00 [INFO] petservices.access: GET /services 200 ...
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    for noisy in ("uvicorn.access", "sqlalchemy.engine", "httpcore", "httpx", "passlib"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings: Settings = app.state.settings

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(settings.log_level)
    logger.info("=" * 60)
    logger.info("PetServices Backend %s starting up...", __version__)

    missing = settings.missing_required()
    if missing:
        # Not fatal: the dependent operations answer ConfigurationError
        logger.error("Missing configuration: %s", ", ".join(missing))

    logger.info("Storage backend: %s", settings.storage_backend)
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("PetServices Backend shutting down...")
    await app.state.db.dispose()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def error_body(message: str) -> dict:
    return {"success": False, "error": message, "request_id": request_id_var.get("")}


def register_exception_handlers(app: FastAPI) -> None:
    """
    Render every error as {"success": false, "error": ..., "request_id": ...}.

    Messages come from the exception and are client-safe; `context` and
    tracebacks go to the log only.
    """

    @app.exception_handler(PetServicesError)
    async def handle_app_error(request: Request, exc: PetServicesError):
        status = status_for(exc)
        rid = request_id_var.get("")
        if status >= 500:
            logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
        else:
            logger.warning("[%s] %s: %s", rid, type(exc).__name__, exc.message)

        headers = {"WWW-Authenticate": "Bearer"} if status == 401 else None
        return JSONResponse(status_code=status, content=error_body(exc.message), headers=headers)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = "Invalid request"
        if errors:
            first = errors[0]
            loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
            detail = str(first.get("msg", "invalid value")).removeprefix("Value error, ")
            message = f"{'.'.join(loc)}: {detail}" if loc else detail
        logger.warning("[%s] Request validation failed: %s", request_id_var.get(""), message)
        return JSONResponse(status_code=400, content=error_body(message))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            content = error_body("API endpoint not found")
            content["path"] = request.url.path
            return JSONResponse(status_code=404, content=content)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        # Anything outside the hierarchy is reported as an InternalError
        error = InternalError(context={"error_type": type(exc).__name__, "path": request.url.path})
        logger.error(
            "[%s] Unexpected error: %s | Context: %s",
            request_id_var.get(""),
            str(exc),
            error.context,
            exc_info=True,
        )
        return JSONResponse(status_code=status_for(error), content=error_body(error.message))


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def build_object_store(settings: Settings) -> ObjectStore:
    if settings.storage_backend == "supabase":
        return SupabaseObjectStore(
            url=settings.supabase_url,
            service_key=settings.supabase_service_role_key,
            bucket=settings.supabase_bucket,
        )
    return LocalObjectStore(settings.storage_root, settings.public_files_url)


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    object_store: Optional[ObjectStore] = None,
    retry_policy: Optional[RetryPolicy] = None,
    webhook_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Assemble the application.

    Every argument defaults to what the settings describe; tests pass
    their own database, object store, retry policy (with a recording
    sleep) and webhook transport.
    """
    settings = settings or default_settings

    app = FastAPI(
        title="PetServices API",
        description="Directory of pet-service providers: listings, search, favorites.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Collaborators ─────────────────────────────────────────────────────
    database = database or Database.from_settings(settings)
    object_store = object_store or build_object_store(settings)
    retry_policy = retry_policy or RetryPolicy.from_settings(settings)
    upload_manager = UploadManager(object_store, retry_policy, max_bytes=settings.max_image_size)

    app.state.settings = settings
    app.state.db = database
    app.state.object_store = object_store
    app.state.upload_manager = upload_manager
    app.state.auth_service = AuthService.from_settings(settings)
    app.state.catalog_service = CatalogService(upload_manager)
    app.state.favorites_service = FavoritesService()
    app.state.scrape_service = ScrapeService(
        settings.scraping_webhook_url,
        retry_policy,
        timeout=settings.webhook_timeout,
        transport=webhook_transport,
    )
    app.state.started_at = time.time()

    # ── Middleware (last added runs first) ────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    # ── Routes ────────────────────────────────────────────────────────────
    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(listings.router)
    app.include_router(listings.protected_router)
    app.include_router(favorites.router)
    app.include_router(scrape.router)
    app.include_router(files.router)

    return app


app = create_app()
