"""
PetServices Backend — Custom Exception Hierarchy
=================================================

What:  Application-specific exceptions for every failure the services can
       report.
How:   Each exception carries a client-safe message and an optional context
       dict. The exception handlers registered in main.py translate them into
       `{"success": false, "error": ...}` responses with the right status.
Who:   Raised by services, storage backends and the auth gate.

Exception Hierarchy:
    PetServicesError (base)
    ├── ValidationError          → 400 Bad Request
    ├── UnauthorizedError        → 401 Unauthorized
    ├── ForbiddenError           → 403 Forbidden
    ├── NotFoundError            → 404 Not Found
    ├── ConflictError            → 400 Bad Request (duplicate unique key)
    ├── PayloadTooLargeError     → 413 Payload Too Large
    ├── StorageError             → 500 (object store failed after retries)
    ├── ConfigurationError       → 500 (required setting missing)
    ├── DatabaseError            → 500
    ├── IntegrationError         → 502 (outbound webhook failed)
    └── InternalError            → 500 (what the catch-all handler reports)
"""

from typing import Any, Dict, Optional


class PetServicesError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(PetServicesError):
    """
    Raised when client input fails validation.

    When:    Missing required fields, unknown enum values, bad image type.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class UnauthorizedError(PetServicesError):
    """
    Missing credentials, or credentials that do not match.

    Login uses one message for "unknown email" and "wrong password" so the
    response never tells which of the two was wrong.
    """

    def __init__(
        self,
        message: str = "Access denied. Please log in.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ForbiddenError(PetServicesError):
    """Authenticated (or token presented) but not entitled to the operation."""

    def __init__(
        self,
        message: str = "Access not allowed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(PetServicesError):
    """
    Raised when a requested resource does not exist.

    SQLAlchemy returns None for missing rows; services convert that into
    NotFoundError so the router can answer 404.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id is not None:
            message = f"{resource.capitalize()} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id is not None:
            ctx["resource_id"] = str(resource_id)
        super().__init__(message=message, context=ctx)
        self.resource = resource
        self.resource_id = resource_id


class ConflictError(PetServicesError):
    """A unique key (user email, user/listing favorite pair) already exists."""

    def __init__(
        self,
        message: str = "This resource already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PayloadTooLargeError(PetServicesError):
    """
    Raised when an uploaded image exceeds the configured size limit.

    Checked before any call to the object store.
    """

    def __init__(
        self,
        max_bytes: int,
        actual_bytes: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        max_mb = max_bytes / (1024 * 1024)
        message = f"Image exceeds the maximum size of {max_mb:.0f}MB"
        ctx = context or {}
        ctx["max_bytes"] = max_bytes
        if actual_bytes is not None:
            ctx["actual_bytes"] = actual_bytes
        super().__init__(message=message, context=ctx)
        self.max_bytes = max_bytes
        self.actual_bytes = actual_bytes


class StorageError(PetServicesError):
    """
    Raised when the object store fails after all retry attempts.

    HTTP:    500 Internal Server Error
    The last underlying error is kept in context (logged, not returned).
    """

    def __init__(
        self,
        message: str = "Image storage is temporarily unavailable. Please try again.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ConfigurationError(PetServicesError):
    """
    A required external setting is missing.

    Raised per operation (not at startup) so the rest of the API keeps
    serving.
    """

    def __init__(
        self,
        setting: str,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["setting"] = setting
        super().__init__(
            message=message or f"Server configuration error: {setting} is not configured",
            context=ctx,
        )
        self.setting = setting


class DatabaseError(PetServicesError):
    """
    Raised when database operations fail unexpectedly.

    The message returned to the client is always generic; driver errors,
    SQL text and constraint names stay in the server log.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class IntegrationError(PetServicesError):
    """The outbound webhook returned an error or was unreachable after retries."""

    def __init__(
        self,
        message: str = "The scraping service is unavailable. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class InternalError(PetServicesError):
    """Catch-all for failures that fit no other category."""

    def __init__(
        self,
        message: str = "Internal server error",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
