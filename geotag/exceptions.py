"""
GeoTag Backend - Custom Exception Hierarchy
=============================================

What:  Application-specific exceptions, one per failure kind the API reports.
Why:   Services raise at the point of detection; global handlers registered in
       main.py turn each type into a stable JSON error body and status code.
How:   Every exception carries a user-safe `message`, a `context` dict, and a
       class-level `error_code` (the machine-checkable kind in responses).

Exception Hierarchy:
    GeoTagError (base)
    ├── ValidationError            → 400 validation_error
    │   └── MissingImageError      → 400 missing_image
    ├── DuplicateKeyError          → 400 duplicate_key
    ├── UnauthenticatedError       → 401 unauthenticated
    │   ├── InvalidTokenError      → 401 invalid_token
    │   └── ExpiredTokenError      → 401 token_expired
    ├── NotFoundError              → 404 not_found
    ├── RateLimitExceededError     → 429 rate_limit_exceeded
    ├── FileStorageError           → 500 server_error
    └── DatabaseError              → 500 server_error (the "Fatal" kind)

InvalidTokenError and ExpiredTokenError stay distinct so the client can pick
between a silent re-login and a hard logout, but the access gate treats both
as unauthenticated because they subclass UnauthenticatedError.
"""

from typing import Any, Dict, List, Optional


class GeoTagError(Exception):
    """
    Base exception for all GeoTag application errors.

    Attributes:
        message:  User-facing description (safe to return in an API response)
        context:  Extra detail; handlers decide what of it reaches the client
    """

    error_code = "server_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(GeoTagError):
    """
    Raised when client input fails validation.

    `errors` lists every violated field as {"field": ..., "message": ...}
    so the client can highlight all of them at once, not just the first.

    Example response:
        {
            "error": "validation_error",
            "message": "Validation failed: latitude",
            "details": {"errors": [{"field": "latitude",
                                    "message": "Latitude must be between -90 and 90"}]}
        }
    """

    error_code = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        errors: Optional[List[Dict[str, str]]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        self.errors = list(errors or [])
        if field and not self.errors:
            self.errors.append({"field": field, "message": message})
        if field:
            ctx["field"] = field
        if self.errors:
            ctx["errors"] = self.errors
        super().__init__(message=message, context=ctx)
        self.field = field

    @property
    def fields(self) -> List[str]:
        return [e["field"] for e in self.errors]


class MissingImageError(ValidationError):
    """Raised when an entry is created without an image reference."""

    error_code = "missing_image"

    def __init__(self, message: str = "Image is required"):
        super().__init__(message=message, field="image")


class DuplicateKeyError(GeoTagError):
    """
    Raised when a unique field collides with an existing record.

    Only email uniqueness exists today. HTTP 400, since the client can fix
    it by choosing another value.
    """

    error_code = "duplicate_key"

    def __init__(
        self,
        field: str = "email",
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["field"] = field
        super().__init__(
            message=message or f"An account with this {field} already exists",
            context=ctx,
        )
        self.field = field


class UnauthenticatedError(GeoTagError):
    """
    Raised when a request carries no usable identity.

    Covers: missing bearer token, bad credentials at login, and tokens that
    resolve to a user who no longer exists. The message stays generic.
    """

    error_code = "unauthenticated"

    def __init__(
        self,
        message: str = "Authentication required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class InvalidTokenError(UnauthenticatedError):
    """Token is malformed, has a bad signature, or carries no usable subject."""

    error_code = "invalid_token"

    def __init__(
        self,
        message: str = "Invalid token. Please log in again.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ExpiredTokenError(UnauthenticatedError):
    """Token signature is valid but its expiry is in the past."""

    error_code = "token_expired"

    def __init__(
        self,
        message: str = "Token expired. Please log in again.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(GeoTagError):
    """
    Raised when a requested resource does not exist for the caller.

    For entries, "absent" and "owned by someone else" produce the exact same
    error so entry ids of other users cannot be discovered. The id is therefore
    never echoed into the message.
    """

    error_code = "not_found"

    def __init__(
        self,
        resource: str = "resource",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["resource"] = resource
        super().__init__(message=f"{resource.capitalize()} not found", context=ctx)
        self.resource = resource


class FileStorageError(GeoTagError):
    """Could not write or read an uploaded file (disk full, permissions)."""

    error_code = "server_error"

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(GeoTagError):
    """
    Raised when a database operation fails unexpectedly.

    The core never retries; the failure propagates for that call only.
    The client always gets a generic message, the context is logged.
    """

    error_code = "server_error"

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(GeoTagError):
    """Raised when a client exceeds the per-IP request rate limit."""

    error_code = "rate_limit_exceeded"

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
