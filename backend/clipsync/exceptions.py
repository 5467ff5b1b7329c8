"""
ClipSync Backend — Custom Exception Hierarchy
==============================================

What:  Application-specific exceptions for each failure category.
Why:   Services raise these; global handlers in main.py map them to HTTP
       status codes and a consistent JSON error body. Internal details stay
       in `context`, which is logged but not returned for server-side errors.
Who:   Raised by services, the auth dependency, and middleware.

Exception Hierarchy:
    ClipSyncError (base)
    ├── ValidationError               → 400 Bad Request
    │   ├── ContentTooLargeError      → 413 Payload Too Large
    │   ├── InvalidContentTypeError   → 400
    │   └── UnparseableTimestampError → 400
    ├── AuthError                     → 401 Unauthorized
    │   ├── InvalidTokenError         → 401
    │   ├── NotRefreshableError       → 401
    │   └── AccountDisabledError      → 403 Forbidden
    ├── ConflictError                 → 409 Conflict
    ├── NotFoundError                 → 404 Not Found
    ├── DatabaseError                 → 500 (opaque)
    ├── HashingError                  → 500 (opaque)
    └── RateLimitExceededError        → 429 Too Many Requests

Partial failure inside a batch sync is NOT an exception: it is reported as
per-item reasons inside a successful response.
"""

from typing import Any, Dict, Optional


class ClipSyncError(Exception):
    """
    Base exception for all ClipSync application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged; returned only for client errors)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(ClipSyncError):
    """
    Raised when client input fails a business rule.

    When:    Bad username/password shape, invalid type, oversize content,
             unparseable timestamp, empty batch.
    HTTP:    400 Bad Request (schema-level failures stay FastAPI's 422)
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


class ContentTooLargeError(ValidationError):
    """Content byte length exceeds the configured maximum."""

    def __init__(self, size: int, max_size: int):
        super().__init__(
            message="content size exceeds limit",
            field="content",
            context={"size": size, "max_size": max_size},
        )
        self.size = size
        self.max_size = max_size


class InvalidContentTypeError(ValidationError):
    """Clipboard type is not one of text, image, file."""

    def __init__(self, content_type: str):
        super().__init__(
            message=f"unsupported content type '{content_type}'",
            field="type",
            context={"allowed_types": ["text", "image", "file"]},
        )
        self.content_type = content_type


class UnparseableTimestampError(ValidationError):
    """
    Raised when a client timestamp matches none of the accepted formats.

    Carries the original string and how many patterns were attempted so the
    client can see exactly what was rejected.
    """

    def __init__(self, value: str, attempted: int):
        super().__init__(
            message=f"unable to parse timestamp '{value}' (tried {attempted} formats)",
            field="timestamp",
            context={"value": value, "attempted_formats": attempted},
        )
        self.value = value
        self.attempted = attempted


class AuthError(ClipSyncError):
    """
    Raised when a credential is missing, invalid, or expired.

    HTTP:    401 Unauthorized
    Never retried silently; the client must re-authenticate.
    """

    def __init__(
        self,
        message: str = "user not authenticated",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class InvalidTokenError(AuthError):
    """Token signature, shape, or expiry check failed."""

    def __init__(self, message: str = "invalid or expired token"):
        super().__init__(message=message)


class NotRefreshableError(AuthError):
    """Token still has more than the refresh threshold of lifetime left."""

    def __init__(self, remaining_seconds: int):
        super().__init__(
            message="token is not eligible for refresh yet",
            context={"remaining_seconds": remaining_seconds},
        )
        self.remaining_seconds = remaining_seconds


class AccountDisabledError(AuthError):
    """Credentials were correct but the account is inactive. HTTP 403."""

    def __init__(self):
        super().__init__(message="your account has been disabled")


class ConflictError(ClipSyncError):
    """
    Raised when registration would duplicate a username or email.

    HTTP:    409 Conflict
    """

    def __init__(
        self,
        message: str = "resource already exists",
        field: Optional[str] = None,
    ):
        ctx = {"field": field} if field else {}
        super().__init__(message=message, context=ctx)
        self.field = field


class NotFoundError(ClipSyncError):
    """
    Raised when a requested resource does not exist for the caller.

    HTTP:    404 Not Found

    Ownership mismatches raise this too, with the same message, so a caller
    cannot tell another user's item apart from a missing one. The message
    deliberately omits the requested id.
    """

    def __init__(
        self,
        resource: str = "resource",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["resource"] = resource
        super().__init__(message=f"{resource} not found", context=ctx)
        self.resource = resource


class DatabaseError(ClipSyncError):
    """
    Raised when a store operation fails unexpectedly.

    HTTP:    500 Internal Server Error
    The response message is always generic; details are logged server-side.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class HashingError(ClipSyncError):
    """Password hashing or salt generation failed (entropy source, bcrypt). HTTP 500."""

    def __init__(
        self,
        message: str = "failed to hash password",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(ClipSyncError):
    """Client exceeded the per-IP request rate limit. HTTP 429."""

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
