"""Typed error kinds raised by the key store, validator and rate limiter.

Each error carries the HTTP status and the public message returned at the
boundary. Internal detail (digests, storage error text) never goes into
``message``; log it at the raise site instead.
"""

from __future__ import annotations

from starlette.requests import Request
from starlette.responses import JSONResponse

from keygate.config import settings


class KeygateError(Exception):
    """Base class for all admission and credential errors."""

    status_code: int = 500
    default_message: str = "Internal error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(KeygateError):
    """No usable credential or session was presented."""

    status_code = 401
    default_message = "Authentication required"


class InvalidCredential(Unauthenticated):
    """An API key was presented but did not authenticate."""

    default_message = "Invalid API key"


class Malformed(InvalidCredential):
    default_message = "Invalid API key format"


class UnknownKey(InvalidCredential):
    default_message = "Invalid API key"


class Revoked(InvalidCredential):
    default_message = "API key has been revoked"


class Expired(InvalidCredential):
    default_message = "API key has expired"


class NotFound(KeygateError):
    status_code = 404
    default_message = "API key not found"


class Forbidden(KeygateError):
    status_code = 403
    default_message = "You can only manage your own API keys"


class InvalidKeyId(KeygateError):
    status_code = 400
    default_message = "Invalid API key ID"


class AlreadyRevoked(KeygateError):
    status_code = 400
    default_message = "API key is already revoked"


class QuotaExceeded(KeygateError):
    status_code = 400
    default_message = (
        "You already have the maximum number of active API keys. "
        "Please revoke one before creating a new one."
    )


class RateLimited(KeygateError):
    """The only retryable kind: the caller may try again after ``retry_after``."""

    status_code = 429
    default_message = "You have exceeded the rate limit. Please wait before trying again."

    def __init__(self, retry_after: int, message: str | None = None):
        self.retry_after = retry_after
        super().__init__(message)


class InfrastructureFailure(KeygateError):
    status_code = 503
    default_message = "Service temporarily unavailable"


def _public_message(exc: KeygateError) -> str:
    if settings.UNIFORM_KEY_ERRORS and isinstance(exc, (UnknownKey, Revoked, Expired)):
        return InvalidCredential.default_message
    return exc.message


def error_response(exc: KeygateError, headers: dict[str, str] | None = None) -> JSONResponse:
    """Build the boundary JSON response for a typed error."""
    headers = dict(headers or {})
    if isinstance(exc, RateLimited):
        headers["Retry-After"] = str(exc.retry_after)
        content = {
            "error": "Too many requests",
            "message": exc.message,
            "retryAfter": exc.retry_after,
        }
    else:
        content = {"error": _public_message(exc)}
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


async def keygate_error_handler(request: Request, exc: KeygateError) -> JSONResponse:
    """FastAPI exception handler for :class:`KeygateError`."""
    return error_response(exc)
