"""Typed exception hierarchy for Keygate API errors."""

from __future__ import annotations


class KeygateClientError(Exception):
    """Base exception for all Keygate errors."""

    def __init__(self, message: str, status_code: int, detail: str | None = None):
        self.status_code = status_code
        self.detail = detail or message
        super().__init__(message)


class ValidationError(KeygateClientError):
    """Raised on 400 or 422 responses (bad request, quota, already revoked)."""


class AuthenticationError(KeygateClientError):
    """Raised on 401 responses (missing session, or a bad/revoked/expired key)."""


class AuthorizationError(KeygateClientError):
    """Raised on 403 responses (the key belongs to someone else)."""


class NotFoundError(KeygateClientError):
    """Raised on 404 responses (resource not found)."""


class RateLimitError(KeygateClientError):
    """Raised on 429 responses. ``retry_after`` is in seconds."""

    def __init__(
        self,
        message: str,
        status_code: int,
        detail: str | None = None,
        retry_after: int | None = None,
    ):
        self.retry_after = retry_after
        super().__init__(message, status_code=status_code, detail=detail)


class ServerError(KeygateClientError):
    """Raised on 5xx responses (including 503 when a backing store is down)."""
