"""Shared configuration and error-mapping logic for sync and async clients."""

from __future__ import annotations

import httpx

from keygate_client.exceptions import (
    AuthenticationError,
    AuthorizationError,
    KeygateClientError,
    NotFoundError,
    RateLimitError,
    ServerError,
    ValidationError,
)
from keygate_client.models import (
    ApiKey,
    ApiKeyCreated,
    ApiKeyList,
    HealthStatus,
    KeyOwner,
    KeyValidation,
)

_STATUS_MAP: dict[int, type[KeygateClientError]] = {
    400: ValidationError,
    401: AuthenticationError,
    403: AuthorizationError,
    404: NotFoundError,
    422: ValidationError,
}


def _retry_after(response: httpx.Response, body: dict) -> int | None:
    value = body.get("retryAfter", response.headers.get("retry-after"))
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def raise_for_status(response: httpx.Response) -> None:
    """Map non-2xx responses to typed exceptions.

    Keygate errors carry ``{"error": ...}``; request validation failures use
    FastAPI's ``{"detail": ...}``.
    """
    if response.is_success:
        return

    code = response.status_code
    try:
        body = response.json()
        if not isinstance(body, dict):
            body = {}
    except ValueError:
        body = {}

    detail = body.get("message") if code == 429 else None
    detail = detail or body.get("error") or body.get("detail") or response.text
    if not isinstance(detail, str):
        detail = str(detail)

    if code == 429:
        raise RateLimitError(
            detail, status_code=code, detail=detail, retry_after=_retry_after(response, body)
        )
    if code in _STATUS_MAP:
        raise _STATUS_MAP[code](detail, status_code=code, detail=detail)
    if code >= 500:
        raise ServerError(detail, status_code=code, detail=detail)
    raise KeygateClientError(detail, status_code=code, detail=detail)


# ---------------------------------------------------------------------------
# Response parsers
# ---------------------------------------------------------------------------


def _optional_str(value) -> str | None:
    return str(value) if value else None


def _parse_api_key(data: dict) -> ApiKey:
    return ApiKey(
        id=data["id"],
        name=data["name"],
        key_prefix=data["keyPrefix"],
        created_at=str(data["createdAt"]),
        revoked=data.get("revoked", False),
        last_used_at=_optional_str(data.get("lastUsedAt")),
        expires_at=_optional_str(data.get("expiresAt")),
        revoked_at=_optional_str(data.get("revokedAt")),
    )


def _parse_api_key_created(data: dict) -> ApiKeyCreated:
    return ApiKeyCreated(
        id=data["id"],
        name=data["name"],
        key_prefix=data["keyPrefix"],
        key=data["key"],
        created_at=str(data["createdAt"]),
        expires_at=_optional_str(data.get("expiresAt")),
    )


def _parse_api_key_list(data: dict) -> ApiKeyList:
    return ApiKeyList(data=[_parse_api_key(k) for k in data["data"]])


def _parse_validation(data: dict) -> KeyValidation:
    user = data["user"]
    return KeyValidation(
        valid=data["valid"],
        key_name=data["keyName"],
        key_prefix=data["keyPrefix"],
        user=KeyOwner(id=user["id"], email=user.get("email"), username=user.get("username")),
    )


def _parse_health(data: dict) -> HealthStatus:
    return HealthStatus(
        status=data["status"],
        timestamp=data["timestamp"],
        database=data["database"],
        rate_limit_store=data.get("rate_limit_store"),
    )


class BaseClientConfig:
    """Mixin providing URL helpers, header building, and session storage.

    The stored token is the upstream session token used for key management;
    API keys being validated are passed per call instead.
    """

    def __init__(self, base_url: str = "http://localhost:8000", session_token: str | None = None):
        self._base_url = base_url.rstrip("/")
        self._session_token = session_token

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    def _auth_headers(self) -> dict[str, str]:
        if not self._session_token:
            return {}
        return {"Authorization": f"Bearer {self._session_token}"}

    @staticmethod
    def _key_headers(api_key: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {api_key}"}

    @staticmethod
    def _create_body(name: str, expires_in_days: int | None) -> dict:
        body: dict = {"name": name}
        if expires_in_days is not None:
            body["expiresInDays"] = expires_in_days
        return body

    def set_token(self, token: str) -> None:
        """Set the session token used for key management requests."""
        self._session_token = token

    def clear_token(self) -> None:
        """Clear the stored session token."""
        self._session_token = None
