"""Synchronous Keygate client built on httpx."""

from __future__ import annotations

import httpx

from keygate_client._base import (
    BaseClientConfig,
    _parse_api_key,
    _parse_api_key_created,
    _parse_api_key_list,
    _parse_health,
    _parse_validation,
    raise_for_status,
)
from keygate_client.models import (
    ApiKey,
    ApiKeyCreated,
    ApiKeyList,
    HealthStatus,
    KeyValidation,
)


class KeygateClient(BaseClientConfig):
    """Synchronous client for the Keygate API.

    Usage::

        with KeygateClient("http://localhost:8000", session_token=token) as client:
            created = client.create_api_key("ci")
            result = client.validate_key(created.key)
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        session_token: str | None = None,
        **httpx_kwargs,
    ):
        super().__init__(base_url, session_token)
        self._client = httpx.Client(**httpx_kwargs)

    # -- context manager ------------------------------------------------

    def __enter__(self) -> KeygateClient:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    # -- helpers --------------------------------------------------------

    def _get(self, path: str, *, headers: dict | None = None) -> httpx.Response:
        resp = self._client.get(self._url(path), headers=headers or self._auth_headers())
        raise_for_status(resp)
        return resp

    def _post(self, path: str, *, json: dict | None = None) -> httpx.Response:
        resp = self._client.post(self._url(path), headers=self._auth_headers(), json=json)
        raise_for_status(resp)
        return resp

    def _delete(self, path: str) -> httpx.Response:
        resp = self._client.delete(self._url(path), headers=self._auth_headers())
        raise_for_status(resp)
        return resp

    # ===================================================================
    # Key validation
    # ===================================================================

    def validate_key(self, api_key: str) -> KeyValidation:
        """Validate ``api_key`` and return its name and owner.

        Raises AuthenticationError for malformed, unknown, revoked or expired keys.
        """
        resp = self._get("/api/validate-key", headers=self._key_headers(api_key))
        return _parse_validation(resp.json())

    # ===================================================================
    # API Key endpoints (session token required)
    # ===================================================================

    def create_api_key(self, name: str, *, expires_in_days: int | None = None) -> ApiKeyCreated:
        resp = self._post("/api/keys", json=self._create_body(name, expires_in_days))
        return _parse_api_key_created(resp.json())

    def list_api_keys(self) -> ApiKeyList:
        resp = self._get("/api/keys")
        return _parse_api_key_list(resp.json())

    def get_api_key(self, key_id: str) -> ApiKey:
        resp = self._get(f"/api/keys/{key_id}")
        return _parse_api_key(resp.json())

    def revoke_api_key(self, key_id: str) -> ApiKey:
        resp = self._delete(f"/api/keys/{key_id}")
        return _parse_api_key(resp.json())

    # ===================================================================
    # Health
    # ===================================================================

    def health(self) -> HealthStatus:
        resp = self._client.get(self._url("/health"))
        raise_for_status(resp)
        return _parse_health(resp.json())
