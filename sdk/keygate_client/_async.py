"""Asynchronous Keygate client built on httpx."""

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


class AsyncKeygateClient(BaseClientConfig):
    """Asynchronous client for the Keygate API.

    Usage::

        async with AsyncKeygateClient("http://localhost:8000") as client:
            result = await client.validate_key(request_api_key)
            owner_id = result.user.id
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        session_token: str | None = None,
        **httpx_kwargs,
    ):
        super().__init__(base_url, session_token)
        self._client = httpx.AsyncClient(**httpx_kwargs)

    # -- context manager ------------------------------------------------

    async def __aenter__(self) -> AsyncKeygateClient:
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    # -- helpers --------------------------------------------------------

    async def _get(self, path: str, *, headers: dict | None = None) -> httpx.Response:
        resp = await self._client.get(self._url(path), headers=headers or self._auth_headers())
        raise_for_status(resp)
        return resp

    async def _post(self, path: str, *, json: dict | None = None) -> httpx.Response:
        resp = await self._client.post(self._url(path), headers=self._auth_headers(), json=json)
        raise_for_status(resp)
        return resp

    async def _delete(self, path: str) -> httpx.Response:
        resp = await self._client.delete(self._url(path), headers=self._auth_headers())
        raise_for_status(resp)
        return resp

    # ===================================================================
    # Key validation
    # ===================================================================

    async def validate_key(self, api_key: str) -> KeyValidation:
        resp = await self._get("/api/validate-key", headers=self._key_headers(api_key))
        return _parse_validation(resp.json())

    # ===================================================================
    # API Key endpoints (session token required)
    # ===================================================================

    async def create_api_key(
        self, name: str, *, expires_in_days: int | None = None
    ) -> ApiKeyCreated:
        resp = await self._post("/api/keys", json=self._create_body(name, expires_in_days))
        return _parse_api_key_created(resp.json())

    async def list_api_keys(self) -> ApiKeyList:
        resp = await self._get("/api/keys")
        return _parse_api_key_list(resp.json())

    async def get_api_key(self, key_id: str) -> ApiKey:
        resp = await self._get(f"/api/keys/{key_id}")
        return _parse_api_key(resp.json())

    async def revoke_api_key(self, key_id: str) -> ApiKey:
        resp = await self._delete(f"/api/keys/{key_id}")
        return _parse_api_key(resp.json())

    # ===================================================================
    # Health
    # ===================================================================

    async def health(self) -> HealthStatus:
        resp = await self._client.get(self._url("/health"))
        raise_for_status(resp)
        return _parse_health(resp.json())
