"""API key management for the signed-in owner.

Every route requires an upstream session (see ``get_current_owner``) and only
ever touches the caller's own keys.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from keygate.dependencies import get_current_owner, get_db
from keygate.errors import InvalidKeyId
from keygate.models.api_key import (
    ApiKeyCreatedResponse,
    ApiKeyListResponse,
    ApiKeyResponse,
    CreateApiKeyRequest,
)
from keygate.services import api_key as api_key_service

router = APIRouter()


def _parse_key_id(key_id: str) -> str:
    try:
        return str(uuid.UUID(key_id))
    except ValueError:
        raise InvalidKeyId()


@router.post("", response_model=ApiKeyCreatedResponse, status_code=201)
async def create_api_key(
    body: CreateApiKeyRequest,
    owner: dict = Depends(get_current_owner),
    conn=Depends(get_db),
):
    """Create a new API key. The full key is returned only once."""
    result = await api_key_service.create_key(
        conn,
        owner=owner,
        name=body.name,
        expires_in_days=body.expires_in_days,
    )
    return ApiKeyCreatedResponse(**result)


@router.get("", response_model=ApiKeyListResponse)
async def list_api_keys(
    owner: dict = Depends(get_current_owner),
    conn=Depends(get_db),
):
    """List the caller's API keys, newest first (metadata only, no secrets)."""
    keys = await api_key_service.list_keys(conn, owner["id"])
    return ApiKeyListResponse(data=[ApiKeyResponse(**k) for k in keys])


@router.get("/{key_id}", response_model=ApiKeyResponse)
async def get_api_key(
    key_id: str,
    owner: dict = Depends(get_current_owner),
    conn=Depends(get_db),
):
    key = await api_key_service.get_key(conn, _parse_key_id(key_id), owner["id"])
    return ApiKeyResponse(**key)


@router.delete("/{key_id}", response_model=ApiKeyResponse)
async def revoke_api_key(
    key_id: str,
    owner: dict = Depends(get_current_owner),
    conn=Depends(get_db),
):
    """Revoke one of the caller's keys. Revoking twice is an error."""
    key = await api_key_service.revoke_key(conn, _parse_key_id(key_id), owner["id"])
    return ApiKeyResponse(**key)
