"""Bearer API key validation endpoint.

Usage: ``GET /api/validate-key`` with ``Authorization: Bearer dpx_...``.
Returns the key and its owner when valid, 401 otherwise.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from keygate.context import AuthenticatedKey
from keygate.dependencies import require_api_key
from keygate.models.api_key import KeyOwnerResponse, ValidateKeyResponse

router = APIRouter()


@router.get("/validate-key", response_model=ValidateKeyResponse)
async def validate_api_key(api_key: AuthenticatedKey = Depends(require_api_key)):
    return ValidateKeyResponse(
        key_name=api_key.key_name,
        key_prefix=api_key.key_prefix,
        user=KeyOwnerResponse(
            id=api_key.owner.id,
            email=api_key.owner.email,
            username=api_key.owner.username,
        ),
    )
