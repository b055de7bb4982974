from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake-case attributes, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateApiKeyRequest(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    expires_in_days: int | None = Field(default=None, ge=1, le=365)


class ApiKeyResponse(CamelModel):
    id: str
    name: str
    key_prefix: str
    created_at: datetime
    last_used_at: datetime | None = None
    expires_at: datetime | None = None
    revoked: bool = False
    revoked_at: datetime | None = None


class ApiKeyCreatedResponse(CamelModel):
    id: str
    name: str
    key_prefix: str
    key: str  # Full key shown only on creation
    created_at: datetime
    expires_at: datetime | None = None


class ApiKeyListResponse(BaseModel):
    data: list[ApiKeyResponse]


class KeyOwnerResponse(BaseModel):
    id: str
    email: str | None = None
    username: str | None = None


class ValidateKeyResponse(CamelModel):
    valid: bool = True
    key_name: str
    key_prefix: str
    user: KeyOwnerResponse
