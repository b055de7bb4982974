"""Keygate Python Client SDK."""

from keygate_client._async import AsyncKeygateClient
from keygate_client._sync import KeygateClient
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

__all__ = [
    "KeygateClient",
    "AsyncKeygateClient",
    "KeygateClientError",
    "AuthenticationError",
    "AuthorizationError",
    "ValidationError",
    "NotFoundError",
    "RateLimitError",
    "ServerError",
    "ApiKey",
    "ApiKeyCreated",
    "ApiKeyList",
    "KeyOwner",
    "KeyValidation",
    "HealthStatus",
]
