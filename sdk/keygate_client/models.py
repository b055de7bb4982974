"""Dataclass response models for the Keygate API."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ApiKey:
    id: str
    name: str
    key_prefix: str
    created_at: str
    revoked: bool = False
    last_used_at: str | None = None
    expires_at: str | None = None
    revoked_at: str | None = None


@dataclass
class ApiKeyCreated:
    id: str
    name: str
    key_prefix: str
    key: str
    created_at: str
    expires_at: str | None = None


@dataclass
class ApiKeyList:
    data: list[ApiKey]


@dataclass
class KeyOwner:
    id: str
    email: str | None = None
    username: str | None = None


@dataclass
class KeyValidation:
    valid: bool
    key_name: str
    key_prefix: str
    user: KeyOwner


@dataclass
class HealthStatus:
    status: str
    timestamp: str
    database: str
    rate_limit_store: str | None = None
