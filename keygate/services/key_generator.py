"""API key generation.

Keys look like ``dpx_<64 lowercase hex chars>``: a literal prefix, an
underscore, and 32 bytes from :mod:`secrets`. Only the SHA-256 digest is
ever stored; the first 12 characters are kept for display.
"""

from __future__ import annotations

import hashlib
import secrets
from typing import NamedTuple

from keygate.config import settings

SECRET_BYTES = 32
DISPLAY_PREFIX_LENGTH = 12


class GeneratedKey(NamedTuple):
    secret: str
    digest: str
    display_prefix: str


def key_marker(prefix: str | None = None) -> str:
    """Return the literal every key starts with, e.g. ``dpx_``."""
    return f"{prefix or settings.API_KEY_PREFIX}_"


def hash_key(raw_key: str) -> str:
    """Return the hex-encoded SHA-256 hash of a raw API key."""
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()


def key_length(prefix: str | None = None) -> int:
    return len(key_marker(prefix)) + SECRET_BYTES * 2


def generate(prefix: str | None = None) -> GeneratedKey:
    """Generate a new key. No side effects; nothing is stored."""
    secret = key_marker(prefix) + secrets.token_hex(SECRET_BYTES)
    return GeneratedKey(
        secret=secret,
        digest=hash_key(secret),
        display_prefix=secret[:DISPLAY_PREFIX_LENGTH],
    )
