"""API key management and validation.

Handles creation, listing, revocation and validation of API keys. Only the
SHA-256 hash of a key is stored; the full key is returned once on creation
and never again. Revocation is terminal, and expiry is evaluated on every
validation rather than stored as a state change.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timedelta

from keygate.config import settings
from keygate.context import AuthenticatedKey, KeyOwner
from keygate.db import api_keys as db_api_keys
from keygate.db.pool import get_connection
from keygate.errors import (
    AlreadyRevoked,
    Expired,
    Forbidden,
    InfrastructureFailure,
    Malformed,
    NotFound,
    QuotaExceeded,
    Revoked,
    UnknownKey,
)
from keygate.services import key_generator

logger = logging.getLogger(__name__)

_background_tasks: set[asyncio.Task] = set()


def max_active_keys_for(plan: str | None) -> int:
    """Maximum simultaneously non-revoked keys for a subscription plan."""
    return settings.MAX_ACTIVE_KEYS_BY_PLAN.get(plan or "", settings.DEFAULT_MAX_ACTIVE_KEYS)


async def create_key(
    conn,
    owner: dict,
    name: str,
    expires_in_days: int | None = None,
) -> dict:
    """Create a new API key for ``owner``.

    The count of the owner's live keys and the insert happen in one
    transaction (see :func:`keygate.db.api_keys.create_api_key_within_limit`).

    Returns:
        The key metadata plus ``key``, the plaintext secret (shown once only).

    Raises:
        QuotaExceeded: If the owner already holds their plan's maximum.
        InfrastructureFailure: The key store could not be written.
    """
    generated = key_generator.generate()
    now = datetime.utcnow()
    expires_at = now + timedelta(days=expires_in_days) if expires_in_days else None

    try:
        row = await db_api_keys.create_api_key_within_limit(
            conn,
            id=str(uuid.uuid4()),
            owner_id=owner["id"],
            name=name,
            key_prefix=generated.display_prefix,
            key_hash=generated.digest,
            max_active=max_active_keys_for(owner.get("plan")),
            created_at=now,
            expires_at=expires_at,
        )
    except Exception:
        logger.exception("API key insert failed for owner %s", owner["id"])
        raise InfrastructureFailure()
    if row is None:
        logger.info("Key quota reached for owner %s", owner["id"])
        raise QuotaExceeded()

    logger.info("Created API key %s for owner %s", row["id"], owner["id"])
    result = dict(row)
    result["key"] = generated.secret
    return result


async def list_keys(conn, owner_id: str) -> list[dict]:
    try:
        return await db_api_keys.list_api_keys_for_owner(conn, owner_id)
    except Exception:
        logger.exception("Listing API keys failed for owner %s", owner_id)
        raise InfrastructureFailure()


async def get_key(conn, key_id: str, owner_id: str) -> dict:
    """Fetch one key's metadata on behalf of ``owner_id``.

    Raises:
        NotFound: No key with that id.
        Forbidden: The key belongs to another owner.
    """
    try:
        row = await db_api_keys.get_api_key_by_id(conn, key_id)
    except Exception:
        logger.exception("API key fetch failed for %s", key_id)
        raise InfrastructureFailure()
    if row is None:
        raise NotFound()
    if row["owner_id"] != owner_id:
        raise Forbidden()
    return row


async def revoke_key(conn, key_id: str, owner_id: str) -> dict:
    """Revoke a key. A second revoke is an error, not a no-op.

    Raises:
        NotFound, Forbidden: As for :func:`get_key`.
        AlreadyRevoked: The key is (or concurrently became) revoked.
    """
    row = await get_key(conn, key_id, owner_id)
    if row["revoked"]:
        raise AlreadyRevoked()

    revoked_at = datetime.utcnow()
    try:
        updated = await db_api_keys.revoke_api_key(conn, key_id, revoked_at)
    except Exception:
        logger.exception("API key revoke failed for %s", key_id)
        raise InfrastructureFailure()
    if not updated:
        raise AlreadyRevoked()

    logger.info("Revoked API key %s for owner %s", key_id, owner_id)
    return {**row, "revoked": True, "revoked_at": revoked_at}


async def validate_key(conn, raw_key: str) -> AuthenticatedKey:
    """Authenticate a bearer API key.

    Raises:
        Malformed: The token does not start with the key prefix.
        UnknownKey: No key has this digest.
        Revoked: The key was revoked.
        Expired: The key's expires_at has passed.
        InfrastructureFailure: The key store could not be read.
    """
    marker = key_generator.key_marker()
    if not raw_key.startswith(marker):
        raise Malformed(f"Invalid API key format. Keys should start with '{marker}'")

    try:
        row = await db_api_keys.get_api_key_by_hash(conn, key_generator.hash_key(raw_key))
    except Exception:
        logger.exception("API key lookup failed")
        raise InfrastructureFailure()

    if row is None:
        logger.info("Rejected unknown API key %s", raw_key[: key_generator.DISPLAY_PREFIX_LENGTH])
        raise UnknownKey()
    if row["revoked"]:
        logger.info("Rejected revoked API key %s", row["key_prefix"])
        raise Revoked()
    if row.get("expires_at") is not None and row["expires_at"] <= datetime.utcnow():
        logger.info("Rejected expired API key %s", row["key_prefix"])
        raise Expired()

    touch_last_used(row["id"])

    return AuthenticatedKey(
        key_id=row["id"],
        key_name=row["name"],
        key_prefix=row["key_prefix"],
        owner=KeyOwner(
            id=row["owner_id"],
            email=row.get("owner_email"),
            username=row.get("owner_username"),
        ),
    )


async def _write_last_used(key_id: str) -> None:
    try:
        async with get_connection() as conn:
            await db_api_keys.touch_last_used(conn, key_id, datetime.utcnow())
    except Exception:
        logger.exception("Failed to record last use of API key %s", key_id)


def touch_last_used(key_id: str) -> None:
    """Record key usage in the background; the caller never waits on it."""
    task = asyncio.create_task(_write_last_used(key_id))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
