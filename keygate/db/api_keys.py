"""Database layer for API key operations.

All functions are async, take a connection (conn) as the first parameter,
and use parameterized queries with %s placeholders. ``key_hash`` is only ever
selected by :func:`get_api_key_by_hash`; listings never return it.
"""

from __future__ import annotations

from datetime import datetime

import aiomysql

from keygate.db.pool import transaction

_METADATA_COLUMNS = (
    "id, owner_id, name, key_prefix, created_at, last_used_at, expires_at, revoked, revoked_at"
)


def _normalize(row: dict | None) -> dict | None:
    if row is None:
        return None
    row = dict(row)
    row["revoked"] = bool(row.get("revoked"))
    return row


async def create_api_key_within_limit(
    conn,
    id: str,
    owner_id: str,
    name: str,
    key_prefix: str,
    key_hash: str,
    max_active: int,
    created_at: datetime,
    expires_at: datetime | None = None,
) -> dict | None:
    """Insert a key unless the owner already holds ``max_active`` live keys.

    The owner row is locked for the duration of the transaction so that
    concurrent creations for the same owner are serialized between the count
    and the insert. Returns the new key's metadata, or None when the owner is
    at the limit (nothing is written in that case).
    """
    async with transaction(conn):
        async with conn.cursor(aiomysql.DictCursor) as cur:
            await cur.execute("SELECT id FROM owners WHERE id = %s FOR UPDATE", (owner_id,))
            await cur.fetchone()

            await cur.execute(
                "SELECT COUNT(*) AS cnt FROM api_keys WHERE owner_id = %s AND revoked = 0",
                (owner_id,),
            )
            active = (await cur.fetchone())["cnt"]
            if active >= max_active:
                return None

            await cur.execute(
                """
                INSERT INTO api_keys (id, owner_id, name, key_prefix, key_hash, created_at, expires_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                """,
                (id, owner_id, name, key_prefix, key_hash, created_at, expires_at),
            )

    return {
        "id": id,
        "owner_id": owner_id,
        "name": name,
        "key_prefix": key_prefix,
        "created_at": created_at,
        "last_used_at": None,
        "expires_at": expires_at,
        "revoked": False,
        "revoked_at": None,
    }


async def get_api_key_by_hash(conn, key_hash: str) -> dict | None:
    """Look up a key by its SHA-256 hash, joined with its owner's public fields.

    Revoked and expired keys are returned too; the validator decides.
    """
    async with conn.cursor(aiomysql.DictCursor) as cur:
        await cur.execute(
            """
            SELECT k.id, k.owner_id, k.name, k.key_prefix, k.expires_at, k.revoked,
                   o.email AS owner_email, o.username AS owner_username
            FROM api_keys k
            JOIN owners o ON o.id = k.owner_id
            WHERE k.key_hash = %s
            """,
            (key_hash,),
        )
        return _normalize(await cur.fetchone())


async def get_api_key_by_id(conn, key_id: str) -> dict | None:
    async with conn.cursor(aiomysql.DictCursor) as cur:
        await cur.execute(
            f"SELECT {_METADATA_COLUMNS} FROM api_keys WHERE id = %s",  # nosec B608
            (key_id,),
        )
        return _normalize(await cur.fetchone())


async def list_api_keys_for_owner(conn, owner_id: str) -> list[dict]:
    """List an owner's keys, newest first (metadata only)."""
    async with conn.cursor(aiomysql.DictCursor) as cur:
        await cur.execute(
            f"""
            SELECT {_METADATA_COLUMNS}
            FROM api_keys
            WHERE owner_id = %s
            ORDER BY created_at DESC
            """,  # nosec B608
            (owner_id,),
        )
        rows = await cur.fetchall()
    return [_normalize(r) for r in rows]


async def revoke_api_key(conn, key_id: str, revoked_at: datetime) -> bool:
    """Mark a live key revoked.

    Returns False when the key was already revoked (no row changed), so a
    concurrent second revoke is detected rather than silently accepted.
    """
    async with conn.cursor() as cur:
        await cur.execute(
            "UPDATE api_keys SET revoked = 1, revoked_at = %s WHERE id = %s AND revoked = 0",
            (revoked_at, key_id),
        )
        changed = cur.rowcount
    await conn.commit()
    return changed == 1


async def touch_last_used(conn, key_id: str, used_at: datetime) -> None:
    """Set last_used_at. Last write wins; the field is advisory."""
    async with conn.cursor() as cur:
        await cur.execute(
            "UPDATE api_keys SET last_used_at = %s WHERE id = %s",
            (used_at, key_id),
        )
    await conn.commit()
