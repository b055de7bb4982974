"""Database layer for key owners (read-only; owners are provisioned upstream)."""

from __future__ import annotations

import aiomysql


async def get_owner_by_id(conn, owner_id: str) -> dict | None:
    """Look up an owner by ID. Returns None if not found."""
    async with conn.cursor(aiomysql.DictCursor) as cur:
        await cur.execute(
            "SELECT id, email, username, plan FROM owners WHERE id = %s",
            (owner_id,),
        )
        return await cur.fetchone()
