"""Database layer for fixed-window rate-limit counters.

Each row is one (route class, identity, window bucket) counter. The bucket is
part of ``counter_key`` so a new window is simply a new row; stale rows are
removed by :func:`purge_expired`.
"""

from __future__ import annotations

from datetime import datetime


async def increment_counter(conn, counter_key: str, expires_at: datetime) -> int:
    """Atomically add one hit to a counter and return the new value.

    Uses INSERT ... ON DUPLICATE KEY UPDATE with LAST_INSERT_ID(expr) so the
    incremented value is read back from the same statement:
    - First hit: inserts hits=1 (rowcount 1).
    - Later hits: hits = hits + 1, exposed via cursor.lastrowid (rowcount 2).
    """
    async with conn.cursor() as cur:
        await cur.execute(
            """
            INSERT INTO rate_limit_counters (counter_key, hits, expires_at)
            VALUES (%s, 1, %s)
            ON DUPLICATE KEY UPDATE hits = LAST_INSERT_ID(hits + 1)
            """,
            (counter_key, expires_at),
        )
        if cur.rowcount == 1:
            hits = 1
        else:
            hits = cur.lastrowid
    await conn.commit()
    return int(hits)


async def purge_expired(conn, now: datetime) -> int:
    """Delete counters whose window has closed. Returns the number removed."""
    async with conn.cursor() as cur:
        await cur.execute("DELETE FROM rate_limit_counters WHERE expires_at < %s", (now,))
        removed = cur.rowcount
    await conn.commit()
    return removed
