"""Health check endpoint.

Reports whether the key store (MySQL) and the rate-limit counter store are
reachable. Health paths bypass rate limiting.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from keygate.db.pool import get_connection
from keygate.services.counter_store import get_counter_store

logger = logging.getLogger(__name__)

router = APIRouter()


async def _database_ok() -> bool:
    try:
        async with get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute("SELECT 1")
        return True
    except Exception:
        logger.warning("Health check: database unreachable", exc_info=True)
        return False


async def _counter_store_ok() -> bool:
    try:
        return await get_counter_store().ping()
    except Exception:
        logger.warning("Health check: rate limit store unreachable", exc_info=True)
        return False


@router.get("/health")
async def health_check():
    """Return service health status and current timestamp.

    Returns ``"healthy"`` when both stores respond and ``"degraded"``
    (HTTP 200 still) otherwise, so load-balancer probes can tell the two apart.
    """
    db_ok = await _database_ok()
    counters_ok = await _counter_store_ok()

    return {
        "status": "healthy" if db_ok and counters_ok else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": "connected" if db_ok else "unreachable",
        "rate_limit_store": "connected" if counters_ok else "unreachable",
    }
