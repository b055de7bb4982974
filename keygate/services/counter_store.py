"""Shared counters for fixed-window rate limiting.

A :class:`CounterStore` increments a counter for the current window bucket and
reports how long until that window closes. Windows are aligned to multiples
of ``window_seconds`` since the epoch, so every process computes the same
bucket for the same instant.

Backends:
  - ``memory``: per-process dict; tests and single-instance deployments only.
  - ``mysql``: the ``rate_limit_counters`` table (atomic upsert).
  - ``redis``: INCR + EXPIRE on a shared Redis; the production default.
"""

from __future__ import annotations

import abc
import asyncio
import heapq
import logging
import math
import time
from datetime import datetime, timezone
from typing import Callable, NamedTuple

import redis.asyncio as redis

from keygate.db import rate_limits as db_rate_limits
from keygate.db.pool import get_connection

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class CounterStoreNotInitialized(RuntimeError):
    """Raised when the process-wide store is requested before startup created it."""


class CounterResult(NamedTuple):
    count: int
    reset_in: int


def window_bucket(now: float, window_seconds: int) -> tuple[int, float]:
    """Return (bucket index, epoch time the bucket closes)."""
    bucket = int(now // window_seconds)
    return bucket, float((bucket + 1) * window_seconds)


def seconds_until(reset_at: float, now: float) -> int:
    return max(1, math.ceil(reset_at - now))


class CounterStore(abc.ABC):
    """Atomic increment-with-expiry keyed by (identity, route class, window)."""

    def __init__(self, clock: Clock = time.time):
        self._clock = clock

    @abc.abstractmethod
    async def increment_and_get(self, key: str, window_seconds: int) -> CounterResult:
        """Add one hit to ``key`` in the current window and return the new count."""

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class MemoryCounterStore(CounterStore):
    """In-process counters. Each process grants its own quota; never use behind a load balancer.

    At ``max_entries`` closed windows are dropped first. If every window is
    still open, the ones closing soonest are evicted, which resets those
    counters early.
    """

    def __init__(self, clock: Clock = time.time, max_entries: int = 100_000):
        super().__init__(clock)
        self._counters: dict[str, tuple[float, int]] = {}
        self._lock = asyncio.Lock()
        self._max_entries = max_entries

    async def increment_and_get(self, key: str, window_seconds: int) -> CounterResult:
        now = self._clock()
        bucket, reset_at = window_bucket(now, window_seconds)
        bucket_key = f"{key}:{bucket}"

        async with self._lock:
            if bucket_key not in self._counters and len(self._counters) >= self._max_entries:
                self._prune(now)
            _, count = self._counters.get(bucket_key, (reset_at, 0))
            count += 1
            self._counters[bucket_key] = (reset_at, count)

        return CounterResult(count, seconds_until(reset_at, now))

    def _prune(self, now: float) -> None:
        expired = [k for k, (reset_at, _) in self._counters.items() if reset_at <= now]
        for k in expired:
            del self._counters[k]

        # Every window still open: drop the soonest-closing plus a tenth of the cap.
        overflow = len(self._counters) - self._max_entries + 1
        if overflow > 0:
            overflow += self._max_entries // 10
            soonest = heapq.nsmallest(overflow, self._counters, key=lambda k: self._counters[k][0])
            for k in soonest:
                del self._counters[k]

    def reset(self) -> None:
        self._counters.clear()


class MySQLCounterStore(CounterStore):
    """Counters in the ``rate_limit_counters`` table, shared by every instance."""

    def __init__(self, clock: Clock = time.time, purge_every: int = 1000):
        super().__init__(clock)
        self._purge_every = purge_every
        self._calls = 0

    async def increment_and_get(self, key: str, window_seconds: int) -> CounterResult:
        now = self._clock()
        bucket, reset_at = window_bucket(now, window_seconds)
        expires_at = datetime.fromtimestamp(reset_at, tz=timezone.utc).replace(tzinfo=None)

        async with get_connection() as conn:
            count = await db_rate_limits.increment_counter(conn, f"{key}:{bucket}", expires_at)

            self._calls += 1
            if self._calls % self._purge_every == 0:
                cutoff = datetime.fromtimestamp(now, tz=timezone.utc).replace(tzinfo=None)
                removed = await db_rate_limits.purge_expired(conn, cutoff)
                logger.debug("Purged %d expired rate-limit counters", removed)

        return CounterResult(count, seconds_until(reset_at, now))

    async def ping(self) -> bool:
        async with get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute("SELECT 1")
        return True


class RedisCounterStore(CounterStore):
    """Counters in Redis: one INCR + EXPIRE round trip per check."""

    def __init__(
        self,
        url: str | None = None,
        client: redis.Redis | None = None,
        namespace: str = "keygate:rl",
        clock: Clock = time.time,
    ):
        super().__init__(clock)
        if client is None:
            if url is None:
                raise ValueError("RedisCounterStore needs either a url or a client")
            client = redis.from_url(
                url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=2.0,
                socket_timeout=2.0,
            )
        self._redis = client
        self._ns = namespace.strip(":")

    async def increment_and_get(self, key: str, window_seconds: int) -> CounterResult:
        now = self._clock()
        bucket, reset_at = window_bucket(now, window_seconds)
        redis_key = f"{self._ns}:{key}:{bucket}"

        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.incr(redis_key, 1)
            pipe.expire(redis_key, window_seconds)
            count, _ = await pipe.execute()

        return CounterResult(int(count), seconds_until(reset_at, now))

    async def ping(self) -> bool:
        return bool(await self._redis.ping())

    async def close(self) -> None:
        await self._redis.aclose()


# ---------------------------------------------------------------------------
# Process-wide store
# ---------------------------------------------------------------------------

_store: CounterStore | None = None


def build_counter_store(settings) -> CounterStore:
    backend = settings.RATE_LIMIT_BACKEND.lower()
    if backend == "memory":
        return MemoryCounterStore()
    if backend == "mysql":
        return MySQLCounterStore()
    if backend == "redis":
        return RedisCounterStore(url=settings.REDIS_URL, namespace=settings.RATE_LIMIT_KEY_PREFIX)
    raise ValueError(
        f"Unsupported RATE_LIMIT_BACKEND: {settings.RATE_LIMIT_BACKEND!r}. "
        "Expected 'redis', 'mysql' or 'memory'."
    )


def init_counter_store(settings) -> CounterStore:
    global _store
    if _store is None:
        _store = build_counter_store(settings)
        if isinstance(_store, MemoryCounterStore):
            logger.warning(
                "Using in-memory rate-limit counters; limits are per process, not per deployment"
            )
        logger.info("Rate-limit counter store: %s", type(_store).__name__)
    return _store


def set_counter_store(store: CounterStore | None) -> None:
    global _store
    _store = store


def get_counter_store() -> CounterStore:
    """Return the active store.

    Raises:
        CounterStoreNotInitialized: If no store has been initialized.
    """
    if _store is None:
        raise CounterStoreNotInitialized(
            "Counter store is not initialized. Call init_counter_store() during application startup."
        )
    return _store


async def close_counter_store() -> None:
    global _store
    if _store is not None:
        await _store.close()
        _store = None
