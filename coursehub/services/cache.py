"""Read-through cache for course detail.

Flow:  caller -> cache -> miss -> repository -> populate cache -> return
       caller -> cache -> hit  -> return

Two invalidation mechanisms cover each other:

  1. TTL: every entry expires after COURSE_CACHE_TTL seconds, so a missed
     invalidation only serves stale data for a bounded time.
  2. Explicit delete: every structural change to a course (chapter or
     lesson added, removed or reordered) deletes ``course:{id}``.

Per-learner progress is never cached.  A toggle must always read its
own previous write.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

from coursehub.core.metrics import CACHE_OPERATIONS
from coursehub.db.redis import redis_pool

logger = logging.getLogger(__name__)


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None:
        """Fetch a cached value.  Returns None on cache miss."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value with a TTL (time to live)."""
        ...

    async def delete(self, key: str) -> None:
        """Explicitly invalidate a cached entry."""
        ...


class InMemoryCacheService:
    """In-memory cache for tests and single-process runs.

    TTLs are not enforced; the autouse fixture in conftest.py clears the
    store between tests.
    """

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = value

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    def clear(self) -> None:
        self._store.clear()


class RedisCacheService:
    """Redis-backed cache shared by every API instance."""

    # Keeps cache keys apart from the task queue and progress locks.
    _PREFIX = "cache:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        return await self._redis.get(f"{self._PREFIX}{key}")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)

    async def delete(self, key: str) -> None:
        await self._redis.delete(f"{self._PREFIX}{key}")


def course_key(course_id: object) -> str:
    return f"course:{course_id}"


async def read_through_json(
    cache: CacheService,
    key: str,
    ttl_seconds: int,
    loader: Callable[[], Awaitable[Any]],
) -> Any:
    """Return the cached JSON document for *key*, loading it on a miss.

    *loader* must return something ``json.dumps`` accepts.  A corrupt
    entry is treated as a miss and overwritten.
    """
    raw = await cache.get(key)
    if raw is not None:
        try:
            value = json.loads(raw)
        except ValueError:
            logger.warning("Discarding undecodable cache entry %s", key)
        else:
            CACHE_OPERATIONS.labels(operation="hit").inc()
            return value

    CACHE_OPERATIONS.labels(operation="miss").inc()
    value = await loader()
    await cache.set(key, json.dumps(value), ttl_seconds)
    return value


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    cache_service: CacheService = RedisCacheService(redis_pool)
else:
    cache_service = InMemoryCacheService()
