"""Redis connection management.

Mirrors engine.py: when REDIS_URL is configured a shared connection pool
is created; when it is not, the cache, task queue and progress lock fall
back to in-memory implementations and no Redis server is needed.

Redis carries three things for coursehub:
  - the read-through course detail cache (TTL-bounded)
  - the certificate issuance queue (LPUSH/BRPOP)
  - the per-(user, course) progress lock shared by every API instance
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from coursehub.core.config import SETTINGS

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,
        max_connections=20,
    )
else:
    redis_pool = None


@asynccontextmanager
async def lifespan_redis():
    if redis_pool is None:
        logger.info("No REDIS_URL configured, cache, queue and progress locks are in-process")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis reachable")
    except Exception:
        # /health shows "degraded"; each consumer raises its own errors.
        logger.exception("Redis unreachable on startup")

    try:
        yield
    finally:
        await redis_pool.aclose()
        logger.info("Redis connection pool closed")
