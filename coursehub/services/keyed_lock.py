"""Mutual exclusion per key, used to serialize read-modify-write on one
progress record.

Two toggles for the same (user, course), e.g. a double click, must not
interleave between reading the record and writing it back.  Toggles for
different pairs never wait on each other.

  InMemoryKeyedLock  one asyncio.Lock per live key, dropped when the last
                     holder or waiter leaves, so the table does not grow
                     with the number of learners
  RedisKeyedLock     a Redis lock shared by every API instance; the
                     ``timeout`` bounds how long a crashed holder can
                     block others
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol, runtime_checkable

from coursehub.core.config import SETTINGS
from coursehub.core.metrics import PROGRESS_LOCK_WAIT
from coursehub.db.redis import redis_pool

logger = logging.getLogger(__name__)


def progress_key(user_id: str, course_id: object) -> str:
    return f"progress:{user_id}:{course_id}"


@runtime_checkable
class KeyedLock(Protocol):
    def hold(self, key: str) -> AbstractAsyncContextManager[None]: ...


class InMemoryKeyedLock:
    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        started = time.perf_counter()
        try:
            async with lock:
                PROGRESS_LOCK_WAIT.observe(time.perf_counter() - started)
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                self._locks.pop(key, None)

    def active_keys(self) -> int:
        return len(self._locks)

    def clear(self) -> None:
        self._locks.clear()
        self._users.clear()


class RedisKeyedLock:
    _PREFIX = "lock:"

    def __init__(self, redis_client, *, timeout: int, blocking_timeout: int) -> None:
        self._redis = redis_client
        self._timeout = timeout
        self._blocking_timeout = blocking_timeout

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._redis.lock(
            f"{self._PREFIX}{key}",
            timeout=self._timeout,
            blocking_timeout=self._blocking_timeout,
        )
        started = time.perf_counter()
        # Raises redis.exceptions.LockError when the wait times out; that is
        # an infrastructure failure and propagates to the caller.
        async with lock:
            PROGRESS_LOCK_WAIT.observe(time.perf_counter() - started)
            yield


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    keyed_lock: KeyedLock = RedisKeyedLock(
        redis_pool,
        timeout=SETTINGS.progress_lock_timeout,
        blocking_timeout=SETTINGS.progress_lock_timeout,
    )
else:
    keyed_lock = InMemoryKeyedLock()
