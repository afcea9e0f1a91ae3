"""Work handed from the API to ``coursehub.worker``.

Each queue is a Redis list: the API LPUSHes onto ``tasks:{queue}`` and the
worker BRPOPs from the other end, so tasks run in arrival order.  A task
is removed when it is popped; if the worker dies while running it, the
task is gone and the learner requests the certificate again (issuing is
idempotent).
"""

from __future__ import annotations

import json
import time
import uuid
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Protocol, runtime_checkable

from coursehub.core.metrics import QUEUE_DEPTH
from coursehub.db.redis import redis_pool

CERTIFICATE_QUEUE = "certificate_issuance"


@dataclass(frozen=True, slots=True)
class Task:
    queue: str
    payload: dict
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    enqueued_at: float = field(default_factory=time.time)

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, raw: str) -> Task:
        return cls(**json.loads(raw))

    def waited(self) -> float:
        """Seconds between enqueue and now."""
        return max(0.0, time.time() - self.enqueued_at)


@runtime_checkable
class TaskQueue(Protocol):
    async def enqueue(self, queue: str, payload: dict) -> Task: ...
    async def dequeue(self, queue: str, timeout: int = 0) -> Task | None: ...
    async def queue_length(self, queue: str) -> int: ...


class InMemoryTaskQueue:
    """Process-local queue; ``dequeue`` never blocks."""

    def __init__(self) -> None:
        self._queues: dict[str, deque[Task]] = {}

    async def enqueue(self, queue: str, payload: dict) -> Task:
        task = Task(queue=queue, payload=payload)
        pending = self._queues.setdefault(queue, deque())
        pending.append(task)
        QUEUE_DEPTH.labels(queue_name=queue).set(len(pending))
        return task

    async def dequeue(self, queue: str, timeout: int = 0) -> Task | None:
        pending = self._queues.get(queue)
        if not pending:
            return None
        task = pending.popleft()
        QUEUE_DEPTH.labels(queue_name=queue).set(len(pending))
        return task

    async def queue_length(self, queue: str) -> int:
        return len(self._queues.get(queue, ()))

    def clear(self) -> None:
        self._queues.clear()


class RedisTaskQueue:
    _PREFIX = "tasks:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    def _key(self, queue: str) -> str:
        return f"{self._PREFIX}{queue}"

    async def enqueue(self, queue: str, payload: dict) -> Task:
        task = Task(queue=queue, payload=payload)
        depth = await self._redis.lpush(self._key(queue), task.to_json())
        QUEUE_DEPTH.labels(queue_name=queue).set(depth)
        return task

    async def dequeue(self, queue: str, timeout: int = 5) -> Task | None:
        # None once *timeout* seconds pass with nothing to pop.
        popped = await self._redis.brpop(self._key(queue), timeout=timeout)
        if popped is None:
            return None
        QUEUE_DEPTH.labels(queue_name=queue).set(await self.queue_length(queue))
        return Task.from_json(popped[1])

    async def queue_length(self, queue: str) -> int:
        return await self._redis.llen(self._key(queue))


if redis_pool is not None:
    task_queue: TaskQueue = RedisTaskQueue(redis_pool)
else:
    task_queue = InMemoryTaskQueue()
