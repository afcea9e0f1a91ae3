"""Background worker process.

RUN:  python -m coursehub.worker

Same image as the API, different command:
  api:    uvicorn coursehub.main:app --host 0.0.0.0 --port 8000
  worker: python -m coursehub.worker

The loop polls every registered queue in turn, hands each task to its
handler and logs the outcome.  A failing task is logged and dropped;
certificate issuance is idempotent, so the learner can request again.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from coursehub.core.config import SETTINGS
from coursehub.core.logging import setup_logging
from coursehub.repos.stores import open_stores
from coursehub.services.certificate_service import issue_certificate
from coursehub.services.task_queue import CERTIFICATE_QUEUE, Task, TaskQueue, task_queue

TaskHandler = Callable[[dict], Coroutine[Any, Any, None]]

logger = logging.getLogger("coursehub.worker")


# ---------------------------------------------------------------------------
# Handler registry
# ---------------------------------------------------------------------------

HANDLERS: dict[str, TaskHandler] = {}


def register_handler(queue: str):
    """Decorator: register a coroutine as the handler for a queue."""

    def decorator(func):
        HANDLERS[queue] = func
        return func

    return decorator


@register_handler(CERTIFICATE_QUEUE)
async def handle_certificate_issuance(payload: dict) -> None:
    """Record a certificate for a learner who completed a course.

    Each task is its own unit of work: with PostgreSQL it commits on its
    own transaction.
    """
    logger.info(
        "Issuing certificate user=%s course=%s",
        payload.get("user_id"),
        payload.get("course_id"),
    )
    async with open_stores() as stores:
        await issue_certificate(stores, payload)


# ---------------------------------------------------------------------------
# Main loop
# ---------------------------------------------------------------------------


async def process_one(queue: TaskQueue, queue_name: str, timeout: int = 1) -> Task | None:
    """Dequeue and run a single task.  Returns the task, or None if idle."""
    task = await queue.dequeue(queue_name, timeout=timeout)
    if task is None:
        return None

    handler = HANDLERS[queue_name]
    try:
        await handler(task.payload)
        logger.info(
            "Task %s on [%s] completed %.1fs after enqueue",
            task.id,
            queue_name,
            task.waited(),
        )
    except Exception:
        # At-most-once delivery: the task is gone either way.
        logger.exception("Task %s on [%s] failed", task.id, queue_name)
    return task


async def run_worker() -> None:
    """Poll all registered queues and dispatch tasks to handlers."""
    queues = list(HANDLERS.keys())
    logger.info("Worker started, listening on queues: %s", queues)
    while True:
        handled = [await process_one(task_queue, name) for name in queues]
        if not any(handled):
            # The in-memory queue returns immediately when empty.
            await asyncio.sleep(0.5)


if __name__ == "__main__":
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    asyncio.run(run_worker())
