"""Certificate issuance.

The request side checks eligibility and enqueues a task; the worker
records the certificate.  Rendering the document is somebody else's job;
this service only decides *whether* and *when* a learner gets one.
"""

from __future__ import annotations

import datetime
import logging
from uuid import UUID

from coursehub.models.enrollment import Certificate
from coursehub.repos.stores import Stores
from coursehub.services.errors import (
    CertificateAlreadyIssuedError,
    CertificateNotEligibleError,
)
from coursehub.services.progress_engine import ProgressEngine
from coursehub.services.task_queue import CERTIFICATE_QUEUE, Task, TaskQueue, task_queue

logger = logging.getLogger(__name__)


class CertificateService:
    def __init__(
        self,
        stores: Stores,
        engine: ProgressEngine | None = None,
        queue: TaskQueue | None = None,
    ) -> None:
        self._stores = stores
        self._engine = engine if engine is not None else ProgressEngine(stores)
        self._queue = queue if queue is not None else task_queue

    async def request_certificate(self, user_id: str, course_id: UUID) -> Task:
        progress = await self._engine.get_progress(user_id, course_id)
        if not progress.is_complete:
            logger.warning(
                "Certificate refused user=%s course=%s at %.2f%%",
                user_id,
                course_id,
                progress.completion_percentage,
            )
            raise CertificateNotEligibleError(
                f"course {course_id} is {progress.completion_percentage:.2f}% complete"
            )
        if await self._stores.learners.get_certificate(user_id, course_id) is not None:
            raise CertificateAlreadyIssuedError(
                f"certificate for course {course_id} already issued"
            )

        # Repairs a completion mark lost between the toggle and here.
        await self._stores.learners.add_completed_course(user_id, course_id)

        completed_at = max(
            (c.completed_at for c in progress.completed_lessons),
            default=progress.updated_at,
        )
        task = await self._queue.enqueue(
            CERTIFICATE_QUEUE,
            {
                "user_id": user_id,
                "course_id": str(course_id),
                "completed_at": completed_at,
            },
        )
        logger.info(
            "Queued certificate task=%s user=%s course=%s", task.id, user_id, course_id
        )
        return task

    async def list_certificates(self, user_id: str) -> list[Certificate]:
        return await self._stores.learners.list_certificates(user_id)


async def issue_certificate(stores: Stores, payload: dict) -> bool:
    """Record the certificate described by a queued task.

    Returns False when the learner already holds one for the course.
    """
    certificate = Certificate(
        user_id=payload["user_id"],
        course_id=UUID(payload["course_id"]),
        issued_at=int(datetime.datetime.now(datetime.UTC).timestamp()),
        completed_at=int(payload["completed_at"]),
        certificate_url=payload.get("certificate_url"),
    )
    created = await stores.learners.add_certificate(certificate)
    if created:
        logger.info(
            "Issued certificate user=%s course=%s",
            certificate.user_id,
            certificate.course_id,
        )
    else:
        logger.info(
            "Certificate already present user=%s course=%s",
            certificate.user_id,
            certificate.course_id,
        )
    return created
