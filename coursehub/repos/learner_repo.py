from __future__ import annotations

from typing import Protocol
from uuid import UUID

from coursehub.models.enrollment import Certificate


class LearnerRepo(Protocol):
    """Learner-side records kept outside the progress store.

    Both writes are set-adds: repeating them is harmless, which is what
    lets the progress engine apply them at-least-once.
    """

    async def add_completed_course(self, user_id: str, course_id: UUID) -> bool: ...
    async def completed_courses(self, user_id: str) -> frozenset[UUID]: ...
    async def get_certificate(
        self, user_id: str, course_id: UUID
    ) -> Certificate | None: ...
    async def add_certificate(self, certificate: Certificate) -> bool: ...
    async def list_certificates(self, user_id: str) -> list[Certificate]: ...
    async def delete_by_course(self, course_id: UUID) -> int: ...


class InMemoryLearnerRepo:
    def __init__(self) -> None:
        self._completed: dict[str, set[UUID]] = {}
        self._certificates: dict[tuple[str, UUID], Certificate] = {}

    def clear(self) -> None:
        self._completed.clear()
        self._certificates.clear()

    async def add_completed_course(self, user_id: str, course_id: UUID) -> bool:
        courses = self._completed.setdefault(user_id, set())
        if course_id in courses:
            return False
        courses.add(course_id)
        return True

    async def completed_courses(self, user_id: str) -> frozenset[UUID]:
        return frozenset(self._completed.get(user_id, ()))

    async def get_certificate(self, user_id: str, course_id: UUID) -> Certificate | None:
        return self._certificates.get((user_id, course_id))

    async def add_certificate(self, certificate: Certificate) -> bool:
        key = (certificate.user_id, certificate.course_id)
        if key in self._certificates:
            return False
        self._certificates[key] = certificate
        return True

    async def list_certificates(self, user_id: str) -> list[Certificate]:
        certs = [c for (uid, _), c in self._certificates.items() if uid == user_id]
        return sorted(certs, key=lambda c: c.issued_at)

    async def delete_by_course(self, course_id: UUID) -> int:
        removed = 0
        for courses in self._completed.values():
            if course_id in courses:
                courses.discard(course_id)
                removed += 1
        for key in [key for key in self._certificates if key[1] == course_id]:
            del self._certificates[key]
            removed += 1
        return removed
