from __future__ import annotations

from typing import Protocol
from uuid import UUID

from coursehub.models.enrollment import Enrollment


class EnrollmentRepo(Protocol):
    async def get(self, user_id: str, course_id: UUID) -> Enrollment | None: ...
    async def add(self, enrollment: Enrollment) -> bool: ...
    async def remove(self, user_id: str, course_id: UUID) -> bool: ...
    async def list_by_course(self, course_id: UUID) -> list[Enrollment]: ...
    async def count_by_course(self, course_id: UUID) -> int: ...
    async def delete_by_course(self, course_id: UUID) -> int: ...


class InMemoryEnrollmentRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[str, UUID], Enrollment] = {}

    def clear(self) -> None:
        self._store.clear()

    async def get(self, user_id: str, course_id: UUID) -> Enrollment | None:
        return self._store.get((user_id, course_id))

    async def add(self, enrollment: Enrollment) -> bool:
        """Insert *enrollment*; False when the pair is already enrolled."""
        key = (enrollment.user_id, enrollment.course_id)
        if key in self._store:
            return False
        self._store[key] = enrollment
        return True

    async def remove(self, user_id: str, course_id: UUID) -> bool:
        return self._store.pop((user_id, course_id), None) is not None

    async def list_by_course(self, course_id: UUID) -> list[Enrollment]:
        return [e for e in self._store.values() if e.course_id == course_id]

    async def count_by_course(self, course_id: UUID) -> int:
        return sum(1 for e in self._store.values() if e.course_id == course_id)

    async def delete_by_course(self, course_id: UUID) -> int:
        keys = [key for key in self._store if key[1] == course_id]
        for key in keys:
            del self._store[key]
        return len(keys)
