from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import replace
from typing import Protocol
from uuid import UUID

from coursehub.models.progress import Progress
from coursehub.services.errors import ProgressExistsError


class ProgressRepo(Protocol):
    async def get(self, user_id: str, course_id: UUID) -> Progress | None: ...
    async def get_for_update(
        self, user_id: str, course_id: UUID
    ) -> Progress | None: ...
    async def insert(self, progress: Progress) -> None: ...
    async def save(self, progress: Progress) -> None: ...
    async def delete(self, user_id: str, course_id: UUID) -> bool: ...
    async def list_by_course(self, course_id: UUID) -> list[Progress]: ...
    async def delete_by_course(self, course_id: UUID) -> int: ...
    async def add_unlocked_for_course(self, course_id: UUID, lesson_id: UUID) -> int: ...
    async def remove_unlocked_for_course(
        self, course_id: UUID, lesson_id: UUID
    ) -> int: ...
    def savepoint(self) -> AbstractAsyncContextManager[None]: ...


class InMemoryProgressRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[str, UUID], Progress] = {}

    def clear(self) -> None:
        self._store.clear()

    async def get(self, user_id: str, course_id: UUID) -> Progress | None:
        return self._store.get((user_id, course_id))

    async def get_for_update(self, user_id: str, course_id: UUID) -> Progress | None:
        # Callers serialize through KeyedLock; nothing else to lock here.
        return self._store.get((user_id, course_id))

    async def insert(self, progress: Progress) -> None:
        key = (progress.user_id, progress.course_id)
        if key in self._store:
            raise ProgressExistsError(f"progress already exists for {key}")
        self._store[key] = progress

    async def save(self, progress: Progress) -> None:
        key = (progress.user_id, progress.course_id)
        if key not in self._store:
            raise KeyError("progress not found")
        self._store[key] = progress

    async def delete(self, user_id: str, course_id: UUID) -> bool:
        return self._store.pop((user_id, course_id), None) is not None

    async def list_by_course(self, course_id: UUID) -> list[Progress]:
        return [p for (_, cid), p in self._store.items() if cid == course_id]

    async def delete_by_course(self, course_id: UUID) -> int:
        keys = [key for key in self._store if key[1] == course_id]
        for key in keys:
            del self._store[key]
        return len(keys)

    async def add_unlocked_for_course(self, course_id: UUID, lesson_id: UUID) -> int:
        changed = 0
        for key, p in list(self._store.items()):
            if key[1] != course_id or lesson_id in p.unlocked_lessons:
                continue
            self._store[key] = replace(
                p, unlocked_lessons=(*p.unlocked_lessons, lesson_id)
            )
            changed += 1
        return changed

    async def remove_unlocked_for_course(
        self, course_id: UUID, lesson_id: UUID
    ) -> int:
        changed = 0
        for key, p in list(self._store.items()):
            if key[1] != course_id or lesson_id not in p.unlocked_lessons:
                continue
            self._store[key] = replace(
                p,
                unlocked_lessons=tuple(i for i in p.unlocked_lessons if i != lesson_id),
            )
            changed += 1
        return changed

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        # Writes here are single dict assignments made at the end of each
        # unit, so a failed unit has nothing to roll back.
        yield
