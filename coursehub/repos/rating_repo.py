from __future__ import annotations

from collections import Counter
from typing import Protocol
from uuid import UUID

from coursehub.models.course import Rating


class RatingRepo(Protocol):
    async def get(self, user_id: str, course_id: UUID) -> Rating | None: ...
    async def upsert(self, rating: Rating) -> bool: ...
    async def delete(self, user_id: str, course_id: UUID) -> Rating | None: ...
    async def list_by_course(self, course_id: UUID) -> list[Rating]: ...
    async def summary(self, course_id: UUID) -> tuple[float, int]: ...
    async def distribution(self, course_id: UUID) -> dict[int, int]: ...
    async def delete_by_course(self, course_id: UUID) -> int: ...


class InMemoryRatingRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[str, UUID], Rating] = {}

    def clear(self) -> None:
        self._store.clear()

    async def get(self, user_id: str, course_id: UUID) -> Rating | None:
        return self._store.get((user_id, course_id))

    async def upsert(self, rating: Rating) -> bool:
        """Insert or replace; returns True when a rating already existed."""
        key = (rating.user_id, rating.course_id)
        existed = key in self._store
        self._store[key] = rating
        return existed

    async def delete(self, user_id: str, course_id: UUID) -> Rating | None:
        return self._store.pop((user_id, course_id), None)

    async def list_by_course(self, course_id: UUID) -> list[Rating]:
        ratings = [r for r in self._store.values() if r.course_id == course_id]
        return sorted(ratings, key=lambda r: (r.updated_at, r.rate), reverse=True)

    async def summary(self, course_id: UUID) -> tuple[float, int]:
        rates = [r.rate for r in self._store.values() if r.course_id == course_id]
        if not rates:
            return 0.0, 0
        return sum(rates) / len(rates), len(rates)

    async def distribution(self, course_id: UUID) -> dict[int, int]:
        """Number of ratings per star value; absent values are omitted."""
        return dict(
            Counter(r.rate for r in self._store.values() if r.course_id == course_id)
        )

    async def delete_by_course(self, course_id: UUID) -> int:
        keys = [key for key in self._store if key[1] == course_id]
        for key in keys:
            del self._store[key]
        return len(keys)
