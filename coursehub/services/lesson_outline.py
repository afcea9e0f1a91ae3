"""Course-wide lesson order.

Lessons are ordered inside their chapter and chapters inside the course;
the sequence a learner walks through is the product of the two, sorted by
``(chapter.order, lesson.order)``.  Lesson creation time plays no part.

The outline is derived from the catalog and cached per ``Course.version``.
Any structural change bumps the version, so a cached outline is never
consulted after the course it describes has changed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from coursehub.models.course import Chapter, Lesson
from coursehub.repos.catalog_repo import CatalogRepo
from coursehub.services.errors import CourseNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LessonOutline:
    course_id: UUID
    version: int
    lesson_ids: tuple[UUID, ...]

    @staticmethod
    def build(
        course_id: UUID, version: int, chapters: list[Chapter], lessons: list[Lesson]
    ) -> LessonOutline:
        chapter_order = {ch.id: ch.order for ch in chapters}
        # Lessons whose chapter is gone are not part of the course any more.
        placed = [ls for ls in lessons if ls.chapter_id in chapter_order]
        placed.sort(key=lambda ls: (chapter_order[ls.chapter_id], ls.order))
        return LessonOutline(
            course_id=course_id,
            version=version,
            lesson_ids=tuple(ls.id for ls in placed),
        )

    @property
    def total(self) -> int:
        return len(self.lesson_ids)

    @property
    def first(self) -> UUID | None:
        return self.lesson_ids[0] if self.lesson_ids else None

    def __contains__(self, lesson_id: object) -> bool:
        return lesson_id in self.lesson_ids

    def next_after(self, lesson_id: UUID) -> UUID | None:
        """Lesson following *lesson_id*, or None for the last one."""
        try:
            index = self.lesson_ids.index(lesson_id)
        except ValueError:
            return None
        if index + 1 < len(self.lesson_ids):
            return self.lesson_ids[index + 1]
        return None

    def percentage(self, completed: int) -> float:
        if self.total == 0:
            return 0.0
        return min(100.0, max(0.0, 100.0 * completed / self.total))


class OutlineCache:
    """Process-local outline cache keyed by course id and version.

    A version is never handed out twice, so an outline built inside a
    transaction that later rolls back is keyed by a version no committed
    course carries and is simply never hit again.
    """

    def __init__(self) -> None:
        self._outlines: dict[UUID, LessonOutline] = {}

    async def get(self, catalog: CatalogRepo, course_id: UUID) -> LessonOutline:
        course = await catalog.get_course(course_id)
        if course is None:
            raise CourseNotFoundError(course_id)

        cached = self._outlines.get(course_id)
        if cached is not None and cached.version == course.version:
            return cached

        outline = LessonOutline.build(
            course_id,
            course.version,
            await catalog.list_chapters(course_id),
            await catalog.list_lessons(course_id),
        )
        self._outlines[course_id] = outline
        logger.debug(
            "Rebuilt outline for course %s at version %d (%d lessons)",
            course_id,
            course.version,
            outline.total,
        )
        return outline

    def forget(self, course_id: UUID) -> None:
        self._outlines.pop(course_id, None)

    def clear(self) -> None:
        self._outlines.clear()


outline_cache = OutlineCache()
