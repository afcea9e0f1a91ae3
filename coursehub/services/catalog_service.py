"""Course authoring: courses, chapters and lessons.

Every structural change bumps ``Course.version`` (which retires the cached
lesson outline) and deletes the ``course:{id}`` cache entry.  Lesson
creation and deletion then hand over to the progress engine so existing
progress records follow the catalog.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any
from uuid import UUID

from coursehub.core.config import SETTINGS
from coursehub.models.course import Chapter, Course, Lesson
from coursehub.models.progress import FanOutResult
from coursehub.repos.stores import Stores
from coursehub.services.cache import CacheService, cache_service, course_key, read_through_json
from coursehub.services.errors import (
    ChapterNotFoundError,
    CourseNotFoundError,
    InvalidInputError,
    LessonNotFoundError,
)
from coursehub.services.progress_engine import ProgressEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LessonChange:
    lesson: Lesson
    fan_out: FanOutResult | None


@dataclass(frozen=True, slots=True)
class CourseDeletion:
    course_id: UUID
    progress_records: int
    enrollments: int


@dataclass(frozen=True, slots=True)
class ChapterDeletion:
    chapter_id: UUID
    lessons: tuple[FanOutResult, ...]

    @property
    def failed(self) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for r in self.lessons:
            for user_id in r.failed:
                seen.setdefault(user_id, None)
        return tuple(seen)


def _require_title(title: str) -> str:
    title = title.strip()
    if not title:
        raise InvalidInputError("title must be non-empty")
    return title


def _check_permutation(given: list[UUID], existing: list[UUID], what: str) -> None:
    if len(given) != len(set(given)) or set(given) != set(existing):
        raise InvalidInputError(
            f"{what} order must list every {what} of the parent exactly once"
        )


class CatalogService:
    def __init__(
        self,
        stores: Stores,
        engine: ProgressEngine | None = None,
        cache: CacheService | None = None,
    ) -> None:
        self._stores = stores
        self._engine = engine if engine is not None else ProgressEngine(stores)
        self._cache = cache if cache is not None else cache_service

    # --- courses ---

    async def create_course(
        self, instructor_id: str, title: str, description: str = "", price: float = 0.0
    ) -> Course:
        if price < 0:
            raise InvalidInputError("price must be >= 0")
        course = Course.new(
            title=_require_title(title),
            description=description,
            instructor_id=instructor_id,
            price=price,
        )
        await self._stores.catalog.add_course(course)
        logger.info("Created course=%s instructor=%s", course.id, instructor_id)
        return course

    async def get_course(self, course_id: UUID) -> Course:
        course = await self._stores.catalog.get_course(course_id)
        if course is None:
            raise CourseNotFoundError(course_id)
        return course

    async def update_course(
        self,
        course_id: UUID,
        *,
        title: str | None = None,
        description: str | None = None,
        price: float | None = None,
    ) -> Course:
        """Change the listing fields; None leaves a field as it is."""
        course = await self.get_course(course_id)
        if price is not None and price < 0:
            raise InvalidInputError("price must be >= 0")
        updated = replace(
            course,
            title=course.title if title is None else _require_title(title),
            description=course.description if description is None else description,
            price=course.price if price is None else price,
        )
        if updated != course:
            await self._stores.catalog.save_course(updated)
            await self._cache.delete(course_key(course_id))
            logger.info("Updated course=%s", course_id)
        return updated

    async def delete_course(self, course_id: UUID) -> CourseDeletion:
        """Delete the course and every record that refers to it.

        That covers its chapters and lessons, the progress records and
        enrollments of its learners, its ratings, and the completed-course
        and certificate entries issued for it.
        """
        await self.get_course(course_id)
        progress_records = await self._engine.on_course_deleted(course_id)
        enrollments = await self._stores.enrollments.delete_by_course(course_id)
        await self._stores.ratings.delete_by_course(course_id)
        await self._stores.learners.delete_by_course(course_id)
        await self._stores.catalog.delete_course(course_id)
        await self._cache.delete(course_key(course_id))
        logger.info(
            "Deleted course=%s with %d enrollments and %d progress records",
            course_id,
            enrollments,
            progress_records,
        )
        return CourseDeletion(
            course_id=course_id,
            progress_records=progress_records,
            enrollments=enrollments,
        )

    async def get_course_detail(self, course_id: UUID) -> dict[str, Any]:
        """Course with its chapters and lessons, through the course cache."""

        async def load() -> dict[str, Any]:
            return await self._load_detail(course_id)

        return await read_through_json(
            self._cache, course_key(course_id), SETTINGS.course_cache_ttl, load
        )

    async def _load_detail(self, course_id: UUID) -> dict[str, Any]:
        course = await self.get_course(course_id)
        chapters = []
        for ch in await self._stores.catalog.list_chapters(course_id):
            lessons = await self._stores.catalog.list_chapter_lessons(ch.id)
            chapters.append(
                {
                    "id": str(ch.id),
                    "title": ch.title,
                    "order": ch.order,
                    "lessons": [
                        {
                            "id": str(ls.id),
                            "title": ls.title,
                            "order": ls.order,
                            "locked": ls.locked,
                        }
                        for ls in lessons
                    ],
                }
            )
        return {
            "id": str(course.id),
            "title": course.title,
            "description": course.description,
            "instructor_id": course.instructor_id,
            "price": course.price,
            "version": course.version,
            "average_rating": course.average_rating,
            "total_ratings": course.total_ratings,
            "chapters": chapters,
        }

    # --- chapters ---

    async def create_chapter(self, course_id: UUID, title: str) -> Chapter:
        await self.get_course(course_id)
        chapters = await self._stores.catalog.list_chapters(course_id)
        chapter = Chapter.new(
            course_id=course_id,
            title=_require_title(title),
            order=max((ch.order for ch in chapters), default=0) + 1,
        )
        await self._stores.catalog.add_chapter(chapter)
        await self._structure_changed(course_id)
        logger.info("Created chapter=%s course=%s order=%d", chapter.id, course_id, chapter.order)
        return chapter

    async def get_chapter(self, chapter_id: UUID) -> Chapter:
        chapter = await self._stores.catalog.get_chapter(chapter_id)
        if chapter is None:
            raise ChapterNotFoundError(chapter_id)
        return chapter

    async def list_chapters(self, course_id: UUID) -> list[Chapter]:
        await self.get_course(course_id)
        return await self._stores.catalog.list_chapters(course_id)

    async def rename_chapter(self, chapter_id: UUID, title: str) -> Chapter:
        chapter = await self.get_chapter(chapter_id)
        updated = replace(chapter, title=_require_title(title))
        if updated != chapter:
            await self._stores.catalog.save_chapter(updated)
            await self._cache.delete(course_key(chapter.course_id))
            logger.info("Renamed chapter=%s", chapter_id)
        return updated

    async def reorder_chapters(self, course_id: UUID, chapter_ids: list[UUID]) -> list[Chapter]:
        await self.get_course(course_id)
        existing = await self._stores.catalog.list_chapters(course_id)
        _check_permutation(chapter_ids, [ch.id for ch in existing], "chapter")
        await self._stores.catalog.set_chapter_orders(course_id, chapter_ids)
        await self._structure_changed(course_id)
        logger.info("Reordered %d chapters in course=%s", len(chapter_ids), course_id)
        return await self._stores.catalog.list_chapters(course_id)

    async def delete_chapter(self, chapter_id: UUID) -> ChapterDeletion:
        chapter = await self.get_chapter(chapter_id)
        results = []
        for lesson in await self._stores.catalog.list_chapter_lessons(chapter_id):
            results.append(await self._remove_lesson(lesson))
        await self._stores.catalog.delete_chapter(chapter_id)
        await self._structure_changed(chapter.course_id)
        logger.info(
            "Deleted chapter=%s course=%s with %d lessons",
            chapter_id,
            chapter.course_id,
            len(results),
        )
        return ChapterDeletion(chapter_id=chapter_id, lessons=tuple(results))

    # --- lessons ---

    async def create_lesson(
        self,
        course_id: UUID,
        chapter_id: UUID,
        title: str,
        *,
        locked: bool = True,
        video_url: str | None = None,
    ) -> LessonChange:
        chapter = await self.get_chapter(chapter_id)
        if chapter.course_id != course_id:
            raise ChapterNotFoundError(chapter_id)
        siblings = await self._stores.catalog.list_chapter_lessons(chapter_id)
        lesson = Lesson.new(
            course_id=course_id,
            chapter_id=chapter_id,
            title=_require_title(title),
            order=max((ls.order for ls in siblings), default=0) + 1,
            locked=locked,
            video_url=video_url,
        )
        await self._stores.catalog.add_lesson(lesson)
        await self._structure_changed(course_id)
        logger.info(
            "Created lesson=%s chapter=%s order=%d locked=%s",
            lesson.id,
            chapter_id,
            lesson.order,
            locked,
        )
        return LessonChange(lesson=lesson, fan_out=await self._engine.on_lesson_created(lesson))

    async def get_lesson(self, lesson_id: UUID) -> Lesson:
        lesson = await self._stores.catalog.get_lesson(lesson_id)
        if lesson is None:
            raise LessonNotFoundError(lesson_id)
        return lesson

    async def update_lesson(
        self,
        lesson_id: UUID,
        *,
        title: str | None = None,
        video_url: str | None = None,
        locked: bool | None = None,
    ) -> Lesson:
        """Edit a lesson; None keeps a field, an empty video clears it.

        ``locked`` is the default for future enrollees only.  Current records
        change through the unlock and lock overrides, so nothing here touches
        progress.
        """
        lesson = await self.get_lesson(lesson_id)
        updated = replace(
            lesson,
            title=lesson.title if title is None else _require_title(title),
            video_url=lesson.video_url if video_url is None else (video_url or None),
            locked=lesson.locked if locked is None else locked,
        )
        if updated != lesson:
            await self._stores.catalog.save_lesson(updated)
            await self._cache.delete(course_key(lesson.course_id))
            logger.info("Updated lesson=%s", lesson_id)
        return updated

    async def reorder_lessons(self, chapter_id: UUID, lesson_ids: list[UUID]) -> list[Lesson]:
        chapter = await self.get_chapter(chapter_id)
        existing = await self._stores.catalog.list_chapter_lessons(chapter_id)
        _check_permutation(lesson_ids, [ls.id for ls in existing], "lesson")
        await self._stores.catalog.set_lesson_orders(chapter_id, lesson_ids)
        await self._structure_changed(chapter.course_id)
        logger.info("Reordered %d lessons in chapter=%s", len(lesson_ids), chapter_id)
        return await self._stores.catalog.list_chapter_lessons(chapter_id)

    async def delete_lesson(self, lesson_id: UUID) -> FanOutResult:
        return await self._remove_lesson(await self.get_lesson(lesson_id))

    async def _remove_lesson(self, lesson: Lesson) -> FanOutResult:
        await self._stores.catalog.delete_lesson(lesson.id)
        await self._structure_changed(lesson.course_id)
        logger.info("Deleted lesson=%s course=%s", lesson.id, lesson.course_id)
        return await self._engine.on_lesson_deleted(lesson.course_id, lesson.id)

    async def _structure_changed(self, course_id: UUID) -> None:
        version = await self._stores.catalog.bump_version(course_id)
        await self._cache.delete(course_key(course_id))
        logger.debug("Course=%s now at version %d", course_id, version)
