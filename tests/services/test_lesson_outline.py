from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from coursehub.models.course import Chapter, Lesson
from coursehub.repos.stores import Stores
from coursehub.services.catalog_service import CatalogService
from coursehub.services.errors import CourseNotFoundError
from coursehub.services.lesson_outline import LessonOutline, OutlineCache
from tests.conftest import seed_course

COURSE = uuid4()


def _chapter(order: int) -> Chapter:
    return Chapter.new(course_id=COURSE, title=f"Chapter {order}", order=order)


def _lesson(chapter: Chapter, order: int) -> Lesson:
    return Lesson.new(course_id=COURSE, chapter_id=chapter.id, title="x", order=order)


def test_outline_orders_by_chapter_then_lesson() -> None:
    second, first = _chapter(2), _chapter(1)
    # Creation order deliberately differs from course order.
    b2, a1, b1, a2 = _lesson(second, 2), _lesson(first, 1), _lesson(second, 1), _lesson(first, 2)

    outline = LessonOutline.build(COURSE, 1, [second, first], [b2, a1, b1, a2])

    assert outline.lesson_ids == (a1.id, a2.id, b1.id, b2.id)
    assert outline.first == a1.id
    assert outline.next_after(a2.id) == b1.id
    assert outline.next_after(b2.id) is None


def test_outline_skips_lessons_of_missing_chapters() -> None:
    kept = _chapter(1)
    orphan = Lesson.new(course_id=COURSE, chapter_id=uuid4(), title="x", order=1)
    outline = LessonOutline.build(COURSE, 1, [kept], [_lesson(kept, 1), orphan])
    assert outline.total == 1
    assert orphan.id not in outline


def test_empty_outline() -> None:
    outline = LessonOutline.build(COURSE, 1, [], [])
    assert outline.total == 0
    assert outline.first is None
    assert outline.percentage(0) == 0.0
    assert outline.next_after(uuid4()) is None


@pytest.mark.parametrize(
    ("completed", "expected"),
    [(0, 0.0), (1, 25.0), (3, 75.0), (4, 100.0), (9, 100.0)],
)
def test_percentage_is_clamped(completed: int, expected: float) -> None:
    chapter = _chapter(1)
    outline = LessonOutline.build(
        COURSE, 1, [chapter], [_lesson(chapter, n) for n in range(1, 5)]
    )
    assert outline.percentage(completed) == expected


def test_cache_follows_course_version(stores: Stores) -> None:
    cache = OutlineCache()

    async def scenario():
        course = await seed_course(stores, (2,))
        before = await cache.get(stores.catalog, course.course_id)
        again = await cache.get(stores.catalog, course.course_id)
        await CatalogService(stores).reorder_lessons(
            course.chapter_ids[0], list(reversed(course.lesson_ids))
        )
        after = await cache.get(stores.catalog, course.course_id)
        return course, before, again, after

    course, before, again, after = asyncio.run(scenario())
    assert again is before
    assert after.version > before.version
    assert after.lesson_ids == tuple(reversed(course.lesson_ids))


def test_cache_unknown_course(stores: Stores) -> None:
    with pytest.raises(CourseNotFoundError):
        asyncio.run(OutlineCache().get(stores.catalog, uuid4()))
