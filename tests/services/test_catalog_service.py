from __future__ import annotations

import asyncio
from dataclasses import replace
from uuid import uuid4

import pytest

from coursehub.repos.stores import Stores
from coursehub.services.catalog_service import CatalogService
from coursehub.services.errors import (
    ChapterNotFoundError,
    CourseNotFoundError,
    InvalidInputError,
    LessonNotFoundError,
)
from coursehub.services.progress_engine import ProgressEngine
from tests.conftest import seed_course


def test_create_course_rejects_negative_price(stores: Stores) -> None:
    with pytest.raises(InvalidInputError):
        asyncio.run(CatalogService(stores).create_course("inst", "Python", price=-1))


def test_create_course_rejects_blank_title(stores: Stores) -> None:
    with pytest.raises(InvalidInputError, match="non-empty"):
        asyncio.run(CatalogService(stores).create_course("inst", "   "))


def test_get_unknown_course(stores: Stores) -> None:
    with pytest.raises(CourseNotFoundError):
        asyncio.run(CatalogService(stores).get_course(uuid4()))


def test_chapters_and_lessons_are_appended_in_order(stores: Stores) -> None:
    async def scenario():
        course = await seed_course(stores, (3, 1))
        chapters = await stores.catalog.list_chapters(course.course_id)
        lessons = await stores.catalog.list_chapter_lessons(course.chapter_ids[0])
        return chapters, lessons

    chapters, lessons = asyncio.run(scenario())
    assert [ch.order for ch in chapters] == [1, 2]
    assert [ls.order for ls in lessons] == [1, 2, 3]


def test_structural_changes_bump_version(stores: Stores) -> None:
    async def scenario():
        catalog = CatalogService(stores)
        course = await catalog.create_course("inst", "Python")
        chapter = await catalog.create_chapter(course.id, "Basics")
        await catalog.create_lesson(course.id, chapter.id, "Variables")
        return course.version, (await catalog.get_course(course.id)).version

    before, after = asyncio.run(scenario())
    assert after == before + 2


def test_lesson_must_belong_to_chapter_course(stores: Stores) -> None:
    async def scenario():
        python = await seed_course(stores, (1,), title="Python")
        rust = await seed_course(stores, (1,), title="Rust")
        await CatalogService(stores).create_lesson(
            python.course_id, rust.chapter_ids[0], "Ownership"
        )

    with pytest.raises(ChapterNotFoundError):
        asyncio.run(scenario())


def test_reorder_requires_exact_permutation(stores: Stores) -> None:
    async def scenario():
        course = await seed_course(stores, (3,))
        catalog = CatalogService(stores)
        with pytest.raises(InvalidInputError):
            await catalog.reorder_lessons(course.chapter_ids[0], course.lesson_ids[:2])
        with pytest.raises(InvalidInputError):
            await catalog.reorder_lessons(
                course.chapter_ids[0], [course.lesson_ids[0]] * 3
            )
        with pytest.raises(InvalidInputError):
            await catalog.reorder_chapters(course.course_id, [uuid4()])

    asyncio.run(scenario())


def test_reorder_changes_which_lesson_unlocks_next(stores: Stores) -> None:
    async def scenario():
        course = await seed_course(stores, (3,))
        l1, l2, l3 = course.lesson_ids
        engine = ProgressEngine(stores)
        await engine.enroll("alice", course.course_id)
        await CatalogService(stores, engine).reorder_lessons(course.chapter_ids[0], [l1, l3, l2])
        result = await engine.toggle_lesson_completion("alice", course.course_id, l1)
        return l3, result

    l3, result = asyncio.run(scenario())
    assert result.unlocked_lesson_id == l3


def test_reorder_chapters_moves_their_lessons(stores: Stores) -> None:
    async def scenario():
        course = await seed_course(stores, (1, 1))
        first, second = course.chapter_ids
        engine = ProgressEngine(stores)
        await CatalogService(stores, engine).reorder_chapters(course.course_id, [second, first])
        return course, await engine.outline(course.course_id)

    course, outline = asyncio.run(scenario())
    assert outline.lesson_ids == (course.lesson_ids[1], course.lesson_ids[0])


def test_delete_chapter_removes_its_lessons_from_progress(stores: Stores) -> None:
    async def scenario():
        course = await seed_course(stores, (2, 2))
        cid = course.course_id
        engine = ProgressEngine(stores)
        await engine.enroll("alice", cid)
        await engine.toggle_lesson_completion("alice", cid, course.lesson_ids[0])
        deletion = await CatalogService(stores, engine).delete_chapter(course.chapter_ids[0])
        progress = await engine.get_progress("alice", cid)
        remaining = await stores.catalog.list_lessons(cid)
        return course, deletion, progress, remaining

    course, deletion, progress, remaining = asyncio.run(scenario())
    assert len(deletion.lessons) == 2
    assert deletion.failed == ()
    assert [ls.id for ls in remaining] == course.lesson_ids[2:]
    assert progress.completed_lessons == ()
    assert progress.unlocked_lessons == (course.lesson_ids[2],)
    assert progress.completion_percentage == 0.0


def test_delete_unknown_lesson(stores: Stores) -> None:
    with pytest.raises(LessonNotFoundError):
        asyncio.run(CatalogService(stores).delete_lesson(uuid4()))


def test_course_detail_is_cached_and_invalidated(stores: Stores) -> None:
    async def scenario():
        course = await seed_course(stores, (1,))
        catalog = CatalogService(stores)
        first = await catalog.get_course_detail(course.course_id)
        # Bypass the service: the cached copy must still be served.
        course_row = await catalog.get_course(course.course_id)
        await stores.catalog.save_course(replace(course_row, title="Renamed"))
        cached = await catalog.get_course_detail(course.course_id)
        await catalog.create_lesson(course.course_id, course.chapter_ids[0], "Extra")
        fresh = await catalog.get_course_detail(course.course_id)
        return first, cached, fresh

    first, cached, fresh = asyncio.run(scenario())
    assert cached == first
    assert fresh["title"] == "Renamed"
    assert len(fresh["chapters"][0]["lessons"]) == 2


def test_update_course_keeps_unset_fields(stores: Stores) -> None:
    async def scenario():
        catalog = CatalogService(stores)
        course = await catalog.create_course("inst", "Python", "basics", price=10.0)
        updated = await catalog.update_course(course.id, price=12.5)
        return course, updated, await catalog.get_course(course.id)

    course, updated, stored = asyncio.run(scenario())
    assert updated.price == 12.5
    assert updated.title == course.title
    assert updated.description == "basics"
    assert updated.version == course.version
    assert stored == updated


def test_update_course_rejects_negative_price(stores: Stores) -> None:
    async def scenario():
        catalog = CatalogService(stores)
        course = await catalog.create_course("inst", "Python")
        await catalog.update_course(course.id, price=-5)

    with pytest.raises(InvalidInputError):
        asyncio.run(scenario())


def test_delete_course_removes_every_record(stores: Stores) -> None:
    async def scenario():
        course = await seed_course(stores, (1, 2))
        cid = course.course_id
        engine = ProgressEngine(stores)
        catalog = CatalogService(stores, engine)
        await engine.enroll("alice", cid)
        await engine.enroll("bob", cid)
        for lesson_id in course.lesson_ids:
            await engine.toggle_lesson_completion("alice", cid, lesson_id)
        deletion = await catalog.delete_course(cid)
        return course, deletion

    course, deletion = asyncio.run(scenario())
    cid = course.course_id
    assert deletion.progress_records == 2
    assert deletion.enrollments == 2
    assert asyncio.run(stores.catalog.get_course(cid)) is None
    assert asyncio.run(stores.catalog.list_chapters(cid)) == []
    assert asyncio.run(stores.catalog.list_lessons(cid)) == []
    assert asyncio.run(stores.progress.list_by_course(cid)) == []
    assert asyncio.run(stores.enrollments.count_by_course(cid)) == 0
    assert asyncio.run(stores.learners.completed_courses("alice")) == frozenset()


def test_delete_unknown_course(stores: Stores) -> None:
    with pytest.raises(CourseNotFoundError):
        asyncio.run(CatalogService(stores).delete_course(uuid4()))


def test_rename_chapter_leaves_structure_alone(stores: Stores) -> None:
    async def scenario():
        course = await seed_course(stores, (1,))
        before = await stores.catalog.get_course(course.course_id)
        chapter = await CatalogService(stores).rename_chapter(course.chapter_ids[0], " Basics ")
        after = await stores.catalog.get_course(course.course_id)
        return chapter, before, after

    chapter, before, after = asyncio.run(scenario())
    assert chapter.title == "Basics"
    assert after.version == before.version


def test_list_chapters_of_unknown_course(stores: Stores) -> None:
    with pytest.raises(CourseNotFoundError):
        asyncio.run(CatalogService(stores).list_chapters(uuid4()))


def test_update_lesson_clears_video_with_empty_string(stores: Stores) -> None:
    async def scenario():
        course = await seed_course(stores, (1,))
        catalog = CatalogService(stores)
        lesson_id = course.lesson_ids[0]
        renamed = await catalog.update_lesson(lesson_id, title="Welcome")
        cleared = await catalog.update_lesson(lesson_id, video_url="")
        return renamed, cleared

    renamed, cleared = asyncio.run(scenario())
    assert renamed.title == "Welcome"
    assert renamed.video_url == "https://videos.example.com/1-1.mp4"
    assert cleared.video_url is None
    assert cleared.title == "Welcome"
    assert cleared.locked is True


def test_update_unknown_lesson(stores: Stores) -> None:
    with pytest.raises(LessonNotFoundError):
        asyncio.run(CatalogService(stores).update_lesson(uuid4(), title="x"))


def test_unlocking_lesson_default_reaches_new_enrollees_only(stores: Stores) -> None:
    async def scenario():
        course = await seed_course(stores, (3,))
        cid = course.course_id
        engine = ProgressEngine(stores)
        await engine.enroll("alice", cid)
        await CatalogService(stores, engine).update_lesson(course.lesson_ids[2], locked=False)
        bob = await engine.enroll("bob", cid)
        return course, await engine.get_progress("alice", cid), bob

    course, alice, bob = asyncio.run(scenario())
    assert alice.unlocked_lessons == (course.lesson_ids[0],)
    assert bob.unlocked_lessons == (course.lesson_ids[0], course.lesson_ids[2])
