from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from coursehub.models.course import Chapter, Course, Lesson


class CatalogRepo(Protocol):
    async def get_course(self, course_id: UUID) -> Course | None: ...
    async def add_course(self, course: Course) -> None: ...
    async def save_course(self, course: Course) -> None: ...
    async def bump_version(self, course_id: UUID) -> int: ...
    async def delete_course(self, course_id: UUID) -> bool: ...
    async def list_chapters(self, course_id: UUID) -> list[Chapter]: ...
    async def get_chapter(self, chapter_id: UUID) -> Chapter | None: ...
    async def add_chapter(self, chapter: Chapter) -> None: ...
    async def save_chapter(self, chapter: Chapter) -> None: ...
    async def delete_chapter(self, chapter_id: UUID) -> bool: ...
    async def set_chapter_orders(
        self, course_id: UUID, ordered_ids: list[UUID]
    ) -> None: ...
    async def list_lessons(self, course_id: UUID) -> list[Lesson]: ...
    async def list_chapter_lessons(self, chapter_id: UUID) -> list[Lesson]: ...
    async def get_lesson(self, lesson_id: UUID) -> Lesson | None: ...
    async def add_lesson(self, lesson: Lesson) -> None: ...
    async def save_lesson(self, lesson: Lesson) -> None: ...
    async def delete_lesson(self, lesson_id: UUID) -> bool: ...
    async def set_lesson_orders(
        self, chapter_id: UUID, ordered_ids: list[UUID]
    ) -> None: ...


class InMemoryCatalogRepo:
    def __init__(self) -> None:
        self._courses: dict[UUID, Course] = {}
        self._chapters: dict[UUID, Chapter] = {}
        self._lessons: dict[UUID, Lesson] = {}

    def clear(self) -> None:
        self._courses.clear()
        self._chapters.clear()
        self._lessons.clear()

    # --- courses ---

    async def get_course(self, course_id: UUID) -> Course | None:
        return self._courses.get(course_id)

    async def add_course(self, course: Course) -> None:
        if course.id in self._courses:
            raise ValueError("course already exists")
        self._courses[course.id] = course

    async def save_course(self, course: Course) -> None:
        if course.id not in self._courses:
            raise KeyError("course not found")
        self._courses[course.id] = course

    async def bump_version(self, course_id: UUID) -> int:
        c = self._courses.get(course_id)
        if c is None:
            raise KeyError("course not found")
        updated = replace(c, version=c.version + 1)
        self._courses[course_id] = updated
        return updated.version

    async def delete_course(self, course_id: UUID) -> bool:
        """Remove the course with its chapters and lessons."""
        if self._courses.pop(course_id, None) is None:
            return False
        for ch in [ch for ch in self._chapters.values() if ch.course_id == course_id]:
            del self._chapters[ch.id]
        for ls in [ls for ls in self._lessons.values() if ls.course_id == course_id]:
            del self._lessons[ls.id]
        return True

    # --- chapters ---

    async def list_chapters(self, course_id: UUID) -> list[Chapter]:
        chapters = [ch for ch in self._chapters.values() if ch.course_id == course_id]
        return sorted(chapters, key=lambda ch: ch.order)

    async def get_chapter(self, chapter_id: UUID) -> Chapter | None:
        return self._chapters.get(chapter_id)

    async def add_chapter(self, chapter: Chapter) -> None:
        self._chapters[chapter.id] = chapter

    async def save_chapter(self, chapter: Chapter) -> None:
        if chapter.id not in self._chapters:
            raise KeyError("chapter not found")
        self._chapters[chapter.id] = chapter

    async def delete_chapter(self, chapter_id: UUID) -> bool:
        return self._chapters.pop(chapter_id, None) is not None

    async def set_chapter_orders(
        self, course_id: UUID, ordered_ids: list[UUID]
    ) -> None:
        for index, chapter_id in enumerate(ordered_ids):
            ch = self._chapters.get(chapter_id)
            if ch is None or ch.course_id != course_id:
                continue
            self._chapters[chapter_id] = replace(ch, order=index + 1)

    # --- lessons ---

    async def list_lessons(self, course_id: UUID) -> list[Lesson]:
        return [ls for ls in self._lessons.values() if ls.course_id == course_id]

    async def list_chapter_lessons(self, chapter_id: UUID) -> list[Lesson]:
        lessons = [ls for ls in self._lessons.values() if ls.chapter_id == chapter_id]
        return sorted(lessons, key=lambda ls: ls.order)

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        return self._lessons.get(lesson_id)

    async def add_lesson(self, lesson: Lesson) -> None:
        self._lessons[lesson.id] = lesson

    async def save_lesson(self, lesson: Lesson) -> None:
        if lesson.id not in self._lessons:
            raise KeyError("lesson not found")
        self._lessons[lesson.id] = lesson

    async def delete_lesson(self, lesson_id: UUID) -> bool:
        return self._lessons.pop(lesson_id, None) is not None

    async def set_lesson_orders(
        self, chapter_id: UUID, ordered_ids: list[UUID]
    ) -> None:
        for index, lesson_id in enumerate(ordered_ids):
            ls = self._lessons.get(lesson_id)
            if ls is None or ls.chapter_id != chapter_id:
                continue
            self._lessons[lesson_id] = replace(ls, order=index + 1)
