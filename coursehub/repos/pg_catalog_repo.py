"""PostgreSQL implementation of CatalogRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.db.tables import ChapterRow, CourseRow, LessonRow, course_version_seq
from coursehub.models.course import Chapter, Course, Lesson


class PgCatalogRepo:
    """Satisfies the CatalogRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # --- courses ---

    async def get_course(self, course_id: UUID) -> Course | None:
        row = await self._session.get(CourseRow, course_id)
        if row is None:
            return None
        return _row_to_course(row)

    async def add_course(self, course: Course) -> None:
        self._session.add(
            CourseRow(
                id=course.id,
                title=course.title,
                description=course.description,
                instructor_id=course.instructor_id,
                price=course.price,
                version=course.version,
                average_rating=course.average_rating,
                total_ratings=course.total_ratings,
            )
        )
        await self._session.flush()

    async def save_course(self, course: Course) -> None:
        stmt = (
            update(CourseRow)
            .where(CourseRow.id == course.id)
            .values(
                title=course.title,
                description=course.description,
                price=course.price,
                average_rating=course.average_rating,
                total_ratings=course.total_ratings,
            )
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise KeyError("course not found")

    async def bump_version(self, course_id: UUID) -> int:
        stmt = (
            update(CourseRow)
            .where(CourseRow.id == course_id)
            .values(version=course_version_seq.next_value())
            .returning(CourseRow.version)
        )
        version = (await self._session.execute(stmt)).scalar_one_or_none()
        if version is None:
            raise KeyError("course not found")
        return version

    async def delete_course(self, course_id: UUID) -> bool:
        # Lessons reference chapters, chapters reference the course.
        await self._session.execute(
            delete(LessonRow).where(LessonRow.course_id == course_id)
        )
        await self._session.execute(
            delete(ChapterRow).where(ChapterRow.course_id == course_id)
        )
        result = await self._session.execute(
            delete(CourseRow).where(CourseRow.id == course_id)
        )
        return result.rowcount > 0

    # --- chapters ---

    async def list_chapters(self, course_id: UUID) -> list[Chapter]:
        stmt = (
            select(ChapterRow)
            .where(ChapterRow.course_id == course_id)
            .order_by(ChapterRow.order)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_chapter(r) for r in rows]

    async def get_chapter(self, chapter_id: UUID) -> Chapter | None:
        row = await self._session.get(ChapterRow, chapter_id)
        if row is None:
            return None
        return _row_to_chapter(row)

    async def add_chapter(self, chapter: Chapter) -> None:
        self._session.add(
            ChapterRow(
                id=chapter.id,
                course_id=chapter.course_id,
                title=chapter.title,
                order=chapter.order,
            )
        )
        await self._session.flush()

    async def save_chapter(self, chapter: Chapter) -> None:
        stmt = (
            update(ChapterRow)
            .where(ChapterRow.id == chapter.id)
            .values(title=chapter.title)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise KeyError("chapter not found")

    async def delete_chapter(self, chapter_id: UUID) -> bool:
        result = await self._session.execute(
            delete(ChapterRow).where(ChapterRow.id == chapter_id)
        )
        return result.rowcount > 0

    async def set_chapter_orders(
        self, course_id: UUID, ordered_ids: list[UUID]
    ) -> None:
        for index, chapter_id in enumerate(ordered_ids):
            await self._session.execute(
                update(ChapterRow)
                .where(ChapterRow.id == chapter_id, ChapterRow.course_id == course_id)
                .values(order=index + 1)
            )

    # --- lessons ---

    async def list_lessons(self, course_id: UUID) -> list[Lesson]:
        stmt = select(LessonRow).where(LessonRow.course_id == course_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_lesson(r) for r in rows]

    async def list_chapter_lessons(self, chapter_id: UUID) -> list[Lesson]:
        stmt = (
            select(LessonRow)
            .where(LessonRow.chapter_id == chapter_id)
            .order_by(LessonRow.order)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_lesson(r) for r in rows]

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        row = await self._session.get(LessonRow, lesson_id)
        if row is None:
            return None
        return _row_to_lesson(row)

    async def add_lesson(self, lesson: Lesson) -> None:
        self._session.add(
            LessonRow(
                id=lesson.id,
                course_id=lesson.course_id,
                chapter_id=lesson.chapter_id,
                title=lesson.title,
                order=lesson.order,
                locked=lesson.locked,
                video_url=lesson.video_url,
            )
        )
        await self._session.flush()

    async def save_lesson(self, lesson: Lesson) -> None:
        stmt = (
            update(LessonRow)
            .where(LessonRow.id == lesson.id)
            .values(
                title=lesson.title,
                locked=lesson.locked,
                video_url=lesson.video_url,
            )
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise KeyError("lesson not found")

    async def delete_lesson(self, lesson_id: UUID) -> bool:
        result = await self._session.execute(
            delete(LessonRow).where(LessonRow.id == lesson_id)
        )
        return result.rowcount > 0

    async def set_lesson_orders(
        self, chapter_id: UUID, ordered_ids: list[UUID]
    ) -> None:
        for index, lesson_id in enumerate(ordered_ids):
            await self._session.execute(
                update(LessonRow)
                .where(LessonRow.id == lesson_id, LessonRow.chapter_id == chapter_id)
                .values(order=index + 1)
            )


def _row_to_course(row: CourseRow) -> Course:
    return Course(
        id=row.id,
        title=row.title,
        description=row.description or "",
        instructor_id=row.instructor_id,
        price=row.price,
        version=row.version,
        average_rating=row.average_rating,
        total_ratings=row.total_ratings,
    )


def _row_to_chapter(row: ChapterRow) -> Chapter:
    return Chapter(id=row.id, course_id=row.course_id, title=row.title, order=row.order)


def _row_to_lesson(row: LessonRow) -> Lesson:
    return Lesson(
        id=row.id,
        course_id=row.course_id,
        chapter_id=row.chapter_id,
        title=row.title,
        order=row.order,
        locked=row.locked,
        video_url=row.video_url,
    )
