"""PostgreSQL implementation of ProgressRepo.

The completed set lives in its own table keyed by (user, course, lesson),
so a lesson can be recorded as completed at most once even if two writers
race past the application lock.  The unlocked set is a UUID array on the
progress row; the course-wide fan-outs update it with one statement each.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

from sqlalchemy import and_, delete, func, not_, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.db.tables import ProgressCompletionRow, ProgressRow
from coursehub.models.progress import CompletedLesson, Progress
from coursehub.services.errors import ProgressExistsError


class PgProgressRepo:
    """Satisfies the ProgressRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: str, course_id: UUID) -> Progress | None:
        stmt = select(ProgressRow).where(
            ProgressRow.user_id == user_id, ProgressRow.course_id == course_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_progress(row, await self._completions(user_id, course_id))

    async def get_for_update(self, user_id: str, course_id: UUID) -> Progress | None:
        # Row lock held until the surrounding transaction ends, so a second
        # writer on another API instance reads the committed result.
        stmt = (
            select(ProgressRow)
            .where(ProgressRow.user_id == user_id, ProgressRow.course_id == course_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_progress(row, await self._completions(user_id, course_id))

    async def insert(self, progress: Progress) -> None:
        if not await self._insert_row(progress):
            raise ProgressExistsError(
                f"progress already exists for ({progress.user_id}, {progress.course_id})"
            )

    async def _insert_row(self, progress: Progress) -> bool:
        stmt = (
            insert(ProgressRow)
            .values(
                user_id=progress.user_id,
                course_id=progress.course_id,
                unlocked_lessons=list(progress.unlocked_lessons),
                completion_percentage=progress.completion_percentage,
                created_at=progress.created_at,
                updated_at=progress.updated_at,
            )
            .on_conflict_do_nothing(index_elements=["user_id", "course_id"])
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return False
        await self._sync_completions(progress)
        return True

    async def save(self, progress: Progress) -> None:
        stmt = (
            update(ProgressRow)
            .where(
                ProgressRow.user_id == progress.user_id,
                ProgressRow.course_id == progress.course_id,
            )
            .values(
                unlocked_lessons=list(progress.unlocked_lessons),
                completion_percentage=progress.completion_percentage,
                updated_at=progress.updated_at,
            )
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise KeyError("progress not found")
        await self._sync_completions(progress)

    async def delete(self, user_id: str, course_id: UUID) -> bool:
        await self._session.execute(
            delete(ProgressCompletionRow).where(
                ProgressCompletionRow.user_id == user_id,
                ProgressCompletionRow.course_id == course_id,
            )
        )
        result = await self._session.execute(
            delete(ProgressRow).where(
                ProgressRow.user_id == user_id, ProgressRow.course_id == course_id
            )
        )
        return result.rowcount > 0

    async def list_by_course(self, course_id: UUID) -> list[Progress]:
        rows = (
            (
                await self._session.execute(
                    select(ProgressRow).where(ProgressRow.course_id == course_id)
                )
            )
            .scalars()
            .all()
        )
        completions = (
            (
                await self._session.execute(
                    select(ProgressCompletionRow)
                    .where(ProgressCompletionRow.course_id == course_id)
                    .order_by(ProgressCompletionRow.completed_at)
                )
            )
            .scalars()
            .all()
        )
        by_user: dict[str, list[ProgressCompletionRow]] = {}
        for c in completions:
            by_user.setdefault(c.user_id, []).append(c)
        return [_row_to_progress(r, by_user.get(r.user_id, [])) for r in rows]

    async def delete_by_course(self, course_id: UUID) -> int:
        await self._session.execute(
            delete(ProgressCompletionRow).where(
                ProgressCompletionRow.course_id == course_id
            )
        )
        result = await self._session.execute(
            delete(ProgressRow).where(ProgressRow.course_id == course_id)
        )
        return result.rowcount

    async def add_unlocked_for_course(self, course_id: UUID, lesson_id: UUID) -> int:
        stmt = (
            update(ProgressRow)
            .where(
                and_(
                    ProgressRow.course_id == course_id,
                    not_(ProgressRow.unlocked_lessons.contains([lesson_id])),
                )
            )
            .values(
                unlocked_lessons=func.array_append(
                    ProgressRow.unlocked_lessons, lesson_id
                )
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    async def remove_unlocked_for_course(
        self, course_id: UUID, lesson_id: UUID
    ) -> int:
        stmt = (
            update(ProgressRow)
            .where(
                and_(
                    ProgressRow.course_id == course_id,
                    ProgressRow.unlocked_lessons.contains([lesson_id]),
                )
            )
            .values(
                unlocked_lessons=func.array_remove(
                    ProgressRow.unlocked_lessons, lesson_id
                )
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        async with self._session.begin_nested():
            yield

    async def _completions(
        self, user_id: str, course_id: UUID
    ) -> list[ProgressCompletionRow]:
        stmt = (
            select(ProgressCompletionRow)
            .where(
                ProgressCompletionRow.user_id == user_id,
                ProgressCompletionRow.course_id == course_id,
            )
            .order_by(ProgressCompletionRow.completed_at)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def _sync_completions(self, progress: Progress) -> None:
        """Make the completions table match ``progress.completed_lessons``."""
        wanted = {c.lesson_id: c.completed_at for c in progress.completed_lessons}

        await self._session.execute(
            delete(ProgressCompletionRow)
            .where(
                ProgressCompletionRow.user_id == progress.user_id,
                ProgressCompletionRow.course_id == progress.course_id,
                ProgressCompletionRow.lesson_id.not_in(list(wanted)),
            )
            .execution_options(synchronize_session=False)
        )
        if not wanted:
            return
        stmt = (
            insert(ProgressCompletionRow)
            .values(
                [
                    {
                        "user_id": progress.user_id,
                        "course_id": progress.course_id,
                        "lesson_id": lesson_id,
                        "completed_at": completed_at,
                    }
                    for lesson_id, completed_at in wanted.items()
                ]
            )
            .on_conflict_do_nothing(
                index_elements=["user_id", "course_id", "lesson_id"]
            )
        )
        await self._session.execute(stmt)


def _row_to_progress(
    row: ProgressRow, completions: list[ProgressCompletionRow]
) -> Progress:
    return Progress(
        user_id=row.user_id,
        course_id=row.course_id,
        completed_lessons=tuple(
            CompletedLesson(lesson_id=c.lesson_id, completed_at=c.completed_at)
            for c in completions
        ),
        unlocked_lessons=tuple(row.unlocked_lessons or ()),
        completion_percentage=row.completion_percentage,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
