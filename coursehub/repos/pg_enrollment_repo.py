"""PostgreSQL implementation of EnrollmentRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.db.tables import EnrollmentRow
from coursehub.models.enrollment import Enrollment


class PgEnrollmentRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: str, course_id: UUID) -> Enrollment | None:
        row = await self._session.get(EnrollmentRow, (user_id, course_id))
        if row is None:
            return None
        return _row_to_enrollment(row)

    async def add(self, enrollment: Enrollment) -> bool:
        # A concurrent enroll for the same pair waits on the unique index
        # until the first commits, then inserts nothing.
        stmt = (
            insert(EnrollmentRow)
            .values(
                user_id=enrollment.user_id,
                course_id=enrollment.course_id,
                enrolled_at=enrollment.enrolled_at,
            )
            .on_conflict_do_nothing(index_elements=["user_id", "course_id"])
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def remove(self, user_id: str, course_id: UUID) -> bool:
        result = await self._session.execute(
            delete(EnrollmentRow).where(
                EnrollmentRow.user_id == user_id, EnrollmentRow.course_id == course_id
            )
        )
        return result.rowcount > 0

    async def list_by_course(self, course_id: UUID) -> list[Enrollment]:
        stmt = select(EnrollmentRow).where(EnrollmentRow.course_id == course_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def count_by_course(self, course_id: UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(EnrollmentRow)
            .where(EnrollmentRow.course_id == course_id)
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def delete_by_course(self, course_id: UUID) -> int:
        result = await self._session.execute(
            delete(EnrollmentRow).where(EnrollmentRow.course_id == course_id)
        )
        return result.rowcount


def _row_to_enrollment(row: EnrollmentRow) -> Enrollment:
    return Enrollment(
        user_id=row.user_id, course_id=row.course_id, enrolled_at=row.enrolled_at
    )
