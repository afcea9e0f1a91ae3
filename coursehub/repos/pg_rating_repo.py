"""PostgreSQL implementation of RatingRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.db.tables import RatingRow
from coursehub.models.course import Rating


class PgRatingRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: str, course_id: UUID) -> Rating | None:
        row = await self._session.get(RatingRow, (user_id, course_id))
        if row is None:
            return None
        return _row_to_rating(row)

    async def upsert(self, rating: Rating) -> bool:
        existed = await self.get(rating.user_id, rating.course_id) is not None
        stmt = insert(RatingRow).values(
            user_id=rating.user_id,
            course_id=rating.course_id,
            rate=rating.rate,
            comment=rating.comment,
            updated_at=rating.updated_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "course_id"],
            set_={
                "rate": stmt.excluded.rate,
                "comment": stmt.excluded.comment,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        await self._session.execute(stmt)
        return existed

    async def delete(self, user_id: str, course_id: UUID) -> Rating | None:
        stmt = (
            delete(RatingRow)
            .where(RatingRow.user_id == user_id, RatingRow.course_id == course_id)
            .returning(RatingRow)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_rating(row)

    async def list_by_course(self, course_id: UUID) -> list[Rating]:
        stmt = (
            select(RatingRow)
            .where(RatingRow.course_id == course_id)
            .order_by(RatingRow.updated_at.desc(), RatingRow.rate.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_rating(r) for r in rows]

    async def summary(self, course_id: UUID) -> tuple[float, int]:
        stmt = select(func.avg(RatingRow.rate), func.count()).where(
            RatingRow.course_id == course_id
        )
        average, count = (await self._session.execute(stmt)).one()
        return float(average or 0.0), int(count)

    async def distribution(self, course_id: UUID) -> dict[int, int]:
        stmt = (
            select(RatingRow.rate, func.count())
            .where(RatingRow.course_id == course_id)
            .group_by(RatingRow.rate)
        )
        rows = (await self._session.execute(stmt)).all()
        return {int(rate): int(count) for rate, count in rows}

    async def delete_by_course(self, course_id: UUID) -> int:
        result = await self._session.execute(
            delete(RatingRow).where(RatingRow.course_id == course_id)
        )
        return result.rowcount


def _row_to_rating(row: RatingRow) -> Rating:
    return Rating(
        user_id=row.user_id,
        course_id=row.course_id,
        rate=row.rate,
        comment=row.comment,
        updated_at=row.updated_at,
    )
