"""PostgreSQL implementation of LearnerRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.db.tables import CertificateRow, CompletedCourseRow
from coursehub.models.enrollment import Certificate


class PgLearnerRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add_completed_course(self, user_id: str, course_id: UUID) -> bool:
        stmt = (
            insert(CompletedCourseRow)
            .values(user_id=user_id, course_id=course_id)
            .on_conflict_do_nothing(index_elements=["user_id", "course_id"])
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def completed_courses(self, user_id: str) -> frozenset[UUID]:
        stmt = select(CompletedCourseRow.course_id).where(
            CompletedCourseRow.user_id == user_id
        )
        return frozenset((await self._session.execute(stmt)).scalars().all())

    async def get_certificate(self, user_id: str, course_id: UUID) -> Certificate | None:
        row = await self._session.get(CertificateRow, (user_id, course_id))
        if row is None:
            return None
        return _row_to_certificate(row)

    async def add_certificate(self, certificate: Certificate) -> bool:
        stmt = (
            insert(CertificateRow)
            .values(
                user_id=certificate.user_id,
                course_id=certificate.course_id,
                issued_at=certificate.issued_at,
                completed_at=certificate.completed_at,
                certificate_url=certificate.certificate_url,
            )
            .on_conflict_do_nothing(index_elements=["user_id", "course_id"])
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def list_certificates(self, user_id: str) -> list[Certificate]:
        stmt = (
            select(CertificateRow)
            .where(CertificateRow.user_id == user_id)
            .order_by(CertificateRow.issued_at)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_certificate(r) for r in rows]

    async def delete_by_course(self, course_id: UUID) -> int:
        completed = await self._session.execute(
            delete(CompletedCourseRow).where(CompletedCourseRow.course_id == course_id)
        )
        certificates = await self._session.execute(
            delete(CertificateRow).where(CertificateRow.course_id == course_id)
        )
        return completed.rowcount + certificates.rowcount


def _row_to_certificate(row: CertificateRow) -> Certificate:
    return Certificate(
        user_id=row.user_id,
        course_id=row.course_id,
        issued_at=row.issued_at,
        completed_at=row.completed_at,
        certificate_url=row.certificate_url,
    )
