"""PostgreSQL repos without a database.

A recording session captures the statements the repos build; they are
compiled with the PostgreSQL dialect and checked for the clauses the
concurrency guarantees depend on.
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from uuid import uuid4

import pytest
from sqlalchemy.dialects import postgresql

from coursehub.db.tables import CourseRow, ProgressCompletionRow, ProgressRow
from coursehub.models.progress import CompletedLesson, Progress
from coursehub.models.enrollment import Enrollment
from coursehub.repos.pg_catalog_repo import PgCatalogRepo, _row_to_course
from coursehub.repos.pg_enrollment_repo import PgEnrollmentRepo
from coursehub.repos.pg_progress_repo import PgProgressRepo, _row_to_progress


class RecordingSession:
    def __init__(self, rowcount: int = 1) -> None:
        self.statements: list = []
        self.rowcount = rowcount

    async def execute(self, stmt):
        self.statements.append(stmt)
        return SimpleNamespace(rowcount=self.rowcount)

    def sql(self, index: int = -1) -> str:
        return str(self.statements[index].compile(dialect=postgresql.dialect()))


def test_unlock_fan_out_is_one_conditional_statement() -> None:
    session = RecordingSession(rowcount=3)
    repo = PgProgressRepo(session)  # type: ignore[arg-type]

    changed = asyncio.run(repo.add_unlocked_for_course(uuid4(), uuid4()))

    assert changed == 3
    assert len(session.statements) == 1
    sql = session.sql()
    assert sql.startswith("UPDATE progress")
    assert "array_append" in sql
    assert "NOT (progress.unlocked_lessons @>" in sql


def test_lock_fan_out_removes_from_array() -> None:
    session = RecordingSession()
    asyncio.run(PgProgressRepo(session).remove_unlocked_for_course(uuid4(), uuid4()))  # type: ignore[arg-type]
    sql = session.sql()
    assert "array_remove" in sql
    assert "progress.unlocked_lessons @>" in sql


def test_get_for_update_locks_the_row() -> None:
    class EmptySession(RecordingSession):
        async def execute(self, stmt):
            self.statements.append(stmt)
            return SimpleNamespace(scalar_one_or_none=lambda: None)

    session = EmptySession()
    result = asyncio.run(PgProgressRepo(session).get_for_update("alice", uuid4()))  # type: ignore[arg-type]
    assert result is None
    assert session.sql().endswith("FOR UPDATE")


def test_save_of_missing_record_raises() -> None:
    session = RecordingSession(rowcount=0)
    progress = Progress.new(user_id="alice", course_id=uuid4(), now=1)
    with pytest.raises(KeyError):
        asyncio.run(PgProgressRepo(session).save(progress))  # type: ignore[arg-type]


def test_save_syncs_completion_rows() -> None:
    session = RecordingSession()
    lesson_id = uuid4()
    progress = Progress(
        user_id="alice",
        course_id=uuid4(),
        completed_lessons=(CompletedLesson(lesson_id=lesson_id, completed_at=5),),
        unlocked_lessons=(lesson_id,),
        completion_percentage=50.0,
        created_at=1,
        updated_at=5,
    )
    asyncio.run(PgProgressRepo(session).save(progress))  # type: ignore[arg-type]

    update_sql, delete_sql, insert_sql = (session.sql(i) for i in range(3))
    assert update_sql.startswith("UPDATE progress")
    assert delete_sql.startswith("DELETE FROM progress_completions")
    assert "NOT IN" in delete_sql
    assert insert_sql.startswith("INSERT INTO progress_completions")
    assert "ON CONFLICT (user_id, course_id, lesson_id) DO NOTHING" in insert_sql


def test_row_to_progress_keeps_completion_order() -> None:
    course_id = uuid4()
    first, second = uuid4(), uuid4()
    row = ProgressRow(
        user_id="alice",
        course_id=course_id,
        unlocked_lessons=[first, second],
        completion_percentage=100.0,
        created_at=1,
        updated_at=9,
    )
    completions = [
        ProgressCompletionRow(user_id="alice", course_id=course_id, lesson_id=first, completed_at=3),
        ProgressCompletionRow(user_id="alice", course_id=course_id, lesson_id=second, completed_at=7),
    ]

    progress = _row_to_progress(row, completions)

    assert [c.lesson_id for c in progress.completed_lessons] == [first, second]
    assert progress.unlocked_lessons == (first, second)
    assert progress.completion_percentage == 100.0


def test_row_to_course_defaults_missing_description() -> None:
    row = CourseRow(
        id=uuid4(),
        title="Python",
        description=None,
        instructor_id="prof",
        price=0.0,
        version=3,
        average_rating=0.0,
        total_ratings=0,
    )
    assert _row_to_course(row).description == ""


def test_duplicate_enrollment_insert_reports_false() -> None:
    session = RecordingSession(rowcount=0)
    enrollment = Enrollment(user_id="alice", course_id=uuid4(), enrolled_at=1)

    added = asyncio.run(PgEnrollmentRepo(session).add(enrollment))  # type: ignore[arg-type]

    assert added is False
    sql = session.sql()
    assert sql.startswith("INSERT INTO enrollments")
    assert "ON CONFLICT (user_id, course_id) DO NOTHING" in sql


def test_version_bump_draws_from_sequence() -> None:
    class VersionSession(RecordingSession):
        async def execute(self, stmt):
            self.statements.append(stmt)
            return SimpleNamespace(scalar_one_or_none=lambda: 42)

    session = VersionSession()
    version = asyncio.run(PgCatalogRepo(session).bump_version(uuid4()))  # type: ignore[arg-type]

    assert version == 42
    sql = session.sql()
    assert "nextval('course_version_seq')" in sql
    assert "courses.version + " not in sql


def test_delete_course_removes_children_first() -> None:
    session = RecordingSession()
    deleted = asyncio.run(PgCatalogRepo(session).delete_course(uuid4()))  # type: ignore[arg-type]

    assert deleted is True
    assert [session.sql(i).split(" WHERE")[0] for i in range(3)] == [
        "DELETE FROM lessons",
        "DELETE FROM chapters",
        "DELETE FROM courses",
    ]


def test_progress_delete_by_course_clears_completions_too() -> None:
    session = RecordingSession(rowcount=2)
    removed = asyncio.run(PgProgressRepo(session).delete_by_course(uuid4()))  # type: ignore[arg-type]

    assert removed == 2
    assert session.sql(0).startswith("DELETE FROM progress_completions")
    assert session.sql(1).startswith("DELETE FROM progress ")
