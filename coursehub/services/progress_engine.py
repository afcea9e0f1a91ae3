"""Progress-driven lesson unlocking and course completion.

Every read-modify-write of a progress record happens inside
``keyed_lock.hold(progress:{user}:{course})``; with PostgreSQL the record
is additionally read ``FOR UPDATE`` in the request transaction.  Inside
that unit the engine:

  1. snapshots the course outline (order and lesson total),
  2. reads the record,
  3. applies the change as a pure function of (record, outline, now),
  4. writes the record back.

The completion percentage is re-derived from the size of the completed set
and the outline total at step 3 every time.  It is never incremented.

Course-wide operations come in two shapes.  Unlock and lock are one batch
statement over all records of the course.  Lesson deletion and
reconciliation visit each record under its own lock and savepoint, and
report which learners failed so the operation can be re-run; each
per-record step is idempotent.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Callable
from dataclasses import replace
from uuid import UUID

from coursehub.core.metrics import (
    COURSE_COMPLETIONS,
    FANOUT_RECORDS,
    LESSON_TOGGLES,
    LESSONS_UNLOCKED_BY_PROGRESS,
)
from coursehub.models.course import Lesson
from coursehub.models.enrollment import Enrollment
from coursehub.models.progress import (
    CompletedLesson,
    FanOutResult,
    Progress,
    ToggleOutcome,
    ToggleResult,
)
from coursehub.repos.stores import Stores
from coursehub.services.errors import (
    AlreadyEnrolledError,
    LessonLockedError,
    LessonNotFoundError,
    NotEnrolledError,
    ProgressExistsError,
    ProgressNotFoundError,
)
from coursehub.services.keyed_lock import KeyedLock, keyed_lock, progress_key
from coursehub.services.lesson_outline import LessonOutline, OutlineCache, outline_cache

logger = logging.getLogger(__name__)


def _now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


def _log_context(user_id: str, course_id: UUID, lesson_id: UUID) -> dict[str, object]:
    return {"user_id": user_id, "course_id": course_id, "lesson_id": lesson_id}


# ---------------------------------------------------------------------------
# Pure record transitions
# ---------------------------------------------------------------------------


def _restore_frontier(
    unlocked: tuple[UUID, ...],
    completed: tuple[CompletedLesson, ...],
    outline: LessonOutline,
) -> tuple[UUID, ...]:
    done = {c.lesson_id for c in completed}
    due = [] if outline.first is None else [outline.first]
    due += [
        following
        for current, following in zip(outline.lesson_ids, outline.lesson_ids[1:])
        if current in done
    ]
    for lesson_id in due:
        if lesson_id not in unlocked:
            unlocked = (*unlocked, lesson_id)
    return unlocked


def _initial_unlocks(outline: LessonOutline, lessons: list[Lesson]) -> tuple[UUID, ...]:
    """First lesson plus every lesson authored as unlocked, in course order."""
    open_ids = {ls.id for ls in lessons if not ls.locked}
    return tuple(
        lid for index, lid in enumerate(outline.lesson_ids) if index == 0 or lid in open_ids
    )


def compact(progress: Progress, outline: LessonOutline, now: int) -> Progress:
    """Drop lesson ids the course no longer has and re-derive the percentage.

    Dropping an unlocked lesson re-derives the frontier: the first lesson
    and every lesson that now follows a completed one are unlocked, so a
    learner whose next lesson was deleted can carry on.

    Returns *progress* itself when nothing changes, so callers can skip
    the write.
    """
    completed = tuple(c for c in progress.completed_lessons if c.lesson_id in outline)
    unlocked = tuple(lid for lid in progress.unlocked_lessons if lid in outline)
    if len(unlocked) < len(progress.unlocked_lessons):
        unlocked = _restore_frontier(unlocked, completed, outline)
    percentage = outline.percentage(len(completed))
    if (
        completed == progress.completed_lessons
        and unlocked == progress.unlocked_lessons
        and percentage == progress.completion_percentage
    ):
        return progress
    return replace(
        progress,
        completed_lessons=completed,
        unlocked_lessons=unlocked,
        completion_percentage=percentage,
        updated_at=now,
    )


def apply_toggle(
    progress: Progress, lesson_id: UUID, outline: LessonOutline, now: int
) -> tuple[Progress, ToggleResult]:
    """Complete *lesson_id* if it is not completed, un-complete it otherwise.

    Completing unlocks the next lesson of the outline when there is one
    and it is not unlocked yet.  Un-completing never takes an unlock back.
    """
    if not progress.is_unlocked(lesson_id):
        raise LessonLockedError(lesson_id)

    progress = compact(progress, outline, now)
    unlocked_next: UUID | None = None

    if progress.is_completed(lesson_id):
        outcome = ToggleOutcome.UNCOMPLETED
        completed = tuple(
            c for c in progress.completed_lessons if c.lesson_id != lesson_id
        )
        unlocked = progress.unlocked_lessons
    else:
        outcome = ToggleOutcome.COMPLETED
        completed = (
            *progress.completed_lessons,
            CompletedLesson(lesson_id=lesson_id, completed_at=now),
        )
        unlocked = progress.unlocked_lessons
        candidate = outline.next_after(lesson_id)
        if candidate is not None and candidate not in unlocked:
            unlocked = (*unlocked, candidate)
            unlocked_next = candidate

    percentage = outline.percentage(len(completed))
    updated = replace(
        progress,
        completed_lessons=completed,
        unlocked_lessons=unlocked,
        completion_percentage=percentage,
        updated_at=now,
    )
    course_completed = (
        outcome is ToggleOutcome.COMPLETED
        and outline.total > 0
        and len(completed) == outline.total
    )
    return updated, ToggleResult(
        outcome=outcome,
        percentage=percentage,
        unlocked_lesson_id=unlocked_next,
        course_completed=course_completed,
    )


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class ProgressEngine:
    def __init__(
        self,
        stores: Stores,
        *,
        lock: KeyedLock | None = None,
        outlines: OutlineCache | None = None,
        clock: Callable[[], int] = _now,
    ) -> None:
        self._stores = stores
        self._lock = lock if lock is not None else keyed_lock
        self._outlines = outlines if outlines is not None else outline_cache
        self._clock = clock

    async def outline(self, course_id: UUID) -> LessonOutline:
        return await self._outlines.get(self._stores.catalog, course_id)

    # --- enrollment ---

    async def enroll(self, user_id: str, course_id: UUID) -> Progress:
        """Enroll *user_id*.

        The new record has the first lesson unlocked, along with every
        lesson authored with ``locked=False``.
        """
        await self.outline(course_id)  # CourseNotFoundError

        async with self._lock.hold(progress_key(user_id, course_id)):
            outline = await self.outline(course_id)
            now = self._clock()

            # The enrollment row is written first: with PostgreSQL a second
            # enroll for the pair blocks on it until the first commits, so
            # it can never get as far as the progress record.
            enrollment = Enrollment(user_id=user_id, course_id=course_id, enrolled_at=now)
            if not await self._stores.enrollments.add(enrollment):
                logger.warning(
                    "Rejected duplicate enrollment user=%s course=%s", user_id, course_id
                )
                raise AlreadyEnrolledError(user_id, course_id)

            initial = _initial_unlocks(
                outline, await self._stores.catalog.list_lessons(course_id)
            )
            existing = await self._stores.progress.get_for_update(user_id, course_id)
            if existing is None:
                progress = Progress.new(
                    user_id=user_id, course_id=course_id, now=now, unlocked_lessons=initial
                )
                try:
                    await self._stores.progress.insert(progress)
                except ProgressExistsError:
                    existing = await self._stores.progress.get_for_update(user_id, course_id)
                    if existing is None:
                        raise
            if existing is not None:
                # A record without an enrollment is reused so the pair never
                # has two.
                progress = compact(existing, outline, now)
                missing = tuple(i for i in initial if i not in progress.unlocked_lessons)
                if missing:
                    progress = replace(
                        progress,
                        unlocked_lessons=(*missing, *progress.unlocked_lessons),
                        updated_at=now,
                    )
                if progress is not existing:
                    await self._stores.progress.save(progress)

        logger.info(
            "Enrolled user=%s in course=%s (%d lessons)", user_id, course_id, outline.total
        )
        return progress

    async def unenroll(self, user_id: str, course_id: UUID) -> None:
        """Remove the enrollment and the progress record.

        Completed courses and certificates stay with the learner.
        """
        async with self._lock.hold(progress_key(user_id, course_id)):
            if not await self._stores.enrollments.remove(user_id, course_id):
                raise NotEnrolledError(user_id, course_id)
            await self._stores.progress.delete(user_id, course_id)
        logger.info("Unenrolled user=%s from course=%s", user_id, course_id)

    # --- per-learner progress ---

    async def get_progress(self, user_id: str, course_id: UUID) -> Progress:
        progress = await self._stores.progress.get(user_id, course_id)
        if progress is None:
            raise ProgressNotFoundError(user_id, course_id)
        return progress

    async def toggle_lesson_completion(
        self, user_id: str, course_id: UUID, lesson_id: UUID
    ) -> ToggleResult:
        lesson = await self._stores.catalog.get_lesson(lesson_id)
        if lesson is None or lesson.course_id != course_id:
            LESSON_TOGGLES.labels(outcome="not_found").inc()
            raise LessonNotFoundError(lesson_id)

        async with self._lock.hold(progress_key(user_id, course_id)):
            # Snapshot the outline inside the lock so the lesson total and
            # the set mutation belong to the same unit.
            outline = await self.outline(course_id)
            if lesson_id not in outline:
                LESSON_TOGGLES.labels(outcome="not_found").inc()
                raise LessonNotFoundError(lesson_id)

            now = self._clock()
            progress = await self._stores.progress.get_for_update(user_id, course_id)
            created = progress is None
            if progress is None:
                # Upsert: the record is only written once the toggle itself
                # succeeds, so a rejected toggle leaves no empty record.
                progress = Progress.new(user_id=user_id, course_id=course_id, now=now)

            try:
                updated, result = apply_toggle(progress, lesson_id, outline, now)
            except LessonLockedError:
                LESSON_TOGGLES.labels(outcome="locked").inc()
                logger.warning(
                    "Rejected toggle of locked lesson=%s user=%s",
                    lesson_id,
                    user_id,
                    extra=_log_context(user_id, course_id, lesson_id),
                )
                raise

            if created:
                await self._stores.progress.insert(updated)
            else:
                await self._stores.progress.save(updated)

            if result.course_completed:
                # Set-add, so repeating it after an uncomplete/complete cycle
                # leaves a single entry.
                await self._stores.learners.add_completed_course(user_id, course_id)
                COURSE_COMPLETIONS.inc()

        LESSON_TOGGLES.labels(outcome=result.outcome.value).inc()
        if result.unlocked_lesson_id is not None:
            LESSONS_UNLOCKED_BY_PROGRESS.inc()
        logger.info(
            "Lesson %s %s by user=%s course=%s percentage=%.2f",
            lesson_id,
            result.outcome.value,
            user_id,
            course_id,
            result.percentage,
            extra=_log_context(user_id, course_id, lesson_id),
        )
        if result.course_completed:
            logger.info("User=%s completed course=%s", user_id, course_id)
        return result

    # --- course-wide operations ---

    async def unlock_lesson(self, lesson_id: UUID) -> FanOutResult:
        lesson = await self._require_lesson(lesson_id)
        changed = await self._stores.progress.add_unlocked_for_course(
            lesson.course_id, lesson_id
        )
        return self._batch_result("unlock", lesson, changed)

    async def lock_lesson(self, lesson_id: UUID) -> FanOutResult:
        lesson = await self._require_lesson(lesson_id)
        changed = await self._stores.progress.remove_unlocked_for_course(
            lesson.course_id, lesson_id
        )
        return self._batch_result("lock", lesson, changed)

    async def on_lesson_created(self, lesson: Lesson) -> FanOutResult | None:
        """Unlock a lesson authored as unlocked for every current learner."""
        if lesson.locked:
            return None
        changed = await self._stores.progress.add_unlocked_for_course(
            lesson.course_id, lesson.id
        )
        return self._batch_result("unlock", lesson, changed)

    async def on_lesson_deleted(self, course_id: UUID, lesson_id: UUID) -> FanOutResult:
        """Purge a deleted lesson from every record of its course.

        Expects the lesson to be gone from the catalog already.
        """
        return await self._fan_out("delete", course_id, lesson_id)

    async def reconcile_course(self, course_id: UUID) -> FanOutResult:
        """Re-run the deletion purge for every record; safe to repeat."""
        return await self._fan_out("reconcile", course_id, None)

    async def on_course_deleted(self, course_id: UUID) -> int:
        """Drop every progress record of a course that is being deleted."""
        removed = await self._stores.progress.delete_by_course(course_id)
        self._outlines.forget(course_id)
        logger.info("Dropped %d progress records of deleted course=%s", removed, course_id)
        return removed

    # --- internals ---

    async def _require_lesson(self, lesson_id: UUID) -> Lesson:
        lesson = await self._stores.catalog.get_lesson(lesson_id)
        if lesson is None:
            raise LessonNotFoundError(lesson_id)
        return lesson

    def _batch_result(self, operation: str, lesson: Lesson, changed: int) -> FanOutResult:
        FANOUT_RECORDS.labels(operation=operation, result="updated").inc(changed)
        logger.info(
            "Fan-out %s of lesson=%s in course=%s updated %d records",
            operation,
            lesson.id,
            lesson.course_id,
            changed,
        )
        return FanOutResult(
            operation=operation,
            course_id=lesson.course_id,
            lesson_id=lesson.id,
            updated_count=changed,
        )

    async def _fan_out(
        self, operation: str, course_id: UUID, lesson_id: UUID | None
    ) -> FanOutResult:
        outline = await self.outline(course_id)
        records = await self._stores.progress.list_by_course(course_id)

        succeeded: list[str] = []
        failed: list[str] = []
        errors: dict[str, str] = {}
        changed = 0

        for record in records:
            try:
                if await self._compact_one(record.user_id, course_id, outline):
                    changed += 1
            except Exception as exc:
                # One bad record must not stop the rest; it is reported
                # back so the caller can re-run the operation.
                logger.exception(
                    "Fan-out %s failed for user=%s course=%s",
                    operation,
                    record.user_id,
                    course_id,
                )
                failed.append(record.user_id)
                errors[record.user_id] = str(exc) or type(exc).__name__
                FANOUT_RECORDS.labels(operation=operation, result="failed").inc()
            else:
                succeeded.append(record.user_id)
                FANOUT_RECORDS.labels(operation=operation, result="updated").inc()

        result = FanOutResult(
            operation=operation,
            course_id=course_id,
            lesson_id=lesson_id,
            succeeded=tuple(succeeded),
            failed=tuple(failed),
            updated_count=changed,
            errors=errors,
        )
        if result.ok:
            logger.info(
                "Fan-out %s for course=%s visited %d records, changed %d",
                operation,
                course_id,
                len(succeeded),
                changed,
            )
        else:
            logger.warning(
                "Fan-out %s for course=%s failed for %d of %d records",
                operation,
                course_id,
                len(failed),
                len(records),
            )
        return result

    async def _compact_one(
        self, user_id: str, course_id: UUID, outline: LessonOutline
    ) -> bool:
        async with self._lock.hold(progress_key(user_id, course_id)):
            async with self._stores.progress.savepoint():
                current = await self._stores.progress.get_for_update(user_id, course_id)
                if current is None:
                    return False
                updated = compact(current, outline, self._clock())
                if updated is current:
                    return False
                await self._stores.progress.save(updated)
                if outline.total and len(updated.completed_lessons) == outline.total:
                    # Removing the last missing lesson can finish the course.
                    await self._stores.learners.add_completed_course(user_id, course_id)
                return True
