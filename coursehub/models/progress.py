from __future__ import annotations

import enum
from dataclasses import dataclass, field
from uuid import UUID


@dataclass(frozen=True, slots=True)
class CompletedLesson:
    lesson_id: UUID
    completed_at: int


@dataclass(frozen=True, slots=True)
class Progress:
    """Completion state of one user in one course.

    At most one record exists per (user_id, course_id).  Both lesson
    collections hold each lesson id at most once; ``completion_percentage``
    is always re-derived from ``len(completed_lessons)`` and the course's
    lesson total at the time of the last mutation.
    """

    user_id: str
    course_id: UUID
    completed_lessons: tuple[CompletedLesson, ...] = ()
    unlocked_lessons: tuple[UUID, ...] = ()
    completion_percentage: float = 0.0
    created_at: int = 0
    updated_at: int = 0

    @staticmethod
    def new(
        *,
        user_id: str,
        course_id: UUID,
        now: int,
        unlocked_lessons: tuple[UUID, ...] = (),
    ) -> Progress:
        return Progress(
            user_id=user_id,
            course_id=course_id,
            unlocked_lessons=unlocked_lessons,
            created_at=now,
            updated_at=now,
        )

    @property
    def completed_ids(self) -> frozenset[UUID]:
        return frozenset(c.lesson_id for c in self.completed_lessons)

    def is_unlocked(self, lesson_id: UUID) -> bool:
        return lesson_id in self.unlocked_lessons

    def is_completed(self, lesson_id: UUID) -> bool:
        return any(c.lesson_id == lesson_id for c in self.completed_lessons)

    @property
    def is_complete(self) -> bool:
        return self.completion_percentage >= 100.0


class ToggleOutcome(enum.Enum):
    COMPLETED = "completed"
    UNCOMPLETED = "uncompleted"


@dataclass(frozen=True, slots=True)
class ToggleResult:
    outcome: ToggleOutcome
    percentage: float
    unlocked_lesson_id: UUID | None = None
    course_completed: bool = False

    @property
    def completed(self) -> bool:
        return self.outcome is ToggleOutcome.COMPLETED


@dataclass(frozen=True, slots=True)
class FanOutResult:
    """Outcome of an operation applied to every progress record of a course.

    Each per-record update is idempotent, so a caller that sees ``failed``
    user ids can simply re-run the operation.
    """

    operation: str
    course_id: UUID
    lesson_id: UUID | None = None
    succeeded: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()
    # Batch updates report how many records actually changed rather than
    # which ones; per-record fan-outs fill ``succeeded`` instead.
    updated_count: int = 0
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed
