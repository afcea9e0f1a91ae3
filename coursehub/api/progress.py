"""Per-learner progress.

Always read from the progress store; progress is never cached because a
learner must see the effect of their own toggle immediately.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter
from pydantic import BaseModel

from coursehub.api.dependencies import EngineDep, UserDep
from coursehub.api.errors import http_error
from coursehub.models.progress import Progress
from coursehub.services.errors import CourseHubError

router = APIRouter(prefix="/v1/progress", tags=["progress"])


class CompletedLessonOut(BaseModel):
    lesson_id: UUID
    completed_at: int


class ProgressOut(BaseModel):
    user_id: str
    course_id: UUID
    completed_lessons: list[CompletedLessonOut]
    unlocked_lessons: list[UUID]
    completion_percentage: float
    updated_at: int

    @classmethod
    def from_progress(cls, p: Progress) -> ProgressOut:
        return cls(
            user_id=p.user_id,
            course_id=p.course_id,
            completed_lessons=[
                CompletedLessonOut(lesson_id=c.lesson_id, completed_at=c.completed_at)
                for c in p.completed_lessons
            ],
            unlocked_lessons=list(p.unlocked_lessons),
            completion_percentage=p.completion_percentage,
            updated_at=p.updated_at,
        )


@router.get("/{course_id}", response_model=ProgressOut)
async def get_progress(course_id: UUID, engine: EngineDep, principal: UserDep) -> ProgressOut:
    try:
        progress = await engine.get_progress(principal.user_id, course_id)
    except CourseHubError as exc:
        raise http_error(exc) from None
    return ProgressOut.from_progress(progress)
