"""Lesson endpoints.

Authoring (create, edit, reorder, delete, lock overrides) is restricted to the
course's instructor.  Students list lessons with their own locked and
completed flags and toggle completion of unlocked lessons.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from coursehub.api.courses import FanOutOut
from coursehub.api.dependencies import (
    EngineDep,
    StoresDep,
    UserDep,
    require_course_owner,
)
from coursehub.api.errors import http_error
from coursehub.models.course import Lesson
from coursehub.models.principal import Principal
from coursehub.models.progress import Progress
from coursehub.repos.stores import Stores
from coursehub.services.catalog_service import CatalogService
from coursehub.services.errors import CourseHubError

router = APIRouter(prefix="/v1", tags=["lessons"])


class LessonIn(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    locked: bool = True
    video_url: str | None = None


class LessonUpdateIn(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    # An empty string removes the video.
    video_url: str | None = None
    locked: bool | None = None


class LessonOut(BaseModel):
    id: UUID
    course_id: UUID
    chapter_id: UUID
    title: str
    order: int
    locked: bool
    video_url: str | None


class LessonCreatedOut(LessonOut):
    unlocked_for: int


class LessonOrderIn(BaseModel):
    ids: list[UUID]


class LearnerLessonOut(BaseModel):
    id: UUID
    chapter_id: UUID
    title: str
    order: int
    locked: bool
    completed: bool
    video_url: str | None


class ToggleOut(BaseModel):
    lesson_id: UUID
    completed: bool
    percentage: float
    unlocked_lesson_id: UUID | None
    course_completed: bool


def _lesson_out(ls: Lesson) -> LessonOut:
    return LessonOut(
        id=ls.id,
        course_id=ls.course_id,
        chapter_id=ls.chapter_id,
        title=ls.title,
        order=ls.order,
        locked=ls.locked,
        video_url=ls.video_url,
    )


def _learner_lesson_out(
    ls: Lesson, progress: Progress | None, manager: bool
) -> LearnerLessonOut:
    unlocked = manager or (progress is not None and progress.is_unlocked(ls.id))
    return LearnerLessonOut(
        id=ls.id,
        chapter_id=ls.chapter_id,
        title=ls.title,
        order=ls.order,
        locked=not unlocked,
        completed=progress is not None and progress.is_completed(ls.id),
        video_url=ls.video_url if unlocked else None,
    )


async def _owned_lesson(stores: Stores, lesson_id: UUID, principal: Principal) -> Lesson:
    lesson = await stores.catalog.get_lesson(lesson_id)
    if lesson is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="lesson not found")
    await require_course_owner(stores, lesson.course_id, principal)
    return lesson


# ---------------------------------------------------------------------------
# Authoring
# ---------------------------------------------------------------------------


@router.post(
    "/courses/{course_id}/chapters/{chapter_id}/lessons",
    response_model=LessonCreatedOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_lesson(
    course_id: UUID,
    chapter_id: UUID,
    body: LessonIn,
    stores: StoresDep,
    principal: UserDep,
) -> LessonCreatedOut:
    await require_course_owner(stores, course_id, principal)
    try:
        change = await CatalogService(stores).create_lesson(
            course_id,
            chapter_id,
            body.title,
            locked=body.locked,
            video_url=body.video_url,
        )
    except CourseHubError as exc:
        raise http_error(exc) from None
    return LessonCreatedOut(
        **_lesson_out(change.lesson).model_dump(),
        unlocked_for=change.fan_out.updated_count if change.fan_out else 0,
    )


@router.put("/chapters/{chapter_id}/lessons/order", response_model=list[LessonOut])
async def reorder_lessons(
    chapter_id: UUID, body: LessonOrderIn, stores: StoresDep, principal: UserDep
) -> list[LessonOut]:
    chapter = await stores.catalog.get_chapter(chapter_id)
    if chapter is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="chapter not found")
    await require_course_owner(stores, chapter.course_id, principal)
    try:
        lessons = await CatalogService(stores).reorder_lessons(chapter_id, body.ids)
    except CourseHubError as exc:
        raise http_error(exc) from None
    return [_lesson_out(ls) for ls in lessons]


@router.patch("/lessons/{lesson_id}", response_model=LessonOut)
async def update_lesson(
    lesson_id: UUID, body: LessonUpdateIn, stores: StoresDep, principal: UserDep
) -> LessonOut:
    await _owned_lesson(stores, lesson_id, principal)
    try:
        lesson = await CatalogService(stores).update_lesson(
            lesson_id, title=body.title, video_url=body.video_url, locked=body.locked
        )
    except CourseHubError as exc:
        raise http_error(exc) from None
    return _lesson_out(lesson)


@router.delete("/lessons/{lesson_id}", response_model=FanOutOut)
async def delete_lesson(lesson_id: UUID, stores: StoresDep, principal: UserDep) -> FanOutOut:
    await _owned_lesson(stores, lesson_id, principal)
    try:
        result = await CatalogService(stores).delete_lesson(lesson_id)
    except CourseHubError as exc:
        raise http_error(exc) from None
    return FanOutOut.from_result(result)


@router.post("/lessons/{lesson_id}/unlock", response_model=FanOutOut)
async def unlock_lesson(
    lesson_id: UUID, stores: StoresDep, engine: EngineDep, principal: UserDep
) -> FanOutOut:
    """Unlock the lesson for every learner of its course."""
    await _owned_lesson(stores, lesson_id, principal)
    try:
        result = await engine.unlock_lesson(lesson_id)
    except CourseHubError as exc:
        raise http_error(exc) from None
    return FanOutOut.from_result(result)


@router.post("/lessons/{lesson_id}/lock", response_model=FanOutOut)
async def lock_lesson(
    lesson_id: UUID, stores: StoresDep, engine: EngineDep, principal: UserDep
) -> FanOutOut:
    """Lock the lesson for every learner of its course."""
    await _owned_lesson(stores, lesson_id, principal)
    try:
        result = await engine.lock_lesson(lesson_id)
    except CourseHubError as exc:
        raise http_error(exc) from None
    return FanOutOut.from_result(result)


# ---------------------------------------------------------------------------
# Learning
# ---------------------------------------------------------------------------


@router.get("/courses/{course_id}/lessons", response_model=list[LearnerLessonOut])
async def list_lessons(
    course_id: UUID, stores: StoresDep, engine: EngineDep, principal: UserDep
) -> list[LearnerLessonOut]:
    """Lessons in course order with the caller's locked/completed flags.

    The video reference is only returned for lessons the caller has
    unlocked.  The course's instructor and admins see every lesson
    unlocked.
    """
    course = await stores.catalog.get_course(course_id)
    if course is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="course not found")

    outline = await engine.outline(course_id)
    by_id = {ls.id: ls for ls in await stores.catalog.list_lessons(course_id)}
    progress = await stores.progress.get(principal.user_id, course_id)
    manager = principal.can_author(course.instructor_id)

    out = []
    for lesson_id in outline.lesson_ids:
        ls = by_id.get(lesson_id)
        if ls is None:
            # Deleted between the outline read and the lesson listing.
            continue
        out.append(_learner_lesson_out(ls, progress, manager))
    return out


@router.get("/lessons/{lesson_id}", response_model=LearnerLessonOut)
async def get_lesson(lesson_id: UUID, stores: StoresDep, principal: UserDep) -> LearnerLessonOut:
    """One lesson with the caller's flags; the video only once it is unlocked."""
    lesson = await stores.catalog.get_lesson(lesson_id)
    if lesson is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="lesson not found")
    course = await stores.catalog.get_course(lesson.course_id)
    if course is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="course not found")

    progress = await stores.progress.get(principal.user_id, lesson.course_id)
    return _learner_lesson_out(lesson, progress, principal.can_author(course.instructor_id))


@router.post("/courses/{course_id}/lessons/{lesson_id}/complete", response_model=ToggleOut)
async def toggle_completion(
    course_id: UUID, lesson_id: UUID, engine: EngineDep, principal: UserDep
) -> ToggleOut:
    """Complete the lesson, or un-complete it if it is already completed."""
    try:
        result = await engine.toggle_lesson_completion(principal.user_id, course_id, lesson_id)
    except CourseHubError as exc:
        raise http_error(exc) from None
    return ToggleOut(
        lesson_id=lesson_id,
        completed=result.completed,
        percentage=result.percentage,
        unlocked_lesson_id=result.unlocked_lesson_id,
        course_completed=result.course_completed,
    )
