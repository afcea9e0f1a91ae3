"""Course endpoints: authoring, cached detail, student rosters, instructor
analytics and progress reconciliation."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from coursehub.api.dependencies import (
    EngineDep,
    StoresDep,
    UserDep,
    require_any_role,
    require_course_owner,
)
from coursehub.api.errors import http_error
from coursehub.api.progress import ProgressOut
from coursehub.models.course import Course
from coursehub.models.principal import Principal
from coursehub.models.progress import FanOutResult
from coursehub.services.analytics_service import AnalyticsService
from coursehub.services.catalog_service import CatalogService
from coursehub.services.errors import CourseHubError

router = APIRouter(prefix="/v1/courses", tags=["courses"])


class CourseIn(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = ""
    price: float = Field(default=0.0, ge=0)


class CourseUpdateIn(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    price: float | None = Field(default=None, ge=0)


class CourseOut(BaseModel):
    id: UUID
    title: str
    description: str
    instructor_id: str
    price: float
    version: int
    average_rating: float
    total_ratings: int


class LessonSummaryOut(BaseModel):
    id: UUID
    title: str
    order: int
    locked: bool


class ChapterDetailOut(BaseModel):
    id: UUID
    title: str
    order: int
    lessons: list[LessonSummaryOut]


class CourseDetailOut(CourseOut):
    chapters: list[ChapterDetailOut]


class DistributionOut(BaseModel):
    not_started: int
    started: int
    in_progress: int
    nearly_done: int
    completed: int


class ProgressStatsOut(BaseModel):
    course_id: UUID
    total_students: int
    average_progress: float
    distribution: DistributionOut


class CourseStatsOut(BaseModel):
    course_id: UUID
    title: str
    total_lessons: int
    total_enrollments: int
    completed_count: int
    completion_rate: float
    average_rating: float
    total_ratings: int


class CourseDeletedOut(BaseModel):
    course_id: UUID
    progress_records: int
    enrollments: int


class StudentOut(BaseModel):
    user_id: str
    enrolled_at: int
    completed_lessons: int
    completion_percentage: float


class FanOutOut(BaseModel):
    operation: str
    course_id: UUID
    lesson_id: UUID | None
    updated_count: int
    succeeded: list[str]
    failed: list[str]
    errors: dict[str, str]

    @classmethod
    def from_result(cls, result: FanOutResult) -> FanOutOut:
        return cls(
            operation=result.operation,
            course_id=result.course_id,
            lesson_id=result.lesson_id,
            updated_count=result.updated_count,
            succeeded=list(result.succeeded),
            failed=list(result.failed),
            errors=result.errors,
        )


def _course_out(course: Course) -> CourseOut:
    return CourseOut(
        id=course.id,
        title=course.title,
        description=course.description,
        instructor_id=course.instructor_id,
        price=course.price,
        version=course.version,
        average_rating=course.average_rating,
        total_ratings=course.total_ratings,
    )


@router.post("", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
async def create_course(
    body: CourseIn,
    stores: StoresDep,
    principal: Annotated[Principal, Depends(require_any_role({"instructor", "admin"}))],
) -> CourseOut:
    try:
        course = await CatalogService(stores).create_course(
            principal.user_id, body.title, body.description, body.price
        )
    except CourseHubError as exc:
        raise http_error(exc) from None
    return _course_out(course)


@router.get("/{course_id}", response_model=CourseDetailOut)
async def get_course(course_id: UUID, stores: StoresDep, _principal: UserDep) -> dict:
    """Course with chapters and lessons, served through the course cache."""
    try:
        return await CatalogService(stores).get_course_detail(course_id)
    except CourseHubError as exc:
        raise http_error(exc) from None


@router.patch("/{course_id}", response_model=CourseOut)
async def update_course(
    course_id: UUID, body: CourseUpdateIn, stores: StoresDep, principal: UserDep
) -> CourseOut:
    await require_course_owner(stores, course_id, principal)
    try:
        course = await CatalogService(stores).update_course(
            course_id, title=body.title, description=body.description, price=body.price
        )
    except CourseHubError as exc:
        raise http_error(exc) from None
    return _course_out(course)


@router.delete("/{course_id}", response_model=CourseDeletedOut)
async def delete_course(
    course_id: UUID, stores: StoresDep, engine: EngineDep, principal: UserDep
) -> CourseDeletedOut:
    """Delete the course with its structure, learners' progress and ratings."""
    await require_course_owner(stores, course_id, principal)
    try:
        deleted = await CatalogService(stores, engine).delete_course(course_id)
    except CourseHubError as exc:
        raise http_error(exc) from None
    return CourseDeletedOut(
        course_id=deleted.course_id,
        progress_records=deleted.progress_records,
        enrollments=deleted.enrollments,
    )


@router.get("/{course_id}/progress-stats", response_model=ProgressStatsOut)
async def get_progress_stats(
    course_id: UUID, stores: StoresDep, principal: UserDep
) -> ProgressStatsOut:
    await require_course_owner(stores, course_id, principal)
    stats = await AnalyticsService(stores).course_progress_stats(course_id)
    d = stats.distribution
    return ProgressStatsOut(
        course_id=stats.course_id,
        total_students=stats.total_students,
        average_progress=stats.average_progress,
        distribution=DistributionOut(
            not_started=d.not_started,
            started=d.started,
            in_progress=d.in_progress,
            nearly_done=d.nearly_done,
            completed=d.completed,
        ),
    )


@router.get("/{course_id}/stats", response_model=CourseStatsOut)
async def get_course_stats(
    course_id: UUID, stores: StoresDep, principal: UserDep
) -> CourseStatsOut:
    await require_course_owner(stores, course_id, principal)
    s = await AnalyticsService(stores).course_stats(course_id)
    return CourseStatsOut(
        course_id=s.course_id,
        title=s.title,
        total_lessons=s.total_lessons,
        total_enrollments=s.total_enrollments,
        completed_count=s.completed_count,
        completion_rate=s.completion_rate,
        average_rating=s.average_rating,
        total_ratings=s.total_ratings,
    )


@router.post("/{course_id}/reconcile", response_model=FanOutOut)
async def reconcile_course(
    course_id: UUID, stores: StoresDep, engine: EngineDep, principal: UserDep
) -> FanOutOut:
    """Re-apply lesson removals to every progress record of the course.

    Safe to call repeatedly; a response with a non-empty ``failed`` list
    means it should be called again.
    """
    await require_course_owner(stores, course_id, principal)
    try:
        result = await engine.reconcile_course(course_id)
    except CourseHubError as exc:
        raise http_error(exc) from None
    return FanOutOut.from_result(result)


@router.get("/{course_id}/students", response_model=list[StudentOut])
async def list_students(
    course_id: UUID, stores: StoresDep, principal: UserDep
) -> list[StudentOut]:
    """Enrolled learners in enrollment order with their completion."""
    await require_course_owner(stores, course_id, principal)
    roster = await AnalyticsService(stores).enrolled_students(course_id)
    return [
        StudentOut(
            user_id=s.user_id,
            enrolled_at=s.enrolled_at,
            completed_lessons=s.completed_lessons,
            completion_percentage=s.completion_percentage,
        )
        for s in roster
    ]


@router.get("/{course_id}/students/{user_id}/progress", response_model=ProgressOut)
async def get_student_progress(
    course_id: UUID, user_id: str, stores: StoresDep, principal: UserDep
) -> ProgressOut:
    await require_course_owner(stores, course_id, principal)
    try:
        progress = await AnalyticsService(stores).student_progress(course_id, user_id)
    except CourseHubError as exc:
        raise http_error(exc) from None
    return ProgressOut.from_progress(progress)
