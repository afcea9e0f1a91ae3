"""Instructor-facing course statistics.  Read-only."""

from __future__ import annotations

from dataclasses import dataclass, fields
from uuid import UUID

from coursehub.models.progress import Progress
from coursehub.repos.stores import Stores
from coursehub.services.errors import (
    CourseNotFoundError,
    NotEnrolledError,
    ProgressNotFoundError,
)
from coursehub.services.lesson_outline import OutlineCache, outline_cache


@dataclass(frozen=True, slots=True)
class ProgressDistribution:
    not_started: int = 0
    started: int = 0
    in_progress: int = 0
    nearly_done: int = 0
    completed: int = 0


@dataclass(frozen=True, slots=True)
class ProgressStats:
    course_id: UUID
    total_students: int
    average_progress: float
    distribution: ProgressDistribution


@dataclass(frozen=True, slots=True)
class CourseStats:
    course_id: UUID
    title: str
    total_lessons: int
    total_enrollments: int
    completed_count: int
    completion_rate: float
    average_rating: float
    total_ratings: int


@dataclass(frozen=True, slots=True)
class StudentProgress:
    user_id: str
    enrolled_at: int
    completed_lessons: int
    completion_percentage: float


def bucket_for(percentage: float) -> str:
    if percentage <= 0:
        return "not_started"
    if percentage <= 25:
        return "started"
    if percentage <= 75:
        return "in_progress"
    if percentage < 100:
        return "nearly_done"
    return "completed"


class AnalyticsService:
    def __init__(self, stores: Stores, outlines: OutlineCache | None = None) -> None:
        self._stores = stores
        self._outlines = outlines if outlines is not None else outline_cache

    async def course_progress_stats(self, course_id: UUID) -> ProgressStats:
        if await self._stores.catalog.get_course(course_id) is None:
            raise CourseNotFoundError(course_id)

        records = await self._stores.progress.list_by_course(course_id)
        counts = {f.name: 0 for f in fields(ProgressDistribution)}
        for p in records:
            counts[bucket_for(p.completion_percentage)] += 1

        average = 0.0
        if records:
            average = sum(p.completion_percentage for p in records) / len(records)

        return ProgressStats(
            course_id=course_id,
            total_students=len(records),
            average_progress=round(average, 1),
            distribution=ProgressDistribution(**counts),
        )

    async def course_stats(self, course_id: UUID) -> CourseStats:
        course = await self._stores.catalog.get_course(course_id)
        if course is None:
            raise CourseNotFoundError(course_id)

        outline = await self._outlines.get(self._stores.catalog, course_id)
        enrollments = await self._stores.enrollments.count_by_course(course_id)
        records = await self._stores.progress.list_by_course(course_id)
        completed = sum(1 for p in records if p.is_complete)
        average_rating, total_ratings = await self._stores.ratings.summary(course_id)

        return CourseStats(
            course_id=course_id,
            title=course.title,
            total_lessons=outline.total,
            total_enrollments=enrollments,
            completed_count=completed,
            completion_rate=round(100.0 * completed / enrollments, 1) if enrollments else 0.0,
            average_rating=round(average_rating, 2),
            total_ratings=total_ratings,
        )

    async def enrolled_students(self, course_id: UUID) -> list[StudentProgress]:
        """Roster of the course in enrollment order with each learner's progress."""
        if await self._stores.catalog.get_course(course_id) is None:
            raise CourseNotFoundError(course_id)

        enrollments = await self._stores.enrollments.list_by_course(course_id)
        records = {p.user_id: p for p in await self._stores.progress.list_by_course(course_id)}
        roster = []
        for e in sorted(enrollments, key=lambda e: (e.enrolled_at, e.user_id)):
            p = records.get(e.user_id)
            roster.append(
                StudentProgress(
                    user_id=e.user_id,
                    enrolled_at=e.enrolled_at,
                    completed_lessons=len(p.completed_lessons) if p else 0,
                    completion_percentage=p.completion_percentage if p else 0.0,
                )
            )
        return roster

    async def student_progress(self, course_id: UUID, user_id: str) -> Progress:
        if await self._stores.catalog.get_course(course_id) is None:
            raise CourseNotFoundError(course_id)
        if await self._stores.enrollments.get(user_id, course_id) is None:
            raise NotEnrolledError(user_id, course_id)
        progress = await self._stores.progress.get(user_id, course_id)
        if progress is None:
            raise ProgressNotFoundError(user_id, course_id)
        return progress
