from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, replace
from uuid import UUID

from coursehub.models.course import Course, Rating
from coursehub.repos.stores import Stores
from coursehub.services.cache import CacheService, cache_service, course_key
from coursehub.services.errors import (
    CourseNotFoundError,
    InvalidInputError,
    NotFoundError,
    RatingNotAllowedError,
)

logger = logging.getLogger(__name__)

MIN_RATE = 1
MAX_RATE = 5


@dataclass(frozen=True, slots=True)
class StarShare:
    stars: int
    count: int
    percentage: float


class RatingService:
    def __init__(self, stores: Stores, cache: CacheService | None = None) -> None:
        self._stores = stores
        self._cache = cache if cache is not None else cache_service

    async def rate(
        self, user_id: str, course_id: UUID, rate: int, comment: str | None = None
    ) -> Rating:
        """Add or replace the caller's rating of a course."""
        if not MIN_RATE <= rate <= MAX_RATE:
            raise InvalidInputError(f"rate must be between {MIN_RATE} and {MAX_RATE}")

        course = await self._course(course_id)
        if course.instructor_id == user_id:
            raise RatingNotAllowedError("instructors cannot rate their own course")
        if await self._stores.enrollments.get(user_id, course_id) is None:
            logger.warning("Rejected rating from non-student user=%s course=%s", user_id, course_id)
            raise RatingNotAllowedError("only enrolled students can rate a course")

        rating = Rating(
            user_id=user_id,
            course_id=course_id,
            rate=rate,
            comment=comment,
            updated_at=int(datetime.datetime.now(datetime.UTC).timestamp()),
        )
        existed = await self._stores.ratings.upsert(rating)
        await self._refresh_summary(course)
        logger.info(
            "%s rating user=%s course=%s rate=%d",
            "Updated" if existed else "Added",
            user_id,
            course_id,
            rate,
        )
        return rating

    async def remove(self, user_id: str, course_id: UUID) -> None:
        course = await self._course(course_id)
        if await self._stores.ratings.delete(user_id, course_id) is None:
            raise NotFoundError(f"no rating by user {user_id} for course {course_id}")
        await self._refresh_summary(course)
        logger.info("Deleted rating user=%s course=%s", user_id, course_id)

    async def list_ratings(self, course_id: UUID) -> list[Rating]:
        await self._course(course_id)
        return await self._stores.ratings.list_by_course(course_id)

    async def get_user_rating(self, user_id: str, course_id: UUID) -> Rating | None:
        await self._course(course_id)
        return await self._stores.ratings.get(user_id, course_id)

    async def distribution(self, course_id: UUID) -> list[StarShare]:
        """Share of ratings per star value, from five stars down to one.

        Every value is listed; percentages are rounded to two decimals and
        are all zero for a course nobody has rated.
        """
        await self._course(course_id)
        counts = await self._stores.ratings.distribution(course_id)
        total = sum(counts.values())
        return [
            StarShare(
                stars=stars,
                count=counts.get(stars, 0),
                percentage=round(100.0 * counts.get(stars, 0) / total, 2) if total else 0.0,
            )
            for stars in range(MAX_RATE, MIN_RATE - 1, -1)
        ]

    async def _course(self, course_id: UUID) -> Course:
        course = await self._stores.catalog.get_course(course_id)
        if course is None:
            raise CourseNotFoundError(course_id)
        return course

    async def _refresh_summary(self, course: Course) -> None:
        average, count = await self._stores.ratings.summary(course.id)
        await self._stores.catalog.save_course(
            replace(course, average_rating=round(average, 2), total_ratings=count)
        )
        await self._cache.delete(course_key(course.id))
