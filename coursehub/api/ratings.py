from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from coursehub.api.dependencies import StoresDep, UserDep
from coursehub.api.errors import http_error
from coursehub.models.course import Rating
from coursehub.services.errors import CourseHubError
from coursehub.services.rating_service import RatingService

router = APIRouter(prefix="/v1/courses", tags=["ratings"])


class RatingIn(BaseModel):
    # Range is checked by RatingService so the 422 carries its message.
    rate: int
    comment: str | None = None


class RatingOut(BaseModel):
    user_id: str
    course_id: UUID
    rate: int
    comment: str | None
    updated_at: int


class StarShareOut(BaseModel):
    stars: int
    count: int
    percentage: float


def _rating_out(r: Rating) -> RatingOut:
    return RatingOut(
        user_id=r.user_id,
        course_id=r.course_id,
        rate=r.rate,
        comment=r.comment,
        updated_at=r.updated_at,
    )


@router.put("/{course_id}/ratings", response_model=RatingOut)
async def rate_course(
    course_id: UUID, body: RatingIn, stores: StoresDep, principal: UserDep
) -> RatingOut:
    try:
        rating = await RatingService(stores).rate(
            principal.user_id, course_id, body.rate, body.comment
        )
    except CourseHubError as exc:
        raise http_error(exc) from None
    return _rating_out(rating)


@router.delete("/{course_id}/ratings", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rating(course_id: UUID, stores: StoresDep, principal: UserDep) -> Response:
    try:
        await RatingService(stores).remove(principal.user_id, course_id)
    except CourseHubError as exc:
        raise http_error(exc) from None
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{course_id}/ratings", response_model=list[RatingOut])
async def list_ratings(course_id: UUID, stores: StoresDep, _principal: UserDep) -> list[RatingOut]:
    try:
        ratings = await RatingService(stores).list_ratings(course_id)
    except CourseHubError as exc:
        raise http_error(exc) from None
    return [_rating_out(r) for r in ratings]


@router.get("/{course_id}/ratings/me", response_model=RatingOut | None)
async def get_my_rating(
    course_id: UUID, stores: StoresDep, principal: UserDep
) -> RatingOut | None:
    """The caller's rating of the course, or null when they have not rated it."""
    try:
        rating = await RatingService(stores).get_user_rating(principal.user_id, course_id)
    except CourseHubError as exc:
        raise http_error(exc) from None
    return _rating_out(rating) if rating is not None else None


@router.get("/{course_id}/ratings/distribution", response_model=list[StarShareOut])
async def rating_distribution(
    course_id: UUID, stores: StoresDep, _principal: UserDep
) -> list[StarShareOut]:
    try:
        shares = await RatingService(stores).distribution(course_id)
    except CourseHubError as exc:
        raise http_error(exc) from None
    return [StarShareOut(stars=s.stars, count=s.count, percentage=s.percentage) for s in shares]
