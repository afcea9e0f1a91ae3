"""Enrollment endpoints.

  POST   /v1/courses/{course_id}/enroll  -> progress record, first lesson unlocked
  DELETE /v1/courses/{course_id}/enroll  -> enrollment and progress removed
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Response, status

from coursehub.api.dependencies import EngineDep, UserDep
from coursehub.api.errors import http_error
from coursehub.api.progress import ProgressOut
from coursehub.services.errors import CourseHubError

router = APIRouter(prefix="/v1/courses", tags=["enrollments"])


@router.post(
    "/{course_id}/enroll",
    response_model=ProgressOut,
    status_code=status.HTTP_201_CREATED,
)
async def enroll_in_course(
    course_id: UUID, engine: EngineDep, principal: UserDep
) -> ProgressOut:
    try:
        progress = await engine.enroll(principal.user_id, course_id)
    except CourseHubError as exc:
        raise http_error(exc) from None
    return ProgressOut.from_progress(progress)


@router.delete("/{course_id}/enroll", status_code=status.HTTP_204_NO_CONTENT)
async def unenroll_from_course(
    course_id: UUID, engine: EngineDep, principal: UserDep
) -> Response:
    try:
        await engine.unenroll(principal.user_id, course_id)
    except CourseHubError as exc:
        raise http_error(exc) from None
    return Response(status_code=status.HTTP_204_NO_CONTENT)
