"""Domain exception to HTTP status translation for the routers."""

from __future__ import annotations

import logging

from fastapi import HTTPException, status

from coursehub.services.errors import (
    CourseHubError,
    InvalidInputError,
    LessonLockedError,
    NotFoundError,
    RatingNotAllowedError,
    StateConflictError,
)

logger = logging.getLogger(__name__)


def http_error(exc: CourseHubError) -> HTTPException:
    """Map a service exception to the response the client should see.

    Callers raise the result ``from None``.
    """
    if isinstance(exc, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, LessonLockedError):
        # Fixed wording so clients can tell "not yet" from "no such lesson".
        logger.warning("Request rejected: %s", exc)
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail="lesson is locked")
    elif isinstance(exc, StateConflictError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, InvalidInputError):
        code = 422
    elif isinstance(exc, RatingNotAllowedError):
        code = status.HTTP_403_FORBIDDEN
    else:
        code = status.HTTP_400_BAD_REQUEST

    logger.warning("Request rejected (%d): %s", code, exc)
    return HTTPException(status_code=code, detail=str(exc))
