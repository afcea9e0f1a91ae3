"""FastAPI dependencies: caller identity, per-request stores, ownership."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from coursehub.models.course import Course
from coursehub.models.principal import Principal
from coursehub.repos.stores import Stores, open_stores
from coursehub.services import token_service
from coursehub.services.progress_engine import ProgressEngine

logger = logging.getLogger(__name__)

# Tokens come from the platform's identity provider; the URL only feeds
# the OpenAPI security scheme.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/oauth/token")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def require_user(raw_token: Annotated[str, Depends(oauth2_scheme)]) -> Principal:
    try:
        principal = token_service.verify_token(raw_token)
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired token")
        raise _unauthorized("Token expired") from None
    except jwt.InvalidTokenError as exc:
        logger.warning("Rejected invalid token: %s", exc)
        raise _unauthorized("Invalid token") from None
    return principal


def require_any_role(roles: set[str]):
    """Dependency factory, e.g. ``Depends(require_any_role({"instructor"}))``."""

    def _guard(principal: Annotated[Principal, Depends(require_user)]) -> Principal:
        if not principal.has_any_role(roles):
            logger.warning("User %s lacks any of %s", principal.user_id, sorted(roles))
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return principal

    return _guard


# ---------------------------------------------------------------------------
# Unit of work
# ---------------------------------------------------------------------------


async def get_stores() -> AsyncIterator[Stores]:
    """One set of repositories per request.

    With PostgreSQL the request is one transaction: an exception escaping
    the route (HTTPException included) rolls it back.
    """
    async with open_stores() as stores:
        yield stores


StoresDep = Annotated[Stores, Depends(get_stores)]
UserDep = Annotated[Principal, Depends(require_user)]


def get_engine(stores: StoresDep) -> ProgressEngine:
    return ProgressEngine(stores)


EngineDep = Annotated[ProgressEngine, Depends(get_engine)]


# ---------------------------------------------------------------------------
# Course ownership
# ---------------------------------------------------------------------------


async def require_course_owner(
    stores: Stores, course_id: UUID, principal: Principal
) -> Course:
    """Load *course_id* and check the caller may author it.

    404 when the course does not exist, 403 when the caller is neither
    its instructor nor an admin.
    """
    course = await stores.catalog.get_course(course_id)
    if course is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="course not found")
    if not principal.can_author(course.instructor_id):
        logger.warning(
            "Access denied: user=%s does not own course=%s",
            principal.user_id,
            course_id,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not the instructor of this course",
        )
    return course
