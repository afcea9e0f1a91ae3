from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from coursehub.api.courses import FanOutOut
from coursehub.api.dependencies import StoresDep, UserDep, require_course_owner
from coursehub.api.errors import http_error
from coursehub.models.course import Chapter
from coursehub.services.catalog_service import CatalogService
from coursehub.services.errors import CourseHubError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["chapters"])


class ChapterIn(BaseModel):
    title: str = Field(min_length=1, max_length=200)


class ChapterOut(BaseModel):
    id: UUID
    course_id: UUID
    title: str
    order: int


def _chapter_out(ch: Chapter) -> ChapterOut:
    return ChapterOut(id=ch.id, course_id=ch.course_id, title=ch.title, order=ch.order)


class OrderIn(BaseModel):
    ids: list[UUID]


class ChapterDeletedOut(BaseModel):
    chapter_id: UUID
    lessons: list[FanOutOut]
    failed: list[str]


@router.post(
    "/courses/{course_id}/chapters",
    response_model=ChapterOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_chapter(
    course_id: UUID, body: ChapterIn, stores: StoresDep, principal: UserDep
) -> ChapterOut:
    await require_course_owner(stores, course_id, principal)
    try:
        ch = await CatalogService(stores).create_chapter(course_id, body.title)
    except CourseHubError as exc:
        raise http_error(exc) from None
    return _chapter_out(ch)


@router.get("/courses/{course_id}/chapters", response_model=list[ChapterOut])
async def list_chapters(
    course_id: UUID, stores: StoresDep, _principal: UserDep
) -> list[ChapterOut]:
    try:
        chapters = await CatalogService(stores).list_chapters(course_id)
    except CourseHubError as exc:
        raise http_error(exc) from None
    return [_chapter_out(ch) for ch in chapters]


@router.put("/courses/{course_id}/chapters/order", response_model=list[ChapterOut])
async def reorder_chapters(
    course_id: UUID, body: OrderIn, stores: StoresDep, principal: UserDep
) -> list[ChapterOut]:
    await require_course_owner(stores, course_id, principal)
    try:
        chapters = await CatalogService(stores).reorder_chapters(course_id, body.ids)
    except CourseHubError as exc:
        raise http_error(exc) from None
    return [_chapter_out(ch) for ch in chapters]


@router.get("/chapters/{chapter_id}", response_model=ChapterOut)
async def get_chapter(chapter_id: UUID, stores: StoresDep, _principal: UserDep) -> ChapterOut:
    try:
        chapter = await CatalogService(stores).get_chapter(chapter_id)
    except CourseHubError as exc:
        raise http_error(exc) from None
    return _chapter_out(chapter)


@router.patch("/chapters/{chapter_id}", response_model=ChapterOut)
async def rename_chapter(
    chapter_id: UUID, body: ChapterIn, stores: StoresDep, principal: UserDep
) -> ChapterOut:
    chapter = await stores.catalog.get_chapter(chapter_id)
    if chapter is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="chapter not found")
    await require_course_owner(stores, chapter.course_id, principal)
    try:
        renamed = await CatalogService(stores).rename_chapter(chapter_id, body.title)
    except CourseHubError as exc:
        raise http_error(exc) from None
    return _chapter_out(renamed)


@router.delete("/chapters/{chapter_id}", response_model=ChapterDeletedOut)
async def delete_chapter(
    chapter_id: UUID, stores: StoresDep, principal: UserDep
) -> ChapterDeletedOut:
    chapter = await stores.catalog.get_chapter(chapter_id)
    if chapter is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="chapter not found")
    await require_course_owner(stores, chapter.course_id, principal)
    try:
        deleted = await CatalogService(stores).delete_chapter(chapter_id)
    except CourseHubError as exc:
        raise http_error(exc) from None
    if deleted.failed:
        logger.warning(
            "Chapter %s deleted; progress cleanup failed for %d users",
            chapter_id,
            len(deleted.failed),
        )
    return ChapterDeletedOut(
        chapter_id=deleted.chapter_id,
        lessons=[FanOutOut.from_result(r) for r in deleted.lessons],
        failed=list(deleted.failed),
    )
