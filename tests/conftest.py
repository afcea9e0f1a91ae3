from __future__ import annotations

import asyncio
from dataclasses import dataclass
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

from coursehub.main import app
from coursehub.repos.stores import Stores, in_memory_stores, memory_stores
from coursehub.services import token_service
from coursehub.services.cache import InMemoryCacheService, cache_service
from coursehub.services.catalog_service import CatalogService
from coursehub.services.keyed_lock import InMemoryKeyedLock, keyed_lock
from coursehub.services.lesson_outline import OutlineCache, outline_cache
from coursehub.services.progress_engine import ProgressEngine
from coursehub.services.task_queue import InMemoryTaskQueue, task_queue


@pytest.fixture(autouse=True)
def reset_stores() -> None:
    """Clear the shared in-memory repositories between tests."""
    for repo in (
        memory_stores.catalog,
        memory_stores.progress,
        memory_stores.enrollments,
        memory_stores.learners,
        memory_stores.ratings,
    ):
        repo.clear()  # type: ignore[attr-defined]


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    """Clear cache between tests."""
    if isinstance(cache_service, InMemoryCacheService):
        cache_service.clear()


@pytest.fixture(autouse=True)
def reset_task_queue() -> None:
    """Clear task queues between tests."""
    if isinstance(task_queue, InMemoryTaskQueue):
        task_queue.clear()


@pytest.fixture(autouse=True)
def reset_progress_helpers() -> None:
    """Forget cached outlines and idle locks."""
    outline_cache.clear()
    if isinstance(keyed_lock, InMemoryKeyedLock):
        keyed_lock.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(
    username: str = "test-user",
    roles: list[str] | None = None,
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.mint_token(sub=username, roles=roles)


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def token() -> str:
    """Token with the default role (student)."""
    return mint_token()


@pytest.fixture
def instructor_token() -> str:
    return mint_token(username="test-instructor", roles=["instructor"])


@pytest.fixture
def admin_token() -> str:
    """Token with admin role."""
    return mint_token(username="test-admin", roles=["admin"])


# ---------------------------------------------------------------------------
# Service-level helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def stores() -> Stores:
    """Private in-memory stores, independent of the app's shared ones."""
    return in_memory_stores()


@pytest.fixture
def engine(stores: Stores) -> ProgressEngine:
    return ProgressEngine(stores, lock=InMemoryKeyedLock(), outlines=OutlineCache())


@dataclass(frozen=True)
class SeededCourse:
    course_id: UUID
    chapter_ids: list[UUID]
    lesson_ids: list[UUID]  # course-wide order


async def seed_course(
    stores: Stores,
    lessons_per_chapter: tuple[int, ...] = (4,),
    *,
    instructor_id: str = "test-instructor",
    title: str = "Intro to Python",
) -> SeededCourse:
    """Create a course whose chapters hold the given number of lessons."""
    catalog = CatalogService(stores)
    course = await catalog.create_course(instructor_id, title, "a course")
    chapter_ids: list[UUID] = []
    lesson_ids: list[UUID] = []
    for c, count in enumerate(lessons_per_chapter, start=1):
        chapter = await catalog.create_chapter(course.id, f"Chapter {c}")
        chapter_ids.append(chapter.id)
        for n in range(1, count + 1):
            change = await catalog.create_lesson(
                course.id,
                chapter.id,
                f"Lesson {c}.{n}",
                video_url=f"https://videos.example.com/{c}-{n}.mp4",
            )
            lesson_ids.append(change.lesson.id)
    return SeededCourse(course_id=course.id, chapter_ids=chapter_ids, lesson_ids=lesson_ids)


def seed_app_course(
    lessons_per_chapter: tuple[int, ...] = (4,), instructor_id: str = "test-instructor"
) -> SeededCourse:
    """Seed a course into the stores the running app uses."""
    return asyncio.run(
        seed_course(memory_stores, lessons_per_chapter, instructor_id=instructor_id)
    )
