"""Repository wiring.

Same conditional pattern as the cache and task queue: with DATABASE_URL
every request gets PostgreSQL repos bound to one transaction; without it
all requests share the module-level in-memory repos.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.db.engine import session_factory, transaction
from coursehub.repos.catalog_repo import CatalogRepo, InMemoryCatalogRepo
from coursehub.repos.enrollment_repo import EnrollmentRepo, InMemoryEnrollmentRepo
from coursehub.repos.learner_repo import InMemoryLearnerRepo, LearnerRepo
from coursehub.repos.pg_catalog_repo import PgCatalogRepo
from coursehub.repos.pg_enrollment_repo import PgEnrollmentRepo
from coursehub.repos.pg_learner_repo import PgLearnerRepo
from coursehub.repos.pg_progress_repo import PgProgressRepo
from coursehub.repos.pg_rating_repo import PgRatingRepo
from coursehub.repos.progress_repo import InMemoryProgressRepo, ProgressRepo
from coursehub.repos.rating_repo import InMemoryRatingRepo, RatingRepo


@dataclass(frozen=True, slots=True)
class Stores:
    catalog: CatalogRepo
    progress: ProgressRepo
    enrollments: EnrollmentRepo
    learners: LearnerRepo
    ratings: RatingRepo


def in_memory_stores() -> Stores:
    return Stores(
        catalog=InMemoryCatalogRepo(),
        progress=InMemoryProgressRepo(),
        enrollments=InMemoryEnrollmentRepo(),
        learners=InMemoryLearnerRepo(),
        ratings=InMemoryRatingRepo(),
    )


def session_stores(session: AsyncSession) -> Stores:
    return Stores(
        catalog=PgCatalogRepo(session),
        progress=PgProgressRepo(session),
        enrollments=PgEnrollmentRepo(session),
        learners=PgLearnerRepo(session),
        ratings=PgRatingRepo(session),
    )


# Shared by every request when no database is configured.  Tests reset it
# through the autouse fixtures in conftest.py.
memory_stores = in_memory_stores()


@asynccontextmanager
async def open_stores() -> AsyncIterator[Stores]:
    """Yield the stores for one unit of work.

    With PostgreSQL the unit is one transaction: it commits when the block
    exits cleanly and rolls back on any exception, so a failed toggle
    leaves nothing observable behind.
    """
    if session_factory is None:
        yield memory_stores
        return

    async with transaction() as session:
        yield session_stores(session)
