"""Read-through cache for course detail.

Verifies:
1. First GET is a cache miss (populates cache from the catalog)
2. Second GET is a cache hit
3. Structural changes invalidate the entry so the next GET sees them
4. Progress is never served from the cache
"""

from __future__ import annotations

import asyncio

from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from coursehub.services.cache import cache_service, course_key
from tests.conftest import auth, seed_app_course


def _cache_count(operation: str) -> float:
    return REGISTRY.get_sample_value("cache_operations_total", {"operation": operation}) or 0.0


def test_cache_miss_then_hit(client: TestClient, token: str) -> None:
    course = seed_app_course()
    misses, hits = _cache_count("miss"), _cache_count("hit")

    resp1 = client.get(f"/v1/courses/{course.course_id}", headers=auth(token))
    resp2 = client.get(f"/v1/courses/{course.course_id}", headers=auth(token))

    assert resp1.status_code == 200
    assert resp1.json() == resp2.json()
    assert _cache_count("miss") - misses == 1
    assert _cache_count("hit") - hits == 1
    assert asyncio.run(cache_service.get(course_key(course.course_id))) is not None


def test_new_lesson_invalidates_course_entry(
    client: TestClient, token: str, instructor_token: str
) -> None:
    course = seed_app_course((1,))
    before = client.get(f"/v1/courses/{course.course_id}", headers=auth(token)).json()

    client.post(
        f"/v1/courses/{course.course_id}/chapters/{course.chapter_ids[0]}/lessons",
        json={"title": "Extra"},
        headers=auth(instructor_token),
    )

    after = client.get(f"/v1/courses/{course.course_id}", headers=auth(token)).json()
    assert len(after["chapters"][0]["lessons"]) == len(before["chapters"][0]["lessons"]) + 1
    assert after["version"] > before["version"]


def test_corrupt_entry_is_reloaded(client: TestClient, token: str) -> None:
    course = seed_app_course()
    asyncio.run(cache_service.set(course_key(course.course_id), "{not json", 60))

    resp = client.get(f"/v1/courses/{course.course_id}", headers=auth(token))
    assert resp.status_code == 200
    assert resp.json()["id"] == str(course.course_id)


def test_progress_bypasses_cache(client: TestClient, token: str) -> None:
    course = seed_app_course((2,))
    headers = auth(token)
    client.post(f"/v1/courses/{course.course_id}/enroll", headers=headers)
    first = client.get(f"/v1/progress/{course.course_id}", headers=headers).json()
    client.post(
        f"/v1/courses/{course.course_id}/lessons/{course.lesson_ids[0]}/complete",
        headers=headers,
    )
    second = client.get(f"/v1/progress/{course.course_id}", headers=headers).json()

    assert first["completion_percentage"] == 0.0
    assert second["completion_percentage"] == 50.0
