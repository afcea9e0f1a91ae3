"""Lesson authoring and the learner-facing lesson list and toggle."""

from __future__ import annotations

from dataclasses import replace
from uuid import uuid4

from fastapi.testclient import TestClient

from coursehub.api.dependencies import get_stores
from coursehub.main import app
from coursehub.repos.stores import memory_stores
from tests.conftest import auth, mint_token, seed_app_course


def _complete(client: TestClient, headers: dict[str, str], course_id, lesson_id):
    return client.post(f"/v1/courses/{course_id}/lessons/{lesson_id}/complete", headers=headers)


def test_toggle_walkthrough(client: TestClient, token: str) -> None:
    course = seed_app_course((4,))
    headers = auth(token)
    cid = course.course_id
    l1, l2, l3, l4 = course.lesson_ids
    assert client.post(f"/v1/courses/{cid}/enroll", headers=headers).status_code == 201

    resp = _complete(client, headers, cid, l1)
    assert resp.status_code == 200
    assert resp.json() == {
        "lesson_id": str(l1),
        "completed": True,
        "percentage": 25.0,
        "unlocked_lesson_id": str(l2),
        "course_completed": False,
    }

    assert _complete(client, headers, cid, l2).json()["percentage"] == 50.0

    undone = _complete(client, headers, cid, l1).json()
    assert undone["completed"] is False
    assert undone["percentage"] == 25.0

    _complete(client, headers, cid, l1)
    _complete(client, headers, cid, l3)
    last = _complete(client, headers, cid, l4).json()
    assert last["percentage"] == 100.0
    assert last["course_completed"] is True
    assert last["unlocked_lesson_id"] is None


def test_locked_lesson_returns_409(client: TestClient, token: str) -> None:
    course = seed_app_course((3,))
    headers = auth(token)
    client.post(f"/v1/courses/{course.course_id}/enroll", headers=headers)

    resp = _complete(client, headers, course.course_id, course.lesson_ids[2])
    assert resp.status_code == 409
    assert resp.json() == {"detail": "lesson is locked"}

    progress = client.get(f"/v1/progress/{course.course_id}", headers=headers).json()
    assert progress["completed_lessons"] == []


def test_toggle_without_enrollment_is_locked(client: TestClient, token: str) -> None:
    course = seed_app_course()
    resp = _complete(client, auth(token), course.course_id, course.lesson_ids[0])
    assert resp.status_code == 409


def test_toggle_unknown_lesson_returns_404(client: TestClient, token: str) -> None:
    course = seed_app_course()
    client.post(f"/v1/courses/{course.course_id}/enroll", headers=auth(token))
    resp = _complete(client, auth(token), course.course_id, uuid4())
    assert resp.status_code == 404


def test_toggle_requires_auth(client: TestClient) -> None:
    course = seed_app_course()
    resp = client.post(
        f"/v1/courses/{course.course_id}/lessons/{course.lesson_ids[0]}/complete"
    )
    assert resp.status_code == 401


# ---- learner lesson list ----


def test_lesson_list_shows_callers_flags(client: TestClient, token: str) -> None:
    course = seed_app_course((1, 2))
    headers = auth(token)
    client.post(f"/v1/courses/{course.course_id}/enroll", headers=headers)
    _complete(client, headers, course.course_id, course.lesson_ids[0])

    resp = client.get(f"/v1/courses/{course.course_id}/lessons", headers=headers)
    assert resp.status_code == 200
    lessons = resp.json()
    assert [ls["id"] for ls in lessons] == [str(i) for i in course.lesson_ids]
    assert [ls["locked"] for ls in lessons] == [False, False, True]
    assert [ls["completed"] for ls in lessons] == [True, False, False]
    assert lessons[0]["video_url"] is not None
    assert lessons[2]["video_url"] is None


def test_lesson_list_is_open_for_instructor(client: TestClient, instructor_token: str) -> None:
    course = seed_app_course((3,))
    lessons = client.get(
        f"/v1/courses/{course.course_id}/lessons", headers=auth(instructor_token)
    ).json()
    assert all(not ls["locked"] for ls in lessons)
    assert all(ls["video_url"] for ls in lessons)


# ---- authoring ----


def test_unlocked_lesson_reaches_enrolled_students(
    client: TestClient, token: str, instructor_token: str
) -> None:
    course = seed_app_course((1,))
    client.post(f"/v1/courses/{course.course_id}/enroll", headers=auth(token))

    resp = client.post(
        f"/v1/courses/{course.course_id}/chapters/{course.chapter_ids[0]}/lessons",
        json={"title": "Free preview", "locked": False},
        headers=auth(instructor_token),
    )
    assert resp.status_code == 201
    created = resp.json()
    assert created["unlocked_for"] == 1
    assert created["order"] == 2

    progress = client.get(f"/v1/progress/{course.course_id}", headers=auth(token)).json()
    assert created["id"] in progress["unlocked_lessons"]


def test_locked_lesson_creation_touches_no_progress(
    client: TestClient, token: str, instructor_token: str
) -> None:
    course = seed_app_course((1,))
    client.post(f"/v1/courses/{course.course_id}/enroll", headers=auth(token))
    resp = client.post(
        f"/v1/courses/{course.course_id}/chapters/{course.chapter_ids[0]}/lessons",
        json={"title": "Later"},
        headers=auth(instructor_token),
    )
    assert resp.status_code == 201
    assert resp.json()["unlocked_for"] == 0


def test_student_cannot_create_lesson(client: TestClient, token: str) -> None:
    course = seed_app_course()
    resp = client.post(
        f"/v1/courses/{course.course_id}/chapters/{course.chapter_ids[0]}/lessons",
        json={"title": "Sneaky"},
        headers=auth(token),
    )
    assert resp.status_code == 403


def test_unlock_and_lock_for_all_students(
    client: TestClient, token: str, instructor_token: str
) -> None:
    course = seed_app_course((3,))
    target = course.lesson_ids[2]
    for name in ("s1", "s2"):
        client.post(
            f"/v1/courses/{course.course_id}/enroll", headers=auth(mint_token(username=name))
        )

    first = client.post(f"/v1/lessons/{target}/unlock", headers=auth(instructor_token))
    again = client.post(f"/v1/lessons/{target}/unlock", headers=auth(instructor_token))
    assert first.status_code == 200
    assert first.json()["updated_count"] == 2
    assert again.json()["updated_count"] == 0

    locked = client.post(f"/v1/lessons/{target}/lock", headers=auth(instructor_token))
    assert locked.json()["updated_count"] == 2

    student = auth(mint_token(username="s1"))
    progress = client.get(f"/v1/progress/{course.course_id}", headers=student).json()
    assert str(target) not in progress["unlocked_lessons"]


def test_unlock_requires_ownership(client: TestClient, token: str) -> None:
    course = seed_app_course()
    resp = client.post(f"/v1/lessons/{course.lesson_ids[1]}/unlock", headers=auth(token))
    assert resp.status_code == 403


def test_delete_lesson_recomputes_progress(
    client: TestClient, token: str, instructor_token: str
) -> None:
    course = seed_app_course((4,))
    headers = auth(token)
    cid = course.course_id
    client.post(f"/v1/courses/{cid}/enroll", headers=headers)
    _complete(client, headers, cid, course.lesson_ids[0])
    _complete(client, headers, cid, course.lesson_ids[1])

    resp = client.delete(f"/v1/lessons/{course.lesson_ids[1]}", headers=auth(instructor_token))
    assert resp.status_code == 200
    assert resp.json()["succeeded"] == ["test-user"]
    assert resp.json()["failed"] == []

    progress = client.get(f"/v1/progress/{cid}", headers=headers).json()
    assert [c["lesson_id"] for c in progress["completed_lessons"]] == [str(course.lesson_ids[0])]
    assert str(course.lesson_ids[1]) not in progress["unlocked_lessons"]
    assert abs(progress["completion_percentage"] - 100 / 3) < 1e-9


def test_reorder_lessons(client: TestClient, instructor_token: str) -> None:
    course = seed_app_course((3,))
    new_order = [str(i) for i in reversed(course.lesson_ids)]
    resp = client.put(
        f"/v1/chapters/{course.chapter_ids[0]}/lessons/order",
        json={"ids": new_order},
        headers=auth(instructor_token),
    )
    assert resp.status_code == 200
    assert [ls["id"] for ls in resp.json()] == new_order

    bad = client.put(
        f"/v1/chapters/{course.chapter_ids[0]}/lessons/order",
        json={"ids": new_order[:1]},
        headers=auth(instructor_token),
    )
    assert bad.status_code == 422


def test_deleting_next_lesson_keeps_learner_moving(
    client: TestClient, token: str, instructor_token: str
) -> None:
    course = seed_app_course((3,))
    headers = auth(token)
    cid = course.course_id
    l1, l2, l3 = course.lesson_ids
    client.post(f"/v1/courses/{cid}/enroll", headers=headers)
    _complete(client, headers, cid, l1)

    client.delete(f"/v1/lessons/{l2}", headers=auth(instructor_token))

    progress = client.get(f"/v1/progress/{cid}", headers=headers).json()
    assert str(l3) in progress["unlocked_lessons"]
    last = _complete(client, headers, cid, l3)
    assert last.status_code == 200
    assert last.json()["course_completed"] is True


# ---- single lesson ----


def test_get_lesson_hides_video_until_unlocked(client: TestClient, token: str) -> None:
    course = seed_app_course((2,))
    headers = auth(token)
    first, second = course.lesson_ids
    client.post(f"/v1/courses/{course.course_id}/enroll", headers=headers)

    opened = client.get(f"/v1/lessons/{first}", headers=headers).json()
    assert opened["locked"] is False
    assert opened["video_url"] == "https://videos.example.com/1-1.mp4"

    closed = client.get(f"/v1/lessons/{second}", headers=headers).json()
    assert closed["locked"] is True
    assert closed["video_url"] is None
    assert closed["title"] == "Lesson 1.2"


def test_get_lesson_shows_video_to_instructor(
    client: TestClient, instructor_token: str
) -> None:
    course = seed_app_course((2,))
    resp = client.get(f"/v1/lessons/{course.lesson_ids[1]}", headers=auth(instructor_token))
    assert resp.status_code == 200
    assert resp.json()["video_url"] == "https://videos.example.com/1-2.mp4"


def test_get_unknown_lesson_is_404(client: TestClient, token: str) -> None:
    assert client.get(f"/v1/lessons/{uuid4()}", headers=auth(token)).status_code == 404


def test_update_lesson_title_and_video(client: TestClient, instructor_token: str) -> None:
    course = seed_app_course((2,))
    lesson_id = course.lesson_ids[0]
    headers = auth(instructor_token)

    resp = client.patch(
        f"/v1/lessons/{lesson_id}",
        json={"title": "Setup", "video_url": "https://videos.example.com/setup.mp4"},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["title"] == "Setup"
    assert resp.json()["order"] == 1

    cleared = client.patch(f"/v1/lessons/{lesson_id}", json={"video_url": ""}, headers=headers)
    assert cleared.json()["video_url"] is None
    assert cleared.json()["title"] == "Setup"

    detail = client.get(f"/v1/courses/{course.course_id}", headers=headers).json()
    assert detail["chapters"][0]["lessons"][0]["title"] == "Setup"


def test_student_cannot_update_lesson(client: TestClient, token: str) -> None:
    course = seed_app_course()
    resp = client.patch(
        f"/v1/lessons/{course.lesson_ids[0]}", json={"title": "Mine"}, headers=auth(token)
    )
    assert resp.status_code == 403


class _CatalogMissingLesson:
    """Catalog whose lesson listing has lost one lesson the outline still has."""

    def __init__(self, inner, missing) -> None:
        self._inner = inner
        self._missing = missing

    def __getattr__(self, name):
        return getattr(self._inner, name)

    async def list_lessons(self, course_id):
        lessons = await self._inner.list_lessons(course_id)
        return [ls for ls in lessons if ls.id != self._missing]


def test_lesson_list_skips_lessons_gone_from_catalog(client: TestClient, token: str) -> None:
    course = seed_app_course((3,))
    headers = auth(token)
    # Caches the outline with all three lessons.
    assert len(client.get(f"/v1/courses/{course.course_id}/lessons", headers=headers).json()) == 3

    gone = course.lesson_ids[1]
    app.dependency_overrides[get_stores] = lambda: replace(
        memory_stores, catalog=_CatalogMissingLesson(memory_stores.catalog, gone)
    )
    try:
        resp = client.get(f"/v1/courses/{course.course_id}/lessons", headers=headers)
    finally:
        app.dependency_overrides.pop(get_stores, None)

    assert resp.status_code == 200
    assert [ls["id"] for ls in resp.json()] == [
        str(course.lesson_ids[0]),
        str(course.lesson_ids[2]),
    ]
