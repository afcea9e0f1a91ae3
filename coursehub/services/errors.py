"""Domain exceptions shared by the catalog, progress and rating services.

Three families, mapped to HTTP statuses by the API layer:

  NotFoundError       → 404
  StateConflictError  → 409 (a precondition does not hold right now)
  InvalidInputError   → 422 (rejected before any state is read)

Anything else raised from a service is an infrastructure failure and is
propagated unchanged.
"""

from __future__ import annotations

from uuid import UUID


class CourseHubError(Exception):
    pass


class NotFoundError(CourseHubError, LookupError):
    pass


class CourseNotFoundError(NotFoundError):
    def __init__(self, course_id: UUID) -> None:
        super().__init__(f"course {course_id} not found")
        self.course_id = course_id


class ChapterNotFoundError(NotFoundError):
    def __init__(self, chapter_id: UUID) -> None:
        super().__init__(f"chapter {chapter_id} not found")
        self.chapter_id = chapter_id


class LessonNotFoundError(NotFoundError):
    def __init__(self, lesson_id: UUID) -> None:
        super().__init__(f"lesson {lesson_id} not found")
        self.lesson_id = lesson_id


class ProgressNotFoundError(NotFoundError):
    def __init__(self, user_id: str, course_id: UUID) -> None:
        super().__init__(f"no progress for user {user_id} in course {course_id}")
        self.user_id = user_id
        self.course_id = course_id


class NotEnrolledError(NotFoundError):
    def __init__(self, user_id: str, course_id: UUID) -> None:
        super().__init__(f"user {user_id} is not enrolled in course {course_id}")
        self.user_id = user_id
        self.course_id = course_id


class StateConflictError(CourseHubError):
    pass


class AlreadyEnrolledError(StateConflictError):
    def __init__(self, user_id: str, course_id: UUID) -> None:
        super().__init__(f"user {user_id} is already enrolled in course {course_id}")
        self.user_id = user_id
        self.course_id = course_id


class LessonLockedError(StateConflictError):
    def __init__(self, lesson_id: UUID) -> None:
        super().__init__(f"lesson {lesson_id} is locked")
        self.lesson_id = lesson_id


class ProgressExistsError(StateConflictError):
    """Raised by a progress repo when a second record for a pair is inserted."""


class CertificateNotEligibleError(StateConflictError):
    pass


class CertificateAlreadyIssuedError(StateConflictError):
    pass


class RatingNotAllowedError(CourseHubError):
    pass


class InvalidInputError(CourseHubError, ValueError):
    pass
