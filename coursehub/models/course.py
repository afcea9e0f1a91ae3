from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Course:
    id: UUID
    title: str
    description: str
    instructor_id: str
    price: float = 0.0
    # Raised on every structural change (chapter/lesson create, delete,
    # reorder) so derived lesson outlines can be cached per version.  Values
    # only grow and are never reused.
    version: int = 1
    average_rating: float = 0.0
    total_ratings: int = 0

    @staticmethod
    def new(
        *, title: str, description: str, instructor_id: str, price: float = 0.0
    ) -> Course:
        return Course(
            id=uuid4(),
            title=title,
            description=description,
            instructor_id=instructor_id,
            price=price,
        )


@dataclass(frozen=True, slots=True)
class Chapter:
    id: UUID
    course_id: UUID
    title: str
    order: int

    @staticmethod
    def new(*, course_id: UUID, title: str, order: int) -> Chapter:
        return Chapter(id=uuid4(), course_id=course_id, title=title, order=order)


@dataclass(frozen=True, slots=True)
class Lesson:
    """A video lesson.

    ``order`` is unique within the chapter.  ``locked`` is the authoring-time
    default: a lesson created with ``locked=False`` is unlocked for every
    student already enrolled.
    """

    id: UUID
    course_id: UUID
    chapter_id: UUID
    title: str
    order: int
    locked: bool = True
    video_url: str | None = None

    @staticmethod
    def new(
        *,
        course_id: UUID,
        chapter_id: UUID,
        title: str,
        order: int,
        locked: bool = True,
        video_url: str | None = None,
    ) -> Lesson:
        return Lesson(
            id=uuid4(),
            course_id=course_id,
            chapter_id=chapter_id,
            title=title,
            order=order,
            locked=locked,
            video_url=video_url,
        )


@dataclass(frozen=True, slots=True)
class Rating:
    user_id: str
    course_id: UUID
    rate: int  # 1..5
    updated_at: int
    comment: str | None = None
