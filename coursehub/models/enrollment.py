from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Enrollment:
    user_id: str
    course_id: UUID
    enrolled_at: int


@dataclass(frozen=True, slots=True)
class Certificate:
    """Certificate recorded against a learner once the course is complete.

    Rendering and storage of the document are handled elsewhere; only the
    resulting URL (if any) is kept here.
    """

    user_id: str
    course_id: UUID
    issued_at: int
    completed_at: int
    certificate_url: str | None = None
