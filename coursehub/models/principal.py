from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """The caller behind a verified bearer token.

    Roles are a subset of student, instructor and admin.
    """

    user_id: str
    roles: frozenset[str]

    @property
    def is_admin(self) -> bool:
        return "admin" in self.roles

    def has_any_role(self, roles: set[str]) -> bool:
        return bool(self.roles & roles)

    def can_author(self, instructor_id: str) -> bool:
        """Admins author every course; instructors only their own."""
        return self.is_admin or instructor_id == self.user_id
