# src/devterm/users/user_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class Role(StrEnum):
    ADMIN = "ADMIN"
    DEVELOPER = "DEVELOPER"
    VIEWER = "VIEWER"

    @classmethod
    def from_db(cls, raw: str | None) -> Role:
        if not raw:
            return cls.DEVELOPER
        try:
            return cls(str(raw).strip().upper())
        except ValueError:
            return cls.DEVELOPER


@dataclass(slots=True)
class User:
    id: str
    username: str
    role: Role = Role.DEVELOPER

    # Gamification state. Only the achievement evaluator / orchestrator changes these.
    xp: int = 0
    achievements: list[str] = field(default_factory=list)

    # VIEWER accounts only: project ids they may open (empty => all).
    allowed_projects: list[str] = field(default_factory=list)

    @property
    def can_edit(self) -> bool:
        return self.role != Role.VIEWER

    def can_view_project(self, project_id: str) -> bool:
        if self.role != Role.VIEWER or not self.allowed_projects:
            return True
        return project_id in self.allowed_projects
