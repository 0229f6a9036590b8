# tests/fakes.py

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime

from devterm.core.errors import PersistenceError
from devterm.core.ports import ChatMessage, Severity
from devterm.tasks.task_models import Project, Snippet, Task, copy_task
from devterm.users.user_models import User


def ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


# Monday 2024-03-04 10:00 UTC: outside the early-bird / night-owl windows, not a weekend.
T0 = ms(datetime(2024, 3, 4, 10, 0, tzinfo=UTC))


class FakeLLMClient:
    """
    Deterministic LLM client for unit tests.

    - Captures calls for assertions
    - Yields a predefined text as a single chunk
    """

    def __init__(self, next_text: str = "ok") -> None:
        self.next_text = next_text
        self.calls: list[tuple[list[ChatMessage], str]] = []

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        self.calls.append((messages, system_prompt))
        yield self.next_text


class ManualClock:
    def __init__(self, now_ms: int = T0) -> None:
        self.now = now_ms

    def now_ms(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)


@dataclass(slots=True)
class RecordingNotifier:
    messages: list[tuple[str, Severity]] = field(default_factory=list)

    def notify(self, message: str, severity: Severity = Severity.INFO) -> None:
        self.messages.append((message, severity))

    def texts(self, severity: Severity | None = None) -> list[str]:
        return [m for m, s in self.messages if severity is None or s == severity]


class InMemoryTaskRepo:
    """
    In-memory TaskRepo.

    Stores copies, stamps updated_at from a counter (the "server-assigned"
    field) and can be told to fail saves.
    """

    def __init__(self) -> None:
        self.tasks: dict[str, Task] = {}
        self.projects: dict[str, Project] = {}
        self.snippets: dict[str, Snippet] = {}
        self.fail_saves = False
        self.save_calls = 0
        self._version = 0

    async def save_task(self, task: Task) -> Task:
        self.save_calls += 1
        if self.fail_saves:
            raise PersistenceError("store unreachable")
        self._version += 1
        stored = copy_task(task)
        stored.updated_at = self._version
        self.tasks[task.id] = stored
        return copy_task(stored)

    async def get_task(self, task_id: str) -> Task | None:
        t = self.tasks.get(task_id)
        return copy_task(t) if t is not None else None

    async def load_all_tasks(self) -> list[Task]:
        return [copy_task(t) for t in self.tasks.values()]

    async def load_tasks_for_user(self, user_id: str) -> list[Task]:
        return [copy_task(t) for t in self.tasks.values() if t.assigned_to == user_id]

    async def delete_task(self, task_id: str) -> bool:
        return self.tasks.pop(task_id, None) is not None

    async def list_projects(self) -> list[Project]:
        return list(self.projects.values())

    async def save_project(self, project: Project) -> Project:
        self.projects[project.id] = project
        return project

    async def list_snippets(self) -> list[Snippet]:
        return sorted(self.snippets.values(), key=lambda s: s.timestamp, reverse=True)

    async def save_snippet(self, snippet: Snippet) -> Snippet:
        self.snippets[snippet.id] = replace(snippet)
        return replace(snippet)

    async def delete_snippet(self, snippet_id: str) -> bool:
        return self.snippets.pop(snippet_id, None) is not None


class InMemoryUserRepo:
    def __init__(self, users: Iterable[User] = ()) -> None:
        self.users: dict[str, User] = {u.id: u for u in users}
        self.fail_saves = False
        self.save_calls = 0

    async def save_user(self, user: User) -> User:
        self.save_calls += 1
        if self.fail_saves:
            raise PersistenceError("user store unreachable", pending=user)
        stored = replace(user, achievements=list(user.achievements), allowed_projects=list(user.allowed_projects))
        self.users[user.id] = stored
        return stored

    async def get_user(self, user_id: str) -> User | None:
        return self.users.get(user_id)

    async def list_users(self) -> list[User]:
        return list(self.users.values())

    async def delete_user(self, user_id: str) -> bool:
        return self.users.pop(user_id, None) is not None
