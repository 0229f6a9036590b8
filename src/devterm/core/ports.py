# src/devterm/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps storage/notification/LLM providers swappable and makes testing easier.

Persistence calls are async: each one may fail or time out, and the core
treats them as suspend points.
"""

from enum import StrEnum
from typing import Iterable, Protocol

from ..tasks.task_models import Project, Snippet, Task
from ..users.user_models import User

ChatMessage = dict[str, str]
# OpenAI-style chat messages: {"role": "...", "content": "..."}.


class Severity(StrEnum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"
    WARNING = "warning"


class LLMClient(Protocol):
    """Streaming chat completion client (OpenAI/OpenRouter-compatible)."""
    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]: ...


class Notifier(Protocol):
    """
    Fire-and-forget notification sink (toast + audible cue).

    Implementations must not raise: a broken sink never aborts a mutation.
    """

    def notify(self, message: str, severity: Severity = Severity.INFO) -> None: ...


class Clock(Protocol):
    def now_ms(self) -> int: ...


class TaskRepo(Protocol):
    async def save_task(self, task: Task) -> Task: ...
    async def get_task(self, task_id: str) -> Task | None: ...
    async def load_all_tasks(self) -> list[Task]: ...
    async def load_tasks_for_user(self, user_id: str) -> list[Task]: ...
    async def delete_task(self, task_id: str) -> bool: ...

    async def list_projects(self) -> list[Project]: ...
    async def save_project(self, project: Project) -> Project: ...

    async def list_snippets(self) -> list[Snippet]: ...
    async def save_snippet(self, snippet: Snippet) -> Snippet: ...
    async def delete_snippet(self, snippet_id: str) -> bool: ...


class UserRepo(Protocol):
    async def save_user(self, user: User) -> User: ...
    async def get_user(self, user_id: str) -> User | None: ...
    async def list_users(self) -> list[User]: ...


class NameResolver(Protocol):
    """Resolves ids to display names for audit messages (None => unknown)."""

    def user_display_name(self, user_id: str) -> str | None: ...
    def project_display_name(self, project_id: str) -> str | None: ...
