# tests/conftest.py

from __future__ import annotations

from datetime import UTC
from pathlib import Path
from types import SimpleNamespace

import pytest

from devterm.core.state import AppState
from devterm.gamification.evaluator import AnnouncementContext, XpTable
from devterm.tasks.change_tracker import Directory
from devterm.tasks.orchestrator import TaskMutationOrchestrator
from devterm.tasks.task_models import Project
from devterm.users.user_models import Role, User

from .fakes import FakeLLMClient, InMemoryTaskRepo, InMemoryUserRepo, ManualClock, RecordingNotifier


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and bootstrap.

    A SimpleNamespace rather than the real config keeps tests isolated
    from the environment.
    """
    return SimpleNamespace(
        app_name="devterm-test",
        log_level="INFO",
        data_dir=tmp_path,
        db_path=tmp_path / "devterm.sqlite3",
        xp_completion_base=150,
        xp_high_priority_bonus=100,
        xp_critical_priority_bonus=250,
        timer_heartbeat_seconds=30,
        sound_enabled=False,
        admin_username="admin",
        admin_password="password",
        openrouter_api_key=None,
        openrouter_base_url="https://openrouter.ai/api/v1",
        llm_models=["test/model"],
        extra_headers={},
    )


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def dev() -> User:
    return User(id="u-neo", username="neo", role=Role.DEVELOPER)


@pytest.fixture()
def viewer() -> User:
    return User(id="u-eye", username="watcher", role=Role.VIEWER, allowed_projects=["p-core"])


@pytest.fixture()
def task_repo() -> InMemoryTaskRepo:
    repo = InMemoryTaskRepo()
    repo.projects["p-core"] = Project(id="p-core", name="Core")
    repo.projects["p-web"] = Project(id="p-web", name="Web")
    return repo


@pytest.fixture()
def user_repo(dev: User, viewer: User) -> InMemoryUserRepo:
    return InMemoryUserRepo([dev, viewer, User(id="u-tri", username="trinity")])


@pytest.fixture()
def orchestrator(task_repo, user_repo, notifier, clock) -> TaskMutationOrchestrator:
    return TaskMutationOrchestrator(
        task_repo,
        user_repo,
        notifier,
        clock,
        xp_table=XpTable(),
        announcements=AnnouncementContext(),
        directory=Directory(
            users={u.id: u.username for u in user_repo.users.values()},
            projects={p.id: p.name for p in task_repo.projects.values()},
        ),
        tz=UTC,
    )


@pytest.fixture()
def state(settings, orchestrator, task_repo, user_repo, notifier, clock, dev) -> AppState:
    """AppState wired with in-memory fakes and a logged-in developer."""
    return AppState(
        settings=settings,
        llm=FakeLLMClient(),
        notifier=notifier,
        clock=clock,
        task_store=task_repo,
        user_store=user_repo,
        orchestrator=orchestrator,
        current_user=dev,
    )
