# src/devterm/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (stores, LLM, notifier, orchestrator),
- seeds the admin account on an empty database.
"""

from __future__ import annotations

import asyncio
import logging

from ..config import get_settings
from ..connectors.console_notifier import ConsoleNotifier
from ..core.clock import SystemClock
from ..core.ports import LLMClient
from ..core.state import AppState
from ..gamification.evaluator import AnnouncementContext, XpTable
from ..llm.client import OpenRouterLLMClient
from ..llm.offline import OfflineLLMClient
from ..tasks.orchestrator import TaskMutationOrchestrator
from ..tasks.task_store import TaskStore
from ..users.user_store import UserStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    llm_client: LLMClient
    try:
        llm_client = OpenRouterLLMClient(settings)
    except RuntimeError as e:
        logger.info("Using offline LLM client: %s", e)
        llm_client = OfflineLLMClient()

    clock = SystemClock()
    notifier = ConsoleNotifier(sound_enabled=settings.sound_enabled)
    task_store = TaskStore(settings.db_path, clock=clock)
    user_store = UserStore(settings.db_path)

    orchestrator = TaskMutationOrchestrator(
        task_store,
        user_store,
        notifier,
        clock,
        xp_table=XpTable.from_settings(settings),
        announcements=AnnouncementContext(),
    )

    state = AppState(
        settings=settings,
        llm=llm_client,
        notifier=notifier,
        clock=clock,
        task_store=task_store,
        user_store=user_store,
        orchestrator=orchestrator,
    )

    asyncio.run(_prepare(state))
    return state


async def _prepare(state: AppState) -> None:
    s = state.settings
    await state.user_store.ensure_admin(s.admin_username, s.admin_password)
    await state.orchestrator.refresh_directory()
