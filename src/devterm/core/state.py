# src/devterm/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from ..tasks.orchestrator import TaskMutationOrchestrator
from ..users.user_models import User
from .ports import ChatMessage, Clock, LLMClient, Notifier, TaskRepo


@dataclass(slots=True)
class AppState:
    """
    Runtime state shared by connectors and background loops.

    `lock` serializes task mutations between the console and the timer
    heartbeat thread.
    """

    settings: Any
    llm: LLMClient
    notifier: Notifier
    clock: Clock
    task_store: TaskRepo
    user_store: Any
    orchestrator: TaskMutationOrchestrator

    current_user: User | None = None
    open_task_id: str | None = None

    conversation: list[ChatMessage] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock)
