# src/devterm/core/assistant.py

"""
CORE terminal assistant.

Plain console text (anything that is not a slash command) is answered by a
terse assistant that sees a compact summary of the user's tasks.

Conversation history is updated only after a stream completes, so an
interrupted answer never ends up in the next prompt.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Final

from ..gamification.levels import level_info
from ..tasks.task_models import Task
from ..users.user_models import User
from .clock import format_display_date, format_duration
from .ports import ChatMessage
from .state import AppState

logger = logging.getLogger(__name__)

CORE_PERSONA_PROMPT: Final[str] = """
You are "CORE", the AI mainframe of this developer console.
You speak in a terse, robotic, cyberpunk style.

Rules:
- If the user asks about tasks, answer from the <TASKS> block only.
- Never invent task ids, deadlines or people.
- Keep answers under 50 words.
""".strip()

MAX_CONTEXT_TASKS = 30
MAX_HISTORY_MESSAGES = 20


def _format_task_line(t: Task) -> str:
    parts = [f"[{t.id}] {t.title}", t.status.value, t.priority.value, f"{t.progress}%"]
    if t.deadline:
        parts.append(f"due {format_display_date(t.deadline)}")
    if t.time_spent:
        parts.append(f"logged {format_duration(t.time_spent)}")
    return "- " + " | ".join(parts)


def build_system_prompt(user: User | None, tasks: list[Task]) -> str:
    lines: list[str] = []
    if user is not None:
        info = level_info(user.xp)
        lines.append(f"Operator: {user.username} ({user.role.value}), level {info.level} {info.title}, {user.xp} XP")
    if tasks:
        lines.append("Tasks:")
        lines.extend(_format_task_line(t) for t in tasks[:MAX_CONTEXT_TASKS])
    else:
        lines.append("Tasks: none")
    return f"{CORE_PERSONA_PROMPT}\n\n<TASKS>\n" + "\n".join(lines) + "\n</TASKS>\n"


def stream_reply(state: AppState, user_text: str, tasks: list[Task]) -> Iterable[str]:
    history = state.conversation
    messages: list[ChatMessage] = [*history, {"role": "user", "content": user_text}]
    system_prompt = build_system_prompt(state.current_user, tasks)

    answer = ""
    for piece in state.llm.stream_chat(messages, system_prompt):
        if not piece:
            continue
        answer += piece
        yield piece

    answer = answer.strip()
    if answer:
        history.append({"role": "user", "content": user_text})
        history.append({"role": "assistant", "content": answer})
        if len(history) > MAX_HISTORY_MESSAGES:
            del history[: len(history) - MAX_HISTORY_MESSAGES]
