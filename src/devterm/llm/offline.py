# src/devterm/llm/offline.py

from __future__ import annotations

import json
from collections.abc import Iterable

from ..core.ports import ChatMessage


class OfflineLLMClient:
    """
    Offline deterministic LLM client used when no external API is configured.

    Behavior:
    - Subtask breakdown prompts -> a JSON array of generic steps
    - Code audit prompts -> a fixed offline report
    - Normal chat -> a short offline notice that echoes the question
    """

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        sp = (system_prompt or "").lower()

        if "subtask" in sp and "json array" in sp:
            yield json.dumps(
                [
                    "Clarify requirements",
                    "Implement the change",
                    "Write tests",
                    "Review and merge",
                ]
            )
            return

        if "code auditor" in sp:
            lines = 0
            if messages:
                lines = len(messages[-1]["content"].splitlines())
            yield f"AUDIT_REPORT [offline]: {lines} lines received. Static review unavailable. QUALITY: N/A"
            return

        user_text = ""
        for m in reversed(messages):
            if m["role"] == "user":
                user_text = m["content"]
                break

        yield (
            "CORE offline: no external LLM is configured.\n"
            "Set DEVTERM_OPENROUTER_API_KEY (and DEVTERM_LLM_MODELS) to enable real responses.\n\n"
            f"Query received: {user_text}"
        )
