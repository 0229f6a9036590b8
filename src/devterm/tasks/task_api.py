# src/devterm/tasks/task_api.py

from __future__ import annotations

import json
import logging
import re

from ..core.ports import LLMClient
from .task_models import Subtask, new_id

logger = logging.getLogger(__name__)

BREAKDOWN_PROMPT = """
You are a Senior Technical Lead. Analyze the development task given by the user
and break it down into 3-5 concrete, technical subtasks.

Return ONLY a JSON array of strings. Example: ["Setup repository", "Configure CI/CD"].
""".strip()

MAX_SUBTASKS = 5

_BULLET_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+(.+?)\s*$")


def parse_subtask_titles(text: str) -> list[str]:
    """
    Lenient parser for model output.

    Accepts the first JSON array of strings found in the text (models like
    to wrap it in prose or code fences); otherwise falls back to bullet or
    numbered lines.
    """
    text = text or ""
    decoder = json.JSONDecoder()
    start = text.find("[")
    while start != -1:
        try:
            data, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("[", start + 1)
            continue
        start = text.find("[", start + 1)
        if isinstance(data, list):
            titles = [str(x).strip() for x in data if isinstance(x, (str, int, float)) and str(x).strip()]
            if titles:
                return titles[:MAX_SUBTASKS]

    titles = []
    for line in text.splitlines():
        m = _BULLET_RE.match(line)
        if m:
            titles.append(m.group(1).strip().strip('"'))
    return [t for t in titles if t][:MAX_SUBTASKS]


def suggest_subtasks(llm: LLMClient, title: str, description: str) -> list[Subtask]:
    """
    Ask the LLM for a subtask breakdown. Returns new (incomplete) Subtask
    objects; the caller adds them through the orchestrator.
    """
    user_text = f"Task Title: {title}\nTask Description: {description}"
    raw = "".join(llm.stream_chat([{"role": "user", "content": user_text}], BREAKDOWN_PROMPT))
    titles = parse_subtask_titles(raw)
    if not titles:
        logger.warning("LLM breakdown returned nothing usable: %r", raw[:200])
    return [Subtask(id=new_id("st"), title=t) for t in titles]


AUDIT_PROMPT = """
You are a strict Code Auditor AI. Review the code snippet given by the user.

Provide a very concise audit (max 3 sentences):
1. Identify any potential bugs or security risks.
2. Suggest one optimization.
3. Rate the code quality (0-100%).

Format as a raw text report, robotic style.
""".strip()


def audit_snippet(llm: LLMClient, code: str, language: str) -> str:
    user_text = f"Language: {language}\n\nCode:\n{code}"
    report = "".join(llm.stream_chat([{"role": "user", "content": user_text}], AUDIT_PROMPT)).strip()
    return report or "AUDIT_FAILURE: NULL_RESPONSE"
