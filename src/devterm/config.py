# src/devterm/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time.
- Gamification constants are configuration, not literals in the algorithms.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

ENV_PREFIX = "DEVTERM"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    parts = [p.strip() for p in raw.replace(",", " ").split() if p.strip()]
    return parts


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path

    # ---- Gamification ----
    xp_completion_base: int
    xp_high_priority_bonus: int
    xp_critical_priority_bonus: int

    # ---- Time tracking ----
    timer_heartbeat_seconds: int

    # ---- Notifications ----
    sound_enabled: bool

    # ---- Seed account ----
    admin_username: str
    admin_password: str

    # ---- LLM / OpenRouter ----
    openrouter_api_key: Optional[str]
    openrouter_base_url: str
    llm_models: List[str]
    extra_headers: Dict[str, str]

    @staticmethod
    def from_env() -> "Settings":
        app_name = _first_env(_k("APP_NAME"), default=_env(_k("APP_TITLE"), "devterm")) or "devterm"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/devterm"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "devterm.sqlite3")

        xp_completion_base = max(0, _env_int(_k("XP_COMPLETION_BASE"), 150))
        xp_high_priority_bonus = max(0, _env_int(_k("XP_HIGH_PRIORITY_BONUS"), 100))
        xp_critical_priority_bonus = max(0, _env_int(_k("XP_CRITICAL_PRIORITY_BONUS"), 250))

        # Tens of seconds: short enough to bound data loss, long enough not to spam the store.
        timer_heartbeat_seconds = max(5, _env_int(_k("TIMER_HEARTBEAT_SECONDS"), 30))

        sound_enabled = _env_bool(_k("SOUND_ENABLED"), True)

        admin_username = _env(_k("ADMIN_USERNAME"), "admin").strip() or "admin"
        admin_password = _env(_k("ADMIN_PASSWORD"), "password")

        openrouter_api_key = _first_env(_k("OPENROUTER_API_KEY"), "OPENROUTER_API_KEY", default=None)
        openrouter_base_url = _env(_k("OPENROUTER_BASE_URL"), "https://openrouter.ai/api/v1")

        http_referer = _env(_k("HTTP_REFERER"), "https://example.com")
        title = _env(_k("APP_TITLE"), app_name)

        extra_headers = {
            "HTTP-Referer": http_referer,
            "X-Title": title,
        }

        llm_models = _env_list(
            _k("LLM_MODELS"),
            [
                "qwen/qwen-2.5-72b-instruct:free",
                "deepseek/deepseek-chat-v3-0324:free",
            ],
        )

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            db_path=db_path,
            xp_completion_base=xp_completion_base,
            xp_high_priority_bonus=xp_high_priority_bonus,
            xp_critical_priority_bonus=xp_critical_priority_bonus,
            timer_heartbeat_seconds=timer_heartbeat_seconds,
            sound_enabled=sound_enabled,
            admin_username=admin_username,
            admin_password=admin_password,
            openrouter_api_key=openrouter_api_key,
            openrouter_base_url=openrouter_base_url,
            llm_models=llm_models,
            extra_headers=extra_headers,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
