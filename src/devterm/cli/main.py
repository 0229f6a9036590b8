# src/devterm/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then starts:
- the timer heartbeat in a background thread,
- the console REPL in the main thread.
"""

from __future__ import annotations

import logging

from ..cli.bootstrap import create_initial_state
from ..cli.commands import close_open_task
from ..config import get_settings
from ..core.errors import DevtermError
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging
from ..tasks.timer_heartbeat import start_heartbeat_in_background

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)

    logger.info("Starting %s...", settings.app_name)

    state = create_initial_state(settings=settings)
    heartbeat = start_heartbeat_in_background(state)

    try:
        run_console_loop(state)
    finally:
        if heartbeat is not None:
            heartbeat.stop()
            heartbeat.join(timeout=10.0)

        # Leaving the app counts as navigating away from the open task.
        try:
            with state.lock:
                close_open_task(state)
        except DevtermError as e:
            logger.warning("Could not stop the open task timer: %s", e)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
