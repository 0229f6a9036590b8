# src/devterm/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.assistant import stream_reply
from ..core.errors import DevtermError
from ..core.state import AppState
from ..llm.client import friendly_llm_error_message

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    If not a TTY, just print a new line.
    """
    if sys.stdout.isatty():
        sys.stdout.write("\033[1A\033[2K\r")
        sys.stdout.write(line + "\n")
        sys.stdout.flush()
    else:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def _prompt(state: AppState) -> str:
    user = state.current_user
    who = user.username if user else "guest"
    where = f":{state.open_task_id}" if state.open_task_id else ""
    return f"{who}@devterm{where}$ "


def _answer(state: AppState, user_input: str) -> None:
    """Stream a CORE reply for plain text."""
    if state.current_user is None:
        _print_ts("Login required. Use /login <username> <password>.")
        return

    tasks = asyncio.run(state.task_store.load_tasks_for_user(state.current_user.id))
    printed = False
    for piece in stream_reply(state, user_input, tasks):
        if not printed:
            print(f"[{_ts_local()}] <<< CORE: ", end="", flush=True)
            printed = True
        print(piece, end="", flush=True)

    if printed:
        print("\n")
    else:
        _print_ts("[LLM] No output (model produced no content).")


def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] devterm ready. Use /login, then /help for commands. Use /exit to quit.\n")

    def emit(text: str) -> None:
        print(f"[{_ts_local()}] {text}", flush=True)

    while True:
        try:
            prompt = _prompt(state)
            user_input = input(prompt).strip()
            _rewrite_prev_line(f"[{_ts_local()}] {prompt}{user_input}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        # The heartbeat thread takes the same lock.
        try:
            with state.lock:
                cmd_response = command_registry.handle(state, user_input, emit=emit)
        except Exception:
            logger.exception("Command handler crashed.")
            cmd_response = "Internal error while handling a command."

        if cmd_response is not None:
            print(f"[{_ts_local()}] {cmd_response}")
            continue

        try:
            _answer(state, user_input)
        except RuntimeError as e:
            msg = friendly_llm_error_message(e)
            logger.info("LLM runtime error: %s", msg)
            _print_ts(f"[LLM] {msg}")
        except DevtermError as e:
            _print_ts(f"Aborted: {e}")
        except Exception:
            logger.exception("Console chat handler crashed.")
            _print_ts("Internal error while generating a reply.")

    logger.info("Console connector finished.")
