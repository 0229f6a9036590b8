# src/devterm/connectors/console_notifier.py

from __future__ import annotations

import logging
import sys
from datetime import datetime
from typing import TextIO

from ..core.ports import Severity

logger = logging.getLogger(__name__)

_PREFIX = {
    Severity.SUCCESS: "[OK]",
    Severity.ERROR: "[ERR]",
    Severity.INFO: "[INFO]",
    Severity.WARNING: "[WARN]",
}


class ConsoleNotifier:
    """
    Toast-style notifications for the console.

    The audible cue is the terminal bell; terminals map it to their own
    sound. Writing to a closed stream is logged, never raised.
    """

    def __init__(self, *, sound_enabled: bool = True, stream: TextIO | None = None) -> None:
        self.sound_enabled = sound_enabled
        self._stream = stream

    def notify(self, message: str, severity: Severity = Severity.INFO) -> None:
        stream = self._stream or sys.stdout
        ts = datetime.now().astimezone().strftime("%H:%M:%S")
        bell = "\a" if self.sound_enabled else ""
        try:
            stream.write(f"{bell}[{ts}] {_PREFIX.get(severity, '[INFO]')} {message}\n")
            stream.flush()
        except (OSError, ValueError):
            logger.debug("Notification write failed: %s", message, exc_info=True)
