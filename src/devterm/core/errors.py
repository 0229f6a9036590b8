# src/devterm/core/errors.py

"""
Error taxonomy used by the core.

None of these are fatal to the running process: the orchestrator reports them
through the notification sink and re-raises, connectors catch DevtermError.
"""

from __future__ import annotations

from typing import Any


class DevtermError(Exception):
    """Base class for all expected (recoverable) core errors."""


class ValidationError(DevtermError):
    """Incoming data is incomplete; raised before any mutation side effect."""

    def __init__(self, message: str, *, fields: list[str] | None = None) -> None:
        super().__init__(message)
        self.fields = list(fields or [])


class PersistenceError(DevtermError):
    """
    The backing store is unreachable or rejected a write.

    `pending` holds the locally computed object that was not saved,
    so callers can keep the optimistic state and retry.
    """

    def __init__(self, message: str, *, pending: Any = None) -> None:
        super().__init__(message)
        self.pending = pending


class NotFoundError(DevtermError):
    """The mutation targets an id the store no longer has."""


class AccessDeniedError(DevtermError):
    """The acting user's role does not allow this operation."""
