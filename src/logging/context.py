# src/logging/context.py — v2
"""Contextual logging support — attach job_id, account_id, song_id to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Set per matching request / batch job.
_job_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "job_id", default=None
)
_account_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "account_id", default=None
)
_song_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "song_id", default=None
)


@dataclass
class LogContext:
    """Snapshot of current logging context."""

    job_id: str | None = None
    account_id: str | None = None
    song_id: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    return LogContext(
        job_id=_job_id.get(),
        account_id=_account_id.get(),
        song_id=_song_id.get(),
    )


def set_job_context(job_id: str | None) -> None:
    _job_id.set(job_id)


def set_account_context(account_id: str | None) -> None:
    _account_id.set(account_id)


def set_song_context(song_id: str | None) -> None:
    _song_id.set(song_id)


def clear_context() -> None:
    """Reset all context variables."""
    _job_id.set(None)
    _account_id.set(None)
    _song_id.set(None)
