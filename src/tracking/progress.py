# src/tracking/progress.py — v1
"""Progress sinks for batch matching jobs.

Emission is fire-and-forget and keyed by an opaque job id. Sinks must not
raise into the batch loop; ``safe_emit_*`` wrap calls and log failures.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import defaultdict

from songmatch.tracking.models import JobItemEvent, JobProgress, JobProgressEvent

logger = logging.getLogger(__name__)


class BaseProgressSink(ABC):
    """Destination for per-item and aggregate job events."""

    @abstractmethod
    def emit_item(self, job_id: str, event: JobItemEvent) -> None:
        """Publish an item status change."""

    @abstractmethod
    def emit_progress(self, job_id: str, event: JobProgressEvent) -> None:
        """Publish an aggregate progress snapshot."""


class LoggingProgressSink(BaseProgressSink):
    """Write job events to the application log."""

    def __init__(self, level: int = logging.INFO) -> None:
        self._level = level

    def emit_item(self, job_id: str, event: JobItemEvent) -> None:
        logger.log(
            self._level,
            "job=%s item=%s status=%s %s",
            job_id, event.item_id, event.status, event.label or "",
        )

    def emit_progress(self, job_id: str, event: JobProgressEvent) -> None:
        logger.log(
            self._level,
            "job=%s progress %d/%d (ok=%d failed=%d)",
            job_id, event.done, event.total, event.succeeded, event.failed,
        )


class RecordingProgressSink(BaseProgressSink):
    """Keep every event in memory, grouped by job id."""

    def __init__(self) -> None:
        self.items: dict[str, list[JobItemEvent]] = defaultdict(list)
        self.progress: dict[str, list[JobProgressEvent]] = defaultdict(list)

    def emit_item(self, job_id: str, event: JobItemEvent) -> None:
        self.items[job_id].append(event)

    def emit_progress(self, job_id: str, event: JobProgressEvent) -> None:
        self.progress[job_id].append(event)

    def last_progress(self, job_id: str) -> JobProgressEvent | None:
        events = self.progress.get(job_id)
        return events[-1] if events else None


def safe_emit_item(
    sink: BaseProgressSink | None, job_id: str | None, event: JobItemEvent
) -> None:
    """Emit an item event if both a sink and a job id are set."""
    if sink is None or not job_id:
        return
    try:
        sink.emit_item(job_id, event)
    except Exception:
        logger.warning("Progress sink failed for job %s", job_id, exc_info=True)


def safe_emit_progress(
    sink: BaseProgressSink | None, job_id: str | None, progress: JobProgress
) -> None:
    """Emit a progress snapshot if both a sink and a job id are set."""
    if sink is None or not job_id:
        return
    try:
        sink.emit_progress(job_id, JobProgressEvent.from_progress(progress))
    except Exception:
        logger.warning("Progress sink failed for job %s", job_id, exc_info=True)
