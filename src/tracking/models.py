# src/tracking/models.py — v2
"""Job progress models: JobProgress, JobItemEvent, JobProgressEvent."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

JobItemStatus = Literal["pending", "in_progress", "succeeded", "failed"]


class JobProgress(BaseModel):
    """Running counters for a batch job."""

    total: int = 0
    done: int = 0
    succeeded: int = 0
    failed: int = 0


class JobItemEvent(BaseModel):
    """Status change of a single item within a job."""

    type: Literal["item"] = "item"
    item_id: str
    item_kind: str = "match"
    status: JobItemStatus
    label: str | None = None
    index: int | None = None


class JobProgressEvent(BaseModel):
    """Aggregate snapshot of a job's counters."""

    type: Literal["progress"] = "progress"
    total: int
    done: int
    succeeded: int
    failed: int

    @classmethod
    def from_progress(cls, progress: JobProgress) -> JobProgressEvent:
        return cls(**progress.model_dump())
