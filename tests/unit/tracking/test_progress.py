# tests/unit/tracking/test_progress.py — v1
"""Tests for tracking/progress.py — sinks and safe emission."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock

from songmatch.tracking.models import JobItemEvent, JobProgress
from songmatch.tracking.progress import (
    BaseProgressSink,
    LoggingProgressSink,
    RecordingProgressSink,
    safe_emit_item,
    safe_emit_progress,
)


def _item(status: str = "succeeded") -> JobItemEvent:
    return JobItemEvent(item_id="song_1", status=status, label="Song -> score 0.80", index=0)


class TestRecordingProgressSink:
    def test_groups_by_job(self):
        sink = RecordingProgressSink()
        sink.emit_item("job-a", _item())
        sink.emit_item("job-b", _item("failed"))
        assert len(sink.items["job-a"]) == 1
        assert sink.items["job-b"][0].status == "failed"

    def test_last_progress(self):
        sink = RecordingProgressSink()
        safe_emit_progress(sink, "job-a", JobProgress(total=3, done=1, succeeded=1))
        safe_emit_progress(sink, "job-a", JobProgress(total=3, done=3, succeeded=2, failed=1))
        last = sink.last_progress("job-a")
        assert last is not None
        assert (last.done, last.failed) == (3, 1)

    def test_last_progress_unknown_job(self):
        assert RecordingProgressSink().last_progress("nope") is None


class TestLoggingProgressSink:
    def test_logs_item_and_progress(self, caplog):
        sink = LoggingProgressSink()
        with caplog.at_level(logging.INFO, logger="songmatch.tracking.progress"):
            sink.emit_item("job-a", _item())
            safe_emit_progress(sink, "job-a", JobProgress(total=2, done=1, succeeded=1))
        assert "job=job-a item=song_1 status=succeeded" in caplog.text
        assert "progress 1/2" in caplog.text


class TestSafeEmit:
    def test_no_job_id_is_noop(self):
        sink = MagicMock(spec=BaseProgressSink)
        safe_emit_item(sink, None, _item())
        safe_emit_progress(sink, "", JobProgress())
        sink.emit_item.assert_not_called()
        sink.emit_progress.assert_not_called()

    def test_no_sink_is_noop(self):
        safe_emit_item(None, "job-a", _item())
        safe_emit_progress(None, "job-a", JobProgress())

    def test_sink_failure_swallowed(self, caplog):
        sink = MagicMock(spec=BaseProgressSink)
        sink.emit_item.side_effect = RuntimeError("socket closed")
        sink.emit_progress.side_effect = RuntimeError("socket closed")
        with caplog.at_level(logging.WARNING, logger="songmatch.tracking.progress"):
            safe_emit_item(sink, "job-a", _item())
            safe_emit_progress(sink, "job-a", JobProgress(total=1))
        assert caplog.text.count("Progress sink failed for job job-a") == 2

    def test_progress_converted_to_event(self):
        sink = MagicMock(spec=BaseProgressSink)
        safe_emit_progress(sink, "job-a", JobProgress(total=4, done=2, succeeded=2))
        job_id, event = sink.emit_progress.call_args.args
        assert job_id == "job-a"
        assert event.type == "progress"
        assert event.total == 4
