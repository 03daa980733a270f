# tests/unit/logging/test_logger.py — v1
"""Tests for logging/logger.py — formatters, setup, size parsing."""

from __future__ import annotations

import json
import logging
import sys
from logging.handlers import RotatingFileHandler

import pytest

from songmatch.logging.context import set_job_context, set_song_context
from songmatch.logging.logger import (
    JsonFormatter,
    TextFormatter,
    get_logger,
    parse_size,
    setup_logging,
)


def _record(msg: str = "hello %s", args: tuple = ("world",), **extra) -> logging.LogRecord:
    record = logging.LogRecord("songmatch.test", logging.INFO, __file__, 1, msg, args, None)
    for k, v in extra.items():
        setattr(record, k, v)
    return record


@pytest.fixture
def _restore_root_logger():
    root = logging.getLogger("songmatch")
    handlers, level = list(root.handlers), root.level
    yield
    for h in root.handlers:
        h.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestJsonFormatter:
    def test_basic_fields(self):
        entry = json.loads(JsonFormatter().format(_record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "songmatch.test"
        assert entry["message"] == "hello world"
        assert "context" not in entry

    def test_context_included(self):
        set_job_context("job-1")
        set_song_context("song-9")
        entry = json.loads(JsonFormatter().format(_record()))
        assert entry["context"] == {"job_id": "job-1", "song_id": "song-9"}

    def test_data_field(self):
        entry = json.loads(JsonFormatter().format(_record(data={"songs": 3})))
        assert entry["data"] == {"songs": 3}

    def test_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = _record(exc_info=sys.exc_info())
        entry = json.loads(JsonFormatter().format(record))
        assert "RuntimeError: boom" in entry["exception"]


class TestTextFormatter:
    def test_line(self):
        line = TextFormatter().format(_record())
        assert "[INFO    ]" in line
        assert line.endswith("- hello world")

    def test_context_tags(self):
        set_job_context("job-1")
        set_song_context("song-9")
        line = TextFormatter().format(_record())
        assert "[job=job-1]" in line
        assert "(song=song-9)" in line


class TestParseSize:
    @pytest.mark.parametrize(
        "size, expected",
        [("10MB", 10 * 1024**2), ("512kb", 512 * 1024), ("1 GB", 1024**3)],
    )
    def test_valid(self, size, expected):
        assert parse_size(size) == expected

    @pytest.mark.parametrize("size", ["10", "MB", "ten MB", "10TB"])
    def test_invalid(self, size):
        with pytest.raises(ValueError, match="Invalid size format"):
            parse_size(size)


class TestSetupLogging:
    def test_get_logger_is_child(self):
        assert get_logger("cache").name == "songmatch.cache"

    @pytest.mark.usefixtures("_restore_root_logger")
    def test_console_only(self):
        setup_logging(level="DEBUG", log_format="text")
        root = logging.getLogger("songmatch")
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, TextFormatter)

    @pytest.mark.usefixtures("_restore_root_logger")
    def test_with_file(self, tmp_path):
        log_file = tmp_path / "logs" / "songmatch.log"
        setup_logging(level="INFO", log_file=log_file, rotation="1MB", retention=3)
        root = logging.getLogger("songmatch")
        file_handlers = [h for h in root.handlers if isinstance(h, RotatingFileHandler)]
        assert len(file_handlers) == 1
        assert file_handlers[0].maxBytes == 1024**2
        assert file_handlers[0].backupCount == 3

        get_logger("test").info("written")
        file_handlers[0].flush()
        entry = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
        assert entry["message"] == "written"

    @pytest.mark.usefixtures("_restore_root_logger")
    def test_repeat_setup_replaces_handlers(self):
        setup_logging()
        setup_logging()
        assert len(logging.getLogger("songmatch").handlers) == 1
