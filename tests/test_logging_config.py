"""Tests for structured logging configuration."""

import json
import logging
import sys

import pytest

from objectlambda.logging_config import (
    JSONFormatter,
    RequestIdFilter,
    aws_request_id,
    configure_logging,
)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def _record(msg="hello %s", args=("world",), **extra) -> logging.LogRecord:
    record = logging.LogRecord("objectlambda.test", logging.INFO, __file__, 1, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_basic_fields(self):
        entry = json.loads(JSONFormatter().format(_record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "objectlambda.test"
        assert entry["message"] == "hello world"
        assert "timestamp" in entry

    def test_extra_fields(self):
        """Known extras are copied into the entry."""
        record = _record(operation="GET_OBJECT", status=200, key="a.txt", duration_ms=1.5)
        entry = json.loads(JSONFormatter().format(record))
        assert entry["operation"] == "GET_OBJECT"
        assert entry["status"] == 200
        assert entry["key"] == "a.txt"
        assert entry["duration_ms"] == 1.5
        assert "request_route" not in entry

    def test_exception(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = logging.LogRecord(
                "x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
            )
        entry = json.loads(JSONFormatter().format(record))
        assert "ValueError: bad" in entry["exception"]


class TestConfigureLogging:
    """Tests for configure_logging()."""

    def test_json_format(self, restore_root_logger):
        configure_logging("DEBUG", "json")
        assert restore_root_logger.level == logging.DEBUG
        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0].formatter, JSONFormatter)

    def test_text_format_and_unknown_level(self, restore_root_logger):
        """Unknown levels fall back to INFO."""
        configure_logging("CHATTY", "text")
        assert restore_root_logger.level == logging.INFO
        assert not isinstance(restore_root_logger.handlers[0].formatter, JSONFormatter)

    def test_request_id_attached(self, restore_root_logger):
        """Records carry the request id of the current invocation."""
        configure_logging("INFO", "json")
        handler = restore_root_logger.handlers[0]
        assert any(isinstance(f, RequestIdFilter) for f in handler.filters)

        token = aws_request_id.set("req-42")
        try:
            record = _record()
            handler.filter(record)
        finally:
            aws_request_id.reset(token)
        entry = json.loads(handler.formatter.format(record))
        assert entry["aws_request_id"] == "req-42"
