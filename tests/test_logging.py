"""Tests for log formatting."""

import json
import logging
import sys

import pytest

from toolgate.logging_config import ConsoleFormatter, JSONFormatter, setup_logging


def make_record(message="hello", level=logging.INFO, **extra):
    record = logging.LogRecord("toolgate.test", level, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_basic_fields(self):
        data = json.loads(JSONFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "toolgate.test"
        assert data["message"] == "hello"

    def test_extras(self):
        record = make_record(tool="system_exec", checkpoint_id="cp-1", duration_ms=12.5)

        data = json.loads(JSONFormatter().format(record))

        assert data["tool"] == "system_exec"
        assert data["checkpoint_id"] == "cp-1"
        assert data["duration_ms"] == 12.5
        assert "request_id" not in data

    def test_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord("t", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())

        data = json.loads(JSONFormatter().format(record))

        assert "RuntimeError: boom" in data["exception"]


class TestConsoleFormatter:
    def test_extras_shown(self):
        record = make_record(tool="system_exec", request_id="approval-1234567890", duration_ms=3.0)

        text = ConsoleFormatter().format(record)

        assert "tool=system_exec" in text
        assert "request=approval" in text
        assert "3.0ms" in text
        assert "hello" in text


class TestSetupLogging:
    @pytest.fixture(autouse=True)
    def restore_root(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_json_handler(self):
        setup_logging(debug=False, json_logs=True)

        root = logging.getLogger()
        assert root.level == logging.INFO
        assert isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_debug_uses_console(self):
        setup_logging(debug=True, json_logs=True)

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, ConsoleFormatter)
        assert logging.getLogger("uvicorn.access").level == logging.WARNING
