"""Tests for centralized logging."""

import io
import json
import logging
import pytest
from convoy.infrastructure.logging import (
    JSONFormatter,
    ServiceFormatter,
    configure_logging,
    level_from_flags,
)


class TestConfigureLogging:
    def test_default_level(self):
        configure_logging(level=logging.INFO)
        logger = logging.getLogger("convoy")
        assert logger.level == logging.INFO

    def test_debug_level(self):
        configure_logging(level=logging.DEBUG)
        logger = logging.getLogger("convoy")
        assert logger.level == logging.DEBUG

    def test_json_format(self):
        configure_logging(level=logging.INFO, json_format=True)
        logger = logging.getLogger("convoy")
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)

    def test_human_format(self):
        configure_logging(level=logging.INFO, json_format=False)
        logger = logging.getLogger("convoy")
        assert len(logger.handlers) == 1
        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)

    def test_replaces_handlers(self):
        configure_logging(level=logging.INFO)
        configure_logging(level=logging.DEBUG)
        logger = logging.getLogger("convoy")
        assert len(logger.handlers) == 1

    def test_writes_to_given_stream(self):
        stream = io.StringIO()
        configure_logging(level=logging.INFO, stream=stream)
        logging.getLogger("convoy.infrastructure.test").info("hello")
        assert "[INFO] convoy.infrastructure.test: hello" in stream.getvalue()

    def test_service_extra_is_tagged(self):
        stream = io.StringIO()
        configure_logging(level=logging.INFO, stream=stream)
        logging.getLogger("convoy.scheduler").info(
            "web succeeded", extra={"service": "web", "direction": "UP"}
        )
        assert stream.getvalue().rstrip().endswith("web succeeded [web up]")

    def test_sdk_loggers_quiet_unless_debug(self):
        configure_logging(level=logging.INFO)
        assert logging.getLogger("botocore").level == logging.WARNING
        configure_logging(level=logging.DEBUG)
        assert logging.getLogger("botocore").level == logging.DEBUG
        assert isinstance(logging.getLogger("convoy").handlers[0].formatter, ServiceFormatter)


class TestLevelFromFlags:
    @pytest.mark.parametrize(
        "verbose,debug,level",
        [
            (False, False, logging.WARNING),
            (True, False, logging.INFO),
            (False, True, logging.DEBUG),
            (True, True, logging.DEBUG),
        ],
    )
    def test_levels(self, verbose, debug, level):
        assert level_from_flags(verbose, debug) == level


class TestJSONFormatter:
    def test_format_basic(self):
        formatter = JSONFormatter()
        record = logging.LogRecord(
            name="test",
            level=logging.INFO,
            pathname="test.py",
            lineno=1,
            msg="hello world",
            args=(),
            exc_info=None,
        )
        output = formatter.format(record)
        data = json.loads(output)
        assert data["message"] == "hello world"
        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert "timestamp" in data
        assert "service" not in data

    def test_format_with_service(self):
        formatter = JSONFormatter()
        record = logging.LogRecord(
            name="test", level=logging.INFO, pathname="test.py", lineno=1,
            msg="deploying", args=(), exc_info=None,
        )
        record.service = "web"
        data = json.loads(formatter.format(record))
        assert data["service"] == "web"

    def test_format_with_direction(self):
        formatter = JSONFormatter()
        record = logging.LogRecord(
            name="test", level=logging.INFO, pathname="test.py", lineno=1,
            msg="skipping", args=(), exc_info=None,
        )
        record.service = "db"
        record.direction = "DOWN"
        data = json.loads(formatter.format(record))
        assert data["service"] == "db"
        assert data["direction"] == "DOWN"

    def test_format_with_exception(self):
        formatter = JSONFormatter()
        try:
            raise ValueError("test error")
        except ValueError:
            import sys
            exc_info = sys.exc_info()

        record = logging.LogRecord(
            name="test",
            level=logging.ERROR,
            pathname="test.py",
            lineno=1,
            msg="error occurred",
            args=(),
            exc_info=exc_info,
        )
        output = formatter.format(record)
        data = json.loads(output)
        assert "exception" in data
        assert "ValueError" in data["exception"]
