"""Unit tests for structured logging."""
from __future__ import annotations

import json
import logging
import sys
from logging.handlers import QueueHandler

import pytest

from account_service.infra.logging import (
    ContextInjectingFilter,
    JSONFormatter,
    clear_log_context,
    configure_logging,
    get_log_context,
    log_context,
    remove_from_log_context,
    set_log_context,
    shutdown,
)


def make_record(message: str = "Outbox sweep completed", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="account_service.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def _clean_context():
    clear_log_context()
    yield
    clear_log_context()


@pytest.mark.unit
class TestJSONFormatter:
    """Test suite for JSONFormatter."""

    def test_basic_fields(self):
        formatter = JSONFormatter(static={"service": "account-service"})

        data = json.loads(formatter.format(make_record(published=3)))

        assert data["level"] == "INFO"
        assert data["logger"] == "account_service.test"
        assert data["message"] == "Outbox sweep completed"
        assert data["service"] == "account-service"
        assert data["published"] == 3
        assert data["timestamp"].endswith("Z")
        assert "trace_id" not in data

    def test_exception_is_single_line(self):
        formatter = JSONFormatter()
        try:
            raise ValueError("bad payload")
        except ValueError:
            record = make_record()
            record.exc_info = sys.exc_info()

        output = formatter.format(record)

        assert "\n" not in output
        assert "ValueError: bad payload" in json.loads(output)["exception"]

    def test_non_serializable_extra(self):
        output = JSONFormatter().format(make_record(error=RuntimeError("boom")))

        assert json.loads(output)["error"] == "boom"


@pytest.mark.unit
class TestLogContext:
    """Test suite for contextvars-based log context."""

    def test_set_and_remove(self):
        set_log_context(sweep_id="abc", direction="publish")
        remove_from_log_context("direction")

        assert get_log_context() == {"sweep_id": "abc"}

    def test_scoped_context_is_restored(self):
        set_log_context(direction="publish")

        with log_context(sweep_id="abc"):
            assert get_log_context() == {"direction": "publish", "sweep_id": "abc"}

        assert get_log_context() == {"direction": "publish"}

    def test_filter_injects_without_overwriting(self):
        record = make_record(direction="subscribe")

        with log_context(sweep_id="abc", direction="publish"):
            assert ContextInjectingFilter().filter(record) is True

        assert record.sweep_id == "abc"
        assert record.direction == "subscribe"


@pytest.mark.unit
class TestConfigureLogging:
    """Test suite for configure_logging/shutdown."""

    def test_attaches_and_removes_queue_handler(self):
        root = logging.getLogger()
        try:
            configure_logging(log_level="debug", console_enabled=False, capture_warnings=False)

            handlers = [h for h in root.handlers if isinstance(h, QueueHandler)]
            assert len(handlers) == 1
            assert any(isinstance(f, ContextInjectingFilter) for f in handlers[0].filters)
            assert root.level == logging.DEBUG
        finally:
            shutdown()

        assert not [h for h in root.handlers if isinstance(h, QueueHandler)]

    def test_file_handler_writes_jsonl(self, tmp_path):
        path = tmp_path / "logs" / "service.log.jsonl"
        try:
            configure_logging(console_enabled=False, file_path=path, capture_warnings=False)
            logging.getLogger("account_service.test").info("hello", extra={"record_id": 7})
        finally:
            shutdown()

        [line] = path.read_text(encoding="utf-8").splitlines()
        data = json.loads(line)
        assert data["message"] == "hello"
        assert data["record_id"] == 7
