"""Tests for structured logging."""

import json
import logging
import sys

import pytest

from eventy.infrastructure.observability.logging import (
    CompactExceptionFormatter,
    CorrelationIdFilter,
    CustomJsonFormatter,
    configure_logging,
    correlation_scope,
    get_correlation_id,
    set_correlation_id,
)


def _record(message: str = "hello", exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="eventy.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=(),
        exc_info=exc_info,
    )


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestCorrelationId:
    """Test correlation ID functionality."""

    def test_set_and_get_correlation_id(self):
        """Test setting and getting correlation ID."""
        test_id = "purchase-abc123"
        result = set_correlation_id(test_id)
        assert result == test_id
        assert get_correlation_id() == test_id

    def test_set_correlation_id_generates_uuid_when_none(self):
        """Test that setting None generates a UUID."""
        result = set_correlation_id(None)
        assert len(result) == 36
        assert get_correlation_id() == result

    def test_filter_stamps_record(self):
        set_correlation_id("login-1")
        record = _record()

        assert CorrelationIdFilter().filter(record) is True
        assert record.correlation_id == "login-1"

    def test_scope_restores_previous_id(self):
        set_correlation_id("outer")

        with correlation_scope("inner") as inner:
            assert inner == "inner"
            assert get_correlation_id() == "inner"

        assert get_correlation_id() == "outer"

    def test_scope_restores_on_error(self):
        set_correlation_id("outer")

        with pytest.raises(RuntimeError), correlation_scope():
            assert get_correlation_id() != "outer"
            raise RuntimeError("boom")

        assert get_correlation_id() == "outer"


class TestLoggingConfiguration:
    """Test logging configuration."""

    def test_configure_logging_debug_level(self):
        configure_logging(log_level="DEBUG", json_format=False, app_name="test-app")
        assert logging.getLogger("eventy.test").getEffectiveLevel() <= logging.DEBUG

    def test_unknown_level_falls_back_to_info(self):
        configure_logging(log_level="chatty", json_format=False)
        assert logging.getLogger().level == logging.INFO

    def test_configure_replaces_handlers(self):
        configure_logging(log_level="INFO", json_format=True)
        configure_logging(log_level="INFO", json_format=False)

        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0].formatter, CompactExceptionFormatter)

    def test_third_party_loggers_quieted(self):
        configure_logging(log_level="DEBUG")
        assert logging.getLogger("httpx").level == logging.WARNING


class TestFormatters:
    def test_json_formatter_includes_correlation_id(self):
        formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
        record = _record("Payment confirmed")
        record.correlation_id = "purchase-42"

        payload = json.loads(formatter.format(record))

        assert payload["message"] == "Payment confirmed"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "eventy.test"
        assert payload["correlation_id"] == "purchase-42"

    def test_json_formatter_omits_missing_correlation_id(self):
        formatter = CustomJsonFormatter("%(message)s")
        record = _record()

        assert "correlation_id" not in json.loads(formatter.format(record))

    def test_compact_formatter_shows_root_cause_first(self):
        formatter = CompactExceptionFormatter()
        try:
            try:
                raise ValueError("bad body")
            except ValueError as e:
                raise RuntimeError("confirm failed") from e
        except RuntimeError:
            text = formatter.formatException(sys.exc_info())

        lines = [line for line in text.splitlines() if line.startswith("╰─►")]
        assert lines == ["╰─► ValueError: bad body", "╰─► RuntimeError: confirm failed"]

    def test_compact_formatter_without_exception(self):
        assert CompactExceptionFormatter().formatException((None, None, None)) == ""
