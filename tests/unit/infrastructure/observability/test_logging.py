"""Tests for structured logging."""

import json
import logging
import sys

from reelsync.infrastructure.observability.logging import (
    CompactExceptionFormatter,
    CorrelationIdFilter,
    CustomJsonFormatter,
    configure_logging,
    correlation_scope,
    get_correlation_id,
    set_correlation_id,
)


def _record(msg: str = "hello", exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="reelsync.test",
        level=logging.WARNING,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


class TestCorrelationId:
    """Test correlation ID functionality."""

    def test_set_and_get_correlation_id(self):
        result = set_correlation_id("cycle-123")
        assert result == "cycle-123"
        assert get_correlation_id() == "cycle-123"

    def test_set_correlation_id_generates_one_when_none(self):
        result = set_correlation_id(None)
        assert result
        assert get_correlation_id() == result

    def test_correlation_scope_restores_previous_id(self):
        set_correlation_id("outer")
        with correlation_scope("cycle") as scoped:
            assert scoped.startswith("cycle-")
            assert get_correlation_id() == scoped
        assert get_correlation_id() == "outer"

    def test_filter_stamps_record(self):
        set_correlation_id("trigger-abc")
        record = _record()
        assert CorrelationIdFilter().filter(record)
        assert record.correlation_id == "trigger-abc"


class TestFormatters:
    def test_json_formatter_fields(self):
        set_correlation_id("cycle-json")
        record = _record("Job failed")
        CorrelationIdFilter().filter(record)

        output = json.loads(CustomJsonFormatter("%(message)s").format(record))

        assert output["message"] == "Job failed"
        assert output["level"] == "WARNING"
        assert output["logger"] == "reelsync.test"
        assert output["correlation_id"] == "cycle-json"

    def test_compact_formatter_shows_root_cause_first(self):
        try:
            try:
                raise ConnectionError("refused")
            except ConnectionError as e:
                raise RuntimeError("sync webhook unreachable") from e
        except RuntimeError:
            exc_info = sys.exc_info()

        text = CompactExceptionFormatter().formatException(exc_info)
        lines = [line for line in text.splitlines() if line.startswith("╰─►")]

        assert lines == [
            "╰─► ConnectionError: refused",
            "╰─► RuntimeError: sync webhook unreachable",
        ]


class TestLoggingConfiguration:
    """Test logging configuration."""

    def test_configure_logging_debug_level(self):
        configure_logging(log_level="DEBUG", json_format=False, app_name="test-app")
        assert logging.getLogger("test").getEffectiveLevel() <= logging.DEBUG

    def test_configure_logging_json_format(self):
        configure_logging(log_level="INFO", json_format=True, app_name="test-app")
        root_logger = logging.getLogger()
        assert len(root_logger.handlers) == 1
        assert isinstance(root_logger.handlers[0].formatter, CustomJsonFormatter)

    def test_configure_logging_text_format(self):
        configure_logging(log_level="INFO", json_format=False, app_name="test-app")
        handler = logging.getLogger().handlers[0]
        assert isinstance(handler.formatter, CompactExceptionFormatter)

    def test_noisy_loggers_are_quieted(self):
        configure_logging(log_level="DEBUG")
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING
