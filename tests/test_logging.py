"""Tests for structured logging configuration."""

import json
import logging
import sys

import pytest

from carblens.logging_config import (
    DEFAULT_SERVICE_NAME,
    MASK,
    MAX_FIELD_CHARS,
    JsonFormatter,
    StructuredLogger,
    TextFormatter,
    correlation_id_ctx,
    get_logger,
    sanitize_fields,
    setup_logging,
)


def _record(level=logging.INFO, msg="Test", exc_info=None, **extra_fields):
    record = logging.LogRecord(
        name="carblens.test",
        level=level,
        pathname="/app/carblens/test.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )
    if extra_fields:
        record.extra_fields = extra_fields
    return record


class TestJsonFormatter:
    """Tests for JSON log formatting."""

    def test_json_format_basic(self):
        formatter = JsonFormatter(service_name="test-service")

        parsed = json.loads(formatter.format(_record(msg="Meal analyzed")))

        assert parsed["level"] == "INFO"
        assert parsed["service"] == "test-service"
        assert parsed["message"] == "Meal analyzed"
        assert parsed["logger"] == "carblens.test"
        assert "timestamp" in parsed

    def test_default_service_name(self):
        parsed = json.loads(JsonFormatter().format(_record()))

        assert parsed["service"] == DEFAULT_SERVICE_NAME

    def test_json_format_with_correlation_id(self):
        formatter = JsonFormatter()

        token = correlation_id_ctx.set("test-correlation-123")
        try:
            parsed = json.loads(formatter.format(_record()))
            assert parsed["correlation_id"] == "test-correlation-123"
        finally:
            correlation_id_ctx.reset(token)

    def test_json_format_without_correlation_id(self):
        parsed = json.loads(JsonFormatter().format(_record()))

        assert "correlation_id" not in parsed

    def test_extra_fields_merged(self):
        record = _record(kind="extraction", total_carbs=47)

        parsed = json.loads(JsonFormatter().format(record))

        assert parsed["kind"] == "extraction"
        assert parsed["total_carbs"] == 47

    def test_error_includes_location(self):
        record = _record(level=logging.ERROR, msg="Error occurred")
        record.funcName = "analyze_meal"

        parsed = json.loads(JsonFormatter().format(record))

        assert parsed["location"] == {
            "file": "/app/carblens/test.py",
            "line": 42,
            "function": "analyze_meal",
        }

    def test_info_has_no_location(self):
        parsed = json.loads(JsonFormatter().format(_record()))

        assert "location" not in parsed

    def test_json_format_with_exception(self):
        try:
            raise ValueError("Test error")
        except ValueError:
            exc_info = sys.exc_info()

        record = _record(level=logging.ERROR, msg="Error", exc_info=exc_info)
        parsed = json.loads(JsonFormatter().format(record))

        assert "ValueError" in parsed["exception"]


class TestTextFormatter:
    """Tests for text log formatting."""

    def test_text_format_basic(self):
        output = TextFormatter(service_name="test-service").format(
            _record(msg="Test message")
        )

        assert "test-service" in output
        assert "INFO" in output
        assert "Test message" in output
        assert "[-]" in output

    def test_text_format_with_correlation_id(self):
        token = correlation_id_ctx.set("abc-123")
        try:
            output = TextFormatter().format(_record())
            assert "[abc-123]" in output
        finally:
            correlation_id_ctx.reset(token)

    def test_extra_fields_as_key_values(self):
        output = TextFormatter().format(_record(kind="extraction", units=4))

        assert output.endswith("kind=extraction units=4")


class TestStructuredLogger:
    """Tests for StructuredLogger wrapper."""

    def test_get_logger(self):
        assert isinstance(get_logger("carblens.test"), StructuredLogger)

    def test_logger_info(self, caplog):
        logger = get_logger("carblens.test")

        with caplog.at_level(logging.INFO):
            logger.info("Test info message")

        assert "Test info message" in caplog.text

    def test_logger_warning_carries_extra_fields(self, caplog):
        logger = get_logger("carblens.test")

        with caplog.at_level(logging.WARNING):
            logger.warning("Meal analysis failed", kind="extraction")

        assert caplog.records[-1].extra_fields == {"kind": "extraction"}

    def test_logger_exception_keeps_traceback(self, caplog):
        logger = get_logger("carblens.test")

        with caplog.at_level(logging.ERROR):
            try:
                raise RuntimeError("boom")
            except RuntimeError:
                logger.exception("Unexpected failure")

        record = caplog.records[-1]
        assert record.levelno == logging.ERROR
        assert record.exc_info is not None

    def test_no_extra_fields_attribute_when_empty(self, caplog):
        logger = get_logger("carblens.test")

        with caplog.at_level(logging.INFO):
            logger.info("plain")

        assert not hasattr(caplog.records[-1], "extra_fields")


class TestSetupLogging:
    """Tests for logging setup function."""

    def test_setup_json_logging(self):
        setup_logging(log_format="json", log_level="DEBUG")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)

    def test_setup_text_logging(self):
        setup_logging(log_format="text", log_level="INFO")

        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, TextFormatter)

    def test_setup_custom_service_name(self):
        setup_logging(log_format="json", service_name="custom-service")

        formatter = logging.getLogger().handlers[0].formatter
        assert formatter.service_name == "custom-service"

    def test_sdk_loggers_quieted(self):
        setup_logging(log_format="json", log_level="DEBUG")

        assert logging.getLogger("anthropic").level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING


class TestSanitizeFields:
    """Tests for masking and truncation of structured fields."""

    @pytest.mark.parametrize("key", ["api_key", "anthropic_api_key", "image", "Authorization"])
    def test_sensitive_values_masked(self, key):
        assert sanitize_fields({key: "sk-ant-secret"}) == {key: MASK}

    def test_flags_about_secrets_kept(self):
        assert sanitize_fields({"api_key_configured": True}) == {"api_key_configured": True}

    def test_long_strings_truncated(self):
        reply = "x" * (MAX_FIELD_CHARS + 100)

        clean = sanitize_fields({"detail": reply})

        assert clean["detail"].startswith("x" * MAX_FIELD_CHARS)
        assert clean["detail"].endswith(f"({len(reply)} chars)")

    def test_other_values_untouched(self):
        fields = {"units": 4, "foods": ["rice"], "reason": "short"}

        assert sanitize_fields(fields) == fields

    def test_logger_applies_sanitizing(self, caplog):
        logger = get_logger("carblens.test")

        with caplog.at_level(logging.INFO):
            logger.info("Client created", api_key="sk-live", provider="claude")

        assert caplog.records[-1].extra_fields == {"api_key": MASK, "provider": "claude"}
        assert "sk-live" not in caplog.text


class TestTimed:
    """Tests for StructuredLogger.timed()."""

    def test_logs_duration_and_late_fields(self, caplog):
        logger = get_logger("carblens.test")

        with caplog.at_level(logging.DEBUG):
            with logger.timed("parsing", strategy="greedy") as stage:
                stage["json_chars"] = 120

        fields = caplog.records[-1].extra_fields
        assert caplog.records[-1].message == "Stage parsing finished"
        assert fields["stage"] == "parsing"
        assert fields["strategy"] == "greedy"
        assert fields["json_chars"] == 120
        assert fields["failed"] is False
        assert fields["duration_ms"] >= 0

    def test_failure_logged_and_propagated(self, caplog):
        logger = get_logger("carblens.test")

        with caplog.at_level(logging.DEBUG):
            with pytest.raises(ValueError):
                with logger.timed("inference"):
                    raise ValueError("boom")

        assert caplog.records[-1].extra_fields["failed"] is True

    def test_silent_above_debug(self, caplog):
        logger = get_logger("carblens.test")

        with caplog.at_level(logging.INFO):
            with logger.timed("inference"):
                pass

        assert not [r for r in caplog.records if r.message.startswith("Stage ")]
