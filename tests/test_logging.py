"""Tests for structured logging configuration."""

import json
import logging
import sys
from unittest.mock import patch

import pytest

from marlowequill.app.core.logging import (
    JSONFormatter,
    ContextFilter,
    get_logger,
    get_logging_config,
    get_log_context,
    setup_logging,
)


def _record(msg="Test message", level=logging.INFO, exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


class TestJSONFormatter:
    """Test JSON formatter for structured logging."""

    def test_basic_json_format(self):
        data = json.loads(JSONFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Test message"
        assert "timestamp" in data
        assert data["source"]["file"] == "test.py"
        assert data["source"]["line"] == 1

    def test_json_format_with_context(self):
        record = _record("Content generated")
        record.request_id = "req-1"
        record.client_key = "ratelimit:client:abc"
        record.tier = "premium"
        record.state = "generated"
        record.duration_ms = 150.5

        data = json.loads(JSONFormatter().format(record))

        assert data["request_id"] == "req-1"
        assert data["client_key"] == "ratelimit:client:abc"
        assert data["tier"] == "premium"
        assert data["state"] == "generated"
        assert data["duration_ms"] == 150.5
        assert "extra" not in data

    def test_json_format_with_extra_fields(self):
        record = _record("Custom event")
        record.provider = "gemini"
        record.rate_limits = {"global": 5}

        data = json.loads(JSONFormatter().format(record))

        assert data["extra"]["provider"] == "gemini"
        assert data["extra"]["rate_limits"] == {"global": 5}

    def test_unset_context_fields_are_omitted(self):
        record = _record()
        ContextFilter().filter(record)

        data = json.loads(JSONFormatter().format(record))

        assert "request_id" not in data
        assert "extra" not in data

    def test_json_format_with_exception(self):
        try:
            raise ValueError("Test error")
        except ValueError:
            record = _record("Error occurred", logging.ERROR, sys.exc_info())

        data = json.loads(JSONFormatter().format(record))

        exception_text = "".join(data["exception"])
        assert "ValueError" in exception_text
        assert "Test error" in exception_text

    def test_json_format_unicode(self):
        data = json.loads(JSONFormatter().format(_record("Les abeilles 🐝")))
        assert data["message"] == "Les abeilles 🐝"


class TestContextFilter:
    """Test context filter for adding default fields."""

    def test_adds_default_fields(self):
        record = _record()

        assert ContextFilter().filter(record) is True
        for field in JSONFormatter.CONTEXT_FIELDS:
            assert hasattr(record, field)

    def test_preserves_existing_values(self):
        record = _record()
        record.request_id = "existing"

        ContextFilter().filter(record)

        assert record.request_id == "existing"


class TestGetLoggingConfig:
    """Test logging configuration generation."""

    def test_default_text_format(self):
        with patch("marlowequill.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "text"
            mock_settings.log_level = "INFO"

            config = get_logging_config()

        assert "json" not in config["formatters"]
        assert config["handlers"]["console"]["formatter"] == "standard"

    def test_structured_format(self):
        with patch("marlowequill.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "structured"
            mock_settings.log_level = "debug"

            config = get_logging_config()

        assert config["handlers"]["console"]["formatter"] == "structured"
        assert config["handlers"]["console"]["level"] == "DEBUG"

    def test_json_format(self):
        with patch("marlowequill.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "json"
            mock_settings.log_level = "WARNING"

            config = get_logging_config()

        assert "json" in config["formatters"]
        assert config["handlers"]["console"]["formatter"] == "json"
        assert config["loggers"]["marlowequill"]["level"] == "WARNING"

    def test_context_filter_added(self):
        config = get_logging_config()

        assert "context" in config["filters"]
        assert "context" in config["handlers"]["console"]["filters"]


class TestGetLogContext:
    """Test get_log_context helper function."""

    def test_context_filters_none(self):
        context = get_log_context(request_id="req-1", client_key=None, tier="free")
        assert context == {"request_id": "req-1", "tier": "free"}

    def test_context_with_extra(self):
        context = get_log_context(state="saved", provider="gemini", attempt=None)
        assert context == {"state": "saved", "provider": "gemini"}


def test_get_logger_default_name():
    assert get_logger().name == "marlowequill"


@pytest.fixture
def restore_logging():
    yield
    setup_logging()


def test_json_logging_output(restore_logging, capsys):
    with patch("marlowequill.app.core.logging.settings") as mock_settings:
        mock_settings.log_format = "json"
        mock_settings.log_level = "INFO"

        setup_logging()
        get_logger("marlowequill.integration").info(
            "Integration test",
            extra=get_log_context(request_id="abc123", tier="basic", provider="mock"),
        )

    data = json.loads(capsys.readouterr().out.strip())

    assert data["logger"] == "marlowequill.integration"
    assert data["message"] == "Integration test"
    assert data["request_id"] == "abc123"
    assert data["tier"] == "basic"
    assert data["extra"]["provider"] == "mock"
