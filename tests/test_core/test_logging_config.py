import pytest
import logging
import json
import sys
from unittest.mock import Mock, patch

from core.logging_config import (
    ColoredConsoleFormatter,
    CorrelationFilter,
    JSONFormatter,
    get_correlation_id,
    get_logger,
    get_logging_config,
    log_function_call,
    set_correlation_id,
    setup_logging,
)


def make_record(msg="Test message", level=logging.INFO, exc_info=None):
    return logging.LogRecord(
        name="services.roast_service",
        level=level,
        pathname="roast_service.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


@pytest.fixture(autouse=True)
def reset_correlation_id():
    yield
    set_correlation_id(None)


class TestLoggingSetup:
    """Test logging configuration setup."""

    def test_development_uses_colored_console(self):
        config = get_logging_config("development", "debug")

        assert config["handlers"]["console"]["formatter"] == "colored_console"
        assert config["loggers"]["services"]["level"] == "DEBUG"

    def test_production_uses_json(self):
        config = get_logging_config("production", "INFO")
        assert config["handlers"]["console"]["formatter"] == "json"

    def test_all_app_namespaces_configured(self):
        config = get_logging_config("test", "INFO")
        for name in ("api", "core", "services", "providers", "stage"):
            assert config["loggers"][name]["propagate"] is False

    def test_log_file_adds_rotating_handler(self):
        with patch.dict("os.environ", {"LOG_FILE": "/tmp/roast.log"}):
            config = get_logging_config("production", "INFO")

        assert config["handlers"]["file"]["class"] == "logging.handlers.RotatingFileHandler"
        assert "file" in config["loggers"]["services"]["handlers"]
        assert "file" in config["root"]["handlers"]

    def test_setup_logging_applies_level(self):
        setup_logging("production", "WARNING")

        logger = logging.getLogger("stage")
        assert logger.level == logging.WARNING
        handler = logger.handlers[0]
        assert isinstance(handler.formatter, JSONFormatter)

    def test_get_logger(self):
        logger = get_logger("services.github_service")
        assert isinstance(logger, logging.Logger)
        assert logger.name == "services.github_service"


class TestCorrelationFilter:
    """Test CorrelationFilter functionality."""

    def test_adds_correlation_id(self):
        set_correlation_id("test-correlation-123")
        record = make_record()

        assert CorrelationFilter().filter(record) is True
        assert record.correlation_id == "test-correlation-123"

    def test_without_correlation_id(self):
        record = make_record()

        assert CorrelationFilter().filter(record) is True
        assert not hasattr(record, "correlation_id")

    def test_get_and_set(self):
        set_correlation_id("abc")
        assert get_correlation_id() == "abc"


class TestJSONFormatter:
    """Test JSONFormatter functionality."""

    def test_basic_format(self):
        data = json.loads(JSONFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "services.roast_service"
        assert data["message"] == "Test message"
        assert data["line"] == 42
        assert "timestamp" in data

    def test_includes_correlation_id(self):
        record = make_record()
        record.correlation_id = "corr-1"

        data = json.loads(JSONFormatter().format(record))
        assert data["correlation_id"] == "corr-1"

    def test_extra_fields(self):
        record = make_record()
        record.username = "octocat"
        record.attempt = 2

        data = json.loads(JSONFormatter().format(record))
        assert data["extra"] == {"username": "octocat", "attempt": 2}

    def test_exception_info(self):
        try:
            raise ValueError("Test exception")
        except ValueError:
            record = make_record(level=logging.ERROR, exc_info=sys.exc_info())

        data = json.loads(JSONFormatter().format(record))
        assert data["exception"]["type"] == "ValueError"
        assert data["exception"]["message"] == "Test exception"
        assert "Traceback" in data["exception"]["traceback"]


class TestColoredConsoleFormatter:
    def test_colors_by_level(self):
        formatter = ColoredConsoleFormatter()

        info = formatter.format(make_record())
        error = formatter.format(make_record(level=logging.ERROR))

        assert info.startswith("\033[32m")
        assert error.startswith("\033[31m")
        assert "Test message" in info

    def test_correlation_id_in_line(self):
        record = make_record()
        record.correlation_id = "corr-1"

        assert "[corr-1]" in ColoredConsoleFormatter().format(record)


class TestLogFunctionCall:
    """Test log_function_call decorator."""

    def test_sync_function(self):
        logger = Mock()

        @log_function_call(logger)
        def add(a, b):
            return a + b

        assert add(1, 2) == 3
        assert logger.debug.call_count == 2
        assert add.__name__ == "add"

    @pytest.mark.asyncio
    async def test_async_function(self):
        logger = Mock()

        @log_function_call(logger)
        async def fetch(username):
            return {"login": username}

        assert await fetch("octocat") == {"login": "octocat"}
        assert logger.debug.call_count == 2

    @pytest.mark.asyncio
    async def test_errors_are_logged_and_reraised(self):
        logger = Mock()

        @log_function_call(logger)
        async def explode():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await explode()

        logger.error.assert_called_once()
        assert logger.error.call_args.kwargs["extra"]["error_type"] == "RuntimeError"
