"""
Logging Configuration for the Roast API and the stage client.

This module provides a centralized logging setup shared by the backend and the
terminal stage. It emits structured JSON in production and color-coded,
human-readable lines in development, and stamps every record with the
correlation ID of the request being served.

Key Components:
- `CorrelationFilter`: A filter that copies the current correlation ID onto each
  log record, so all logs produced while serving one request can be grouped.
- `JSONFormatter`: Outputs records as JSON objects for log ingestion systems.
- `ColoredConsoleFormatter`: Adds ANSI color per level for a development console.
- `get_logging_config`: Builds the `dictConfig` dictionary for an environment.
- `setup_logging`: Initializes logging for the whole process.
- `log_function_call`: A decorator that logs entry, exit and execution time of
  sync or async functions.

Architectural Design:
- Environment-Aware Configuration: The format follows `NODE_ENV` (or
  `ENVIRONMENT`) and the level follows `LOG_LEVEL`, unless explicit values are
  passed in from the application settings.
- Context-Aware Logging: The correlation ID lives in a `ContextVar`, so it
  follows each request across awaits even when many requests interleave.
- Namespaced Loggers: Application code logs under `api`, `core`, `services`,
  `providers` and `stage`; each namespace is configured here once.
"""

import os
import json
import time
import asyncio
import functools
import logging
import logging.config
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from contextvars import ContextVar

# Context variable for request correlation ID
correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

APP_LOGGERS = ("api", "core", "services", "providers", "stage")

_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "message",
        "exc_info",
        "exc_text",
        "stack_info",
        "correlation_id",
    }
)


def _environment() -> str:
    return (os.getenv("NODE_ENV") or os.getenv("ENVIRONMENT") or "development").lower()


class CorrelationFilter(logging.Filter):
    """Filter that adds correlation ID to log records"""

    def filter(self, record: logging.LogRecord) -> bool:
        corr_id = correlation_id.get()
        if corr_id:
            record.correlation_id = corr_id
        return True


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        corr_id = getattr(record, "correlation_id", None) or correlation_id.get()
        if corr_id:
            log_entry["correlation_id"] = corr_id

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        extra_fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS
        }
        if extra_fields:
            log_entry["extra"] = extra_fields

        return json.dumps(log_entry, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Colored console formatter for development"""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")

        corr_id = getattr(record, "correlation_id", None)
        corr_part = f" [{corr_id}]" if corr_id else ""

        formatted = f"{color}[{timestamp}] {record.levelname:8} {record.name}{corr_part}: {record.getMessage()}{self.RESET}"

        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)

        return formatted


def get_logging_config(
    environment: Optional[str] = None, log_level: Optional[str] = None
) -> Dict[str, Any]:
    """Get logging configuration based on environment"""

    environment = (environment or _environment()).lower()
    log_level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()

    app_logger = {"level": log_level, "handlers": ["console"], "propagate": False}

    config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "correlation": {"()": CorrelationFilter},
        },
        "formatters": {
            "json": {"()": JSONFormatter},
            "colored_console": {"()": ColoredConsoleFormatter},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "colored_console"
                if environment == "development"
                else "json",
                "filters": ["correlation"],
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            **{name: dict(app_logger, handlers=["console"]) for name in APP_LOGGERS},
            # Third-party loggers
            "uvicorn": {"level": "INFO", "handlers": ["console"], "propagate": False},
            "uvicorn.access": {
                "level": "INFO",
                "handlers": ["console"],
                "propagate": False,
            },
            "fastapi": {"level": "INFO", "handlers": ["console"], "propagate": False},
            "httpx": {"level": "WARNING", "handlers": ["console"], "propagate": False},
            "openai": {"level": "WARNING", "handlers": ["console"], "propagate": False},
        },
        "root": {"level": log_level, "handlers": ["console"]},
    }

    log_file = os.getenv("LOG_FILE")
    if log_file:
        config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": log_level,
            "formatter": "json",
            "filters": ["correlation"],
            "filename": log_file,
            "maxBytes": 10485760,  # 10MB
            "backupCount": 5,
        }
        for logger_config in config["loggers"].values():
            logger_config["handlers"] = logger_config["handlers"] + ["file"]
        config["root"]["handlers"].append("file")

    return config


def setup_logging(environment: Optional[str] = None, log_level: Optional[str] = None):
    """Initialize logging configuration"""
    environment = environment or _environment()
    logging.config.dictConfig(get_logging_config(environment, log_level))

    logger = logging.getLogger("core.logging")
    logger.info(f"Logging initialized for {environment} environment")


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the specified name"""
    return logging.getLogger(name)


def set_correlation_id(corr_id: Optional[str]):
    """Set correlation ID for the current context"""
    correlation_id.set(corr_id)


def get_correlation_id() -> Optional[str]:
    """Get correlation ID from the current context"""
    return correlation_id.get()


def log_function_call(logger: logging.Logger):
    """Decorator to log function calls with execution time"""

    def decorator(func):
        def _done(start_time: float, success: bool, error: Optional[Exception] = None):
            elapsed_ms = round((time.perf_counter() - start_time) * 1000, 2)
            if success:
                logger.debug(
                    f"Completed {func.__name__}",
                    extra={"execution_time_ms": elapsed_ms, "success": True},
                )
            else:
                logger.error(
                    f"Failed {func.__name__}: {error}",
                    extra={
                        "execution_time_ms": elapsed_ms,
                        "success": False,
                        "error_type": type(error).__name__,
                    },
                    exc_info=True,
                )

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            logger.debug(
                f"Calling {func.__name__}",
                extra={"args_count": len(args), "kwargs_keys": list(kwargs.keys())},
            )
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _done(start_time, False, e)
                raise
            _done(start_time, True)
            return result

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            logger.debug(
                f"Calling {func.__name__}",
                extra={"args_count": len(args), "kwargs_keys": list(kwargs.keys())},
            )
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _done(start_time, False, e)
                raise
            _done(start_time, True)
            return result

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator
