"""
Centralized logging configuration for the student profile application.

Provides structured logging with appropriate levels, formatting, and
context tracking for debugging and monitoring.
"""

from __future__ import annotations

import json
import logging
import logging.config
import os
import time
from collections.abc import Callable
from datetime import UTC, datetime
from functools import wraps
from pathlib import Path
from types import TracebackType
from typing import Any, ParamSpec, TypeVar, cast

P = ParamSpec("P")
R = TypeVar("R")

ROOT_LOGGER_NAME = "student_profiles"
CONTEXT_FIELDS = ("student_id", "assessment_id", "request_id", "operation")


class StructuredFormatter(logging.Formatter):
    """Custom formatter that outputs structured JSON logs."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON."""
        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        if record.exc_info:
            exc_type, exc_value, exc_tb = record.exc_info
            if exc_type is not None and exc_value is not None:
                log_entry["exception"] = {
                    "type": exc_type.__name__,
                    "message": str(exc_value),
                    "traceback": self.formatException((exc_type, exc_value, exc_tb)),
                }

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class ContextFilter(logging.Filter):
    """Filter that adds request context to log records."""

    def __init__(self):
        super().__init__()
        self.context: dict[str, Any] = {}

    def set_context(self, **kwargs: Any) -> None:
        """Set context variables for logging."""
        self.context.update(kwargs)

    def clear_context(self) -> None:
        """Clear all context variables."""
        self.context.clear()

    def filter(self, record: logging.LogRecord) -> bool:
        """Add context to log record."""
        for key, value in self.context.items():
            setattr(record, key, value)
        return True


# Global context filter instance
context_filter = ContextFilter()


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    structured: bool = True,
    enable_console: bool = True,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """
    Set up centralized logging configuration.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for log output
        structured: Whether to use structured JSON formatting
        enable_console: Whether to enable console output
        max_bytes: Size at which the log file rotates
        backup_count: Number of rotated files kept

    Example:
        >>> setup_logging(level="DEBUG", log_file="./logs/app.log")
    """
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structured": {
                "()": StructuredFormatter,
            },
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "filters": {"context": {"()": lambda: context_filter}},
        "handlers": {},
        "loggers": {
            ROOT_LOGGER_NAME: {"level": level, "handlers": [], "propagate": False},
            "sqlalchemy.engine": {
                "level": "WARNING",  # Reduce SQLAlchemy noise
                "handlers": [],
                "propagate": False,
            },
            "uvicorn.access": {
                "level": "WARNING",
                "handlers": [],
                "propagate": False,
            },
        },
        "root": {"level": level, "handlers": []},
    }

    handler_configs = cast(dict[str, dict[str, Any]], config["handlers"])
    logger_configs = cast(dict[str, dict[str, Any]], config["loggers"])
    root_config = cast(dict[str, Any], config["root"])
    handler_names: list[str] = []

    if enable_console:
        handler_configs["console"] = {
            "class": "logging.StreamHandler",
            "level": level,
            "formatter": "structured" if structured else "standard",
            "filters": ["context"],
            "stream": "ext://sys.stdout",
        }
        handler_names.append("console")

    if log_file:
        handler_configs["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": level,
            "formatter": "structured",
            "filters": ["context"],
            "filename": log_file,
            "maxBytes": max_bytes,
            "backupCount": backup_count,
            "encoding": "utf-8",
        }
        handler_names.append("file")

    # Silent configuration still needs a handler so records stop at our logger
    if not handler_names:
        handler_configs["null"] = {"class": "logging.NullHandler"}
        handler_names.append("null")

    for logger_config in logger_configs.values():
        logger_config["handlers"] = list(handler_names)
    root_config["handlers"] = list(handler_names)

    logging.config.dictConfig(config)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance namespaced under the application logger.

    Example:
        >>> logger = get_logger("repository")
        >>> logger.name
        'student_profiles.repository'
    """
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def set_context(**kwargs: Any) -> None:
    """
    Set logging context variables.

    Example:
        >>> set_context(student_id="k3x9", assessment_id="a1")
    """
    context_filter.set_context(**kwargs)


def clear_context() -> None:
    """Clear all logging context variables."""
    context_filter.clear_context()


class LogContext:
    """Context manager for temporary logging context."""

    def __init__(self, **kwargs: Any):
        self.context: dict[str, Any] = kwargs
        self.previous_context: dict[str, Any] = {}

    def __enter__(self) -> LogContext:
        self.previous_context = context_filter.context.copy()
        context_filter.set_context(**self.context)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        context_filter.context = self.previous_context


def log_operation(
    operation: str, logger: logging.Logger | None = None
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator for logging use-case operations.

    Example:
        >>> @log_operation("add_student")
        ... def add_student(repo, name: str, grade: str):
        ...     pass
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            func_logger = logger or get_logger(func.__module__)

            with LogContext(operation=operation):
                func_logger.info("Starting %s", operation)
                try:
                    result = func(*args, **kwargs)
                    func_logger.info("Completed %s successfully", operation)
                    return result
                except Exception as e:
                    func_logger.error("Failed %s: %s", operation, e, exc_info=True)
                    raise

        return wrapper

    return decorator


def log_store_operation(operation: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator for timing and logging persistence store operations.

    Example:
        >>> @log_store_operation("save_students")
        ... def save(self, students):
        ...     pass
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            logger = get_logger("store")

            with LogContext(operation=f"store_{operation}"):
                logger.debug("Starting store operation: %s", operation)
                start = time.perf_counter()

                try:
                    result = func(*args, **kwargs)
                    duration = time.perf_counter() - start
                    logger.info("Store operation %s completed in %.3fs", operation, duration)
                    return result
                except Exception as e:
                    duration = time.perf_counter() - start
                    logger.error(
                        "Store operation %s failed after %.3fs: %s",
                        operation,
                        duration,
                        e,
                        exc_info=True,
                    )
                    raise

        return wrapper

    return decorator


def configure_development_logging(log_file: str | None = None):
    """Configure logging for development environment."""
    setup_logging(level="DEBUG", log_file=log_file, structured=False, enable_console=True)


def configure_production_logging(log_file: str | None = "./logs/production.log"):
    """Configure logging for production environment."""
    setup_logging(level="INFO", log_file=log_file, structured=True, enable_console=False)


def configure_test_logging():
    """Configure logging for testing environment."""
    setup_logging(level="WARNING", log_file=None, structured=False, enable_console=False)


def auto_configure_logging():
    """Automatically configure logging based on the ENVIRONMENT variable."""
    env = os.getenv("ENVIRONMENT", "development").lower()
    log_file = os.getenv("LOG_FILE_PATH")

    if env == "production":
        configure_production_logging(log_file or "./logs/production.log")
    elif env in ("test", "testing"):
        configure_test_logging()
    else:
        configure_development_logging(log_file)

    get_logger(__name__).info("Logging configured for %s environment", env)


# Initialize logging when module is imported
if not logging.getLogger().handlers:
    auto_configure_logging()
