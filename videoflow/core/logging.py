"""Logging configuration for the VideoFlow engine."""

import json
import logging
import sys
import traceback
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from .exceptions import VideoFlowError

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(module)s:%(funcName)s:%(lineno)d] - %(message)s"

# Libraries whose request chatter would drown out poll passes
NOISY_LOGGERS = ("httpx", "httpcore", "asyncio")


class StructuredFormatter(logging.Formatter):
    """
    Formats records as one JSON object per line.

    Fields attached through ``log_with_context`` or the static context filter are
    merged into the top level but never replace the core record fields. A
    ``VideoFlowError`` in ``exc_info`` is rendered through its ``to_dict``.
    """

    CORE_FIELDS = ("timestamp", "level", "logger", "message", "module", "function", "line")

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        if record.exc_info:
            exc_type, exc_value, exc_tb = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "traceback": traceback.format_exception(exc_type, exc_value, exc_tb)
            }
            if isinstance(exc_value, VideoFlowError):
                entry["error"] = exc_value.to_dict()

        for key, value in getattr(record, "extra_fields", {}).items():
            if key not in self.CORE_FIELDS:
                entry[key] = value

        return json.dumps(entry, default=str)


class StaticContextFilter(logging.Filter):
    """Adds fixed fields, such as the application name, to every record a handler sees."""

    def __init__(self, **context):
        super().__init__()
        self._context: Dict[str, Any] = dict(context)

    @property
    def context(self) -> Dict[str, Any]:
        return dict(self._context)

    def set_context(self, **kwargs):
        self._context.update(kwargs)

    def clear_context(self):
        self._context.clear()

    def filter(self, record: logging.LogRecord) -> bool:
        # Per-message fields take precedence over static ones
        record.extra_fields = {**self._context, **getattr(record, "extra_fields", {})}
        return True


_context_filter = StaticContextFilter()


def _build_formatter(structured: bool, log_format: Optional[str]) -> logging.Formatter:
    if structured:
        return StructuredFormatter()
    return logging.Formatter(fmt=log_format or DEFAULT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    structured: bool = False,
    max_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    context: Optional[Dict[str, Any]] = None
) -> logging.Logger:
    """
    Configure the root logger for a VideoFlow process.

    Replaces any handlers already on the root logger, so calling it again
    reconfigures logging instead of duplicating output.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path; the file is rotated at ``max_size`` bytes
        log_format: Format string for plain-text output
        structured: Emit JSON records instead of plain text
        max_size: Maximum log file size in bytes before rotation
        backup_count: Number of rotated files to keep
        context: Static fields attached to every record, e.g. the app name

    Returns:
        Root logger instance
    """
    formatter = _build_formatter(structured, log_format)

    _context_filter.clear_context()
    _context_filter.set_context(**(context or {}))

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(log_file, maxBytes=max_size, backupCount=backup_count))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(_context_filter)
        root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("videoflow").setLevel(root_logger.level)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for the given name."""
    return logging.getLogger(name)


def log_with_context(logger: logging.Logger, level: int, message: str, **context):
    """Log a message with additional context fields."""
    logger.log(level, message, extra={"extra_fields": context})


class RetryLogger:
    """Reports the attempts of one retried provider operation."""

    def __init__(self, operation: str):
        self.operation = operation
        self.logger = get_logger(f"videoflow.retry.{operation}")

    def retrying(self, error: Exception, attempt: int, max_attempts: int, delay: float):
        log_with_context(
            self.logger, logging.WARNING,
            f"{self.operation} failed on attempt {attempt}/{max_attempts}, retrying in {delay:.2f}s: {error}",
            operation=self.operation,
            error_type=type(error).__name__,
            attempt=attempt,
            max_attempts=max_attempts,
            delay=delay
        )

    def recovered(self, attempts_used: int):
        log_with_context(
            self.logger, logging.INFO,
            f"{self.operation} succeeded after {attempts_used} attempts",
            operation=self.operation,
            attempts_used=attempts_used
        )

    def gave_up(self, error: Exception, attempts_used: int):
        log_with_context(
            self.logger, logging.ERROR,
            f"{self.operation} failed after {attempts_used} attempts: {error}",
            operation=self.operation,
            error_type=type(error).__name__,
            attempts_used=attempts_used
        )
