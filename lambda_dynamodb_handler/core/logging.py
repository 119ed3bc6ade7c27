"""
Logging utilities optimized for AWS Lambda and CloudWatch integration.

This module provides structured logging with JSON formatting for Lambda environments
and human-readable formatting for development. Log levels can be switched at runtime
from configuration values, which may use either Python level names or the
winston-style names (``warn``, ``verbose``, ``silly``) stored in Parameter Store.
"""

import json
import logging
import os
import sys
import time
from contextlib import contextmanager
from typing import Any, Dict, Optional

ROOT_LOGGER_NAME = "lambda_dynamodb_handler"
VERBOSE = 15
logging.addLevelName(VERBOSE, "VERBOSE")

LEVEL_ALIASES = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "verbose": VERBOSE,
    "debug": logging.DEBUG,
    "silly": logging.DEBUG,
}


def resolve_level(level: str) -> int:
    """Translate a level name into a ``logging`` level number.

    Raises:
        ValueError: If the name is not a known level
    """
    try:
        return LEVEL_ALIASES[str(level).strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown log level: {level}") from None


class StructuredFormatter(logging.Formatter):
    """
    Formatter that outputs JSON for Lambda/CloudWatch or human-readable for development.
    """

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra
        self.is_lambda = bool(os.environ.get("AWS_LAMBDA_FUNCTION_NAME"))

    def format(self, record: logging.LogRecord) -> str:
        if self.is_lambda:
            return self._format_json(record)
        else:
            return self._format_human(record)

    def _format_json(self, record: logging.LogRecord) -> str:
        """Format log record as JSON for CloudWatch."""
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        if self.include_extra and hasattr(record, "extra_data"):
            log_data.update(record.extra_data)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)

    def _format_human(self, record: logging.LogRecord) -> str:
        """Format log record for human readability in development."""
        timestamp = self.formatTime(record, "%Y-%m-%d %H:%M:%S")
        message = record.getMessage()

        if self.include_extra and hasattr(record, "extra_data"):
            extra_parts = [
                f"{k}={json.dumps(v, default=str) if isinstance(v, (dict, list)) else v}"
                for k, v in record.extra_data.items()
            ]
            if extra_parts:
                message += f" [{', '.join(extra_parts)}]"

        formatted = f"{timestamp} - {record.levelname:8} - {message}"

        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)

        return formatted


class HandlerLogger:
    """
    Logger for the stream handler with structured context and runtime level changes.
    """

    def __init__(self, name: str = ROOT_LOGGER_NAME, level: Optional[str] = None):
        self.logger = logging.getLogger(name)
        self._setup_logger(level)

    def _setup_logger(self, level: Optional[str] = None):
        """Configure logger with appropriate formatter and level.

        Loggers below the package root only propagate, so a level change on
        the root logger applies to every module.
        """
        if level:
            self.logger.setLevel(resolve_level(level))

        if self.logger.name.startswith(ROOT_LOGGER_NAME + "."):
            HandlerLogger(ROOT_LOGGER_NAME)
            return

        if self.logger.handlers:
            return  # Already configured

        if not level:
            self.logger.setLevel(
                resolve_level(os.environ.get("LOG_LEVEL", "INFO"))
            )

        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        self.logger.addHandler(handler)

        # Prevent duplicate logs in Lambda
        self.logger.propagate = False

    @property
    def level(self) -> int:
        return self.logger.getEffectiveLevel()

    def set_level(self, level: str):
        """Change the log level, e.g. from the ``LogLevel`` configuration value."""
        self.logger.setLevel(resolve_level(level))

    def info(self, message: str, **extra):
        """Log info message with optional extra context."""
        self._log_with_extra(logging.INFO, message, extra)

    def verbose(self, message: str, **extra):
        self._log_with_extra(VERBOSE, message, extra)

    def debug(self, message: str, **extra):
        """Log debug message with optional extra context."""
        self._log_with_extra(logging.DEBUG, message, extra)

    def warning(self, message: str, **extra):
        """Log warning message with optional extra context."""
        self._log_with_extra(logging.WARNING, message, extra)

    def error(self, message: str, exc_info: bool = False, **extra):
        """Log error message with optional exception info and extra context."""
        self._log_with_extra(logging.ERROR, message, extra, exc_info=exc_info)

    def _log_with_extra(
        self, level: int, message: str, extra: Dict[str, Any], exc_info: bool = False
    ):
        """Internal method to log with extra context data."""
        if not self.logger.isEnabledFor(level):
            return
        if extra:
            exc_info_tuple = sys.exc_info() if exc_info else None
            record = self.logger.makeRecord(
                self.logger.name, level, "", 0, message, (), exc_info_tuple
            )
            record.extra_data = extra
            self.logger.handle(record)
        else:
            self.logger.log(level, message, exc_info=exc_info)

    @contextmanager
    def timer(self, operation: str):
        """Context manager for timing operations."""
        start_time = time.time()
        self.verbose(f"Starting {operation}")

        try:
            yield
            duration = time.time() - start_time
            self.verbose(f"Completed {operation}", duration_seconds=f"{duration:.2f}")
        except Exception as e:
            duration = time.time() - start_time
            self.error(
                f"Failed {operation}",
                duration_seconds=f"{duration:.2f}",
                error=str(e),
            )
            raise


def get_logger(name: str = ROOT_LOGGER_NAME) -> HandlerLogger:
    """
    Get a logger instance.

    Args:
        name: Logger name

    Returns:
        HandlerLogger instance
    """
    return HandlerLogger(name)
