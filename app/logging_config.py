"""Structured logging configuration for the application.

This module provides centralized logging setup with support for:
- JSON formatting for production
- Human-readable formatting for development
- Configurable log levels
- Extra context fields (user, submission, question, request)
"""
import logging
import sys
import json
from datetime import datetime
from typing import Any, Dict
from app.config import settings

EXTRA_FIELDS = ("user_id", "submission_id", "question_id", "request_id")


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON string.

        Args:
            record: Log record to format

        Returns:
            JSON-formatted log string
        """
        log_data: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Extra fields passed via logger.info(..., extra={...})
        for field in EXTRA_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        return json.dumps(log_data)


class ColoredFormatter(logging.Formatter):
    """Human-readable colored formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",      # Cyan
        "INFO": "\033[32m",       # Green
        "WARNING": "\033[33m",    # Yellow
        "ERROR": "\033[31m",      # Red
        "CRITICAL": "\033[35m",   # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        # Copy so other handlers don't see the escape codes
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def setup_logging(log_level: str = None) -> None:
    """Configure application-wide logging.

    Sets up structured JSON logging for production or colored console
    logging for development. Calling it again replaces the handler
    installed by a previous call.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
                   If None, uses settings.ENVIRONMENT to determine level.
    """
    if log_level is None:
        log_level = "INFO" if settings.is_production else "DEBUG"

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name("ndc_stdout")

    if settings.is_production:
        formatter = JSONFormatter()
    else:
        formatter = ColoredFormatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    for existing in list(root_logger.handlers):
        if existing.get_name() == "ndc_stdout":
            root_logger.removeHandler(existing)
    root_logger.addHandler(handler)

    # Silence noisy third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(
        f"Logging configured: level={log_level}, "
        f"environment={settings.ENVIRONMENT}, "
        f"format={'JSON' if settings.is_production else 'colored'}"
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a module.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Submission reviewed", extra={"submission_id": "abc"})
    """
    return logging.getLogger(name)
