"""
Structured logging utilities for the Wexly music companion.

JSON output for log files and aggregation, coloured text for an
interactive console.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

# Attributes present on every LogRecord; anything else arrived via `extra=`
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """
    Formatter that renders each log record as a single JSON object.

    Fields passed through ``extra=`` (for example the session id added by
    SessionLoggerAdapter) are collected under the ``extra`` key.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON string."""
        log_obj: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }
        if extra:
            log_obj["extra"] = extra

        return json.dumps(log_obj, default=str)


class ColoredFormatter(logging.Formatter):
    """Formatter that colours the level name for terminal output."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        """Format with color codes."""
        original = record.levelname
        color = self.COLORS.get(original, "")
        record.levelname = f"{color}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
    max_bytes: int = 10485760,
    backup_count: int = 5,
    console_enabled: bool = True,
    colored: bool = True,
) -> None:
    """
    Configure application-wide logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format ("json" or "text")
        log_file: Optional file path for log output
        max_bytes: Maximum log file size before rotation
        backup_count: Number of backup files to keep
        console_enabled: Whether to log to console
        colored: Whether to use colored output (console only, text format only)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    root_logger.handlers = []

    if log_format == "json":
        formatter: logging.Formatter = JSONFormatter()
    else:
        fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        datefmt = "%H:%M:%S"
        if colored and console_enabled:
            formatter = ColoredFormatter(fmt, datefmt)
        else:
            formatter = logging.Formatter(fmt, datefmt)

    if console_enabled:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
        )
        # File output is always JSON
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)


def setup_logging_from_config(config: Dict[str, Any], verbose: bool = False) -> None:
    """Configure logging from the 'logging' section of the app config."""
    section = config.get("logging", {})
    setup_logging(
        level="DEBUG" if verbose else section.get("level", "INFO"),
        log_format=section.get("format", "json"),
        log_file=section.get("file"),
        max_bytes=section.get("max_bytes", 10485760),
        backup_count=section.get("backup_count", 5),
        colored=section.get("colored", True),
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Args:
        name: Logger name (typically the component name, e.g. "engine")

    Returns:
        logging.Logger: Configured logger instance
    """
    return logging.getLogger(name)


class SessionLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that stamps every record with persistent context.

    Used by the conversation session so that all log lines of one
    session can be correlated by ``session_id``.
    """

    def process(
        self, msg: str, kwargs: Dict[str, Any]
    ) -> Tuple[str, Dict[str, Any]]:
        """Add extra context to log message."""
        extra = dict(kwargs.get("extra") or {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs


def create_logger_with_context(
    name: str, context: Dict[str, Any]
) -> SessionLoggerAdapter:
    """
    Create a logger with persistent context.

    Example:
        logger = create_logger_with_context("session", {"session_id": "a1b2"})
        logger.info("Utterance received")
    """
    return SessionLoggerAdapter(get_logger(name), context)
