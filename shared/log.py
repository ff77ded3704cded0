#!/usr/bin/env python3
"""
iChat Logging Configuration

Centralized logging setup for consistent formatting across the client.
Supports both development (console) and production (file) modes.

Usage:
    from shared.log import get_logger

    logger = get_logger(__name__)
    logger.info("Joining room...")
    logger.error("Token request failed", extra={"room": "AB12CD", "user_name": "Ann"})
"""

from __future__ import annotations
import logging
import sys
from pathlib import Path
from typing import Optional, Dict, Any
import os


# ========================================
#           LOGGING FORMATTERS
# ========================================

class ContextFormatter(logging.Formatter):
    """Prefixes records with chat context passed through ``extra``"""

    def format(self, record: logging.LogRecord) -> str:
        context = []

        if getattr(record, 'room', None):
            context.append(f"room={record.room}")
        if getattr(record, 'user_name', None):
            context.append(f"user={record.user_name}")
        if getattr(record, 'event', None):
            context.append(f"event={record.event}")

        original = record.msg
        if context:
            record.msg = f"[{' '.join(context)}] {record.msg}"
        try:
            return super().format(record)
        finally:
            record.msg = original


class ColoredFormatter(ContextFormatter):
    """Colored formatter for console output"""

    # ANSI Color codes
    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m'       # Reset
    }

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


# ========================================
#           LOGGING CONFIGURATION
# ========================================

_loggers_configured = set()

def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Get a configured logger for the given module.

    Args:
        name: Usually __name__ from the calling module
        level: Override log level ("DEBUG", "INFO", "WARNING", "ERROR")

    Returns:
        Configured logger instance

    Examples:
        logger = get_logger(__name__)
        logger.info("Channel open")

        # With context
        logger.warning("Dropped malformed event", extra={
            "room": "AB12CD",
            "user_name": "Ann",
            "event": "newMessage"
        })
    """
    logger = logging.getLogger(name)

    # Only configure each logger once
    if name not in _loggers_configured:
        _configure_logger(logger, level)
        _loggers_configured.add(name)

    return logger


def _configure_logger(logger: logging.Logger, level: Optional[str] = None) -> None:
    """Configure a logger with appropriate handlers and formatters"""

    logger.setLevel(_get_log_level(level))

    # Clear existing handlers to avoid duplicates
    logger.handlers.clear()

    _add_console_handler(logger, colored=_is_development())
    log_dir = os.getenv('ICHAT_LOG_DIR')
    if log_dir:
        _add_file_handler(logger, Path(log_dir))

    # Prevent duplicate messages from parent loggers
    logger.propagate = False


def _get_log_level(level: Optional[str] = None) -> int:
    """Determine appropriate log level"""

    level = level or os.getenv('ICHAT_LOG_LEVEL')
    if level:
        return getattr(logging, level.upper(), logging.INFO)

    # Default based on environment
    return logging.DEBUG if _is_development() else logging.INFO


def _is_development() -> bool:
    """Detect if we're in development mode"""
    return (
        os.getenv('PYTHON_ENV', '').lower() in ['dev', 'development'] or
        'pytest' in sys.modules
    )


def _add_console_handler(logger: logging.Logger, colored: bool = True) -> None:
    """Add stderr handler; stdout belongs to the chat transcript"""

    fmt = '[%(levelname)-8s][%(asctime)s][%(name)-5s]: %(message)s'
    handler = logging.StreamHandler(sys.stderr)

    if colored and _supports_color():
        formatter = ColoredFormatter(fmt=fmt, datefmt='%H:%M:%S')
    else:
        formatter = ContextFormatter(fmt=fmt, datefmt='%Y-%m-%d %H:%M:%S')

    handler.setFormatter(formatter)
    logger.addHandler(handler)


def _add_file_handler(logger: logging.Logger, log_dir: Path) -> None:
    """Add file handler under the given directory"""

    log_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_dir / "ichat.log")

    formatter = ContextFormatter(
        fmt='%(asctime)s | %(name)-30s | %(levelname)-8s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    handler.setFormatter(formatter)
    logger.addHandler(handler)


def _supports_color() -> bool:
    """Check if terminal supports color output"""

    if not (hasattr(sys.stderr, "isatty") and sys.stderr.isatty()):
        return False

    if os.getenv("TERM", "") == "dumb":
        return False

    if sys.platform == "win32":
        # On modern Windows terminals, ANSI colors are supported
        return os.getenv("ANSICON") is not None or os.getenv("WT_SESSION") is not None or os.getenv("TERM_PROGRAM") == "vscode" or "WindowsTerminal" in os.getenv("TERM", "")

    return True

# ========================================
#           CONVENIENCE FUNCTIONS
# ========================================

def set_level(level: str) -> None:
    """
    Change the level of every logger configured so far.
    Used by the CLI once the config (and ``--log-level``) is resolved.
    """
    numeric = getattr(logging, level.upper(), logging.INFO)
    for name in _loggers_configured:
        logging.getLogger(name).setLevel(numeric)


def log_chat_event(logger: logging.Logger, level: str, message: str,
                   event: Optional[str] = None,
                   payload: Optional[Dict[str, Any]] = None,
                   **context: Any) -> None:
    """
    Log a realtime event with structured context.

    Args:
        logger: Logger instance
        level: Log level ("debug", "info", "warning", "error")
        message: Log message
        event: Wire event name
        payload: Event payload for automatic context extraction
        **context: Additional context fields

    Example:
        log_chat_event(logger, "debug", "Inbound event",
                       event="roomJoined", payload=data, room="AB12CD")
    """

    extra_context: Dict[str, Any] = {'event': event}

    if isinstance(payload, dict):
        if 'token' in payload:
            extra_context['room'] = payload.get('token')
        if 'userName' in payload:
            extra_context['user_name'] = payload.get('userName')

    extra_context.update(context)

    log_func = getattr(logger, level.lower())
    log_func(message, extra=extra_context)
