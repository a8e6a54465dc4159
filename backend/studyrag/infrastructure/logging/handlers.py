"""Handler factories used by the logging configuration."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .formatters import get_formatter

LEVEL_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}
RESET = "\033[0m"


class ColoredConsoleHandler(logging.StreamHandler):
    """Stream handler that colors the level name when writing to a terminal."""

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)
        color = LEVEL_COLORS.get(record.levelname)
        isatty = getattr(self.stream, "isatty", None)
        if color and isatty is not None and isatty():
            formatted = formatted.replace(record.levelname, f"{color}{record.levelname}{RESET}", 1)
        return formatted


def create_console_handler(
    format_type: str = "detailed", level: int = logging.INFO, use_colors: bool = True
) -> logging.Handler:
    handler_class = ColoredConsoleHandler if use_colors else logging.StreamHandler
    handler = handler_class(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(get_formatter(format_type))
    return handler


def create_file_handler(
    filepath: str,
    max_bytes: int,
    backup_count: int,
    format_type: str = "structured",
    level: int = logging.DEBUG,
) -> logging.Handler:
    """Rotating UTF-8 file handler; the parent directory is created if missing."""
    Path(filepath).parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(filepath, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(get_formatter(format_type))
    return handler
