"""Logging configuration helpers for lbsim.

The library is silent by default (the ``lbsim`` logger carries a NullHandler).
Enable output explicitly:

    import lbsim
    lbsim.enable_console_logging(level="DEBUG")

or from the environment, which is what the CLI does when --log-level is absent:

    LBSIM_LOGGING=INFO LBSIM_LOG_FILE=run.log python -m lbsim
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Literal, Union

from .errors import ConfigurationError

__all__ = [
    "LOG_LEVELS",
    "configure_from_env",
    "enable_console_logging",
    "enable_file_logging",
    "set_level",
]

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
DEFAULT_BACKUP_COUNT = 5

LOGGER_NAME = "lbsim"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _get_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    name = level.upper()
    if name not in LOG_LEVELS:
        raise ConfigurationError(f"unknown log level {level!r} (expected one of: {', '.join(LOG_LEVELS)})")
    return getattr(logging, name)


def _attach(handler: logging.Handler, level: Union[LogLevel, int], format: str, date_format: str) -> None:
    levelno = _get_level(level)
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(levelno)
    handler.setLevel(levelno)
    handler.setFormatter(logging.Formatter(format, date_format))
    logger.addHandler(handler)


def enable_console_logging(
    level: Union[LogLevel, int] = "INFO",
    format: str = DEFAULT_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> logging.StreamHandler:
    """Log lbsim records to stderr. Returns the handler so callers can remove it."""
    handler = logging.StreamHandler()
    _attach(handler, level, format, date_format)
    return handler


def enable_file_logging(
    path: Union[str, Path],
    level: Union[LogLevel, int] = "INFO",
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    format: str = DEFAULT_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> RotatingFileHandler:
    """Log lbsim records to a size-rotated file, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count)
    _attach(handler, level, format, date_format)
    return handler


def configure_from_env() -> None:
    """Configure logging from LBSIM_LOGGING (level) and LBSIM_LOG_FILE (path).

    A file path alone logs at INFO. Does nothing if neither variable is set.
    """
    level = os.environ.get("LBSIM_LOGGING", "")
    log_file = os.environ.get("LBSIM_LOG_FILE", "")

    if not level and not log_file:
        return
    if log_file:
        enable_file_logging(log_file, level=level or "INFO")
    else:
        enable_console_logging(level=level)


def set_level(level: Union[LogLevel, int]) -> None:
    """Change the lbsim logger level without touching its handlers."""
    logging.getLogger(LOGGER_NAME).setLevel(_get_level(level))
