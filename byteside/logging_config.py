"""Logging setup for byteside.

``byteside serve`` writes to a rotating file under ``~/.byteside/logs`` and
mirrors to stderr with ``--debug``. ``byteside trigger`` runs from agent hooks
on every event, so it normally gets no handler at all and must stay silent on
stderr even when something goes wrong.

Failures that byteside survives (a viewer that cannot be written to, a frame
that cannot be drawn) are logged through :func:`log_failure`: one line at the
given level, with the traceback only when the logger is in debug mode.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TextIO

PACKAGE_LOGGER = "byteside"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "byteside.log"
MAX_BYTES = 1024 * 1024  # 1 MB
BACKUP_COUNT = 3

LOG_DIR = Path.home() / ".byteside" / "logs"


def get_log_file_path() -> Path:
    """Path of the server log file. Creates the log directory."""
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    return LOG_DIR / LOG_FILE_NAME


def parse_level(level: int | str) -> int:
    """Turn ``"debug"``/``"INFO"``/``20`` into a level number, INFO if unknown."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logging(
    *,
    level: int | str = logging.INFO,
    log_to_file: bool = True,
    log_to_console: bool = False,
    console_stream: TextIO = sys.stderr,
    max_bytes: int = MAX_BYTES,
    backup_count: int = BACKUP_COUNT,
) -> logging.Logger:
    """Configure the ``byteside`` package logger.

    Replaces any handlers from an earlier call. With neither destination
    enabled a ``NullHandler`` is installed so records never reach Python's
    last-resort stderr handler.

    Returns:
        The package logger.
    """
    level = parse_level(level)

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

    if log_to_file:
        file_handler = RotatingFileHandler(
            get_log_file_path(),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    if log_to_console:
        console_handler = logging.StreamHandler(console_stream)
        console_handler.setFormatter(formatter)
        package_logger.addHandler(console_handler)

    if not package_logger.handlers:
        package_logger.addHandler(logging.NullHandler())

    return package_logger


def log_failure(
    logger: logging.Logger,
    exc: BaseException,
    message: str,
    *,
    level: int = logging.WARNING,
) -> None:
    """Log a survived failure as ``message: exc (Type)``.

    The traceback is attached only when ``logger`` has DEBUG enabled.
    """
    exc_info = exc if logger.isEnabledFor(logging.DEBUG) else None
    logger.log(level, "%s: %s (%s)", message, exc, type(exc).__name__, exc_info=exc_info)
