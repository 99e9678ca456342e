"""Logging configuration for the booking engine."""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rental_booking.config import (
    LOG_BACKUP_COUNT,
    LOG_FILENAME,
    LOG_LEVEL_ENV,
    LOG_MAX_BYTES,
)
from rental_booking.paths import get_logs_dir

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def resolve_level(level: Optional[int] = None) -> int:
    """Explicit level first, then the environment, then INFO."""
    if level is not None:
        return level
    name = os.getenv(LOG_LEVEL_ENV, "").strip().upper()
    resolved = logging.getLevelName(name) if name else logging.INFO
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(
    log_dir: Optional[Path] = None,
    level: Optional[int] = None,
    *,
    console: bool = True,
) -> None:
    """Send records to a rotating file and, optionally, the console."""
    level = resolve_level(level)
    log_file = (log_dir or get_logs_dir()) / LOG_FILENAME
    formatter = logging.Formatter(LOG_FORMAT)

    handlers: list[logging.Handler] = [
        RotatingFileHandler(
            log_file,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
    ]
    if console:
        handlers.append(logging.StreamHandler())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(level)
        root_logger.addHandler(handler)

    def handle_exception(
        exc_type: type[BaseException],
        exc: BaseException,
        traceback: object,
    ) -> None:
        root_logger.error("Unhandled exception", exc_info=(exc_type, exc, traceback))

    sys.excepthook = handle_exception


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
