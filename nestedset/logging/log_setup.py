"""
Log output setup for nested set tree processes.

Lines look like ``timestamp | level | importance | logger | message``;
importance (0-10) comes from ``extra={"importance": n}`` or from the level.

Author: Vasiliy Zdanovskiy
email: vasilyvz@gmail.com
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

if TYPE_CHECKING:
    from nestedset.core.config import EngineConfig

LEVEL_TO_IMPORTANCE = {
    "DEBUG": 2,
    "INFO": 4,
    "WARNING": 6,
    "ERROR": 8,
    "CRITICAL": 10,
}

LOG_DATE_FMT = "%Y-%m-%d %H:%M:%S"
LOG_FORMAT_STR = "%(asctime)s | %(levelname)-8s | %(importance)s | %(name)s | %(message)s"

# Marks handlers installed here so that reconfiguring replaces only them
_HANDLER_TAG = "_nestedset_handler"


def importance_from_level(level_name: str) -> int:
    """Importance 0-10 for a standard level name; 4 when unknown."""
    return LEVEL_TO_IMPORTANCE.get((level_name or "").strip().upper(), 4)


class TreeLogFormatter(logging.Formatter):
    """Formatter that fills ``record.importance`` from the level when missing."""

    def __init__(self, fmt: str = LOG_FORMAT_STR, datefmt: str = LOG_DATE_FMT) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)

    def format(self, record: logging.LogRecord) -> str:
        if getattr(record, "importance", None) is None:
            record.importance = importance_from_level(record.levelname)
        return super().format(record)


def _tagged(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(TreeLogFormatter())
    setattr(handler, _HANDLER_TAG, True)
    return handler


def configure_logging(
    level: Union[int, str] = "INFO",
    log_path: Optional[Union[str, Path]] = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    logger_name: str = "nestedset",
) -> logging.Logger:
    """Attach console (and optionally rotating file) handlers to the package logger.

    The file handler records everything from DEBUG; the console follows
    ``level``. Calling again replaces the handlers installed by a previous call.

    Returns:
        The configured logger
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Invalid log level: {level}")

    target = logging.getLogger(logger_name)
    for handler in target.handlers[:]:
        if getattr(handler, _HANDLER_TAG, False):
            target.removeHandler(handler)
            handler.close()

    target.addHandler(_tagged(logging.StreamHandler(), level))
    target.setLevel(level)

    if log_path:
        log_file = Path(log_path)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            encoding="utf-8",
            mode="a",
            maxBytes=max_bytes,
            backupCount=backup_count,
        )
        target.addHandler(_tagged(file_handler, logging.DEBUG))
        target.setLevel(logging.DEBUG)
        target.info("Logging configured: %s", log_file)

    return target


def configure_from_config(config: "EngineConfig") -> logging.Logger:
    """Configure logging from the ``log`` and ``log_level`` settings."""
    return configure_logging(level=config.log_level, log_path=config.log)
