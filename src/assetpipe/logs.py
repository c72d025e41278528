"""Logging setup for the assetpipe command line."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler

from assetpipe.config import LoggingSettings

PACKAGE_LOGGER = "assetpipe"
_FILE_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"

_installed: List[logging.Handler] = []


def _resolve_level(level: str) -> int:
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.WARNING


def configure_logging(
    settings: LoggingSettings,
    *,
    console: Optional[Console] = None,
    level_override: Optional[str] = None,
) -> logging.Logger:
    """Attach console and rotating-file handlers to the package logger.

    Calling this again replaces the handlers installed by the previous call.

    Args:
        settings: Logging section of the loaded configuration.
        console: Console used by the rich handler; stderr when omitted.
        level_override: Level that takes precedence over ``settings.level``.

    Returns:
        logging.Logger: The configured ``assetpipe`` logger.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in _installed:
        logger.removeHandler(handler)
        handler.close()
    _installed.clear()

    level = _resolve_level(level_override or settings.level)
    logger.setLevel(level)
    logger.propagate = False

    rich_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    rich_handler.setLevel(level)
    logger.addHandler(rich_handler)
    _installed.append(rich_handler)

    if settings.file:
        log_path = Path(settings.file).expanduser()
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_path,
                maxBytes=settings.max_size_mb * 1024 * 1024,
                backupCount=settings.backup_count,
                encoding="utf-8",
            )
        except OSError as exc:
            logger.warning("Unable to open log file %s: %s", log_path, exc)
        else:
            file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
            file_handler.setLevel(min(level, logging.INFO))
            logger.addHandler(file_handler)
            _installed.append(file_handler)
            logger.setLevel(min(level, logging.INFO))

    return logger


__all__ = ["configure_logging", "PACKAGE_LOGGER"]
