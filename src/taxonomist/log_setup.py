"""Logging configuration shared by the CLI and library entry points."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from taxonomist.config.models import LoggingSettings

_HANDLER_MARKER = "_taxonomist_handler"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(
    settings: Optional[LoggingSettings] = None,
    *,
    log_file: Optional[Path] = None,
    console: Optional[Console] = None,
) -> logging.Logger:
    """Attach Taxonomist handlers to the package logger.

    Calling this repeatedly replaces previously attached handlers instead of
    stacking duplicates.

    Args:
        settings: Logging settings; defaults are used when omitted.
        log_file: Optional path for a rotating log file.
        console: Rich console used for terminal output (stderr by default).

    Returns:
        logging.Logger: The configured ``taxonomist`` logger.
    """

    settings = settings or LoggingSettings()
    logger = logging.getLogger("taxonomist")
    level = logging.getLevelName(settings.level.upper())
    if not isinstance(level, int):
        level = logging.WARNING
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()

    rich_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    setattr(rich_handler, _HANDLER_MARKER, True)
    logger.addHandler(rich_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max(1, settings.max_size_mb) * 1024 * 1024,
            backupCount=settings.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        setattr(file_handler, _HANDLER_MARKER, True)
        logger.addHandler(file_handler)

    return logger


__all__ = ["configure_logging"]
