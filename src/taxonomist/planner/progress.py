"""Progress reporting shared by planning phases."""

from __future__ import annotations

import logging
from typing import Callable, Optional

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


def report_progress(callback: Optional[ProgressCallback], message: str) -> None:
    """Log ``message`` at INFO and forward it to ``callback`` when provided."""
    LOGGER.info(message)
    if callback is not None:
        callback(message)


__all__ = ["ProgressCallback", "report_progress"]
