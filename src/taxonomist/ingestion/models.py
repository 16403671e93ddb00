"""Models produced by file discovery."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from pydantic import BaseModel


class PendingFile(BaseModel):
    """A file found on disk that has not been turned into a card yet."""

    path: Path
    size_bytes: int
    modified_at: datetime


__all__ = ["PendingFile"]
