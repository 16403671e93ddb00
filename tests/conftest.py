"""Shared fixtures for the Taxonomist test suite."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

import pytest

from taxonomist.planner.models import FileCard

CardFactory = Callable[..., FileCard]


def build_card(
    file_id: str,
    *,
    name: Optional[str] = None,
    tags: Sequence[str] = (),
    extension: Optional[str] = None,
    relative_path: Optional[str] = None,
    summary: Optional[str] = None,
    year: Optional[int] = None,
) -> FileCard:
    """Return a card whose unspecified fields are derived from ``file_id``."""
    name = name or f"{file_id}.txt"
    if extension is None:
        extension = name.rsplit(".", 1)[-1].lower() if "." in name else ""
    relative_path = relative_path or name
    return FileCard(
        file_id=file_id,
        source_id="test",
        path=f"/data/{relative_path}",
        relative_path=relative_path,
        name=name,
        extension=extension,
        size=1024,
        mtime=datetime(year, 6, 1, tzinfo=timezone.utc) if year else None,
        summary=summary,
        tags=list(tags),
    )


@pytest.fixture
def make_card() -> CardFactory:
    """Factory fixture producing :class:`FileCard` instances."""
    return build_card
