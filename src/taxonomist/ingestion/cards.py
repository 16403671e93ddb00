"""Turn discovered files into planning cards."""

from __future__ import annotations

import hashlib
from pathlib import Path

from taxonomist.planner.models import FileCard

from .models import PendingFile


def compute_file_id(pending: PendingFile) -> str:
    """Return a stable id derived from the file's path, size and mtime."""
    fingerprint = f"{pending.path}|{pending.size_bytes}|{pending.modified_at.timestamp()}"
    return hashlib.sha1(fingerprint.encode("utf-8")).hexdigest()


def build_file_card(pending: PendingFile, root: Path, source_id: str = "") -> FileCard:
    """Build a :class:`FileCard` for ``pending``.

    Args:
        pending: File found by :class:`~taxonomist.ingestion.DirectoryScanner`.
        root: Collection root the relative path is computed against.
        source_id: Identifier recorded on the card.

    Returns:
        FileCard: Card without summary or tags; classification fills those in.
    """

    path = pending.path
    try:
        relative = path.relative_to(root).as_posix()
    except ValueError:
        relative = path.name
    return FileCard(
        file_id=compute_file_id(pending),
        source_id=source_id,
        path=str(path),
        relative_path=relative,
        name=path.name,
        extension=path.suffix.lstrip(".").lower(),
        size=pending.size_bytes,
        mtime=pending.modified_at,
    )


__all__ = ["build_file_card", "compute_file_id"]
