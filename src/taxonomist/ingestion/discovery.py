"""File discovery utilities."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator

from .models import PendingFile

LOGGER = logging.getLogger(__name__)

STATE_DIRNAME = ".taxonomist"


def _is_hidden(path: Path) -> bool:
    return any(part.startswith(".") for part in path.parts if part not in (".", ".."))


def _in_state_dir(path: Path) -> bool:
    return STATE_DIRNAME in path.parts


class DirectoryScanner:
    """Discover regular files under a collection root."""

    def __init__(
        self,
        *,
        recursive: bool = True,
        include_hidden: bool = False,
        follow_symlinks: bool = False,
    ) -> None:
        self.recursive = recursive
        self.include_hidden = include_hidden
        self.follow_symlinks = follow_symlinks

    def scan(self, root: Path) -> Iterator[PendingFile]:
        """Yield files under ``root``, skipping the taxonomist state directory."""
        root = root.expanduser().resolve()
        if not root.exists():
            LOGGER.warning("Scan root %s does not exist", root)
            return

        for path in self._iter_paths(root):
            if path.is_symlink() and not self.follow_symlinks:
                continue
            if not path.is_file():
                continue
            try:
                relative = path.relative_to(root)
            except ValueError:
                relative = Path(path.name)
            if _in_state_dir(relative):
                continue
            if not self.include_hidden and _is_hidden(relative):
                continue
            try:
                stat = path.stat()
            except OSError as exc:
                LOGGER.debug("Skipping unreadable file %s: %s", path, exc)
                continue

            yield PendingFile(
                path=path,
                size_bytes=stat.st_size,
                modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            )

    def _iter_paths(self, root: Path) -> Iterable[Path]:
        if root.is_file():
            yield root
            return
        paths = root.rglob("*") if self.recursive else root.iterdir()
        yield from sorted(paths)


__all__ = ["DirectoryScanner", "STATE_DIRNAME"]
