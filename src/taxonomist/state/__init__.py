"""Persistence of file cards and virtual placements for a collection."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import AbstractSet, Iterable, List

from pydantic import ValidationError

from taxonomist.planner.models import FileCard, PlannerOutput

from .errors import MissingStateError, StateError
from .models import PlacementRecord, PlacementStore

LOGGER = logging.getLogger(__name__)

DEFAULT_STATE_DIRNAME = ".taxonomist"
PLACEMENTS_FILENAME = "placements.json"


class PlacementRepository:
    """Read and write the placement store kept inside a collection."""

    def __init__(self, base_dirname: str = DEFAULT_STATE_DIRNAME) -> None:
        """Initialize the repository.

        Args:
            base_dirname: Name of the directory that holds the store.
        """
        self._base_dirname = base_dirname

    @property
    def base_dirname(self) -> str:
        return self._base_dirname

    def store_path(self, root: Path) -> Path:
        """Return the JSON file holding the store for ``root``."""
        return self._state_dir(root) / PLACEMENTS_FILENAME

    def load(self, root: Path) -> PlacementStore:
        """Load the store for ``root``.

        Raises:
            MissingStateError: If the collection has never been planned.
            StateError: If the stored data cannot be parsed.
        """
        path = self.store_path(root)
        if not path.exists():
            raise MissingStateError(f"No placements found at {path}")

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise StateError(f"Invalid placement data: {exc}") from exc

        try:
            return PlacementStore.model_validate(data)
        except ValidationError as exc:
            raise StateError(f"Invalid placement data: {exc}") from exc

    def save(self, root: Path, store: PlacementStore) -> None:
        """Write ``store`` for ``root``, refreshing ``updated_at``."""
        directory = self.initialize(root)
        store.updated_at = datetime.now(timezone.utc)
        if store.created_at.tzinfo is None:
            store.created_at = store.created_at.replace(tzinfo=timezone.utc)
        payload = store.model_dump(mode="json")
        (directory / PLACEMENTS_FILENAME).write_text(
            json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8"
        )

    def initialize(self, root: Path) -> Path:
        """Create the state directory for ``root`` and return it."""
        directory = self._state_dir(root)
        directory.mkdir(parents=True, exist_ok=True)
        return directory

    def load_or_create(self, root: Path) -> PlacementStore:
        try:
            return self.load(root)
        except MissingStateError:
            return PlacementStore(root=str(root))

    def save_cards(self, root: Path, cards: Iterable[FileCard]) -> PlacementStore:
        """Insert or replace file cards keyed by ``file_id``."""
        store = self.load_or_create(root)
        for card in cards:
            store.cards[card.file_id] = card
        self.save(root, store)
        return store

    def upsert_placements(
        self, root: Path, outputs: Iterable[PlannerOutput], planner_version: str
    ) -> PlacementStore:
        """Insert or replace placements keyed by ``file_id``.

        Repeating the call with the same outputs leaves the stored placements
        unchanged apart from their timestamps.
        """
        store = self.load_or_create(root)
        count = 0
        for output in outputs:
            store.placements[output.file_id] = PlacementRecord.from_output(
                output, planner_version
            )
            count += 1
        self.save(root, store)
        LOGGER.info("Stored %d placements for %s", count, root)
        return store

    def retain_files(self, root: Path, file_ids: AbstractSet[str]) -> int:
        """Drop cards and placements whose ``file_id`` is not in ``file_ids``.

        Returns:
            int: Number of placements removed.
        """
        store = self.load(root)
        stale = [file_id for file_id in store.placements if file_id not in file_ids]
        for file_id in stale:
            del store.placements[file_id]
        for file_id in [file_id for file_id in store.cards if file_id not in file_ids]:
            del store.cards[file_id]
        self.save(root, store)
        if stale:
            LOGGER.info("Removed %d stale placements for %s", len(stale), root)
        return len(stale)

    def load_outputs(self, root: Path) -> List[PlannerOutput]:
        """Return the stored placements as planner outputs."""
        return [record.to_output() for record in self.load(root).placements.values()]

    def top_level_placements(self, root: Path) -> List[PlacementRecord]:
        """Return the placements needed to build the top level of the tree."""
        return list(self.load(root).placements.values())

    def placements_under(self, root: Path, folder_path: str) -> List[PlacementRecord]:
        """Return the placements stored beneath ``folder_path``."""
        prefix = folder_path.rstrip("/") + "/"
        return [
            record
            for record in self.load(root).placements.values()
            if record.virtual_path.startswith(prefix)
        ]

    def count_placements(self, root: Path) -> int:
        """Return the number of stored placements for ``root``."""
        try:
            return len(self.load(root).placements)
        except MissingStateError:
            return 0

    def _state_dir(self, root: Path) -> Path:
        return root / self._base_dirname


__all__ = [
    "DEFAULT_STATE_DIRNAME",
    "MissingStateError",
    "PlacementRecord",
    "PlacementRepository",
    "PlacementStore",
    "StateError",
]
