"""Placement repository tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from taxonomist.planner.models import PlannerOutput
from taxonomist.state import (
    DEFAULT_STATE_DIRNAME,
    MissingStateError,
    PlacementRepository,
    PlacementStore,
    StateError,
)


def _outputs() -> list[PlannerOutput]:
    """Return sample placements spread over two top-level folders.

    Returns:
        list[PlannerOutput]: Three planner outputs.
    """
    return [
        PlannerOutput(
            file_id="a", virtual_path="/Work/Invoices/a.pdf", tags=["invoice"], confidence=0.9
        ),
        PlannerOutput(file_id="b", virtual_path="/Work/b.txt", confidence=0.6),
        PlannerOutput(file_id="c", virtual_path="/Personal/c.jpg", confidence=0.4),
    ]


def test_initialize_creates_state_directory(tmp_path: Path) -> None:
    """Ensure initialize prepares the hidden state directory.

    Args:
        tmp_path: Temporary directory provided by pytest.
    """
    repo = PlacementRepository()

    directory = repo.initialize(tmp_path)

    assert directory == tmp_path / DEFAULT_STATE_DIRNAME
    assert directory.is_dir()
    assert repo.store_path(tmp_path) == directory / "placements.json"


def test_save_and_load_round_trip(tmp_path: Path, make_card) -> None:
    """Ensure cards and placements survive a save/load cycle.

    Args:
        tmp_path: Temporary directory provided by pytest.
        make_card: Card factory fixture.
    """
    repo = PlacementRepository()
    card = make_card("a", name="a.pdf", tags=["invoice"], year=2024)

    repo.save_cards(tmp_path, [card])
    repo.upsert_placements(tmp_path, _outputs(), "0.1.0")
    loaded = repo.load(tmp_path)

    assert loaded.root == str(tmp_path)
    assert loaded.cards["a"] == card
    assert loaded.placements["a"].planner_version == "0.1.0"
    assert loaded.updated_at >= loaded.created_at
    assert repo.load_outputs(tmp_path) == _outputs()


def test_upsert_is_idempotent(tmp_path: Path) -> None:
    """Applying the same placements twice leaves one record per file.

    Args:
        tmp_path: Temporary directory provided by pytest.
    """
    repo = PlacementRepository()

    repo.upsert_placements(tmp_path, _outputs(), "0.1.0")
    repo.upsert_placements(tmp_path, _outputs(), "0.1.0")

    assert repo.count_placements(tmp_path) == 3
    assert repo.load_outputs(tmp_path) == _outputs()


def test_upsert_replaces_existing_placement(tmp_path: Path) -> None:
    repo = PlacementRepository()
    repo.upsert_placements(tmp_path, _outputs(), "0.1.0")

    moved = PlannerOutput(file_id="b", virtual_path="/Archive/b.txt", confidence=0.7)
    repo.upsert_placements(tmp_path, [moved], "0.2.0")

    record = repo.load(tmp_path).placements["b"]
    assert record.virtual_path == "/Archive/b.txt"
    assert record.planner_version == "0.2.0"


def test_retain_files_drops_stale_entries(tmp_path: Path, make_card) -> None:
    repo = PlacementRepository()
    repo.save_cards(tmp_path, [make_card("a"), make_card("b"), make_card("c")])
    repo.upsert_placements(tmp_path, _outputs(), "0.1.0")

    removed = repo.retain_files(tmp_path, {"a", "c"})

    store = repo.load(tmp_path)
    assert removed == 1
    assert set(store.placements) == {"a", "c"}
    assert set(store.cards) == {"a", "c"}


def test_folder_queries(tmp_path: Path) -> None:
    repo = PlacementRepository()
    repo.upsert_placements(tmp_path, _outputs(), "0.1.0")

    under_work = repo.placements_under(tmp_path, "/Work/")

    assert sorted(record.file_id for record in under_work) == ["a", "b"]
    assert repo.placements_under(tmp_path, "/Wor") == []
    assert len(repo.top_level_placements(tmp_path)) == 3


def test_load_missing_state_raises(tmp_path: Path) -> None:
    """Verify loading without state raises MissingStateError.

    Args:
        tmp_path: Temporary directory provided by pytest.
    """
    repo = PlacementRepository()

    with pytest.raises(MissingStateError):
        repo.load(tmp_path)
    assert repo.count_placements(tmp_path) == 0
    assert isinstance(repo.load_or_create(tmp_path), PlacementStore)


@pytest.mark.parametrize("payload", ["not json", json.dumps({"cards": []})])
def test_load_invalid_state_raises(tmp_path: Path, payload: str) -> None:
    """Ensure unreadable payloads raise StateError on load.

    Args:
        tmp_path: Temporary directory provided by pytest.
        payload: Raw contents written to the store.
    """
    repo = PlacementRepository()
    repo.initialize(tmp_path)
    repo.store_path(tmp_path).write_text(payload, encoding="utf-8")

    with pytest.raises(StateError):
        repo.load(tmp_path)
