"""Tests for file discovery and card construction."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from taxonomist.ingestion import DirectoryScanner, PendingFile, build_file_card, compute_file_id


def _tree(tmp_path: Path) -> Path:
    root = tmp_path / "root"
    (root / "docs" / "2024").mkdir(parents=True)
    (root / "docs" / "2024" / "Report.PDF").write_bytes(b"pdf")
    (root / "a.txt").write_text("a", encoding="utf-8")
    (root / ".hidden.txt").write_text("h", encoding="utf-8")
    (root / ".taxonomist").mkdir()
    (root / ".taxonomist" / "placements.json").write_text("{}", encoding="utf-8")
    return root


def test_scan_is_sorted_and_skips_hidden_and_state(tmp_path: Path) -> None:
    root = _tree(tmp_path)

    found = [pending.path.relative_to(root.resolve()) for pending in DirectoryScanner().scan(root)]

    assert found == [Path("a.txt"), Path("docs/2024/Report.PDF")]


def test_scan_options(tmp_path: Path) -> None:
    root = _tree(tmp_path)

    shallow = [p.path.name for p in DirectoryScanner(recursive=False).scan(root)]
    with_hidden = [p.path.name for p in DirectoryScanner(include_hidden=True).scan(root)]

    assert shallow == ["a.txt"]
    assert ".hidden.txt" in with_hidden
    assert "placements.json" not in with_hidden


def test_scan_missing_root(tmp_path: Path) -> None:
    assert list(DirectoryScanner().scan(tmp_path / "missing")) == []


def test_build_file_card(tmp_path: Path) -> None:
    root = _tree(tmp_path).resolve()
    pending = next(p for p in DirectoryScanner().scan(root) if p.path.name == "Report.PDF")

    card = build_file_card(pending, root, "root")

    assert card.relative_path == "docs/2024/Report.PDF"
    assert card.extension == "pdf"
    assert card.name == "Report.PDF"
    assert card.size == 3
    assert card.source_id == "root"
    assert card.summary is None and card.tags == []


def test_file_id_is_stable_and_sensitive_to_changes(tmp_path: Path) -> None:
    stamp = datetime(2024, 1, 1, tzinfo=timezone.utc)
    pending = PendingFile(path=tmp_path / "a.txt", size_bytes=1, modified_at=stamp)
    grown = PendingFile(path=tmp_path / "a.txt", size_bytes=2, modified_at=stamp)

    assert compute_file_id(pending) == compute_file_id(pending.model_copy())
    assert compute_file_id(pending) != compute_file_id(grown)
