"""CLI tests for planning, tree display, and re-optimization."""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from taxonomist.cli import cli
from taxonomist.state import PlacementRepository


def _env(tmp_path: Path) -> dict[str, str]:
    return {"HOME": str(tmp_path / "home"), "TAXONOMIST__LOGGING__LEVEL": "ERROR"}


def _collection(tmp_path: Path) -> Path:
    """Create a small collection of files on disk.

    Args:
        tmp_path: Temporary directory provided by pytest.

    Returns:
        Path: Root of the collection.
    """
    root = tmp_path / "collection"
    (root / "finance").mkdir(parents=True)
    (root / "finance" / "invoice-2024.pdf").write_bytes(b"%PDF-1.4")
    (root / "beach.jpg").write_bytes(b"\xff\xd8\xff")
    (root / "notes.txt").write_text("meeting notes", encoding="utf-8")
    (root / ".hidden").write_text("secret", encoding="utf-8")
    return root


def test_cli_help_displays_commands() -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["--help"])

    assert result.exit_code == 0
    assert "Taxonomist organises files" in result.output
    for command in ("plan", "tree", "reoptimize", "config"):
        assert command in result.output


def test_plan_json_places_every_file(tmp_path: Path) -> None:
    """Without a language model every file lands in the fallback folder.

    Args:
        tmp_path: Temporary directory provided by pytest.
    """
    root = _collection(tmp_path)
    runner = CliRunner()

    result = runner.invoke(cli, ["plan", str(root), "--json"], env=_env(tmp_path))

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["summary"]["files"] == 3
    assert payload["strategy"]["mode"] == "single"
    paths = sorted(placement["virtual_path"] for placement in payload["placements"])
    assert paths == [
        "/All Files/beach.jpg",
        "/All Files/invoice-2024.pdf",
        "/All Files/notes.txt",
    ]
    assert PlacementRepository().count_placements(root) == 3


def test_plan_prints_summary(tmp_path: Path) -> None:
    root = _collection(tmp_path)
    runner = CliRunner()

    result = runner.invoke(cli, ["plan", str(root)], env=_env(tmp_path))

    assert result.exit_code == 0, result.output
    assert "Plan summary" in result.output
    assert "files=3" in result.output


def test_plan_without_recursion_skips_subdirectories(tmp_path: Path) -> None:
    root = _collection(tmp_path)
    runner = CliRunner()

    result = runner.invoke(
        cli, ["plan", str(root), "--no-recursive", "--json"], env=_env(tmp_path)
    )

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["summary"]["files"] == 2


def test_plan_empty_directory(tmp_path: Path) -> None:
    root = tmp_path / "empty"
    root.mkdir()
    runner = CliRunner()

    result = runner.invoke(cli, ["plan", str(root)], env=_env(tmp_path))

    assert result.exit_code == 0
    assert "No files found" in result.output


def test_replanning_drops_deleted_files(tmp_path: Path) -> None:
    root = _collection(tmp_path)
    runner = CliRunner()
    runner.invoke(cli, ["plan", str(root), "--json"], env=_env(tmp_path))

    (root / "notes.txt").unlink()
    result = runner.invoke(cli, ["plan", str(root), "--json"], env=_env(tmp_path))

    assert result.exit_code == 0, result.output
    assert PlacementRepository().count_placements(root) == 2


def test_tree_displays_stored_placements(tmp_path: Path) -> None:
    """Ensure the tree command renders the folders written by plan.

    Args:
        tmp_path: Temporary directory provided by pytest.
    """
    root = _collection(tmp_path)
    runner = CliRunner()
    runner.invoke(cli, ["plan", str(root), "--json"], env=_env(tmp_path))

    result = runner.invoke(cli, ["tree", str(root)], env=_env(tmp_path))

    assert result.exit_code == 0, result.output
    assert "All Files (3 files)" in result.output
    assert "beach.jpg" in result.output
    assert "Tree summary" in result.output


def test_tree_top_level_and_folder_views(tmp_path: Path) -> None:
    root = _collection(tmp_path)
    runner = CliRunner()
    runner.invoke(cli, ["plan", str(root), "--json"], env=_env(tmp_path))

    top = runner.invoke(cli, ["tree", str(root), "--top-level"], env=_env(tmp_path))
    folder = runner.invoke(cli, ["tree", str(root), "--folder", "/All Files"], env=_env(tmp_path))
    missing = runner.invoke(cli, ["tree", str(root), "--folder", "/Nope"], env=_env(tmp_path))

    assert top.exit_code == 0, top.output
    assert "All Files (3 files)" in top.output
    assert "beach.jpg" not in top.output
    assert folder.exit_code == 0, folder.output
    assert "notes.txt" in folder.output
    assert missing.exit_code == 1
    assert "No virtual folder" in missing.output


def test_tree_before_plan_fails(tmp_path: Path) -> None:
    root = _collection(tmp_path)
    runner = CliRunner()

    result = runner.invoke(cli, ["tree", str(root)], env=_env(tmp_path))

    assert result.exit_code == 1
    assert "taxonomist plan" in result.output


def test_reoptimize_without_model_changes_nothing(tmp_path: Path) -> None:
    root = _collection(tmp_path)
    runner = CliRunner()
    runner.invoke(cli, ["plan", str(root), "--json"], env=_env(tmp_path))

    result = runner.invoke(cli, ["reoptimize", str(root), "--json"], env=_env(tmp_path))

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["summary"]["changed"] == 0
    assert len(payload["placements"]) == 3


def test_reoptimize_before_plan_reports_json_error(tmp_path: Path) -> None:
    root = _collection(tmp_path)
    runner = CliRunner()

    result = runner.invoke(cli, ["reoptimize", str(root), "--json"], env=_env(tmp_path))

    assert result.exit_code == 1
    assert json.loads(result.stdout)["error"]["code"] == "state_error"
