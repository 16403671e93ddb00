"""CLI tests for configuration commands."""

import os
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from taxonomist.cli import cli
from taxonomist.config import ConfigManager


def _env_with_home(tmp_path: Path) -> dict[str, Any]:
    env = dict(os.environ)
    env["HOME"] = str(tmp_path)
    return env


def _config_path(tmp_path: Path) -> Path:
    return tmp_path / ".taxonomist" / "config.yaml"


def test_config_view_creates_and_displays_config(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    result = runner.invoke(cli, ["config", "view"], env=env)

    assert result.exit_code == 0
    assert "planner:" in result.output
    assert _config_path(tmp_path).exists()


def test_config_view_respects_environment(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)
    env["TAXONOMIST__TREE__LAZY_THRESHOLD"] = "1234"

    with_env = runner.invoke(cli, ["config", "view"], env=env)
    without_env = runner.invoke(cli, ["config", "view", "--no-env"], env=env)

    assert "1234" in with_env.output
    assert "1234" not in without_env.output


def test_config_set_updates_value_and_writes_diff(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    result = runner.invoke(cli, ["config", "set", "llm.temperature", "--value", "0.42"], env=env)

    assert result.exit_code == 0
    assert "0.42" in result.output
    assert "Updated llm.temperature." in result.output

    manager = ConfigManager(config_path=_config_path(tmp_path))
    config = manager.load(include_env=False)
    assert config.llm.temperature == pytest.approx(0.42)


def test_config_set_same_value_reports_no_changes(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    runner.invoke(cli, ["config", "set", "tree.lazy_threshold", "--value", "50"], env=env)
    result = runner.invoke(cli, ["config", "set", "tree.lazy_threshold", "--value", "50"], env=env)

    assert result.exit_code == 0
    assert "No changes applied" in result.output


def test_config_set_invalid_value_fails(tmp_path: Path) -> None:
    runner = CliRunner()
    env = _env_with_home(tmp_path)

    result = runner.invoke(
        cli, ["config", "set", "planner.optimizer_batch_size", "--value", "zero"], env=env
    )

    assert result.exit_code == 1
    assert "Invalid configuration values" in result.output
