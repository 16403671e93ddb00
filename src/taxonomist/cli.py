"""Command line interface for Taxonomist."""

from __future__ import annotations

import difflib
from pathlib import Path
from typing import Any, Optional

import click
import yaml
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from taxonomist.cli_support import (
    build_services,
    folder_counts,
    run_planning,
    run_reoptimization,
    scan_cards,
    summarize_outputs,
)
from taxonomist.config import ConfigError, ConfigManager, TaxonomistConfig
from taxonomist.log_setup import configure_logging
from taxonomist.planner import PLANNER_VERSION
from taxonomist.state import MissingStateError, PlacementRepository, StateError
from taxonomist.tree import VirtualTreeBuilder, render_tree

console = Console()

LOG_FILENAME = "taxonomist.log"
TABLE_FOLDER_LIMIT = 20


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    original: Exception | None = None,
) -> None:
    """Emit an error and stop the command.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier used in JSON mode.
        json_output: Whether JSON mode is active.
        original: Exception being converted, for chaining.

    Raises:
        SystemExit: In JSON mode, after printing the error payload.
        click.ClickException: Otherwise.
    """

    if json_output:
        console.print_json(data={"error": {"code": code, "message": message}})
        raise SystemExit(1)
    raise click.ClickException(message) from original


def _emit(message: Any, *, quiet: bool) -> None:
    if not quiet:
        console.print(message)


def _format_summary_line(command: str, root: Path, metrics: dict[str, Any]) -> str:
    parts = ", ".join(f"{key}={value}" for key, value in metrics.items())
    return f"[green]{command} summary for {root}: {parts}.[/green]"


def _load_config(json_output: bool = False) -> TaxonomistConfig:
    manager = ConfigManager()
    try:
        return manager.load()
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
        raise  # pragma: no cover - _handle_cli_error always raises


def _prepare(root: Path, json_output: bool) -> TaxonomistConfig:
    config = _load_config(json_output)
    configure_logging(config.logging, log_file=root / ".taxonomist" / LOG_FILENAME)
    return config


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="taxonomist")
def cli() -> None:
    """Taxonomist organises files into a virtual folder tree without moving them."""


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=str))
@click.option(
    "-r",
    "--recursive/--no-recursive",
    default=None,
    help="Include subdirectories (defaults to scanning.recursive).",
)
@click.option("--json", "json_output", is_flag=True, help="Emit placements as JSON.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
def plan(path: str, recursive: Optional[bool], json_output: bool, quiet: bool) -> None:
    """Plan a virtual taxonomy for the files under PATH and store the placements."""
    root = Path(path).expanduser().resolve()
    config = _prepare(root, json_output)
    repository = PlacementRepository()

    cards = scan_cards(root, config, recursive=recursive)
    if not cards:
        if json_output:
            console.print_json(data={"root": str(root), "summary": {"files": 0}, "placements": []})
        else:
            _emit(f"[yellow]No files found under {root}.[/yellow]", quiet=quiet)
        return

    def on_progress(message: str) -> None:
        if not (quiet or json_output):
            console.print(f"[dim]{message}[/dim]")

    services = build_services(config)
    described, result = run_planning(services, cards, on_progress=on_progress)

    try:
        repository.save_cards(root, described)
        repository.upsert_placements(root, result.outputs, services.planner.version)
        repository.retain_files(root, {card.file_id for card in described})
    except StateError as exc:
        _handle_cli_error(str(exc), code="state_error", json_output=json_output, original=exc)

    summary = summarize_outputs(result.outputs, config.planner.optimizer_confidence_threshold)
    summary["optimized"] = len(result.optimized_file_ids)

    if json_output:
        console.print_json(
            data={
                "root": str(root),
                "plannerVersion": PLANNER_VERSION,
                "strategy": result.strategy.model_dump() if result.strategy else None,
                "summary": summary,
                "diagnostics": result.diagnostics.model_dump(),
                "placements": [output.model_dump() for output in result.outputs],
            }
        )
        return

    table = Table(title="Virtual folders")
    table.add_column("Folder", style="cyan")
    table.add_column("Files", justify="right")
    for folder, count in list(folder_counts(result.outputs).items())[:TABLE_FOLDER_LIMIT]:
        table.add_row(folder, str(count))
    _emit(table, quiet=quiet)
    _emit(_format_summary_line("Plan", root, summary), quiet=quiet)


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=str))
@click.option("--depth", type=click.IntRange(min=1), help="Maximum depth to display.")
@click.option("--top-level", is_flag=True, help="Only build the first level of folders.")
@click.option(
    "--folder", "folder_path", type=str, help="Only display the subtree at this virtual path."
)
def tree(path: str, depth: Optional[int], top_level: bool, folder_path: Optional[str]) -> None:
    """Display the stored virtual tree for PATH."""
    root = Path(path).expanduser().resolve()
    config = _prepare(root, json_output=False)
    repository = PlacementRepository()
    builder = VirtualTreeBuilder()

    try:
        store = repository.load(root)
        total = repository.count_placements(root)
        if folder_path:
            records = repository.placements_under(root, folder_path)
        elif top_level or total > config.tree.lazy_threshold:
            records = repository.top_level_placements(root)
        else:
            records = list(store.placements.values())
    except MissingStateError as exc:
        raise click.ClickException(
            f"{exc}. Run `taxonomist plan {path}` first."
        ) from exc
    except StateError as exc:
        raise click.ClickException(str(exc)) from exc

    if (top_level or total > config.tree.lazy_threshold) and not folder_path:
        node = builder.build_top_level_only(records, total)
    else:
        node = builder.build([record.to_output() for record in records], store.cards)
        if folder_path:
            found = builder.get_node_by_path(node, folder_path)
            if found is None:
                raise click.ClickException(f"No virtual folder at {folder_path}.")
            node = found

    console.print(render_tree(node, depth))
    stats = builder.get_stats(node)
    console.print(
        _format_summary_line(
            "Tree",
            root,
            {
                "folders": stats.total_folders,
                "files": node.file_count or 0,
                "depth": stats.max_depth,
            },
        )
    )


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=str))
@click.option("--json", "json_output", is_flag=True, help="Emit updated placements as JSON.")
def reoptimize(path: str, json_output: bool) -> None:
    """Re-run optimization on the stored low-confidence placements for PATH."""
    root = Path(path).expanduser().resolve()
    config = _prepare(root, json_output)
    repository = PlacementRepository()

    try:
        store = repository.load(root)
    except StateError as exc:
        _handle_cli_error(str(exc), code="state_error", json_output=json_output, original=exc)
        return

    placements = [record.to_output() for record in store.placements.values()]
    services = build_services(config)
    updated = run_reoptimization(services, list(store.cards.values()), placements)
    changed = sum(1 for before, after in zip(placements, updated) if before != after)

    try:
        repository.upsert_placements(root, updated, services.planner.version)
    except StateError as exc:
        _handle_cli_error(str(exc), code="state_error", json_output=json_output, original=exc)

    summary = summarize_outputs(updated, config.planner.optimizer_confidence_threshold)
    summary["changed"] = changed
    if json_output:
        console.print_json(
            data={
                "root": str(root),
                "summary": summary,
                "placements": [output.model_dump() for output in updated],
            }
        )
        return
    console.print(_format_summary_line("Reoptimize", root, summary))


@cli.group()
def config() -> None:
    """Inspect and update the Taxonomist configuration."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules."""
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        effective = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(effective.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="YAML value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY."""
    manager = ConfigManager()
    manager.ensure_exists()
    before = manager.read_text().splitlines()

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    try:
        manager.set_value(key, parsed_value)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    after = manager.read_text().splitlines()
    diff = [
        line
        for line in difflib.unified_diff(
            before,
            after,
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
        if not line.startswith(("-# Last updated", "+# Last updated"))
    ]
    changed = [line for line in diff if line[:1] in "-+" and not line.startswith(("---", "+++"))]
    if not changed:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {key.strip()}.[/green]")


def main() -> None:
    """Console script entry point."""
    cli()


if __name__ == "__main__":
    main()
