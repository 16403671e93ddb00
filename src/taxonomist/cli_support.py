"""Helpers shared by CLI commands."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from taxonomist.agents import (
    OptimizerAgent,
    TaxonomyAgent,
    ValidationAgent,
    build_json_program,
)
from taxonomist.agents.language_model import JSONProgram
from taxonomist.classification import ClassificationEngine
from taxonomist.config import TaxonomistConfig
from taxonomist.ingestion import DirectoryScanner, build_file_card
from taxonomist.planner import FileCard, PlannerOutput, PlanningResult, TaxonomyPlanner
from taxonomist.planner.progress import ProgressCallback
from taxonomist.workers import WorkerPool

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class Services:
    """Collaborators wired from one configuration."""

    pool: WorkerPool
    classifier: ClassificationEngine
    planner: TaxonomyPlanner


def build_services(
    config: TaxonomistConfig, *, program: Optional[JSONProgram] = None
) -> Services:
    """Wire the worker pool, agents and planner described by ``config``.

    Args:
        config: Effective configuration.
        program: JSON program to use instead of one built from ``config.llm``.

    Returns:
        Services: Ready-to-use collaborators sharing a single worker pool.
    """

    if program is None:
        program = build_json_program(config.llm)
    pool = WorkerPool(
        config.workers.max_workers,
        check_interval=config.workers.check_interval_seconds,
        max_wait_iterations=config.workers.max_wait_iterations,
        slow_task_seconds=config.workers.slow_task_seconds,
    )
    timeout = config.llm.timeout_seconds
    planner = TaxonomyPlanner(
        TaxonomyAgent(program, pool=pool, timeout_seconds=timeout),
        validation_agent=ValidationAgent(program, pool=pool, timeout_seconds=timeout),
        optimizer_agent=OptimizerAgent(
            program,
            pool=pool,
            timeout_seconds=timeout,
            batch_size=config.planner.optimizer_batch_size,
        ),
        settings=config.planner,
    )
    classifier = ClassificationEngine(program, pool=pool, timeout_seconds=timeout)
    return Services(pool=pool, classifier=classifier, planner=planner)


def scan_cards(
    root: Path, config: TaxonomistConfig, *, recursive: Optional[bool] = None
) -> List[FileCard]:
    """Discover files under ``root`` and build their cards."""
    scanner = DirectoryScanner(
        recursive=config.scanning.recursive if recursive is None else recursive,
        include_hidden=config.scanning.include_hidden,
        follow_symlinks=config.scanning.follow_symlinks,
    )
    source_id = root.name
    return [build_file_card(pending, root, source_id) for pending in scanner.scan(root)]


async def _classify_and_plan(
    services: Services, cards: Sequence[FileCard], on_progress: Optional[ProgressCallback]
) -> tuple[List[FileCard], PlanningResult]:
    try:
        batch = await services.classifier.classify(cards)
        result = await services.planner.plan(batch.cards, on_progress=on_progress)
    finally:
        await services.pool.wait_for_completion()
        services.pool.shutdown()
    return batch.cards, result


def run_planning(
    services: Services,
    cards: Sequence[FileCard],
    *,
    on_progress: Optional[ProgressCallback] = None,
) -> tuple[List[FileCard], PlanningResult]:
    """Classify ``cards`` and plan them in a fresh event loop."""
    return asyncio.run(_classify_and_plan(services, cards, on_progress))


async def _reoptimize(
    services: Services,
    cards: Sequence[FileCard],
    placements: Sequence[PlannerOutput],
    on_progress: Optional[ProgressCallback],
) -> List[PlannerOutput]:
    try:
        return await services.planner.reoptimize(cards, placements, on_progress=on_progress)
    finally:
        await services.pool.wait_for_completion()
        services.pool.shutdown()


def run_reoptimization(
    services: Services,
    cards: Sequence[FileCard],
    placements: Sequence[PlannerOutput],
    *,
    on_progress: Optional[ProgressCallback] = None,
) -> List[PlannerOutput]:
    """Re-optimize stored ``placements`` in a fresh event loop."""
    return asyncio.run(_reoptimize(services, cards, placements, on_progress))


def summarize_outputs(
    outputs: Sequence[PlannerOutput], threshold: float
) -> Dict[str, Any]:
    """Return counts used by the CLI summary line."""
    folders = {output.virtual_path.rpartition("/")[0] for output in outputs}
    low = sum(1 for output in outputs if output.confidence < threshold)
    average = sum(output.confidence for output in outputs) / len(outputs) if outputs else 0.0
    return {
        "files": len(outputs),
        "folders": len(folders),
        "low_confidence": low,
        "avg_confidence": round(average, 2),
    }


def folder_counts(outputs: Sequence[PlannerOutput]) -> Dict[str, int]:
    """Return the number of files per virtual folder, largest first."""
    counts: Dict[str, int] = {}
    for output in outputs:
        folder = output.virtual_path.rpartition("/")[0] or "/"
        counts[folder] = counts.get(folder, 0) + 1
    return dict(sorted(counts.items(), key=lambda item: (-item[1], item[0])))


__all__ = [
    "Services",
    "build_services",
    "folder_counts",
    "run_planning",
    "run_reoptimization",
    "scan_cards",
    "summarize_outputs",
]
