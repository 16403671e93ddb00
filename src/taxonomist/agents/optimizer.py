"""Language-model agent that improves low-confidence placements."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence, Set, Tuple

from taxonomist.planner.constants import OPTIMIZER_BATCH_SIZE
from taxonomist.planner.models import (
    FileCard,
    OptimizationOutcome,
    OptimizerFolder,
    OptimizerPlacement,
    PlannerOutput,
    TaxonomyPlan,
)
from taxonomist.planner.progress import ProgressCallback, report_progress
from taxonomist.planner.repair import normalize_folder_path
from taxonomist.workers import WorkerPool

from . import prompts
from .language_model import JSONProgram, LanguageModelAgent
from .parsing import parse_optimization
from .results import AgentResult, Fallback, Ok

LOGGER = logging.getLogger(__name__)

OptimizerItem = Tuple[FileCard, PlannerOutput]


def echo_placements(items: Sequence[OptimizerItem]) -> List[OptimizerPlacement]:
    """Return the current placements of ``items`` unchanged."""
    return [
        OptimizerPlacement(
            file_id=output.file_id,
            virtual_path=output.virtual_path,
            confidence=output.confidence,
            reason=output.reason,
        )
        for _, output in items
    ]


class OptimizerAgent(LanguageModelAgent):
    """Re-place uncertain files in batches, optionally proposing new folders."""

    def __init__(
        self,
        program: Optional[JSONProgram] = None,
        *,
        pool: Optional[WorkerPool] = None,
        timeout_seconds: float = 180.0,
        batch_size: int = OPTIMIZER_BATCH_SIZE,
    ) -> None:
        super().__init__(program, pool=pool, timeout_seconds=timeout_seconds)
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._batch_size = batch_size

    @property
    def batch_size(self) -> int:
        return self._batch_size

    async def optimize(
        self,
        plan: TaxonomyPlan,
        items: Sequence[OptimizerItem],
        *,
        on_progress: Optional[ProgressCallback] = None,
    ) -> AgentResult[OptimizationOutcome]:
        """Optimize ``items`` against ``plan``.

        Batches are dispatched concurrently; a batch that fails echoes its
        current placements. The result is a ``Fallback`` only when no batch
        produced a usable answer.
        """

        if not items:
            return Ok(OptimizationOutcome())
        if not self.available:
            return Fallback(
                OptimizationOutcome(placements=echo_placements(items)),
                "no language model configured",
            )

        batches = [
            list(items[start : start + self._batch_size])
            for start in range(0, len(items), self._batch_size)
        ]
        report_progress(
            on_progress, f"Optimizing {len(items)} files in {len(batches)} batch(es)..."
        )
        results = await asyncio.gather(
            *(
                self._optimize_batch(plan, batch, index + 1, len(batches))
                for index, batch in enumerate(batches)
            )
        )

        placements: List[OptimizerPlacement] = []
        new_folders: List[OptimizerFolder] = []
        seen_paths: Set[str] = set()
        for result in results:
            placements.extend(result.value.placements)
            for folder in result.value.new_folders:
                path = normalize_folder_path(folder.path)
                if path in seen_paths:
                    continue
                seen_paths.add(path)
                new_folders.append(folder)

        outcome = OptimizationOutcome(placements=placements, new_folders=new_folders)
        failed = sum(1 for result in results if result.is_fallback)
        if failed == len(results):
            return Fallback(outcome, "every optimizer batch fell back")
        if failed:
            LOGGER.warning("%d of %d optimizer batches fell back", failed, len(results))
        return Ok(outcome)

    async def _optimize_batch(
        self, plan: TaxonomyPlan, batch: List[OptimizerItem], index: int, total: int
    ) -> AgentResult[OptimizationOutcome]:
        label = f"optimizer batch {index}/{total}"
        echo = OptimizationOutcome(placements=echo_placements(batch))
        response = await self._ask(
            prompts.OPTIMIZER_INSTRUCTIONS,
            prompts.optimizer_payload(plan, batch),
            label=label,
        )
        if response.is_fallback:
            return Fallback(echo, getattr(response, "reason", f"{label} failed"))

        outcome = parse_optimization(response.value)
        if outcome is None:
            return Fallback(echo, f"{label} could not be parsed")

        requested = {card.file_id for card, _ in batch}
        answered = {placement.file_id for placement in outcome.placements}
        placements = [p for p in outcome.placements if p.file_id in requested]
        # Files the model skipped keep their current placement.
        placements.extend(p for p in echo.placements if p.file_id not in answered)
        LOGGER.debug(
            "%s: %d placements, %d new folders", label, len(placements), len(outcome.new_folders)
        )
        return Ok(OptimizationOutcome(placements=placements, new_folders=outcome.new_folders))


__all__ = ["OptimizerAgent", "echo_placements"]
