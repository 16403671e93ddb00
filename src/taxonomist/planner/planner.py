"""End-to-end taxonomy planning run."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, List, Optional, Protocol, Sequence, Set, Tuple

from taxonomist.config.models import PlannerSettings

from .apply import apply_plan
from .corrections import apply_corrections, merge_optimization, reconstruct_plan_from_placements
from .diagnostics import diagnose_plan
from .models import (
    FileCard,
    OptimizationOutcome,
    PlannerOutput,
    PlanningResult,
    TaxonomyOverview,
    TaxonomyPlan,
    TaxonomyStrategy,
    ValidationResult,
)
from .orchestrator import PlanGenerator, TaxonomyOrchestrator
from .overview import build_overview
from .progress import ProgressCallback, report_progress
from .repair import repair_plan
from .strategy import select_strategy

if TYPE_CHECKING:  # pragma: no cover - typing only
    from taxonomist.agents.results import AgentResult

LOGGER = logging.getLogger(__name__)

PLANNER_VERSION = "0.1.0"


class PlanValidator(Protocol):
    """Collaborator that critiques a repaired plan."""

    async def validate(
        self, plan: TaxonomyPlan, overview: TaxonomyOverview, cards: Sequence[FileCard]
    ) -> "AgentResult[ValidationResult]": ...


class PlacementOptimizer(Protocol):
    """Collaborator that proposes better placements for uncertain files."""

    async def optimize(
        self,
        plan: TaxonomyPlan,
        items: Sequence[Tuple[FileCard, PlannerOutput]],
        *,
        on_progress: Optional[ProgressCallback] = None,
    ) -> "AgentResult[OptimizationOutcome]": ...


class TaxonomyPlanner:
    """Plan a virtual folder taxonomy and place every file in it.

    A run always yields exactly one :class:`PlannerOutput` per input card, in
    input order, even when every collaborator falls back.
    """

    def __init__(
        self,
        taxonomy_agent: PlanGenerator,
        *,
        validation_agent: Optional[PlanValidator] = None,
        optimizer_agent: Optional[PlacementOptimizer] = None,
        settings: Optional[PlannerSettings] = None,
    ) -> None:
        self._orchestrator = TaxonomyOrchestrator(taxonomy_agent)
        self._validation_agent = validation_agent
        self._optimizer_agent = optimizer_agent
        self._settings = settings or PlannerSettings()

    @property
    def version(self) -> str:
        return PLANNER_VERSION

    async def plan(
        self,
        cards: Sequence[FileCard],
        *,
        source_id: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> PlanningResult:
        """Run a full planning pass over ``cards``.

        Args:
            cards: File cards to organise.
            source_id: Collection identifier; defaults to the first card's ``source_id``.
            on_progress: Optional callback receiving progress messages.

        Returns:
            PlanningResult: Strategy, final plan, per-file outputs and diagnostics.
        """

        if not cards:
            return PlanningResult()

        source = source_id if source_id is not None else cards[0].source_id
        strategy = select_strategy(len(cards))
        LOGGER.info(
            "Planning %d files with %s strategy (depth %d)",
            len(cards),
            strategy.mode,
            strategy.max_depth,
        )

        raw_plan = await self._orchestrator.run(
            cards, strategy, source_id=source, on_progress=on_progress
        )
        plan = repair_plan(raw_plan)

        flagged: Set[str] = set()
        if self._validation_agent is not None and self._settings.enable_validation:
            plan, flagged = await self._validate(
                self._validation_agent, plan, cards, strategy, source, on_progress
            )

        report_progress(on_progress, f"Placing {len(cards)} files...")
        outputs = apply_plan(plan, cards)

        optimized: List[str] = []
        if self._optimizer_agent is not None and self._settings.enable_optimization:
            plan, outputs, optimized = await self._optimize(
                self._optimizer_agent, plan, cards, outputs, flagged, on_progress
            )

        diagnostics = diagnose_plan(plan, cards)
        return PlanningResult(
            strategy=strategy,
            plan=plan,
            outputs=outputs,
            diagnostics=diagnostics,
            optimized_file_ids=optimized,
        )

    async def reoptimize(
        self,
        cards: Sequence[FileCard],
        placements: Sequence[PlannerOutput],
        *,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[PlannerOutput]:
        """Re-run optimization on persisted placements without regenerating the plan.

        Placements below the confidence threshold whose file card is known are
        sent to the optimizer; every other placement is returned unchanged.
        """

        if self._optimizer_agent is None:
            LOGGER.info("No optimizer configured; placements left unchanged.")
            return list(placements)

        cards_by_id = {card.file_id: card for card in cards}
        threshold = self._settings.optimizer_confidence_threshold
        requested = [
            placement
            for placement in placements
            if placement.confidence < threshold and placement.file_id in cards_by_id
        ]
        if not requested:
            report_progress(on_progress, "No low-confidence placements to re-optimize.")
            return list(placements)

        plan = reconstruct_plan_from_placements(placements)
        report_progress(
            on_progress, f"Re-optimizing {len(requested)} low-confidence placements..."
        )
        items = [(cards_by_id[placement.file_id], placement) for placement in requested]
        result = await self._optimizer_agent.optimize(plan, items, on_progress=on_progress)
        _, merged, changed = merge_optimization(
            plan,
            placements,
            cards_by_id,
            {placement.file_id for placement in requested},
            result.value,
        )
        LOGGER.info("Re-optimization replaced %d placements", len(changed))
        return merged

    # ------------------------------------------------------------------ #
    # Phases                                                             #
    # ------------------------------------------------------------------ #

    async def _validate(
        self,
        agent: PlanValidator,
        plan: TaxonomyPlan,
        cards: Sequence[FileCard],
        strategy: TaxonomyStrategy,
        source_id: str,
        on_progress: Optional[ProgressCallback],
    ) -> Tuple[TaxonomyPlan, Set[str]]:
        report_progress(on_progress, "Validating taxonomy plan...")
        overview = build_overview(
            source_id, cards, max_tags=strategy.max_tags, samples_per_tag=strategy.samples_per_tag
        )
        sample = list(cards[: self._settings.validation_sample_size])
        result = await agent.validate(plan, overview, sample)
        verdict = result.value

        if verdict.has_changes:
            LOGGER.info(
                "Validation reported %d issue(s); applying %d folder and %d rule corrections",
                len(verdict.issues),
                len(verdict.corrected_folders),
                len(verdict.corrected_rules),
            )
            plan = repair_plan(apply_corrections(plan, verdict))

        known_ids = {card.file_id for card in cards}
        flagged = {
            flag.file_id for flag in verdict.files_needing_optimization if flag.file_id in known_ids
        }
        return plan, flagged

    async def _optimize(
        self,
        agent: PlacementOptimizer,
        plan: TaxonomyPlan,
        cards: Sequence[FileCard],
        outputs: List[PlannerOutput],
        flagged: Set[str],
        on_progress: Optional[ProgressCallback],
    ) -> Tuple[TaxonomyPlan, List[PlannerOutput], List[str]]:
        threshold = self._settings.optimizer_confidence_threshold
        cards_by_id: Dict[str, FileCard] = {card.file_id: card for card in cards}
        requested = [
            output
            for output in outputs
            if output.confidence < threshold or output.file_id in flagged
        ]
        if not requested:
            return plan, outputs, []

        report_progress(
            on_progress, f"Optimizing {len(requested)} low-confidence placements..."
        )
        items = [(cards_by_id[output.file_id], output) for output in requested]
        result = await agent.optimize(plan, items, on_progress=on_progress)
        return merge_optimization(
            plan,
            outputs,
            cards_by_id,
            {output.file_id for output in requested},
            result.value,
        )


__all__ = ["PLANNER_VERSION", "TaxonomyPlanner", "PlanValidator", "PlacementOptimizer"]
