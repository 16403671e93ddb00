"""Single-pass and hierarchical taxonomy plan generation."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Optional, Protocol, Sequence

from .constants import ID_SEPARATOR
from .matcher import get_file_assignments
from .models import FileCard, TaxonomyOverview, TaxonomyPlan, TaxonomyStrategy, VirtualFolderSpec
from .overview import build_overview, sub_level_sample_size
from .progress import ProgressCallback, report_progress

if TYPE_CHECKING:  # pragma: no cover - typing only
    from taxonomist.agents.results import AgentResult

LOGGER = logging.getLogger(__name__)


class PlanGenerator(Protocol):
    """Collaborator that turns overviews into plan fragments."""

    async def generate_plan(self, overview: TaxonomyOverview) -> "AgentResult[TaxonomyPlan]": ...

    async def generate_top_level_plan(
        self, overview: TaxonomyOverview, strategy: TaxonomyStrategy
    ) -> "AgentResult[TaxonomyPlan]": ...

    async def generate_sub_level_plan(
        self, overview: TaxonomyOverview, parent_path: str, parent_folder_id: str
    ) -> "AgentResult[TaxonomyPlan]": ...


@dataclass(frozen=True, slots=True)
class BranchPlan:
    """Namespaced sub-plan generated for one parent folder."""

    parent: VirtualFolderSpec
    plan: TaxonomyPlan


def prefix_plan(plan: TaxonomyPlan, prefix: str) -> TaxonomyPlan:
    """Namespace folder and rule ids in ``plan`` with ``<prefix>--``.

    Rule targets are resolved against the sub-plan's own folder ids, first
    exactly and then case-insensitively; unknown targets are prefixed as-is so
    the repair pass can deal with them later. Folder paths are left untouched.
    """

    def namespaced(identifier: str) -> str:
        return f"{prefix}{ID_SEPARATOR}{identifier}"

    exact = {folder.id: namespaced(folder.id) for folder in plan.folders}
    lowered: Dict[str, str] = {}
    for folder in plan.folders:
        lowered.setdefault(folder.id.lower(), namespaced(folder.id))

    folders = [folder.model_copy(update={"id": namespaced(folder.id)}) for folder in plan.folders]
    rules = [
        rule.model_copy(
            update={
                "id": namespaced(rule.id),
                "target_folder_id": exact.get(rule.target_folder_id)
                or lowered.get(rule.target_folder_id.lower())
                or namespaced(rule.target_folder_id),
            }
        )
        for rule in plan.rules
    ]
    return TaxonomyPlan(folders=folders, rules=rules)


def merge_branches(plan: TaxonomyPlan, branches: Sequence[BranchPlan]) -> TaxonomyPlan:
    """Fold completed branch plans into ``plan`` and return the merged plan.

    Each branch replaces every rule that targeted its parent folder with the
    branch's own rules; its folders are appended after the existing ones.
    """

    folders = list(plan.folders)
    rules = list(plan.rules)
    for branch in branches:
        rules = [rule for rule in rules if rule.target_folder_id != branch.parent.id]
        folders.extend(branch.plan.folders)
        rules.extend(branch.plan.rules)
    return TaxonomyPlan(folders=folders, rules=rules)


def is_leaf_folder(folder_path: str, folders: Sequence[VirtualFolderSpec]) -> bool:
    """Return ``True`` when no other folder is nested beneath ``folder_path``."""
    return not any(
        folder.path != folder_path and folder.path.startswith(folder_path + "/")
        for folder in folders
    )


class TaxonomyOrchestrator:
    """Drive plan generation according to a :class:`TaxonomyStrategy`."""

    def __init__(self, generator: PlanGenerator) -> None:
        self._generator = generator

    async def run(
        self,
        cards: Sequence[FileCard],
        strategy: TaxonomyStrategy,
        *,
        source_id: str = "",
        on_progress: Optional[ProgressCallback] = None,
    ) -> TaxonomyPlan:
        """Produce one merged plan for ``cards``.

        Args:
            cards: File cards being planned.
            strategy: Strategy selected for the collection size.
            source_id: Identifier recorded in generated overviews.
            on_progress: Optional callback receiving progress messages.

        Returns:
            TaxonomyPlan: Raw merged plan; folder references are not yet repaired.
        """

        overview = build_overview(
            source_id,
            cards,
            max_tags=strategy.max_tags,
            samples_per_tag=strategy.samples_per_tag,
        )

        if strategy.mode == "single":
            report_progress(on_progress, "Building taxonomy (single pass)...")
            result = await self._generator.generate_plan(overview)
            self._note_fallback("full plan", result)
            return result.value

        report_progress(on_progress, "Building taxonomy (top level)...")
        top = await self._generator.generate_top_level_plan(overview, strategy)
        self._note_fallback("top-level plan", top)
        plan = top.value

        assignments = get_file_assignments(plan.rules, plan.folders, cards)
        branch_cards = self._group_by_folder(cards, assignments)
        candidates = [
            folder
            for folder in plan.folders
            if branch_cards.get(folder.id)
            and len(branch_cards[folder.id]) >= strategy.min_files_for_sub_level
        ]
        branches = await self._expand(candidates, branch_cards, strategy, source_id, on_progress)
        plan = merge_branches(plan, branches)

        if strategy.max_depth == 3 and strategy.min_files_for_third_level > 0:
            assignments = get_file_assignments(plan.rules, plan.folders, cards)
            branch_cards = self._group_by_folder(cards, assignments)
            candidates = [
                folder
                for folder in plan.folders
                if is_leaf_folder(folder.path, plan.folders)
                and len(branch_cards.get(folder.id, ())) >= strategy.min_files_for_third_level
            ]
            branches = await self._expand(
                candidates, branch_cards, strategy, source_id, on_progress
            )
            plan = merge_branches(plan, branches)

        return plan

    async def _expand(
        self,
        parents: Sequence[VirtualFolderSpec],
        branch_cards: Dict[str, List[FileCard]],
        strategy: TaxonomyStrategy,
        source_id: str,
        on_progress: Optional[ProgressCallback],
    ) -> List[BranchPlan]:
        if not parents:
            return []
        tasks = [
            self._generate_branch(parent, branch_cards[parent.id], strategy, source_id, on_progress)
            for parent in parents
        ]
        return list(await asyncio.gather(*tasks))

    async def _generate_branch(
        self,
        parent: VirtualFolderSpec,
        subset: List[FileCard],
        strategy: TaxonomyStrategy,
        source_id: str,
        on_progress: Optional[ProgressCallback],
    ) -> BranchPlan:
        report_progress(
            on_progress, f"Building sub-folders under {parent.path} ({len(subset)} files)..."
        )
        overview = build_overview(
            source_id,
            subset,
            max_tags=strategy.max_tags,
            samples_per_tag=sub_level_sample_size(strategy.samples_per_tag, len(subset)),
        )
        result = await self._generator.generate_sub_level_plan(overview, parent.path, parent.id)
        self._note_fallback(f"sub-level plan for {parent.path}", result)
        return BranchPlan(parent=parent, plan=prefix_plan(result.value, parent.id))

    @staticmethod
    def _group_by_folder(
        cards: Sequence[FileCard], assignments: Dict[str, VirtualFolderSpec]
    ) -> Dict[str, List[FileCard]]:
        grouped: Dict[str, List[FileCard]] = {}
        for card in cards:
            folder = assignments.get(card.file_id)
            if folder is not None:
                grouped.setdefault(folder.id, []).append(card)
        return grouped

    @staticmethod
    def _note_fallback(label: str, result: "AgentResult[TaxonomyPlan]") -> None:
        if result.is_fallback:
            LOGGER.info("Using fallback %s: %s", label, getattr(result, "reason", ""))


__all__ = [
    "PlanGenerator",
    "BranchPlan",
    "TaxonomyOrchestrator",
    "prefix_plan",
    "merge_branches",
    "is_leaf_folder",
]
