"""Merging collaborator feedback into plans and placements."""

from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, List, Sequence, Set, Tuple

from .models import (
    FileCard,
    OptimizationOutcome,
    OptimizerFolder,
    PlannerOutput,
    TaxonomyPlan,
    ValidationResult,
    VirtualFolderSpec,
)
from .repair import normalize_folder_path

LOGGER = logging.getLogger(__name__)

OPTIMIZER_FOLDER_PREFIX = "optimizer-"
RECONSTRUCTED_FOLDER_PREFIX = "folder-"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    """Return a lower-case, dash-separated identifier fragment for ``value``."""
    slug = _NON_ALNUM.sub("-", value.lower()).strip("-")
    return slug or "folder"


def _unique_id(base: str, taken: Set[str]) -> str:
    candidate = base
    counter = 2
    while candidate in taken:
        candidate = f"{base}-{counter}"
        counter += 1
    taken.add(candidate)
    return candidate


def apply_corrections(plan: TaxonomyPlan, result: ValidationResult) -> TaxonomyPlan:
    """Replace folders and rules in ``plan`` with the validator's corrections.

    Items whose id appears in the corrections are dropped from their original
    position; corrected items are appended after the untouched ones.
    """

    corrected_folder_ids = {folder.id for folder in result.corrected_folders}
    corrected_rule_ids = {rule.id for rule in result.corrected_rules}
    folders = [folder for folder in plan.folders if folder.id not in corrected_folder_ids]
    folders.extend(result.corrected_folders)
    rules = [rule for rule in plan.rules if rule.id not in corrected_rule_ids]
    rules.extend(result.corrected_rules)
    return TaxonomyPlan(folders=folders, rules=rules)


def repair_optimized_path(virtual_path: str, file_name: str) -> str:
    """Normalize an optimizer path and make sure it ends with ``file_name``."""
    path = normalize_folder_path(virtual_path)
    if path == f"/{file_name}" or path.endswith(f"/{file_name}"):
        return path
    return f"{path}/{file_name}"


def merge_new_folders(
    plan: TaxonomyPlan, new_folders: Iterable[OptimizerFolder]
) -> TaxonomyPlan:
    """Append optimizer folders whose normalized path is not already in ``plan``."""
    folders = list(plan.folders)
    known_paths = {folder.path for folder in folders}
    taken_ids = {folder.id for folder in folders}
    for proposed in new_folders:
        path = normalize_folder_path(proposed.path)
        if path in known_paths:
            continue
        folder_id = _unique_id(OPTIMIZER_FOLDER_PREFIX + slugify(path), taken_ids)
        folders.append(
            VirtualFolderSpec(
                id=folder_id, path=path, description=proposed.description
            )
        )
        known_paths.add(path)
        LOGGER.info("Optimizer added folder %s", path)
    return TaxonomyPlan(folders=folders, rules=list(plan.rules))


def merge_optimization(
    plan: TaxonomyPlan,
    outputs: Sequence[PlannerOutput],
    cards_by_id: Dict[str, FileCard],
    requested_ids: Set[str],
    outcome: OptimizationOutcome,
) -> Tuple[TaxonomyPlan, List[PlannerOutput], List[str]]:
    """Fold an optimizer outcome into ``plan`` and ``outputs``.

    Only placements for files that were actually sent to the optimizer are
    used; each one fully replaces the existing output for that file. The
    original ordering of ``outputs`` is preserved.

    Returns:
        tuple: The extended plan, the updated outputs, and the ids that changed.
    """

    merged_plan = merge_new_folders(plan, outcome.new_folders)
    replacements: Dict[str, PlannerOutput] = {}
    current_by_id = {output.file_id: output for output in outputs}

    for placement in outcome.placements:
        if placement.file_id not in requested_ids or placement.file_id in replacements:
            continue
        card = cards_by_id.get(placement.file_id)
        current = current_by_id.get(placement.file_id)
        if card is None or current is None:
            continue
        replacements[placement.file_id] = PlannerOutput(
            file_id=placement.file_id,
            virtual_path=repair_optimized_path(placement.virtual_path, card.name),
            tags=list(current.tags),
            confidence=placement.confidence,
            reason=placement.reason,
        )

    merged = [replacements.get(output.file_id, output) for output in outputs]
    # Echoed placements replace nothing observable and are not reported.
    changed = [
        output.file_id
        for output in outputs
        if output.file_id in replacements and replacements[output.file_id] != output
    ]
    return merged_plan, merged, changed


def reconstruct_plan_from_placements(placements: Iterable[PlannerOutput]) -> TaxonomyPlan:
    """Approximate a plan from persisted placements: one folder per parent path, no rules."""
    folders: List[VirtualFolderSpec] = []
    seen_paths: Set[str] = set()
    taken_ids: Set[str] = set()
    for placement in placements:
        parent, _, _ = placement.virtual_path.rpartition("/")
        path = normalize_folder_path(parent)
        if path in seen_paths:
            continue
        seen_paths.add(path)
        folders.append(
            VirtualFolderSpec(
                id=_unique_id(RECONSTRUCTED_FOLDER_PREFIX + slugify(path), taken_ids),
                path=path,
            )
        )
    return TaxonomyPlan(folders=folders, rules=[])


__all__ = [
    "apply_corrections",
    "merge_new_folders",
    "merge_optimization",
    "reconstruct_plan_from_placements",
    "repair_optimized_path",
    "slugify",
]
