"""Deterministic application of a repaired plan to file cards."""

from __future__ import annotations

from typing import List, Sequence

from .confidence import base_confidence, priority_range, rule_confidence, unmatched_confidence
from .constants import FALLBACK_FOLDER_PATH, FALLBACK_REASON
from .matcher import compute_rule_match_counts, find_best_rule
from .models import FileCard, PlannerOutput, TaxonomyPlan


def join_virtual_path(folder_path: str, file_name: str) -> str:
    """Join a folder path and a file name with exactly one separator."""
    return f"{folder_path.rstrip('/')}/{file_name.lstrip('/')}"


def apply_plan(plan: TaxonomyPlan, cards: Sequence[FileCard]) -> List[PlannerOutput]:
    """Place every card using the best matching rule of ``plan``.

    Outputs keep the order of ``cards``. Cards that no rule matches land in
    ``/Other`` with a reduced confidence.

    Args:
        plan: Repaired plan whose rules all target existing folders.
        cards: File cards to place.

    Returns:
        list[PlannerOutput]: One placement per card.
    """

    folders_by_id = {folder.id: folder for folder in plan.folders}
    min_priority, max_priority = priority_range(plan.rules)
    match_counts = compute_rule_match_counts(plan.rules, cards)
    total = len(cards)

    outputs: List[PlannerOutput] = []
    for card in cards:
        best = find_best_rule(plan.rules, card)
        folder = folders_by_id.get(best.rule.target_folder_id) if best else None
        folder_path = folder.path if folder is not None else FALLBACK_FOLDER_PATH

        if best is not None:
            base = base_confidence(best.rule.priority, min_priority, max_priority)
            confidence = rule_confidence(
                best.rule, base, best.match_quality, match_counts.get(best.rule.id, 0), total
            )
            template = best.rule.reason_template.strip()
        else:
            confidence = unmatched_confidence(min_priority, max_priority)
            template = ""

        outputs.append(
            PlannerOutput(
                file_id=card.file_id,
                virtual_path=join_virtual_path(folder_path, card.name),
                tags=list(card.tags),
                confidence=confidence,
                reason=f"{template or FALLBACK_REASON} → {folder_path}",
            )
        )
    return outputs


__all__ = ["apply_plan", "join_virtual_path"]
