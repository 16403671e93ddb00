"""Non-blocking quality checks for applied plans."""

from __future__ import annotations

import logging
from typing import Sequence

from .constants import BROAD_RULE_RATIO
from .matcher import compute_rule_match_counts, find_best_rule
from .models import FileCard, PlanDiagnostics, TaxonomyPlan

LOGGER = logging.getLogger(__name__)


def diagnose_plan(plan: TaxonomyPlan, cards: Sequence[FileCard]) -> PlanDiagnostics:
    """Compute and log quality metrics for ``plan`` over ``cards``.

    Unmatched files, overly broad rules (more than half the files) and overly
    narrow rules (a single file) are logged as warnings. A rule that still
    references a missing folder is logged as an error since repair should
    have removed it.
    """

    total = len(cards)
    folder_ids = {folder.id for folder in plan.folders}
    counts = compute_rule_match_counts(plan.rules, cards)
    unmatched = sum(1 for card in cards if find_best_rule(plan.rules, card) is None)
    unmatched_ratio = unmatched / total if total else 0.0

    if unmatched:
        LOGGER.warning(
            "%d files (%.1f%%) don't match any rule; they will be placed in /Other.",
            unmatched,
            unmatched_ratio * 100,
        )

    broad: list[str] = []
    narrow: list[str] = []
    dangling: list[str] = []
    for rule in plan.rules:
        count = counts.get(rule.id, 0)
        if total and count / total > BROAD_RULE_RATIO:
            broad.append(rule.id)
            LOGGER.warning(
                "Rule %r matches %d files (%.1f%%) and may be too broad.",
                rule.id,
                count,
                count / total * 100,
            )
        if count == 1:
            narrow.append(rule.id)
            LOGGER.warning("Rule %r matches only 1 file and may be too specific.", rule.id)
        if rule.target_folder_id not in folder_ids:
            dangling.append(rule.id)
            LOGGER.error(
                "Rule %r references missing folder %r after repair.",
                rule.id,
                rule.target_folder_id,
            )

    average = sum(counts.values()) / len(plan.rules) if plan.rules else 0.0
    LOGGER.info(
        "Plan diagnostics: %d folders, %d rules, avg %.1f matches per rule",
        len(plan.folders),
        len(plan.rules),
        average,
    )

    return PlanDiagnostics(
        total_files=total,
        unmatched_files=unmatched,
        unmatched_ratio=unmatched_ratio,
        broad_rules=broad,
        narrow_rules=narrow,
        dangling_rules=dangling,
        average_matches_per_rule=average,
    )


__all__ = ["diagnose_plan"]
