"""Deterministic evaluation of placement rules against file cards."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from .constants import NEUTRAL_MATCH_QUALITY, SPECIFICITY_CONDITION_GROUPS, SPECIFICITY_TIE_WEIGHT
from .models import FileCard, PlacementRule, VirtualFolderSpec


@dataclass(frozen=True, slots=True)
class RuleMatch:
    """Outcome of evaluating a rule against a card."""

    matches: bool
    match_quality: float


@dataclass(frozen=True, slots=True)
class BestRule:
    """Winning rule for a card together with its match quality."""

    rule: PlacementRule
    match_quality: float


_NO_MATCH = RuleMatch(matches=False, match_quality=0.0)


def _lowered(values: Optional[Iterable[str]]) -> List[str]:
    return [str(value).lower() for value in values or ()]


def _condition_groups(rule: PlacementRule) -> List[Optional[List[str]]]:
    return [
        rule.required_tags,
        rule.forbidden_tags,
        rule.path_contains,
        rule.extension_in,
        rule.summary_contains_any,
    ]


def matches(rule: PlacementRule, card: FileCard) -> RuleMatch:
    """Evaluate ``rule`` against ``card``.

    Condition groups are checked in a fixed order and evaluation stops at the
    first group that fails. Comparisons are case-insensitive. A rule with no
    conditions matches everything with a neutral quality of 0.5.

    Args:
        rule: Rule to evaluate.
        card: File card to test.

    Returns:
        RuleMatch: Whether the rule matched and the resulting match quality.
    """

    tags = set(_lowered(card.tags))
    path = (card.relative_path or card.path).lower()
    extension = card.extension.lower()
    summary = (card.summary or "").lower()

    checked = 0
    matched = 0

    if rule.required_tags:
        checked += 1
        if not all(tag in tags for tag in _lowered(rule.required_tags)):
            return _NO_MATCH
        matched += 1

    if rule.forbidden_tags:
        checked += 1
        if any(tag in tags for tag in _lowered(rule.forbidden_tags)):
            return _NO_MATCH
        matched += 1

    if rule.path_contains:
        checked += 1
        if not any(needle and needle in path for needle in _lowered(rule.path_contains)):
            return _NO_MATCH
        matched += 1

    if rule.extension_in:
        checked += 1
        if extension not in _lowered(rule.extension_in):
            return _NO_MATCH
        matched += 1

    if rule.summary_contains_any:
        checked += 1
        if not any(
            needle and needle in summary for needle in _lowered(rule.summary_contains_any)
        ):
            return _NO_MATCH
        matched += 1

    if checked == 0:
        return RuleMatch(matches=True, match_quality=NEUTRAL_MATCH_QUALITY)
    return RuleMatch(matches=True, match_quality=matched / checked)


def specificity(rule: PlacementRule) -> float:
    """Return the share of condition groups the rule uses, capped at 1."""
    count = sum(1 for group in _condition_groups(rule) if group)
    return min(1.0, count / SPECIFICITY_CONDITION_GROUPS)


def find_best_rule(rules: Sequence[PlacementRule], card: FileCard) -> Optional[BestRule]:
    """Return the matching rule with the highest ``priority + specificity * 10``.

    Ties keep the earliest rule in ``rules``. Returns ``None`` when nothing matches.
    """

    best: Optional[BestRule] = None
    best_score = 0.0
    for rule in rules:
        result = matches(rule, card)
        if not result.matches:
            continue
        score = rule.priority + specificity(rule) * SPECIFICITY_TIE_WEIGHT
        if best is None or score > best_score:
            best = BestRule(rule=rule, match_quality=result.match_quality)
            best_score = score
    return best


def get_file_assignments(
    rules: Sequence[PlacementRule],
    folders: Sequence[VirtualFolderSpec],
    cards: Iterable[FileCard],
) -> Dict[str, VirtualFolderSpec]:
    """Map each card's ``file_id`` to the folder its best rule targets.

    Cards with no matching rule, or whose rule targets an unknown folder, are
    left out of the mapping.
    """
    folders_by_id = {folder.id: folder for folder in folders}
    assignments: Dict[str, VirtualFolderSpec] = {}
    for card in cards:
        best = find_best_rule(rules, card)
        if best is None:
            continue
        folder = folders_by_id.get(best.rule.target_folder_id)
        if folder is not None:
            assignments[card.file_id] = folder
    return assignments


def compute_rule_match_counts(
    rules: Sequence[PlacementRule], cards: Sequence[FileCard]
) -> Dict[str, int]:
    """Count how many cards each rule matches, independently of rule competition."""
    counts: Dict[str, int] = {}
    for rule in rules:
        counts[rule.id] = sum(1 for card in cards if matches(rule, card).matches)
    return counts


__all__ = [
    "RuleMatch",
    "BestRule",
    "matches",
    "specificity",
    "find_best_rule",
    "get_file_assignments",
    "compute_rule_match_counts",
]
