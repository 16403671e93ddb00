"""Confidence scoring for rule-based placements."""

from __future__ import annotations

from typing import Sequence, Tuple

from . import constants as c
from .matcher import specificity
from .models import PlacementRule


def priority_range(rules: Sequence[PlacementRule]) -> Tuple[float, float]:
    """Return ``(min, max)`` rule priority, or ``(0, 1)`` for a plan without rules."""
    if not rules:
        return 0.0, 1.0
    priorities = [rule.priority for rule in rules]
    return min(priorities), max(priorities)


def base_confidence(priority: float, min_priority: float, max_priority: float) -> float:
    """Map a rule priority onto ``[0.4, 0.95]`` relative to the plan's range."""
    if max_priority <= min_priority:
        return c.EQUAL_PRIORITY_BASE_CONFIDENCE
    normalized = (priority - min_priority) / (max_priority - min_priority)
    normalized = max(0.0, min(1.0, normalized))
    return c.MIN_BASE_CONFIDENCE + normalized * c.BASE_CONFIDENCE_RANGE


def specificity_multiplier(rule: PlacementRule) -> float:
    return c.SPECIFICITY_MULTIPLIER_BASE + specificity(rule) * c.SPECIFICITY_MULTIPLIER_SCALE


def match_quality_multiplier(match_quality: float) -> float:
    return c.MATCH_QUALITY_MULTIPLIER_BASE + match_quality * c.MATCH_QUALITY_MULTIPLIER_SCALE


def coverage_penalty(match_count: int, total_files: int) -> float:
    """Penalise rules that match more than half of the collection."""
    ratio = match_count / total_files if total_files > 0 else 0.0
    if ratio > c.COVERAGE_PENALTY_THRESHOLD:
        return c.COVERAGE_PENALTY_BASE + (1 - ratio) * c.COVERAGE_PENALTY_SCALE
    return 1.0


def rule_confidence(
    rule: PlacementRule,
    base: float,
    match_quality: float,
    match_count: int,
    total_files: int,
) -> float:
    """Combine priority, specificity, match quality, and coverage into one score.

    Args:
        rule: Rule that placed the file.
        base: Output of :func:`base_confidence` for the rule's priority.
        match_quality: Quality reported by the matcher.
        match_count: Number of files the rule matches across the collection.
        total_files: Size of the collection.

    Returns:
        float: Confidence clamped to ``[0.3, 0.98]``.
    """

    score = (
        base
        * specificity_multiplier(rule)
        * match_quality_multiplier(match_quality)
        * coverage_penalty(match_count, total_files)
    )
    return max(c.MIN_CONFIDENCE, min(c.MAX_CONFIDENCE, score))


def unmatched_confidence(min_priority: float, max_priority: float) -> float:
    """Confidence assigned to files that no rule matched."""
    return base_confidence(min_priority, min_priority, max_priority) * c.UNMATCHED_CONFIDENCE_FACTOR


__all__ = [
    "priority_range",
    "base_confidence",
    "specificity_multiplier",
    "match_quality_multiplier",
    "coverage_penalty",
    "rule_confidence",
    "unmatched_confidence",
]
