"""Summaries and tags for scanned files."""

from .engine import (
    ClassificationEngine,
    category_for_extension,
    describe_heuristically,
    heuristic_summary,
    heuristic_tags,
)
from .models import CardDescription, ClassificationBatch

__all__ = [
    "CardDescription",
    "ClassificationBatch",
    "ClassificationEngine",
    "category_for_extension",
    "describe_heuristically",
    "heuristic_summary",
    "heuristic_tags",
]
