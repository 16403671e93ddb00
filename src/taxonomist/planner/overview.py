"""Aggregate collection statistics handed to plan-generation agents."""

from __future__ import annotations

import re
from collections import Counter
from typing import Dict, Iterable, List, Sequence, Tuple

from .models import FileCard, PatternCount, TagCount, TagSample, TaxonomyOverview

DEFAULT_MAX_TAGS = 50
DEFAULT_SAMPLES_PER_TAG = 20
MAX_PATH_PATTERNS = 50
PATH_PATTERN_DEPTH = 3

_SEPARATORS = re.compile(r"[/\\]+")


def _clean_tags(tags: Iterable[str]) -> List[str]:
    seen: List[str] = []
    for raw in tags:
        tag = raw.strip().lower()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def _path_pattern(card: FileCard) -> str:
    location = card.relative_path or card.path
    segments = [segment for segment in _SEPARATORS.split(location) if segment]
    return "/".join(segments[:PATH_PATTERN_DEPTH])


def _ranked(counts: Counter) -> List[Tuple[str, int]]:
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))


def build_overview(
    source_id: str,
    cards: Sequence[FileCard],
    *,
    max_tags: int = DEFAULT_MAX_TAGS,
    samples_per_tag: int = DEFAULT_SAMPLES_PER_TAG,
) -> TaxonomyOverview:
    """Summarise ``cards`` for a plan-generation prompt.

    Args:
        source_id: Identifier of the collection being planned.
        cards: File cards to summarise.
        max_tags: Maximum number of tags listed in ``top_tags``.
        samples_per_tag: Maximum number of sample cards per top tag.

    Returns:
        TaxonomyOverview: Extension, year, tag, and path statistics plus samples.
    """

    by_extension: Counter = Counter()
    by_year: Counter = Counter()
    tag_counts: Counter = Counter()
    pattern_counts: Counter = Counter()
    cards_by_tag: Dict[str, List[FileCard]] = {}

    for card in cards:
        extension = card.extension.lower()
        if extension:
            by_extension[extension] += 1

        if card.mtime is not None and 1970 < card.mtime.year < 2100:
            by_year[card.mtime.year] += 1

        for tag in _clean_tags(card.tags):
            tag_counts[tag] += 1
            bucket = cards_by_tag.setdefault(tag, [])
            if len(bucket) < samples_per_tag:
                bucket.append(card)

        pattern = _path_pattern(card)
        if pattern:
            pattern_counts[pattern] += 1

    top_tags = [TagCount(tag=tag, count=count) for tag, count in _ranked(tag_counts)[:max_tags]]
    top_patterns = [
        PatternCount(pattern=pattern, count=count)
        for pattern, count in _ranked(pattern_counts)[:MAX_PATH_PATTERNS]
    ]
    samples = [
        TagSample(tag=entry.tag, files=cards_by_tag[entry.tag])
        for entry in top_tags
        if cards_by_tag.get(entry.tag)
    ]

    return TaxonomyOverview(
        source_id=source_id,
        file_count=len(cards),
        by_extension=dict(by_extension),
        by_year=dict(sorted(by_year.items())),
        top_tags=top_tags,
        top_path_patterns=top_patterns,
        samples=samples,
    )


def sub_level_sample_size(samples_per_tag: int, branch_size: int) -> int:
    """Return how many samples per tag a branch overview should carry."""
    return min(samples_per_tag, max(5, branch_size // 10))


__all__ = ["build_overview", "sub_level_sample_size", "DEFAULT_MAX_TAGS", "DEFAULT_SAMPLES_PER_TAG"]
