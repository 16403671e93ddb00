"""Select a taxonomy generation strategy from the collection size."""

from __future__ import annotations

from .models import TaxonomyStrategy

SMALL_COLLECTION = 600
MEDIUM_COLLECTION = 1800
LARGE_COLLECTION = 4000

_SINGLE = TaxonomyStrategy(
    mode="single",
    max_depth=1,
    top_level_folder_count=0,
    min_files_for_sub_level=0,
    min_files_for_third_level=0,
    max_tags=30,
    samples_per_tag=15,
)
_TWO_LEVEL = TaxonomyStrategy(
    mode="hierarchical",
    max_depth=2,
    top_level_folder_count=6,
    min_files_for_sub_level=25,
    min_files_for_third_level=0,
    max_tags=50,
    samples_per_tag=20,
)
_THREE_LEVEL = TaxonomyStrategy(
    mode="hierarchical",
    max_depth=3,
    top_level_folder_count=8,
    min_files_for_sub_level=20,
    min_files_for_third_level=80,
    max_tags=60,
    samples_per_tag=25,
)
_THREE_LEVEL_WIDE = TaxonomyStrategy(
    mode="hierarchical",
    max_depth=3,
    top_level_folder_count=12,
    min_files_for_sub_level=15,
    min_files_for_third_level=60,
    max_tags=80,
    samples_per_tag=20,
)


def select_strategy(file_count: int) -> TaxonomyStrategy:
    """Return the generation strategy for a collection of ``file_count`` files.

    Small collections are planned in a single pass; larger ones are planned
    top-down with two or three levels and richer overview sampling.
    """

    if file_count < SMALL_COLLECTION:
        return _SINGLE
    if file_count < MEDIUM_COLLECTION:
        return _TWO_LEVEL
    if file_count < LARGE_COLLECTION:
        return _THREE_LEVEL
    return _THREE_LEVEL_WIDE


__all__ = ["select_strategy", "SMALL_COLLECTION", "MEDIUM_COLLECTION", "LARGE_COLLECTION"]
