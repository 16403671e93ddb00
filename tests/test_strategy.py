"""Tests for strategy selection."""

from __future__ import annotations

import pytest

from taxonomist.planner.strategy import select_strategy


def test_large_collection_uses_wide_three_level_strategy() -> None:
    strategy = select_strategy(5500)

    assert strategy.mode == "hierarchical"
    assert strategy.max_depth == 3
    assert strategy.top_level_folder_count == 12
    assert strategy.min_files_for_sub_level == 15
    assert strategy.min_files_for_third_level == 60


@pytest.mark.parametrize(
    ("file_count", "mode", "depth"),
    [
        (0, "single", 1),
        (599, "single", 1),
        (600, "hierarchical", 2),
        (1799, "hierarchical", 2),
        (1800, "hierarchical", 3),
        (3999, "hierarchical", 3),
        (4000, "hierarchical", 3),
    ],
)
def test_breakpoints(file_count: int, mode: str, depth: int) -> None:
    strategy = select_strategy(file_count)

    assert strategy.mode == mode
    assert strategy.max_depth == depth


def test_two_level_strategy_never_requests_third_level() -> None:
    assert select_strategy(1000).min_files_for_third_level == 0


def test_strategy_is_immutable() -> None:
    strategy = select_strategy(10)

    with pytest.raises(Exception):
        strategy.max_tags = 99  # type: ignore[misc]
