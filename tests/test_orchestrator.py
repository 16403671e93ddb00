"""Tests for hierarchical plan generation."""

from __future__ import annotations

import asyncio
from typing import List, Tuple

from taxonomist.agents.results import Fallback, Ok
from taxonomist.planner.models import (
    PlacementRule,
    TaxonomyOverview,
    TaxonomyPlan,
    TaxonomyStrategy,
    VirtualFolderSpec,
)
from taxonomist.planner.orchestrator import (
    BranchPlan,
    TaxonomyOrchestrator,
    is_leaf_folder,
    merge_branches,
    prefix_plan,
)
from taxonomist.planner.strategy import select_strategy


class FakeGenerator:
    """Plan generator that splits files on a ``work``/``personal`` tag."""

    def __init__(self, *, delay: float = 0.0) -> None:
        self.delay = delay
        self.full_calls = 0
        self.top_calls: List[TaxonomyStrategy] = []
        self.sub_calls: List[Tuple[str, str, int]] = []
        self.in_flight = 0
        self.peak = 0

    async def generate_plan(self, overview: TaxonomyOverview):
        self.full_calls += 1
        return Ok(
            TaxonomyPlan(
                folders=[VirtualFolderSpec(id="docs", path="/Documents")],
                rules=[PlacementRule(id="r-docs", target_folder_id="docs")],
            )
        )

    async def generate_top_level_plan(self, overview: TaxonomyOverview, strategy):
        self.top_calls.append(strategy)
        return Ok(
            TaxonomyPlan(
                folders=[
                    VirtualFolderSpec(id="work", path="/Work"),
                    VirtualFolderSpec(id="personal", path="/Personal"),
                ],
                rules=[
                    PlacementRule(
                        id="r-work", target_folder_id="work", required_tags=["work"], priority=50
                    ),
                    PlacementRule(
                        id="r-personal",
                        target_folder_id="personal",
                        required_tags=["personal"],
                        priority=50,
                    ),
                ],
            )
        )

    async def generate_sub_level_plan(
        self, overview: TaxonomyOverview, parent_path: str, parent_folder_id: str
    ):
        self.sub_calls.append((parent_path, parent_folder_id, overview.file_count))
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
        tag = parent_folder_id.split("--")[0]
        return Ok(
            TaxonomyPlan(
                folders=[VirtualFolderSpec(id="all", path=f"{parent_path}/All")],
                rules=[
                    PlacementRule(
                        id="rule", target_folder_id="ALL", required_tags=[tag], priority=60
                    )
                ],
            )
        )


def _split_cards(make_card, work: int, personal: int):
    cards = [make_card(f"w{index}", tags=["work"]) for index in range(work)]
    cards.extend(make_card(f"p{index}", tags=["personal"]) for index in range(personal))
    return cards


def test_single_mode_makes_one_call(make_card) -> None:
    generator = FakeGenerator()
    cards = [make_card(str(index)) for index in range(10)]

    plan = asyncio.run(TaxonomyOrchestrator(generator).run(cards, select_strategy(len(cards))))

    assert generator.full_calls == 1
    assert generator.top_calls == []
    assert generator.sub_calls == []
    assert [folder.id for folder in plan.folders] == ["docs"]


def test_two_level_plan_namespaces_sub_plans(make_card) -> None:
    generator = FakeGenerator()
    cards = _split_cards(make_card, 400, 300)

    plan = asyncio.run(
        TaxonomyOrchestrator(generator).run(cards, select_strategy(len(cards)), source_id="src")
    )

    assert len(generator.top_calls) == 1
    assert sorted(generator.sub_calls) == [
        ("/Personal", "personal", 300),
        ("/Work", "work", 400),
    ]
    folder_ids = [folder.id for folder in plan.folders]
    assert folder_ids[:2] == ["work", "personal"]
    assert set(folder_ids[2:]) == {"work--all", "personal--all"}
    assert len(folder_ids) == len(set(folder_ids))

    rules = {rule.id: rule for rule in plan.rules}
    assert set(rules) == {"work--rule", "personal--rule"}
    assert rules["work--rule"].target_folder_id == "work--all"
    assert rules["personal--rule"].target_folder_id == "personal--all"
    assert plan.folder_by_id("work--all").path == "/Work/All"


def test_sub_level_branches_run_concurrently(make_card) -> None:
    generator = FakeGenerator(delay=0.02)

    cards = _split_cards(make_card, 400, 300)

    asyncio.run(TaxonomyOrchestrator(generator).run(cards, select_strategy(len(cards))))

    assert generator.peak > 1


def test_small_branches_are_not_expanded(make_card) -> None:
    generator = FakeGenerator()
    cards = _split_cards(make_card, 690, 10)

    plan = asyncio.run(TaxonomyOrchestrator(generator).run(cards, select_strategy(len(cards))))

    assert [call[1] for call in generator.sub_calls] == ["work"]
    assert any(rule.id == "r-personal" for rule in plan.rules)
    assert not any(rule.id == "r-work" for rule in plan.rules)


def test_three_level_plan_expands_leaf_folders(make_card) -> None:
    generator = FakeGenerator()
    cards = _split_cards(make_card, 1200, 800)

    plan = asyncio.run(TaxonomyOrchestrator(generator).run(cards, select_strategy(len(cards))))

    parents = [call[1] for call in generator.sub_calls]
    assert sorted(parents) == ["personal", "personal--all", "work", "work--all"]
    third = plan.folder_by_id("work--all--all")
    assert third is not None
    assert third.path == "/Work/All/All"
    assert {rule.id for rule in plan.rules} == {"work--all--rule", "personal--all--rule"}


def test_fallback_results_are_used_as_is(make_card) -> None:
    class FallbackGenerator(FakeGenerator):
        async def generate_plan(self, overview):
            return Fallback(TaxonomyPlan(), "no model")

    plan = asyncio.run(
        TaxonomyOrchestrator(FallbackGenerator()).run([make_card("a")], select_strategy(1))
    )

    assert plan == TaxonomyPlan()


def test_prefix_plan_resolves_targets_case_insensitively() -> None:
    plan = TaxonomyPlan(
        folders=[VirtualFolderSpec(id="Invoices", path="/Work/Invoices")],
        rules=[
            PlacementRule(id="a", target_folder_id="invoices"),
            PlacementRule(id="b", target_folder_id="Invoices"),
            PlacementRule(id="c", target_folder_id="ghost"),
        ],
    )

    prefixed = prefix_plan(plan, "work")

    assert [folder.id for folder in prefixed.folders] == ["work--Invoices"]
    assert prefixed.folders[0].path == "/Work/Invoices"
    assert [rule.target_folder_id for rule in prefixed.rules] == [
        "work--Invoices",
        "work--Invoices",
        "work--ghost",
    ]
    assert [rule.id for rule in prefixed.rules] == ["work--a", "work--b", "work--c"]


def test_merge_branches_replaces_parent_rules() -> None:
    parent = VirtualFolderSpec(id="work", path="/Work")
    plan = TaxonomyPlan(
        folders=[parent, VirtualFolderSpec(id="home", path="/Home")],
        rules=[
            PlacementRule(id="r-work", target_folder_id="work"),
            PlacementRule(id="r-home", target_folder_id="home"),
        ],
    )
    branch = BranchPlan(
        parent=parent,
        plan=TaxonomyPlan(
            folders=[VirtualFolderSpec(id="work--a", path="/Work/A")],
            rules=[PlacementRule(id="work--r", target_folder_id="work--a")],
        ),
    )

    merged = merge_branches(plan, [branch])

    assert [folder.id for folder in merged.folders] == ["work", "home", "work--a"]
    assert [rule.id for rule in merged.rules] == ["r-home", "work--r"]


def test_is_leaf_folder() -> None:
    folders = [
        VirtualFolderSpec(id="a", path="/Work"),
        VirtualFolderSpec(id="b", path="/Work/All"),
        VirtualFolderSpec(id="c", path="/Workshop"),
    ]

    assert is_leaf_folder("/Work", folders) is False
    assert is_leaf_folder("/Work/All", folders) is True
    assert is_leaf_folder("/Workshop", folders) is True
