"""Tests for structural plan repair."""

from __future__ import annotations

import logging

import pytest

from taxonomist.planner.models import PlacementRule, TaxonomyPlan, VirtualFolderSpec
from taxonomist.planner.repair import find_fallback_folder, normalize_folder_path, repair_plan


def _plan(folders, rules) -> TaxonomyPlan:
    return TaxonomyPlan(
        folders=[VirtualFolderSpec(id=fid, path=path) for fid, path in folders],
        rules=[PlacementRule(id=rid, target_folder_id=target) for rid, target in rules],
    )


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Work", "/Work"),
        ("/Work/", "/Work"),
        ("  //Work//Invoices/ ", "/Work/Invoices"),
        ("Work\\Invoices", "/Work/Invoices"),
        ("", "/Other"),
        ("///", "/Other"),
    ],
)
def test_normalize_folder_path(raw: str, expected: str) -> None:
    assert normalize_folder_path(raw) == expected
    assert normalize_folder_path(expected) == expected


def test_case_mismatch_is_resolved(caplog: pytest.LogCaptureFixture) -> None:
    plan = _plan([("work", "/Work")], [("r1", "Work")])

    with caplog.at_level(logging.WARNING, logger="taxonomist.planner.repair"):
        repaired = repair_plan(plan)

    assert repaired.rules[0].target_folder_id == "work"
    assert "case-insensitively" in caplog.text


def test_unknown_target_prefers_other_folder() -> None:
    plan = _plan([("work", "/Work"), ("misc", "/Archive/Other")], [("r1", "ghost")])

    repaired = repair_plan(plan)

    assert repaired.rules[0].target_folder_id == "misc"


def test_unknown_target_falls_back_to_first_folder() -> None:
    plan = _plan([("work", "/Work"), ("home", "/Home")], [("r1", "ghost")])

    assert repair_plan(plan).rules[0].target_folder_id == "work"


def test_plan_without_folders_gets_fallback_folder_and_catch_all() -> None:
    plan = _plan([], [("r1", "ghost")])

    repaired = repair_plan(plan)

    assert [(folder.id, folder.path) for folder in repaired.folders] == [("other", "/Other")]
    assert [rule.target_folder_id for rule in repaired.rules] == ["other", "other"]
    assert repaired.rules[-1].id == "other-catch-all"


def test_duplicate_folder_ids_keep_first() -> None:
    plan = _plan([("work", "Work/"), ("work", "/Jobs")], [("r1", "work")])

    repaired = repair_plan(plan)

    assert [(folder.id, folder.path) for folder in repaired.folders] == [("work", "/Work")]


def test_repair_is_idempotent() -> None:
    plan = _plan(
        [("work", "Work//Invoices/"), ("work", "/Dup"), ("home", "home")],
        [("r1", "WORK"), ("r2", "ghost"), ("r3", "home")],
    )

    once = repair_plan(plan)
    twice = repair_plan(once)

    assert twice == once


def test_repair_of_empty_plan_is_empty() -> None:
    assert repair_plan(TaxonomyPlan()) == TaxonomyPlan()


def test_repair_does_not_mutate_input() -> None:
    plan = _plan([("work", "Work")], [("r1", "WORK")])

    repair_plan(plan)

    assert plan.folders[0].path == "Work"
    assert plan.rules[0].target_folder_id == "WORK"


def test_find_fallback_folder_without_folders() -> None:
    assert find_fallback_folder([]) is None
