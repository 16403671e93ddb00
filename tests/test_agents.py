"""Tests for language-model agents and response parsing."""

from __future__ import annotations

import asyncio
import json
import threading
import time
from typing import List

import pytest

from taxonomist.agents import (
    OptimizerAgent,
    TaxonomyAgent,
    ValidationAgent,
    build_json_program,
    build_trivial_plan,
    call_program,
)
from taxonomist.agents.parsing import load_json_object, parse_plan, repair_json, strip_fences
from taxonomist.config.models import LLMSettings
from taxonomist.planner.models import (
    PlannerOutput,
    TaxonomyOverview,
    TaxonomyPlan,
    VirtualFolderSpec,
)
from taxonomist.planner.strategy import select_strategy
from taxonomist.workers import WorkerPool

PLAN_RESPONSE = json.dumps(
    {
        "folders": [
            {"id": "invoices", "path": "Finance/Invoices/", "description": "Bills"},
            {"id": "photos", "path": "/Media/Photos"},
        ],
        "rules": [
            {
                "id": "r1",
                "targetFolderId": "invoices",
                "requiredTags": ["invoice"],
                "extensionIn": [".PDF"],
                "priority": 90,
                "reasonTemplate": "Invoices",
            },
            {"id": "r2", "targetFolderId": "photos", "priority": "high"},
        ],
    }
)


def _respond(text: str):
    def program(instructions: str, payload: str) -> str:
        return text

    return program


def _overview() -> TaxonomyOverview:
    return TaxonomyOverview(source_id="src", file_count=3)


def test_strip_fences_and_repair() -> None:
    assert strip_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert repair_json('{"a": [1, 2,], }') == '{"a": [1, 2] }'
    assert repair_json('{"a": "line\nbreak"}') == '{"a": "line break"}'


def test_load_json_object_extracts_embedded_object() -> None:
    assert load_json_object('Sure! Here it is: {"a": 1} Hope that helps.') == {"a": 1}
    assert load_json_object("no json here") is None
    assert load_json_object("") is None
    assert load_json_object("{not json at all}") is None


def test_parse_plan_normalizes_fields() -> None:
    plan = parse_plan(f"```json\n{PLAN_RESPONSE}\n```")

    assert plan is not None
    assert [folder.path for folder in plan.folders] == ["/Finance/Invoices", "/Media/Photos"]
    first, second = plan.rules
    assert first.target_folder_id == "invoices"
    assert first.extension_in == ["pdf"]
    assert first.priority == 90
    assert second.priority == 0.0


def test_parse_plan_skips_invalid_items() -> None:
    text = json.dumps(
        {
            "folders": [{"id": "ok", "path": "/Ok"}, {"path": "/NoId"}],
            "rules": [{"id": "r"}, {"id": "r2", "targetFolderId": "ok"}],
        }
    )

    plan = parse_plan(text)

    assert plan is not None
    assert [folder.id for folder in plan.folders] == ["ok"]
    assert [rule.id for rule in plan.rules] == ["r2"]


def test_taxonomy_agent_parses_fenced_response() -> None:
    agent = TaxonomyAgent(_respond(f"```json\n{PLAN_RESPONSE}\n```"))

    result = asyncio.run(agent.generate_plan(_overview()))

    assert result.is_fallback is False
    assert [folder.id for folder in result.value.folders] == ["invoices", "photos"]


def test_taxonomy_agent_repairs_trailing_commas() -> None:
    text = '{"folders": [{"id": "a", "path": "A"},], "rules": [],}'

    result = asyncio.run(TaxonomyAgent(_respond(text)).generate_plan(_overview()))

    assert result.is_fallback is False
    assert result.value.folders == [VirtualFolderSpec(id="a", path="/A")]


@pytest.mark.parametrize(
    "response",
    ["this is not json", '{"folders": [], "rules": []}', ""],
)
def test_taxonomy_agent_falls_back_to_trivial_plan(response: str) -> None:
    result = asyncio.run(TaxonomyAgent(_respond(response)).generate_plan(_overview()))

    assert result.is_fallback is True
    assert result.value == build_trivial_plan()
    assert result.reason


def test_taxonomy_agent_without_program_falls_back() -> None:
    agent = TaxonomyAgent(None)

    result = asyncio.run(agent.generate_top_level_plan(_overview(), select_strategy(1000)))

    assert agent.available is False
    assert result.is_fallback is True
    assert result.value.folders[0].path == "/All Files"
    assert result.reason == "no language model configured"


def test_taxonomy_agent_failure_falls_back() -> None:
    def broken(instructions: str, payload: str) -> str:
        raise RuntimeError("connection refused")

    result = asyncio.run(
        TaxonomyAgent(broken).generate_sub_level_plan(_overview(), "/Work", "work")
    )

    assert result.is_fallback is True
    assert "connection refused" in result.reason


def test_call_program_times_out() -> None:
    def slow(instructions: str, payload: str) -> str:
        time.sleep(0.3)
        return "{}"

    result = asyncio.run(
        call_program(slow, WorkerPool(1), "do it", "{}", label="slow call", timeout_seconds=0.05)
    )

    assert result.is_fallback is True
    assert "timed out" in result.reason


def test_sub_level_instructions_name_parent() -> None:
    seen: List[str] = []

    def program(instructions: str, payload: str) -> str:
        seen.append(instructions)
        seen.append(payload)
        return PLAN_RESPONSE

    asyncio.run(TaxonomyAgent(program).generate_sub_level_plan(_overview(), "/Work", "work"))

    assert "/Work" in seen[0]
    assert json.loads(seen[1])["parentFolderId"] == "work"


def test_validation_agent_reads_camel_case_keys() -> None:
    response = json.dumps(
        {
            "issues": [
                {
                    "type": "overlap",
                    "severity": "warning",
                    "description": "Two folders overlap",
                    "affectedFolderIds": ["a", "b"],
                }
            ],
            "correctedFolders": [{"id": "a", "path": "/A"}],
            "correctedRules": [{"id": "r", "targetFolderId": "a", "requiredTags": ["x"]}],
            "filesNeedingOptimization": [{"fileId": "f1", "reason": "ambiguous"}],
        }
    )

    result = asyncio.run(
        ValidationAgent(_respond(response)).validate(TaxonomyPlan(), _overview(), [])
    )

    assert result.is_fallback is False
    verdict = result.value
    assert verdict.issues[0].affected_folder_ids == ["a", "b"]
    assert verdict.corrected_rules[0].required_tags == ["x"]
    assert verdict.files_needing_optimization[0].file_id == "f1"
    assert verdict.has_changes is True


def test_validation_agent_fallback_is_empty() -> None:
    result = asyncio.run(ValidationAgent(None).validate(TaxonomyPlan(), _overview(), []))

    assert result.is_fallback is True
    assert result.value.has_changes is False
    assert result.value.files_needing_optimization == []


def _items(make_card, count: int):
    return [
        (
            make_card(f"f{index}"),
            PlannerOutput(
                file_id=f"f{index}", virtual_path=f"/Other/f{index}.txt", confidence=0.3
            ),
        )
        for index in range(count)
    ]


def _optimizer_program(fail_for: str = "", confidence: object = 0.9):
    lock = threading.Lock()
    batches: List[List[str]] = []

    def program(instructions: str, payload: str) -> str:
        ids = [entry["fileId"] for entry in json.loads(payload)["files"]]
        with lock:
            batches.append(ids)
        if fail_for and fail_for in ids:
            raise RuntimeError("batch failed")
        return json.dumps(
            {
                "optimizations": [
                    {
                        "fileId": file_id,
                        "virtualPath": f"/Sorted/{file_id}.txt",
                        "confidence": confidence,
                        "reason": "fits",
                    }
                    for file_id in ids
                ]
                + [{"fileId": "intruder", "virtualPath": "/X", "confidence": 0.9}],
                "newFolders": [{"path": "Sorted"}, {"path": "/Sorted/"}],
            }
        )

    return program, batches


def test_optimizer_batches_and_merges(make_card) -> None:
    program, batches = _optimizer_program()
    agent = OptimizerAgent(program, batch_size=2)

    result = asyncio.run(agent.optimize(TaxonomyPlan(), _items(make_card, 5)))

    assert sorted(len(batch) for batch in batches) == [1, 2, 2]
    assert result.is_fallback is False
    ids = sorted(placement.file_id for placement in result.value.placements)
    assert ids == ["f0", "f1", "f2", "f3", "f4"]
    assert [folder.path for folder in result.value.new_folders] == ["Sorted"]


def test_optimizer_partial_failure_echoes_failed_batch(make_card) -> None:
    program, _ = _optimizer_program(fail_for="f2")
    agent = OptimizerAgent(program, batch_size=2)

    result = asyncio.run(agent.optimize(TaxonomyPlan(), _items(make_card, 4)))

    assert result.is_fallback is False
    by_id = {placement.file_id: placement for placement in result.value.placements}
    assert by_id["f0"].virtual_path == "/Sorted/f0.txt"
    assert by_id["f2"].virtual_path == "/Other/f2.txt"
    assert by_id["f3"].virtual_path == "/Other/f3.txt"


def test_optimizer_total_failure_is_fallback(make_card) -> None:
    def broken(instructions: str, payload: str) -> str:
        raise RuntimeError("down")

    result = asyncio.run(OptimizerAgent(broken).optimize(TaxonomyPlan(), _items(make_card, 3)))

    assert result.is_fallback is True
    assert [placement.virtual_path for placement in result.value.placements] == [
        "/Other/f0.txt",
        "/Other/f1.txt",
        "/Other/f2.txt",
    ]


def test_optimizer_clamps_confidence(make_card) -> None:
    program, _ = _optimizer_program(confidence=7)

    result = asyncio.run(OptimizerAgent(program).optimize(TaxonomyPlan(), _items(make_card, 1)))

    assert result.value.placements[0].confidence == 1.0


def test_optimizer_skipped_files_keep_placement(make_card) -> None:
    response = json.dumps({"optimizations": [], "newFolders": []})

    result = asyncio.run(
        OptimizerAgent(_respond(response)).optimize(TaxonomyPlan(), _items(make_card, 2))
    )

    assert [placement.virtual_path for placement in result.value.placements] == [
        "/Other/f0.txt",
        "/Other/f1.txt",
    ]


def test_optimizer_rejects_invalid_batch_size() -> None:
    with pytest.raises(ValueError):
        OptimizerAgent(None, batch_size=0)


def test_optimizer_with_no_items() -> None:
    result = asyncio.run(OptimizerAgent(None).optimize(TaxonomyPlan(), []))

    assert result.is_fallback is False
    assert result.value.placements == []


def test_build_json_program_requires_configuration() -> None:
    assert build_json_program(LLMSettings()) is None
    assert build_json_program(LLMSettings(provider="openai", model="gpt-4o")) is None
