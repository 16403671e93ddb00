"""Instructions and payload builders for the planning agents."""

from __future__ import annotations

import json
import textwrap
from typing import Any, Dict, List, Optional, Sequence, Tuple

from taxonomist.planner.models import (
    FileCard,
    PlannerOutput,
    TaxonomyOverview,
    TaxonomyPlan,
    TaxonomyStrategy,
)

FULL_SUMMARY_CHARS = 600
FULL_TAG_COUNT = 12
TOP_LEVEL_SUMMARY_CHARS = 500
TOP_LEVEL_TAG_COUNT = 10
SUB_LEVEL_SUMMARY_CHARS = 400
SUB_LEVEL_TAG_COUNT = 8
VALIDATION_TOP_TAGS = 20
VALIDATION_TOP_PATTERNS = 15
VALIDATION_SUMMARY_CHARS = 200
OPTIMIZER_SUMMARY_WORDS = 100

_PLAN_SHAPE = textwrap.dedent(
    """\
    {
      "folders": [
        {"id": "work-invoices", "path": "/Work/Invoices", "description": "Invoices and receipts"}
      ],
      "rules": [
        {
          "id": "rule-invoices",
          "targetFolderId": "work-invoices",
          "requiredTags": ["invoice"],
          "forbiddenTags": ["draft"],
          "pathContains": ["invoices"],
          "extensionIn": ["pdf"],
          "summaryContainsAny": ["invoice", "payment"],
          "priority": 80,
          "reasonTemplate": "Invoice documents"
        }
      ]
    }"""
)

_PLAN_RULES = textwrap.dedent(
    """\
    Rules may only use requiredTags, forbiddenTags, pathContains, extensionIn and
    summaryContainsAny; omitted conditions mean "don't care". Give specific rules
    (several conditions) priority 50-100, generic rules 20-40, and include a
    catch-all folder such as /Other with a zero-condition rule at priority 1-10.
    Avoid rules that would match more than half of the files or only one file.
    Answer with the JSON object only: no comments, no trailing commas, no markdown."""
)

FULL_PLAN_INSTRUCTIONS = "\n\n".join(
    [
        textwrap.dedent(
            """\
            You are an information architect designing a VIRTUAL folder taxonomy for a
            collection of files. Files are never moved; you only propose a small,
            human-friendly folder hierarchy (2-3 levels, at most about 40 folders) and
            deterministic rules that place each file into one folder. You see aggregate
            statistics and sample file cards, never raw contents."""
        ),
        _PLAN_RULES,
        "Respond with JSON shaped like:\n" + _PLAN_SHAPE,
    ]
)

TOP_LEVEL_INSTRUCTIONS = "\n\n".join(
    [
        textwrap.dedent(
            """\
            You are an information architect choosing the ROOT categories of a virtual
            folder tree. Pick stable, non-overlapping top-level folders that reflect how
            the owner uses these files (work, personal, projects, archive, ...). Every
            folder path must be a single segment such as /Work. Rules can stay simple;
            placement is refined later. Aim for about {target} root folders."""
        ),
        _PLAN_RULES,
        "Respond with JSON shaped like:\n" + _PLAN_SHAPE,
    ]
)

SUB_LEVEL_INSTRUCTIONS = "\n\n".join(
    [
        textwrap.dedent(
            """\
            You are designing the next level of a virtual folder tree below {parent}.
            Only split the branch when its files fall into clearly distinct groups; then
            create 2-10 children whose paths are {parent}/<Name>. When the branch is
            homogeneous return exactly one folder {parent}/All with one catch-all rule.
            Never invent artificial categories."""
        ),
        _PLAN_RULES,
        "Respond with JSON shaped like:\n" + _PLAN_SHAPE,
    ]
)

VALIDATION_INSTRUCTIONS = textwrap.dedent(
    """\
    You review a generated virtual folder taxonomy for structural problems: vague or
    generic top-level names, rules pointing at folders that do not exist, trees that
    are far too flat or too deep, and overlapping folders. Return corrected folders
    or rules only when they fix a real problem; reuse the original ids so they
    replace the faulty items. List files that clearly need a better placement.

    Respond with JSON shaped like:
    {
      "issues": [{"type": "generic-name", "severity": "warning", "description": "...",
                  "affectedFolderIds": ["misc"], "affectedRuleIds": []}],
      "correctedFolders": [{"id": "misc", "path": "/Reference", "description": "..."}],
      "correctedRules": [],
      "filesNeedingOptimization": [{"fileId": "abc", "reason": "..."}]
    }
    Return empty arrays when the plan is fine. JSON only, no markdown."""
)

OPTIMIZER_INSTRUCTIONS = textwrap.dedent(
    """\
    You improve the placement of files that received low confidence from a rule-based
    virtual folder taxonomy. Prefer existing folders; propose a new folder only when a
    file clearly does not fit anywhere, following the existing naming style. The
    virtualPath MUST end with the file name, e.g. /Work/Invoices/invoice.pdf. Give a
    confidence between 0 and 1 and a short reason for every file in the batch.

    Respond with JSON shaped like:
    {
      "optimizations": [{"fileId": "abc", "virtualPath": "/Work/Invoices/invoice.pdf",
                         "confidence": 0.85, "reason": "..."}],
      "newFolders": [{"path": "/Projects/Garden", "description": "..."}]
    }
    JSON only, no markdown."""
)


def _truncate(text: Optional[str], limit: int) -> Optional[str]:
    if text and len(text) > limit:
        return f"{text[:limit]}…"
    return text


def _truncate_words(text: Optional[str], limit: int) -> Optional[str]:
    if not text:
        return text
    words = text.split()
    if len(words) <= limit:
        return text
    return " ".join(words[:limit]) + "…"


def _card_preview(card: FileCard, summary_chars: int, tag_count: int) -> Dict[str, Any]:
    return {
        "relative_path": card.relative_path,
        "name": card.name,
        "extension": card.extension,
        "mtime": card.mtime.isoformat() if card.mtime else None,
        "summary": _truncate(card.summary, summary_chars),
        "tags": list(card.tags[:tag_count]),
    }


def _overview_payload(
    overview: TaxonomyOverview, summary_chars: int, tag_count: int
) -> Dict[str, Any]:
    return {
        "sourceId": overview.source_id,
        "fileCount": overview.file_count,
        "byExtension": overview.by_extension,
        "byYear": {str(year): count for year, count in overview.by_year.items()},
        "topTags": [entry.model_dump() for entry in overview.top_tags],
        "topPathPatterns": [entry.model_dump() for entry in overview.top_path_patterns],
        "sampleFilesByTag": [
            {
                "tag": sample.tag,
                "files": [_card_preview(card, summary_chars, tag_count) for card in sample.files],
            }
            for sample in overview.samples
        ],
    }


def _dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)


def full_plan_payload(overview: TaxonomyOverview) -> str:
    return _dumps(_overview_payload(overview, FULL_SUMMARY_CHARS, FULL_TAG_COUNT))


def top_level_instructions(strategy: TaxonomyStrategy) -> str:
    return TOP_LEVEL_INSTRUCTIONS.replace("{target}", str(strategy.top_level_folder_count))


def top_level_payload(overview: TaxonomyOverview) -> str:
    return _dumps(_overview_payload(overview, TOP_LEVEL_SUMMARY_CHARS, TOP_LEVEL_TAG_COUNT))


def sub_level_instructions(parent_path: str) -> str:
    return SUB_LEVEL_INSTRUCTIONS.replace("{parent}", parent_path.rstrip("/"))


def sub_level_payload(overview: TaxonomyOverview, parent_path: str, parent_folder_id: str) -> str:
    payload = _overview_payload(overview, SUB_LEVEL_SUMMARY_CHARS, SUB_LEVEL_TAG_COUNT)
    payload["parentPath"] = parent_path.rstrip("/")
    payload["parentFolderId"] = parent_folder_id
    return _dumps(payload)


def plan_payload(plan: TaxonomyPlan) -> Dict[str, Any]:
    return plan.model_dump(by_alias=True, exclude_none=True)


def validation_payload(
    plan: TaxonomyPlan, overview: TaxonomyOverview, cards: Sequence[FileCard]
) -> str:
    payload = {
        "plan": plan_payload(plan),
        "overview": {
            "fileCount": overview.file_count,
            "byExtension": overview.by_extension,
            "topTags": [entry.model_dump() for entry in overview.top_tags[:VALIDATION_TOP_TAGS]],
            "topPathPatterns": [
                entry.model_dump() for entry in overview.top_path_patterns[:VALIDATION_TOP_PATTERNS]
            ],
        },
        "sampleFiles": [
            {
                "fileId": card.file_id,
                "relative_path": card.relative_path,
                "summary": _truncate(card.summary, VALIDATION_SUMMARY_CHARS),
                "tags": list(card.tags),
            }
            for card in cards
        ],
    }
    return _dumps(payload)


def optimizer_payload(
    plan: TaxonomyPlan, items: Sequence[Tuple[FileCard, PlannerOutput]]
) -> str:
    files: List[Dict[str, Any]] = []
    for card, current in items:
        files.append(
            {
                "fileId": card.file_id,
                "name": card.name,
                "extension": card.extension,
                "relative_path": card.relative_path,
                "tags": list(card.tags),
                "summary": _truncate_words(card.summary, OPTIMIZER_SUMMARY_WORDS),
                "currentPlacement": {
                    "virtualPath": current.virtual_path,
                    "confidence": current.confidence,
                    "reason": current.reason,
                },
            }
        )
    return _dumps({"taxonomy": plan_payload(plan), "files": files})


__all__ = [
    "FULL_PLAN_INSTRUCTIONS",
    "VALIDATION_INSTRUCTIONS",
    "OPTIMIZER_INSTRUCTIONS",
    "full_plan_payload",
    "top_level_instructions",
    "top_level_payload",
    "sub_level_instructions",
    "sub_level_payload",
    "validation_payload",
    "optimizer_payload",
]
