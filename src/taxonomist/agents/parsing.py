"""Lenient parsing of JSON responses produced by language models."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from taxonomist.planner.models import (
    FileFlag,
    OptimizationOutcome,
    OptimizerFolder,
    OptimizerPlacement,
    PlacementRule,
    TaxonomyPlan,
    ValidationIssue,
    ValidationResult,
    VirtualFolderSpec,
)
from taxonomist.planner.repair import normalize_folder_path

LOGGER = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_LEADING_FENCE = re.compile(r"^```[a-zA-Z]*\s*")
_TRAILING_FENCE = re.compile(r"```\s*$")
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")


def strip_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = _TRAILING_FENCE.sub("", _LEADING_FENCE.sub("", stripped)).strip()
    return stripped


def extract_json_object(text: str) -> Optional[str]:
    """Return the substring between the first ``{`` and the last ``}``."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start : end + 1]


def repair_json(text: str) -> str:
    """Fix trailing commas and raw newlines inside string literals."""
    text = _TRAILING_COMMA.sub(r"\1", text)
    out: List[str] = []
    quote: Optional[str] = None
    escaped = False
    for char in text:
        if escaped:
            out.append(char)
            escaped = False
            continue
        if quote is not None and char == "\\":
            out.append(char)
            escaped = True
            continue
        if char in {'"', "'"}:
            if quote is None:
                quote = char
            elif char == quote:
                quote = None
            out.append(char)
            continue
        if quote is not None and char in {"\n", "\r"}:
            out.append(" ")
            continue
        out.append(char)
    return "".join(out)


def load_json_object(text: str, *, label: str = "response") -> Optional[Dict[str, Any]]:
    """Parse the JSON object embedded in ``text``.

    Markdown fences are stripped and the outermost braces isolated first. When
    the first attempt fails the text is repaired and parsed once more.

    Returns:
        dict | None: The decoded object, or ``None`` when nothing usable was found.
    """

    if not text:
        return None
    candidate = extract_json_object(strip_fences(text))
    if candidate is None:
        LOGGER.warning("Could not find a JSON object in the %s", label)
        return None

    try:
        value = json.loads(candidate)
    except json.JSONDecodeError as first_error:
        try:
            value = json.loads(repair_json(candidate))
        except json.JSONDecodeError:
            LOGGER.warning("Failed to parse %s as JSON: %s", label, first_error)
            return None
        LOGGER.debug("Parsed %s after repairing JSON", label)

    if not isinstance(value, dict):
        return None
    return value


def validate_items(model: Type[ModelT], items: Any, *, label: str) -> List[ModelT]:
    """Validate each element of ``items`` against ``model``, skipping invalid ones."""
    if not isinstance(items, list):
        return []
    valid: List[ModelT] = []
    for index, item in enumerate(items):
        try:
            valid.append(model.model_validate(item))
        except ValidationError as exc:
            LOGGER.warning("Skipping invalid %s #%d: %s", label, index, exc.errors()[:1])
    return valid


def parse_plan(text: str) -> Optional[TaxonomyPlan]:
    """Parse a taxonomy plan response; folder paths are normalized on the way in."""
    data = load_json_object(text, label="taxonomy plan")
    if data is None:
        return None
    folders = [
        folder.model_copy(
            update={"id": folder.id.strip(), "path": normalize_folder_path(folder.path)}
        )
        for folder in validate_items(VirtualFolderSpec, data.get("folders"), label="folder")
    ]
    rules = [
        rule.model_copy(
            update={"id": rule.id.strip(), "target_folder_id": rule.target_folder_id.strip()}
        )
        for rule in validate_items(PlacementRule, data.get("rules"), label="rule")
    ]
    return TaxonomyPlan(folders=folders, rules=rules)


def parse_validation(text: str) -> Optional[ValidationResult]:
    """Parse a validation response."""
    data = load_json_object(text, label="validation result")
    if data is None:
        return None
    return ValidationResult(
        issues=validate_items(ValidationIssue, data.get("issues"), label="issue"),
        corrected_folders=validate_items(
            VirtualFolderSpec, data.get("correctedFolders"), label="corrected folder"
        ),
        corrected_rules=validate_items(
            PlacementRule, data.get("correctedRules"), label="corrected rule"
        ),
        files_needing_optimization=validate_items(
            FileFlag, data.get("filesNeedingOptimization"), label="flagged file"
        ),
    )


def parse_optimization(text: str) -> Optional[OptimizationOutcome]:
    """Parse an optimizer response."""
    data = load_json_object(text, label="optimizer response")
    if data is None:
        return None
    return OptimizationOutcome(
        placements=validate_items(
            OptimizerPlacement, data.get("optimizations"), label="optimization"
        ),
        new_folders=validate_items(OptimizerFolder, data.get("newFolders"), label="new folder"),
    )


__all__ = [
    "strip_fences",
    "extract_json_object",
    "repair_json",
    "load_json_object",
    "validate_items",
    "parse_plan",
    "parse_validation",
    "parse_optimization",
]
