"""Data models shared by the taxonomy planning engine."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class FileCard(BaseModel):
    """Lightweight per-file record used as planning input.

    Attributes:
        file_id: Stable identifier for the file.
        source_id: Identifier of the collection the file belongs to.
        path: Absolute path on disk.
        relative_path: Path relative to the collection root.
        name: File name including extension.
        extension: Lower-cased extension without the leading dot.
        size: Size in bytes.
        mtime: Last modification time, when known.
        summary: Short description of the file's content.
        tags: Lower-cased descriptive tags.
    """

    model_config = ConfigDict(frozen=True)

    file_id: str
    source_id: str = ""
    path: str
    relative_path: str = ""
    name: str
    extension: str = ""
    size: int = 0
    mtime: Optional[datetime] = None
    summary: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class PlanModel(BaseModel):
    """Base for plan models that round-trip camelCase JSON keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )


class VirtualFolderSpec(PlanModel):
    """A virtual folder declared by a taxonomy plan."""

    id: str
    path: str
    description: str = ""


class PlacementRule(PlanModel):
    """Deterministic predicate that places matching files into a folder.

    Condition lists left as ``None`` (or empty) are ignored during matching.
    """

    id: str
    target_folder_id: str
    required_tags: Optional[List[str]] = None
    forbidden_tags: Optional[List[str]] = None
    path_contains: Optional[List[str]] = None
    extension_in: Optional[List[str]] = None
    summary_contains_any: Optional[List[str]] = None
    priority: float = 0.0
    reason_template: str = ""

    @field_validator("priority", mode="before")
    @classmethod
    def _coerce_priority(cls, value: Any) -> float:
        try:
            priority = float(value)
        except (TypeError, ValueError):
            return 0.0
        return priority if math.isfinite(priority) else 0.0

    @field_validator("extension_in")
    @classmethod
    def _normalize_extensions(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return None
        return [extension.strip().lstrip(".").lower() for extension in value]


class TaxonomyPlan(PlanModel):
    """Folders plus the rules that populate them."""

    folders: List[VirtualFolderSpec] = Field(default_factory=list)
    rules: List[PlacementRule] = Field(default_factory=list)

    def folder_by_id(self, folder_id: str) -> Optional[VirtualFolderSpec]:
        """Return the folder with ``folder_id`` if present."""
        for folder in self.folders:
            if folder.id == folder_id:
                return folder
        return None


class TaxonomyStrategy(BaseModel):
    """Generation strategy derived from the collection size."""

    model_config = ConfigDict(frozen=True)

    mode: Literal["single", "hierarchical"]
    max_depth: Literal[1, 2, 3]
    top_level_folder_count: int
    min_files_for_sub_level: int
    min_files_for_third_level: int
    max_tags: int
    samples_per_tag: int


class PlannerOutput(BaseModel):
    """Final placement for a single file."""

    file_id: str
    virtual_path: str
    tags: List[str] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    reason: str = ""


class TagCount(BaseModel):
    """Frequency of a tag across a collection."""

    tag: str
    count: int


class PatternCount(BaseModel):
    """Frequency of a leading path pattern across a collection."""

    pattern: str
    count: int


class TagSample(BaseModel):
    """Representative file cards for a single tag."""

    tag: str
    files: List[FileCard] = Field(default_factory=list)


class TaxonomyOverview(BaseModel):
    """Aggregate view of a collection handed to plan-generation agents."""

    source_id: str = ""
    file_count: int = 0
    by_extension: Dict[str, int] = Field(default_factory=dict)
    by_year: Dict[int, int] = Field(default_factory=dict)
    top_tags: List[TagCount] = Field(default_factory=list)
    top_path_patterns: List[PatternCount] = Field(default_factory=list)
    samples: List[TagSample] = Field(default_factory=list)


class PlanDiagnostics(BaseModel):
    """Post-application quality metrics for a plan."""

    total_files: int = 0
    unmatched_files: int = 0
    unmatched_ratio: float = 0.0
    broad_rules: List[str] = Field(default_factory=list)
    narrow_rules: List[str] = Field(default_factory=list)
    dangling_rules: List[str] = Field(default_factory=list)
    average_matches_per_rule: float = 0.0


class PlanningResult(BaseModel):
    """Everything produced by a planning run."""

    strategy: Optional[TaxonomyStrategy] = None
    plan: TaxonomyPlan = Field(default_factory=TaxonomyPlan)
    outputs: List[PlannerOutput] = Field(default_factory=list)
    diagnostics: PlanDiagnostics = Field(default_factory=PlanDiagnostics)
    optimized_file_ids: List[str] = Field(default_factory=list)


class ValidationIssue(PlanModel):
    """Structural problem reported by the validation collaborator."""

    type: str = "unknown"
    severity: str = "info"
    description: str = ""
    affected_folder_ids: List[str] = Field(default_factory=list)
    affected_rule_ids: List[str] = Field(default_factory=list)


class FileFlag(PlanModel):
    """A file the validator wants re-evaluated by the optimizer."""

    file_id: str
    reason: str = ""


class ValidationResult(PlanModel):
    """Critique of a plan; an empty result means nothing to change."""

    issues: List[ValidationIssue] = Field(default_factory=list)
    corrected_folders: List[VirtualFolderSpec] = Field(default_factory=list)
    corrected_rules: List[PlacementRule] = Field(default_factory=list)
    files_needing_optimization: List[FileFlag] = Field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        """Return ``True`` when the result carries issues or corrections."""
        return bool(self.issues or self.corrected_folders or self.corrected_rules)


class OptimizerPlacement(PlanModel):
    """Improved placement proposed for a single low-confidence file."""

    file_id: str
    virtual_path: str
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    reason: str = "Optimized placement"

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return 0.5
        if not math.isfinite(value):
            return 0.5
        return max(0.0, min(1.0, float(value)))


class OptimizerFolder(PlanModel):
    """Folder the optimizer proposes adding to the plan."""

    path: str
    description: str = ""


class OptimizationOutcome(BaseModel):
    """Placements and new folders returned by the optimizer."""

    placements: List[OptimizerPlacement] = Field(default_factory=list)
    new_folders: List[OptimizerFolder] = Field(default_factory=list)


__all__ = [
    "FileCard",
    "PlanModel",
    "VirtualFolderSpec",
    "PlacementRule",
    "TaxonomyPlan",
    "TaxonomyStrategy",
    "PlannerOutput",
    "TagCount",
    "PatternCount",
    "TagSample",
    "TaxonomyOverview",
    "PlanDiagnostics",
    "PlanningResult",
    "ValidationIssue",
    "FileFlag",
    "ValidationResult",
    "OptimizerPlacement",
    "OptimizerFolder",
    "OptimizationOutcome",
]
