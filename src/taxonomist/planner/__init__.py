"""Taxonomy planning engine."""

from .models import (
    FileCard,
    PlacementRule,
    PlannerOutput,
    PlanningResult,
    TaxonomyOverview,
    TaxonomyPlan,
    TaxonomyStrategy,
    VirtualFolderSpec,
)
from .apply import apply_plan, join_virtual_path
from .matcher import compute_rule_match_counts, find_best_rule, matches, specificity
from .orchestrator import TaxonomyOrchestrator, merge_branches, prefix_plan
from .overview import build_overview
from .planner import PLANNER_VERSION, TaxonomyPlanner
from .repair import normalize_folder_path, repair_plan
from .strategy import select_strategy

__all__ = [
    "FileCard",
    "PlacementRule",
    "PlannerOutput",
    "PlanningResult",
    "TaxonomyOverview",
    "TaxonomyPlan",
    "TaxonomyStrategy",
    "VirtualFolderSpec",
    "apply_plan",
    "join_virtual_path",
    "compute_rule_match_counts",
    "find_best_rule",
    "matches",
    "specificity",
    "TaxonomyOrchestrator",
    "merge_branches",
    "prefix_plan",
    "build_overview",
    "PLANNER_VERSION",
    "TaxonomyPlanner",
    "normalize_folder_path",
    "repair_plan",
    "select_strategy",
]
