"""Named constants for confidence scoring and planning thresholds."""

from __future__ import annotations

# Base confidence derived from relative rule priority.
MIN_BASE_CONFIDENCE = 0.4
BASE_CONFIDENCE_RANGE = 0.55
EQUAL_PRIORITY_BASE_CONFIDENCE = 0.7

# specificity_multiplier = BASE + specificity * SCALE
SPECIFICITY_MULTIPLIER_BASE = 0.9
SPECIFICITY_MULTIPLIER_SCALE = 0.2

# match_quality_multiplier = BASE + match_quality * SCALE
MATCH_QUALITY_MULTIPLIER_BASE = 0.95
MATCH_QUALITY_MULTIPLIER_SCALE = 0.1

# Rules covering more than this share of the collection are penalised.
COVERAGE_PENALTY_THRESHOLD = 0.5
COVERAGE_PENALTY_BASE = 0.85
COVERAGE_PENALTY_SCALE = 0.15

MIN_CONFIDENCE = 0.3
MAX_CONFIDENCE = 0.98
UNMATCHED_CONFIDENCE_FACTOR = 0.6

# Rule matching.
NEUTRAL_MATCH_QUALITY = 0.5
SPECIFICITY_CONDITION_GROUPS = 5
SPECIFICITY_TIE_WEIGHT = 10

# Optimizer defaults.
OPTIMIZER_CONFIDENCE_THRESHOLD = 0.5
OPTIMIZER_BATCH_SIZE = 25

# Diagnostics.
BROAD_RULE_RATIO = 0.5

# Paths and ids.
FALLBACK_FOLDER_ID = "other"
FALLBACK_FOLDER_PATH = "/Other"
FALLBACK_RULE_ID = "other-catch-all"
ID_SEPARATOR = "--"
FALLBACK_REASON = "No specific rule matched; placed using generic taxonomy fallback."
