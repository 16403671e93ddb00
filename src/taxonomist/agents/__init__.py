"""Language-model collaborators used by the taxonomy planner."""

from .language_model import (
    DSPyJSONProgram,
    JSONProgram,
    LanguageModelAgent,
    build_json_program,
    call_program,
)
from .optimizer import OptimizerAgent
from .results import AgentResult, Fallback, Ok
from .taxonomy import TaxonomyAgent, build_trivial_plan
from .validation import ValidationAgent

__all__ = [
    "AgentResult",
    "DSPyJSONProgram",
    "Fallback",
    "JSONProgram",
    "LanguageModelAgent",
    "Ok",
    "OptimizerAgent",
    "TaxonomyAgent",
    "ValidationAgent",
    "build_json_program",
    "build_trivial_plan",
    "call_program",
]
