"""Language-model agent that reviews generated taxonomy plans."""

from __future__ import annotations

import logging
from typing import Sequence

from taxonomist.planner.models import FileCard, TaxonomyOverview, TaxonomyPlan, ValidationResult

from . import prompts
from .language_model import LanguageModelAgent
from .parsing import parse_validation
from .results import AgentResult, Fallback, Ok

LOGGER = logging.getLogger(__name__)


class ValidationAgent(LanguageModelAgent):
    """Critique a plan and suggest corrected folders, rules, and flagged files."""

    async def validate(
        self, plan: TaxonomyPlan, overview: TaxonomyOverview, cards: Sequence[FileCard]
    ) -> AgentResult[ValidationResult]:
        """Ask the model to review ``plan``.

        Args:
            plan: Repaired plan under review.
            overview: Statistics for the whole collection.
            cards: Sample of file cards shown to the reviewer.

        Returns:
            AgentResult[ValidationResult]: The parsed review, or an empty result
            (no issues, no corrections) wrapped in ``Fallback``.
        """

        response = await self._ask(
            prompts.VALIDATION_INSTRUCTIONS,
            prompts.validation_payload(plan, overview, cards),
            label="plan validation",
        )
        if response.is_fallback:
            return Fallback(ValidationResult(), getattr(response, "reason", "validation failed"))

        result = parse_validation(response.value)
        if result is None:
            return Fallback(ValidationResult(), "plan validation could not be parsed")

        for issue in result.issues:
            LOGGER.debug("Validation issue (%s): %s", issue.severity, issue.description)
        return Ok(result)


__all__ = ["ValidationAgent"]
