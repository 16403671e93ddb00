"""Language-model agent that proposes taxonomy plans."""

from __future__ import annotations

import logging
from typing import Optional

from taxonomist.planner.models import (
    PlacementRule,
    TaxonomyOverview,
    TaxonomyPlan,
    TaxonomyStrategy,
    VirtualFolderSpec,
)

from . import prompts
from .language_model import LanguageModelAgent
from .parsing import parse_plan
from .results import AgentResult, Fallback, Ok

LOGGER = logging.getLogger(__name__)

TRIVIAL_FOLDER_ID = "all-files"
TRIVIAL_FOLDER_PATH = "/All Files"
TRIVIAL_RULE_ID = "catch-all"


def build_trivial_plan() -> TaxonomyPlan:
    """Return the one-folder plan used whenever no usable plan was produced."""
    return TaxonomyPlan(
        folders=[
            VirtualFolderSpec(
                id=TRIVIAL_FOLDER_ID,
                path=TRIVIAL_FOLDER_PATH,
                description="Every file in the collection.",
            )
        ],
        rules=[
            PlacementRule(
                id=TRIVIAL_RULE_ID,
                target_folder_id=TRIVIAL_FOLDER_ID,
                priority=1,
                reason_template=f"Placed in {TRIVIAL_FOLDER_PATH} by fallback taxonomy rule.",
            )
        ],
    )


class TaxonomyAgent(LanguageModelAgent):
    """Generate full, top-level, and sub-level plans from collection overviews.

    Every method returns ``Ok`` with the parsed plan, or ``Fallback`` carrying
    :func:`build_trivial_plan` when the model is unavailable, the call fails,
    or the response holds no folders.
    """

    async def generate_plan(self, overview: TaxonomyOverview) -> AgentResult[TaxonomyPlan]:
        return await self._request(
            prompts.FULL_PLAN_INSTRUCTIONS,
            prompts.full_plan_payload(overview),
            label="taxonomy plan",
        )

    async def generate_top_level_plan(
        self, overview: TaxonomyOverview, strategy: TaxonomyStrategy
    ) -> AgentResult[TaxonomyPlan]:
        return await self._request(
            prompts.top_level_instructions(strategy),
            prompts.top_level_payload(overview),
            label="top-level taxonomy plan",
        )

    async def generate_sub_level_plan(
        self, overview: TaxonomyOverview, parent_path: str, parent_folder_id: str
    ) -> AgentResult[TaxonomyPlan]:
        return await self._request(
            prompts.sub_level_instructions(parent_path),
            prompts.sub_level_payload(overview, parent_path, parent_folder_id),
            label=f"sub-level plan for {parent_path}",
        )

    async def _request(
        self, instructions: str, payload: str, *, label: str
    ) -> AgentResult[TaxonomyPlan]:
        response = await self._ask(instructions, payload, label=label)
        if response.is_fallback:
            return Fallback(build_trivial_plan(), _reason_of(response))

        plan: Optional[TaxonomyPlan] = parse_plan(response.value)
        if plan is None:
            return Fallback(build_trivial_plan(), f"{label} could not be parsed")
        if not plan.folders:
            LOGGER.warning("%s contained no folders; using fallback plan", label)
            return Fallback(build_trivial_plan(), f"{label} contained no folders")

        LOGGER.debug("%s: %d folders, %d rules", label, len(plan.folders), len(plan.rules))
        return Ok(plan)


def _reason_of(result: AgentResult[str]) -> str:
    return getattr(result, "reason", "language model unavailable")


__all__ = ["TaxonomyAgent", "build_trivial_plan"]
