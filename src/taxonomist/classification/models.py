"""Models used by the classification engine."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from taxonomist.planner.models import FileCard, PlanModel


class CardDescription(PlanModel):
    """Summary and tags returned for one file."""

    file_id: str
    summary: str = ""
    tags: List[str] = Field(default_factory=list)


class ClassificationBatch(BaseModel):
    """Cards produced by a classification run."""

    cards: List[FileCard] = Field(default_factory=list)
    heuristic_file_ids: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


__all__ = ["CardDescription", "ClassificationBatch"]
