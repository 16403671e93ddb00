"""Persisted placement models."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List

from pydantic import BaseModel, Field

from taxonomist.planner.models import FileCard, PlannerOutput


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PlacementRecord(BaseModel):
    """A stored virtual placement for one file."""

    file_id: str
    virtual_path: str
    tags: List[str] = Field(default_factory=list)
    confidence: float
    reason: str = ""
    planner_version: str
    created_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def from_output(cls, output: PlannerOutput, planner_version: str) -> "PlacementRecord":
        return cls(
            file_id=output.file_id,
            virtual_path=output.virtual_path,
            tags=list(output.tags),
            confidence=output.confidence,
            reason=output.reason,
            planner_version=planner_version,
        )

    def to_output(self) -> PlannerOutput:
        return PlannerOutput(
            file_id=self.file_id,
            virtual_path=self.virtual_path,
            tags=list(self.tags),
            confidence=self.confidence,
            reason=self.reason,
        )


class PlacementStore(BaseModel):
    """Everything persisted for one collection."""

    root: str
    cards: Dict[str, FileCard] = Field(default_factory=dict)
    placements: Dict[str, PlacementRecord] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


__all__ = ["PlacementRecord", "PlacementStore"]
