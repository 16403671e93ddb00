"""Tagged results returned by external collaborators."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """A successfully parsed collaborator response."""

    value: T

    @property
    def is_fallback(self) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class Fallback(Generic[T]):
    """A deterministic substitute used when a collaborator could not answer.

    Attributes:
        value: Safe default the caller can use unchanged.
        reason: Human-readable explanation of why the fallback was used.
    """

    value: T
    reason: str

    @property
    def is_fallback(self) -> bool:
        return True


AgentResult = Union[Ok[T], Fallback[T]]

__all__ = ["Ok", "Fallback", "AgentResult"]
