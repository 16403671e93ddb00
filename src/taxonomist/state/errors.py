"""Placement store errors."""


class StateError(Exception):
    """Base exception for placement store operations."""


class MissingStateError(StateError):
    """Raised when a collection has no stored placements."""
