"""Concurrency primitives for outbound calls."""

from .pool import DEFAULT_MAX_WORKERS, WorkerPool, WorkerPoolStats

__all__ = ["DEFAULT_MAX_WORKERS", "WorkerPool", "WorkerPoolStats"]
