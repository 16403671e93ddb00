"""Bounded concurrency for outbound language-model calls.

Callers hand the pool zero-argument callables that produce awaitables; the pool
decides *when* each one is allowed to start so that no more than
``max_workers`` are in flight at once. Blocking calls made by admitted tasks run
on the pool's own thread executor, which is sized to ``max_workers`` so an
admitted task never waits for a thread.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Optional, Set, Tuple, TypeVar

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 80
DEFAULT_CHECK_INTERVAL_SECONDS = 0.05
DEFAULT_MAX_WAIT_ITERATIONS = 10_000
DEFAULT_SLOW_TASK_SECONDS = 30.0

T = TypeVar("T")
TaskFactory = Callable[[], Awaitable[T]]


@dataclass(frozen=True, slots=True)
class WorkerPoolStats:
    """Point-in-time snapshot of pool occupancy.

    Attributes:
        active: Tasks currently running.
        queued: Tasks waiting for a free slot.
        max: Configured concurrency ceiling.
    """

    active: int
    queued: int
    max: int


class WorkerPool:
    """FIFO admission control for asynchronous tasks."""

    def __init__(
        self,
        max_workers: int = DEFAULT_MAX_WORKERS,
        *,
        check_interval: float = DEFAULT_CHECK_INTERVAL_SECONDS,
        max_wait_iterations: int = DEFAULT_MAX_WAIT_ITERATIONS,
        slow_task_seconds: float = DEFAULT_SLOW_TASK_SECONDS,
    ) -> None:
        """Initialise the pool.

        Args:
            max_workers: Maximum number of tasks allowed to run concurrently.
            check_interval: Polling interval used by :meth:`wait_for_completion`.
            max_wait_iterations: Polling iterations before :meth:`wait_for_completion` gives up.
            slow_task_seconds: Completed tasks slower than this are logged as warnings.

        Raises:
            ValueError: If ``max_workers`` is smaller than one.
        """

        if max_workers < 1:
            raise ValueError("max_workers must be at least 1.")
        self._max_workers = max_workers
        self._check_interval = check_interval
        self._max_wait_iterations = max_wait_iterations
        self._slow_task_seconds = slow_task_seconds
        self._active = 0
        self._queue: Deque[Tuple[Callable[[], None], "asyncio.Future[Any]"]] = deque()
        self._running = True
        self._inflight: Set["asyncio.Task[None]"] = set()
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def max_workers(self) -> int:
        """Return the configured concurrency ceiling."""
        return self._max_workers

    def execute(self, task: TaskFactory[T]) -> "asyncio.Future[T]":
        """Submit ``task`` and return a future resolving to its result.

        The slot is claimed synchronously, before the task is scheduled, so
        simultaneous submissions can never push the active count past
        ``max_workers``. Tasks that cannot start immediately wait in FIFO order.

        Args:
            task: Zero-argument callable returning the awaitable to run.

        Returns:
            asyncio.Future: Resolves with the task's result or its exception.
        """

        loop = asyncio.get_running_loop()
        future: asyncio.Future[T] = loop.create_future()
        if not self._running:
            future.cancel()
            return future

        def start() -> None:
            worker = loop.create_task(self._run(task, future))
            self._inflight.add(worker)
            worker.add_done_callback(self._inflight.discard)

        if self._active < self._max_workers:
            self._active += 1
            start()
        else:
            self._queue.append((start, future))
        return future

    def get_stats(self) -> WorkerPoolStats:
        """Return current active/queued/max counts."""
        return WorkerPoolStats(active=self._active, queued=len(self._queue), max=self._max_workers)

    def log_stats(self) -> None:
        """Log the current occupancy at debug level."""
        stats = self.get_stats()
        LOGGER.debug("Worker pool: %d/%d active, %d queued", stats.active, stats.max, stats.queued)

    async def wait_for_completion(self) -> None:
        """Wait until nothing is running or queued.

        Gives up with a warning after ``max_wait_iterations`` polls rather than
        blocking forever.
        """

        iterations = 0
        while (self._active > 0 or self._queue) and iterations < self._max_wait_iterations:
            await asyncio.sleep(self._check_interval)
            iterations += 1
        if self._active > 0 or self._queue:
            LOGGER.warning(
                "Worker pool wait timed out: %d active, %d queued",
                self._active,
                len(self._queue),
            )

    async def run_blocking(self, func: Callable[..., T], *args: Any) -> T:
        """Run the blocking ``func(*args)`` on the pool's thread executor.

        Meant to be awaited from inside an admitted task, so at most
        ``max_workers`` calls compete for the executor's ``max_workers`` threads.
        """

        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers, thread_name_prefix="taxonomist-worker"
            )
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)

    def shutdown(self) -> None:
        """Stop admitting work and cancel every queued task.

        Running tasks are left to finish. Handles of queued tasks, and of tasks
        submitted afterwards, resolve as cancelled.
        """

        self._running = False
        while self._queue:
            _, future = self._queue.popleft()
            future.cancel()
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    async def _run(self, task: TaskFactory[Any], future: "asyncio.Future[Any]") -> None:
        started = time.monotonic()
        try:
            result = await task()
        except asyncio.CancelledError:
            if not future.done():
                future.cancel()
            raise
        except Exception as exc:
            LOGGER.error(
                "Worker task failed after %.0fms: %s", (time.monotonic() - started) * 1000, exc
            )
            if not future.done():
                future.set_exception(exc)
        else:
            elapsed = time.monotonic() - started
            if elapsed > self._slow_task_seconds:
                LOGGER.warning("Worker task completed slowly after %.1fs", elapsed)
            if not future.done():
                future.set_result(result)
        finally:
            self._active -= 1
            asyncio.get_running_loop().call_soon(self._drain)

    def _drain(self) -> None:
        while self._queue and self._active < self._max_workers and self._running:
            start, future = self._queue.popleft()
            if future.done():
                continue
            self._active += 1
            start()


__all__ = [
    "DEFAULT_MAX_WORKERS",
    "WorkerPool",
    "WorkerPoolStats",
]
