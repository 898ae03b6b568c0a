"""Bounded fan-out for per-subject store lookups."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, Hashable, Iterable, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

DEFAULT_WORKERS = 3
DEFAULT_GRACE_SECONDS = 5.0


class PoolClosedError(RuntimeError):
    """Work was submitted after shutdown() started."""


@dataclass
class BatchResult(Generic[K, V]):
    """Per-item outcome of a batch. An id lands in exactly one of the two maps."""
    values: dict[K, V] = field(default_factory=dict)
    failures: dict[K, BaseException] = field(default_factory=dict)


class BatchWorkPool:
    """At most ``max_workers`` items run at once; the rest wait for a slot.

    Results are keyed by item, so completion order does not matter. A failing
    item is logged and recorded but never cancels its siblings.
    """

    def __init__(self, max_workers: int = DEFAULT_WORKERS):
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.max_workers = max_workers
        self._slots = asyncio.Semaphore(max_workers)
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def run_all(self, items: Iterable[K], func: Callable[[K], Awaitable[V]]) -> BatchResult[K, V]:
        """Run ``func`` once per unique item and wait for all of them."""
        if self._closed:
            raise PoolClosedError("batch pool is shut down")

        tasks: dict[K, asyncio.Task] = {}
        for item in dict.fromkeys(items):
            task = asyncio.create_task(self._run_one(item, func))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            tasks[item] = task

        outcomes = await asyncio.gather(*tasks.values(), return_exceptions=True)

        result: BatchResult[K, V] = BatchResult()
        for item, outcome in zip(tasks, outcomes):
            if isinstance(outcome, BaseException):
                result.failures[item] = outcome
            else:
                result.values[item] = outcome
        return result

    async def _run_one(self, item: K, func: Callable[[K], Awaitable[Any]]) -> Any:
        async with self._slots:
            try:
                return await func(item)
            except Exception as e:
                logger.warning("Batch item %s failed (%s: %s)", item, type(e).__name__, e)
                raise

    async def shutdown(self, grace: float = DEFAULT_GRACE_SECONDS) -> None:
        """Refuse new work, give running items ``grace`` seconds, then cancel the rest."""
        self._closed = True
        pending = set(self._tasks)
        if not pending:
            return

        _, pending = await asyncio.wait(pending, timeout=grace)
        if pending:
            logger.warning("Cancelling %d batch item(s) still running after %.1fs", len(pending), grace)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
