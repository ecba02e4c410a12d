"""Bounded parallel execution that collects per-task errors instead of failing fast."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass
class FanOutResult:
    results: dict[str, Any] = field(default_factory=dict)
    errors: dict[str, BaseException] = field(default_factory=dict)

    @property
    def succeeded(self) -> int:
        return len(self.results)

    @property
    def failed(self) -> int:
        return len(self.errors)


class ParallelRunner:
    """Runs blocking callables in worker threads with a concurrency limit.

    The limit applies per call to ``run``. A nested fan-out (a parent control inside a
    parent) gets its own ``max_concurrent`` slots, so up to ``max_concurrent ** depth``
    tasks of one tick can run at once. A parent holds its slot while its sub-controls run.
    """

    def __init__(self, max_concurrent: int = 5) -> None:
        self.max_concurrent = max_concurrent

    async def run_parallel(self, tasks: dict[str, Callable[[], Any]]) -> FanOutResult:
        """
        Run every task, at most ``max_concurrent`` at a time.

        Args:
            tasks: Dict of {name: blocking callable}

        Returns:
            FanOutResult with the return value or the exception of every task
        """
        # Created per run: asyncio primitives are bound to the loop that first uses them
        semaphore = asyncio.Semaphore(self.max_concurrent)
        outcome = FanOutResult()

        async def run_one(name: str, fn: Callable[[], Any]) -> None:
            async with semaphore:
                try:
                    outcome.results[name] = await asyncio.to_thread(fn)
                except Exception as exc:
                    logger.error("Task '%s' failed: %s", name, exc)
                    outcome.errors[name] = exc

        await asyncio.gather(*(run_one(name, fn) for name, fn in tasks.items()))
        return outcome

    def run(self, tasks: dict[str, Callable[[], Any]]) -> FanOutResult:
        """Synchronous wrapper for run_parallel (one event loop per call)."""
        return asyncio.run(self.run_parallel(tasks))

