"""Deadline-aware sequential task execution."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]


@dataclass
class QueueResult(Generic[T]):
    results: list[T] = field(default_factory=list)
    remaining: int = 0
    timed_out: bool = False

    @property
    def completed(self) -> int:
        return len(self.results)


class DeadlineTaskQueue:
    """Runs tasks one at a time inside a wall-clock budget.

    Before each task the queue predicts its duration as the mean of the tasks
    observed so far and starts it only if ``elapsed + estimate <= budget``.
    A started task always runs to completion.

    The budget starts counting when the queue is created, so work done
    before the first :meth:`run` call (such as scanning) is included.
    """

    def __init__(self, budget_ms: int, *, clock: Clock = time.monotonic) -> None:
        self.budget_ms = budget_ms
        self._clock = clock
        self._started = clock()
        self._durations_ms: list[float] = []

    @property
    def elapsed_ms(self) -> float:
        return (self._clock() - self._started) * 1000

    @property
    def estimate_ms(self) -> float:
        if not self._durations_ms:
            return 0.0
        return sum(self._durations_ms) / len(self._durations_ms)

    def has_time(self) -> bool:
        return self.elapsed_ms + self.estimate_ms <= self.budget_ms

    async def run(self, tasks: Sequence[Callable[[], Awaitable[T]]]) -> QueueResult[T]:
        """Run ``tasks`` in order until they finish or the budget would be exceeded."""
        result: QueueResult[T] = QueueResult()
        for index, task in enumerate(tasks):
            if not self.has_time():
                result.remaining = len(tasks) - index
                result.timed_out = True
                logger.warning(
                    "Time budget reached after %d/%d tasks (elapsed %.0fms, estimate %.0fms, budget %dms)",
                    index,
                    len(tasks),
                    self.elapsed_ms,
                    self.estimate_ms,
                    self.budget_ms,
                )
                break

            started = self._clock()
            try:
                result.results.append(await task())
            finally:
                self._durations_ms.append((self._clock() - started) * 1000)
        return result
