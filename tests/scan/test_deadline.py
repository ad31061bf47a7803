"""Tests for the deadline task queue."""

import pytest

from polymarket_insider_finder.scan.deadline import DeadlineTaskQueue


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000


def _task(clock: FakeClock, duration_ms: float, value: int):
    async def run() -> int:
        clock.advance_ms(duration_ms)
        return value

    return run


class TestDeadlineTaskQueue:
    """Tests for DeadlineTaskQueue."""

    async def test_runs_everything_within_budget(self) -> None:
        clock = FakeClock()
        queue = DeadlineTaskQueue(1000, clock=clock)

        result = await queue.run([_task(clock, 100, i) for i in range(5)])

        assert result.results == [0, 1, 2, 3, 4]
        assert result.remaining == 0
        assert result.timed_out is False

    async def test_stops_when_estimate_exceeds_budget(self) -> None:
        clock = FakeClock()
        queue = DeadlineTaskQueue(1000, clock=clock)

        result = await queue.run([_task(clock, 600, i) for i in range(3)])

        assert result.completed == 1
        assert result.remaining == 2
        assert result.timed_out is True
        assert queue.elapsed_ms == pytest.approx(600)

    async def test_estimate_is_mean_duration(self) -> None:
        clock = FakeClock()
        queue = DeadlineTaskQueue(10_000, clock=clock)

        await queue.run([_task(clock, 100, 0), _task(clock, 300, 1)])

        assert queue.estimate_ms == pytest.approx(200)

    async def test_budget_includes_time_before_run(self) -> None:
        clock = FakeClock()
        queue = DeadlineTaskQueue(1000, clock=clock)
        clock.advance_ms(1001)

        result = await queue.run([_task(clock, 1, 0)])

        assert result.completed == 0
        assert result.remaining == 1
        assert queue.has_time() is False

    async def test_started_task_is_timed_even_if_it_raises(self) -> None:
        clock = FakeClock()
        queue = DeadlineTaskQueue(1000, clock=clock)

        async def boom() -> int:
            clock.advance_ms(400)
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await queue.run([boom])

        assert queue.estimate_ms == pytest.approx(400)

    async def test_empty_task_list(self) -> None:
        queue = DeadlineTaskQueue(1000, clock=FakeClock())

        result = await queue.run([])

        assert result.completed == 0
        assert result.timed_out is False
