"""Tests for the Dispatcher and the per-target Scheduler loops."""

from __future__ import annotations

import asyncio

import pytest

from statusboard.workers.dispatcher import Dispatcher
from statusboard.workers.scheduler import Scheduler


class FakeClock:
    def __init__(self, start: float = 100.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay
        await asyncio.sleep(0)


class RecordingSubmitter:
    def __init__(self, clock: FakeClock, costs: list[float] | None = None, stop_after: int = 3) -> None:
        self.clock = clock
        self.costs = list(costs or [])
        self.stop_after = stop_after
        self.submitted: list[tuple[str, float]] = []
        self.done = asyncio.Event()

    async def submit(self, target) -> None:
        self.submitted.append((target.id, self.clock.now))
        if self.costs:
            self.clock.now += self.costs.pop(0)
        if len(self.submitted) >= self.stop_after:
            self.done.set()
        await asyncio.sleep(0)


# ── Scheduler ────────────────────────────────────────────────────────────────


class TestScheduler:
    @pytest.mark.asyncio
    async def test_first_tick_after_one_interval(self, make_target) -> None:
        clock = FakeClock()
        submitter = RecordingSubmitter(clock, stop_after=1)
        scheduler = Scheduler(submitter, clock=clock, sleep_func=clock.sleep)

        scheduler.start([make_target(interval=5)])
        await asyncio.wait_for(submitter.done.wait(), timeout=1)
        await scheduler.stop()

        assert submitter.submitted[0] == ("api", 105.0)

    @pytest.mark.asyncio
    async def test_submission_time_does_not_drift(self, make_target) -> None:
        clock = FakeClock()
        submitter = RecordingSubmitter(clock, costs=[1.5, 1.5, 1.5], stop_after=3)
        scheduler = Scheduler(submitter, clock=clock, sleep_func=clock.sleep)

        scheduler.start([make_target(interval=5)])
        await asyncio.wait_for(submitter.done.wait(), timeout=1)
        await scheduler.stop()

        assert [t for _, t in submitter.submitted[:3]] == [105.0, 110.0, 115.0]
        assert clock.sleeps[:3] == [5.0, 3.5, 3.5]

    @pytest.mark.asyncio
    async def test_overrun_fires_once_then_skips(self, make_target) -> None:
        clock = FakeClock()
        submitter = RecordingSubmitter(clock, costs=[12.0], stop_after=3)
        scheduler = Scheduler(submitter, clock=clock, sleep_func=clock.sleep)

        scheduler.start([make_target(interval=5)])
        await asyncio.wait_for(submitter.done.wait(), timeout=1)
        await scheduler.stop()

        assert [t for _, t in submitter.submitted[:3]] == [105.0, 117.0, 120.0]

    @pytest.mark.asyncio
    async def test_blocked_target_does_not_delay_others(self, make_target) -> None:
        clock = FakeClock()
        never = asyncio.Event()
        fast_count = 0
        enough = asyncio.Event()

        class Submitter:
            async def submit(self, target) -> None:
                nonlocal fast_count
                if target.id == "stuck":
                    await never.wait()
                fast_count += 1
                if fast_count >= 3:
                    enough.set()
                await asyncio.sleep(0)

        scheduler = Scheduler(Submitter(), clock=clock, sleep_func=clock.sleep)
        scheduler.start([make_target(id="stuck", interval=1), make_target(id="fast", interval=2)])

        await asyncio.wait_for(enough.wait(), timeout=1)
        await scheduler.stop()

        assert fast_count >= 3

    @pytest.mark.asyncio
    async def test_stop_cancels_loops(self, make_target) -> None:
        scheduler = Scheduler(RecordingSubmitter(FakeClock()))
        scheduler.start([make_target(interval=3600)])

        await scheduler.stop()

        assert scheduler._tasks == []


# ── Dispatcher ───────────────────────────────────────────────────────────────


class TestDispatcher:
    @pytest.mark.asyncio
    async def test_different_targets_probe_in_parallel(self, make_target) -> None:
        started: list[str] = []
        both_started = asyncio.Event()
        release = asyncio.Event()

        class Prober:
            async def probe(self, target) -> None:
                started.append(target.id)
                if len(started) == 2:
                    both_started.set()
                await release.wait()

        dispatcher = Dispatcher(Prober(), queue_size=2, concurrency=4)
        dispatcher.start()
        try:
            await dispatcher.submit(make_target(id="a"))
            await dispatcher.submit(make_target(id="b"))

            await asyncio.wait_for(both_started.wait(), timeout=1)
            assert sorted(started) == ["a", "b"]
            assert dispatcher.inflight == 2
        finally:
            release.set()
            await dispatcher.stop()

    @pytest.mark.asyncio
    async def test_concurrency_limit(self, make_target) -> None:
        running = 0
        peak = 0
        finished = asyncio.Event()
        count = 0

        class Prober:
            async def probe(self, target) -> None:
                nonlocal running, peak, count
                running += 1
                peak = max(peak, running)
                await asyncio.sleep(0.01)
                running -= 1
                count += 1
                if count == 4:
                    finished.set()

        dispatcher = Dispatcher(Prober(), queue_size=4, concurrency=2)
        dispatcher.start()
        try:
            for i in range(4):
                await dispatcher.submit(make_target(id=f"t{i}"))
            await asyncio.wait_for(finished.wait(), timeout=1)
        finally:
            await dispatcher.stop()

        assert peak == 2

    @pytest.mark.asyncio
    async def test_failing_probe_is_isolated(self, make_target) -> None:
        probed: list[str] = []
        good_done = asyncio.Event()

        class Prober:
            async def probe(self, target) -> None:
                if target.id == "bad":
                    raise RuntimeError("boom")
                probed.append(target.id)
                good_done.set()

        dispatcher = Dispatcher(Prober(), queue_size=2, concurrency=2)
        dispatcher.start()
        try:
            await dispatcher.submit(make_target(id="bad"))
            await dispatcher.submit(make_target(id="good"))
            await asyncio.wait_for(good_done.wait(), timeout=1)
        finally:
            await dispatcher.stop()

        assert probed == ["good"]

    @pytest.mark.asyncio
    async def test_submit_waits_for_queue_space(self, make_target) -> None:
        class Prober:
            async def probe(self, target) -> None:
                pass

        dispatcher = Dispatcher(Prober(), queue_size=1, concurrency=1)
        await dispatcher.submit(make_target(id="a"))

        blocked = asyncio.create_task(dispatcher.submit(make_target(id="b")))
        await asyncio.sleep(0.01)
        assert not blocked.done()

        dispatcher.start()
        await asyncio.wait_for(blocked, timeout=1)
        await dispatcher.stop()

    @pytest.mark.asyncio
    async def test_busy_slots_push_back_on_submit(self, make_target) -> None:
        release = asyncio.Event()

        class Prober:
            async def probe(self, target) -> None:
                await release.wait()

        dispatcher = Dispatcher(Prober(), queue_size=2, concurrency=1)
        dispatcher.start()
        target = make_target()
        submits = [asyncio.create_task(dispatcher.submit(target)) for _ in range(50)]
        try:
            await asyncio.sleep(0.05)

            assert dispatcher.inflight == 1
            # one running, one held for a free slot, two queued
            assert sum(task.done() for task in submits) <= 4
        finally:
            release.set()
            for task in submits:
                task.cancel()
            await dispatcher.stop()
            await asyncio.gather(*submits, return_exceptions=True)
