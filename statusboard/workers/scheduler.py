from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Awaitable, Callable, Iterable, Protocol

from statusboard.core.models import Target

logger = logging.getLogger(__name__)


class TargetSubmitter(Protocol):
    async def submit(self, target: Target) -> None:  # pragma: no cover - interface
        ...


class Scheduler:
    """Drives one independent periodic loop per target.

    Each loop keeps its own deadline on the monotonic clock and advances it by
    exactly one interval per tick, so the time spent submitting does not
    accumulate as drift. When a submission blocks past the next deadline,
    one late tick fires immediately and the rest are skipped rather than
    fired in a burst.
    """

    def __init__(
        self,
        dispatcher: TargetSubmitter,
        clock: Callable[[], float] | None = None,
        sleep_func: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._clock = clock
        self._sleep = sleep_func or asyncio.sleep
        self._tasks: list[asyncio.Task[None]] = []

    def start(self, targets: Iterable[Target]) -> None:
        for target in targets:
            task = asyncio.create_task(self._tick_loop(target), name=f"schedule-{target.id}")
            self._tasks.append(task)
        logger.info("scheduler started", extra={"targets": len(self._tasks)})

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("scheduler stopped")

    def _now(self) -> float:
        if self._clock is not None:
            return self._clock()
        return asyncio.get_running_loop().time()

    async def _tick_loop(self, target: Target) -> None:
        interval = float(target.interval)
        next_at = self._now() + interval
        while True:
            delay = next_at - self._now()
            if delay > 0:
                await self._sleep(delay)
            await self._dispatcher.submit(target)

            next_at += interval
            # a late tick still fires once; any further ticks it overran are dropped
            missed = math.floor((self._now() - next_at) / interval)
            if missed > 0:
                next_at += missed * interval
                logger.warning(
                    "skipped ticks",
                    extra={"target_id": target.id, "missed": missed},
                )
