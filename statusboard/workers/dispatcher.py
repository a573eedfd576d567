from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from statusboard.core.models import Target

logger = logging.getLogger(__name__)


class TargetProber(Protocol):
    async def probe(self, target: Target) -> None:  # pragma: no cover - interface
        ...


class Dispatcher:
    """Relays due targets from the scheduler to concurrently running probes."""

    def __init__(self, prober: TargetProber, queue_size: int, concurrency: int) -> None:
        self._prober = prober
        self._queue: asyncio.Queue[Target] = asyncio.Queue(maxsize=max(queue_size, 1))
        self._semaphore = asyncio.Semaphore(concurrency)
        self._inflight: set[asyncio.Task[None]] = set()
        self._task: asyncio.Task[None] | None = None

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    async def submit(self, target: Target) -> None:
        # blocks only the calling target's loop while the queue is full
        await self._queue.put(target)

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self.run(), name="dispatcher")

    async def stop(self) -> None:
        tasks = list(self._inflight)
        if self._task is not None:
            tasks.append(self._task)
            self._task = None
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._inflight.clear()

    async def run(self) -> None:
        while True:
            target = await self._queue.get()
            # a target waits here while every probe slot is busy; the queue then
            # fills and submit() blocks
            await self._semaphore.acquire()
            task = asyncio.create_task(self._run_probe(target), name=f"probe-{target.id}")
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)

    async def _run_probe(self, target: Target) -> None:
        try:
            await self._prober.probe(target)
        except Exception:
            logger.exception("probe failed", extra={"target_id": target.id})
        finally:
            self._semaphore.release()
