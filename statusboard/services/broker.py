from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Union

from statusboard.core.models import ProbeResult

logger = logging.getLogger(__name__)

_CLOSED = object()


class OverflowPolicy(str, enum.Enum):
    BLOCK = "block"
    DROP_OLDEST = "drop_oldest"
    DISCONNECT = "disconnect"


class Subscription:
    """Output conduit of one connected observer.

    Only the broker writes to it and closes it. The consumer reads with
    ``get()`` (or ``async for``) until it returns ``None``.
    """

    def __init__(self, maxsize: int = 1, overflow: OverflowPolicy = OverflowPolicy.BLOCK) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=maxsize)
        self._overflow = overflow
        self._detached = False
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    async def get(self) -> ProbeResult | None:
        if self._closed and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            return None
        return item  # type: ignore[return-value]

    async def __aiter__(self) -> AsyncIterator[ProbeResult]:
        while True:
            result = await self.get()
            if result is None:
                return
            yield result

    async def _deliver(self, result: ProbeResult) -> bool:
        """Hand a result to the consumer; ``False`` asks the broker to drop it."""
        if self._detached or self._closed:
            return True
        if self._overflow is OverflowPolicy.BLOCK:
            await self._queue.put(result)
            return True
        try:
            self._queue.put_nowait(result)
        except asyncio.QueueFull:
            if self._overflow is OverflowPolicy.DISCONNECT:
                return False
            self._queue.get_nowait()
            self._queue.put_nowait(result)
            self.dropped += 1
        return True

    def _detach(self) -> None:
        self._detached = True
        # free the queue so a publish blocked on this conduit can finish
        while not self._queue.empty():
            self._queue.get_nowait()

    def _close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(_CLOSED)


@dataclass(frozen=True)
class _Subscribe:
    subscription: Subscription
    registered: asyncio.Future = field(compare=False)


@dataclass(frozen=True)
class _Unsubscribe:
    subscription: Subscription


@dataclass(frozen=True)
class _Publish:
    result: ProbeResult
    delivered: asyncio.Future = field(compare=False)


_Message = Union[_Subscribe, _Unsubscribe, _Publish]


class Broker:
    """Fans probe results out to every connected subscriber.

    A single actor task owns the subscriber set. Subscribe, unsubscribe and
    publish are queued on one inbox and handled one at a time, so a publish
    always sees a complete set. A subscriber receives only results published
    after its subscription was registered.
    """

    def __init__(
        self,
        buffer_size: int = 1,
        overflow: OverflowPolicy | str = OverflowPolicy.BLOCK,
    ) -> None:
        self._buffer_size = buffer_size
        self._overflow = OverflowPolicy(overflow)
        self._inbox: asyncio.Queue[_Message] = asyncio.Queue()
        self._subscribers: set[Subscription] = set()
        self._task: asyncio.Task[None] | None = None

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name="broker")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        for subscription in self._subscribers:
            subscription._close()
        self._subscribers.clear()

    async def subscribe(self) -> Subscription:
        subscription = Subscription(self._buffer_size, self._overflow)
        registered = asyncio.get_running_loop().create_future()
        await self._inbox.put(_Subscribe(subscription, registered))
        await registered
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription._detach()
        self._inbox.put_nowait(_Unsubscribe(subscription))

    async def publish(self, result: ProbeResult) -> None:
        delivered = asyncio.get_running_loop().create_future()
        await self._inbox.put(_Publish(result, delivered))
        await delivered

    async def _run(self) -> None:
        while True:
            message = await self._inbox.get()
            try:
                await self._handle(message)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("broker failed to handle message")
            finally:
                _settle(message)

    async def _handle(self, message: _Message) -> None:
        if isinstance(message, _Subscribe):
            self._subscribers.add(message.subscription)
            logger.debug("subscriber added", extra={"subscribers": len(self._subscribers)})
        elif isinstance(message, _Unsubscribe):
            self._remove(message.subscription)
        else:
            # iterate a copy: disconnect-on-overflow removes while fanning out
            for subscription in list(self._subscribers):
                if not await subscription._deliver(message.result):
                    logger.warning(
                        "dropping slow subscriber",
                        extra={"result_id": message.result.id},
                    )
                    self._remove(subscription)

    def _remove(self, subscription: Subscription) -> None:
        self._subscribers.discard(subscription)
        subscription._close()
        logger.debug("subscriber removed", extra={"subscribers": len(self._subscribers)})


def _settle(message: _Message) -> None:
    if isinstance(message, _Subscribe):
        future = message.registered
    elif isinstance(message, _Publish):
        future = message.delivered
    else:
        return
    if not future.done():
        future.set_result(None)
