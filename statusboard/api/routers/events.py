from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends, Request
from starlette.responses import StreamingResponse

from statusboard.api.dependencies import get_app_settings, get_broker
from statusboard.api.schemas.events import encode_result
from statusboard.core.config import Settings
from statusboard.core.models import ProbeResult
from statusboard.services.broker import Broker

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])

KEEPALIVE = ": keepalive\n\n"


def format_event(result: ProbeResult) -> str:
    return f"data: {encode_result(result)}\n\n"


async def event_stream(
    request: Request,
    broker: Broker,
    keepalive_sec: float,
) -> AsyncIterator[str]:
    """Relay results to one SSE client until either side goes away.

    The subscription is registered only once the body is iterated, so a
    response that is never sent leaves nothing behind in the broker.
    """
    subscription = await broker.subscribe()
    logger.info("event stream opened", extra={"client": request.client.host if request.client else None})
    try:
        while True:
            try:
                result = await asyncio.wait_for(subscription.get(), timeout=keepalive_sec)
            except asyncio.TimeoutError:
                if await request.is_disconnected():
                    break
                yield KEEPALIVE
                continue
            if result is None:
                break
            yield format_event(result)
    finally:
        broker.unsubscribe(subscription)
        logger.info("event stream closed", extra={"client": request.client.host if request.client else None})


@router.get("/events")
async def events(
    request: Request,
    broker: Broker = Depends(get_broker),
    app_settings: Settings = Depends(get_app_settings),
) -> StreamingResponse:
    return StreamingResponse(
        event_stream(request, broker, app_settings.sse_keepalive_sec),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
