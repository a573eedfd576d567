from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime, timezone
from typing import Callable, Protocol

import httpx

from statusboard.alerts.base import AlertEvent, AlertSender
from statusboard.core.errors import ProbeRequestError, ProbeTimeout
from statusboard.core.models import AlertKind, ProbeResult, Target

logger = logging.getLogger(__name__)

# RFC 9110 token characters
_METHOD_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")


class ResultPublisher(Protocol):
    async def publish(self, result: ProbeResult) -> None:  # pragma: no cover - interface
        ...


class Prober:
    """Runs one HTTP probe for a target and reports the outcome.

    Alerts are edge-triggered: they compare the outcome with the target's
    ``previously_healthy`` flag as it was before this probe and fire only
    when the two differ.
    """

    def __init__(
        self,
        publisher: ResultPublisher,
        alerts: AlertSender,
        client_factory: Callable[[], httpx.AsyncClient] | None = None,
    ) -> None:
        self._publisher = publisher
        self._alerts = alerts
        self._client_factory = client_factory or (lambda: httpx.AsyncClient(follow_redirects=True))

    async def probe(self, target: Target) -> None:
        async with self._client_factory() as client:
            try:
                request = _build_request(client, target)
            except ProbeRequestError as exc:
                # malformed config is not a liveness event: no alert, flag untouched
                target.error = str(exc)
                logger.warning("cannot build request", extra={"target_id": target.id, "error": target.error})
                await self._publisher.publish(target.snapshot())
                return

            loop = asyncio.get_running_loop()
            started = loop.time()
            target.timestamp = datetime.now(timezone.utc)
            try:
                # httpx timeouts apply per phase; the deadline covers the whole request
                response = await asyncio.wait_for(client.send(request), timeout=target.timeout / 1000)
            except asyncio.TimeoutError:
                await self._on_failure(target, ProbeTimeout(f"request exceeded {target.timeout}ms"))
                return
            except httpx.RequestError as exc:
                await self._on_failure(target, exc)
                return

            await response.aclose()
            elapsed_ms = int((loop.time() - started) * 1000)

        await self._on_success(target, response.status_code, elapsed_ms)

    async def _on_failure(self, target: Target, exc: Exception) -> None:
        target.error = _describe_error(exc)
        if isinstance(exc, (httpx.TimeoutException, ProbeTimeout)):
            target.response_time = target.timeout
            kind = AlertKind.TIMED_OUT
        else:
            kind = AlertKind.DOWN

        # the snapshot keeps the pre-probe flag; the flag itself is settled before
        # any await so an overlapping probe of this target reads the new state
        snapshot = target.snapshot()
        was_healthy = target.previously_healthy
        target.previously_healthy = False

        await self._publisher.publish(snapshot)

        logger.info(
            "%s %s - %s",
            target.method,
            target.url,
            target.error,
            extra={"target_id": target.id},
        )

        if was_healthy:
            await self._alerts.send(AlertEvent.for_target(target, kind))

    async def _on_success(self, target: Target, status_code: int, elapsed_ms: int) -> None:
        target.error = ""
        target.status_code = status_code
        target.response_time = elapsed_ms

        logger.info(
            "%s %s - %dms - %d",
            target.method,
            target.url,
            target.response_time,
            target.status_code,
            extra={"target_id": target.id},
        )

        snapshot = target.snapshot()
        was_healthy = target.previously_healthy
        target.previously_healthy = True

        await self._publisher.publish(snapshot)

        if not was_healthy:
            await self._alerts.send(AlertEvent.for_target(target, AlertKind.UP))


def _build_request(client: httpx.AsyncClient, target: Target) -> httpx.Request:
    if not _METHOD_RE.match(target.method):
        raise ProbeRequestError(f"invalid method {target.method!r}")
    try:
        request = client.build_request(
            target.method,
            target.url,
            timeout=target.timeout / 1000,
        )
    except (httpx.InvalidURL, ValueError, TypeError) as exc:
        raise ProbeRequestError(f"invalid url {target.url!r}: {exc}") from exc
    if request.url.scheme not in ("http", "https") or not request.url.host:
        raise ProbeRequestError(f"invalid url {target.url!r}: expected an absolute http(s) url")
    return request


def _describe_error(exc: Exception) -> str:
    message = str(exc)
    if isinstance(exc, (httpx.TimeoutException, ProbeTimeout)):
        return f"timeout: {message}" if message else "timeout"
    name = exc.__class__.__name__
    return f"{name}: {message}" if message else name
