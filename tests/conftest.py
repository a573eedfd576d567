"""Shared test fixtures."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

import httpx
import pytest
import pytest_asyncio

from statusboard.alerts.base import AlertEvent
from statusboard.core.models import ProbeResult, Target
from statusboard.services.broker import Broker


class RecordingAlerts:
    def __init__(self) -> None:
        self.events: list[AlertEvent] = []

    async def send(self, event: AlertEvent) -> None:
        self.events.append(event)

    @property
    def kinds(self) -> list[str]:
        return [e.kind.value for e in self.events]


class RecordingPublisher:
    def __init__(self) -> None:
        self.results: list[ProbeResult] = []

    async def publish(self, result: ProbeResult) -> None:
        self.results.append(result)


@pytest.fixture
def alerts() -> RecordingAlerts:
    return RecordingAlerts()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def make_target() -> Callable[..., Target]:
    def _make(**overrides) -> Target:
        fields = {
            "id": "api",
            "url": "http://service.test/health",
            "name": "API",
            "description": "public api",
            "method": "GET",
            "interval": 1,
            "timeout": 500,
        }
        fields.update(overrides)
        return Target(**fields)

    return _make


@pytest.fixture
def make_result() -> Callable[..., ProbeResult]:
    def _make(id: str = "api", status_code: int = 200, **overrides) -> ProbeResult:
        fields = {
            "id": id,
            "url": f"http://{id}.test/",
            "name": id.upper(),
            "description": "",
            "method": "GET",
            "interval": 10,
            "timeout": 1000,
            "timestamp": datetime(2026, 1, 1, tzinfo=timezone.utc),
            "status_code": status_code,
            "response_time": 12,
            "error": "",
            "previously_healthy": True,
        }
        fields.update(overrides)
        return ProbeResult(**fields)

    return _make


@pytest.fixture
def client_factory() -> Callable[[Callable[[httpx.Request], httpx.Response]], Callable[[], httpx.AsyncClient]]:
    """Builds httpx client factories backed by a MockTransport handler."""

    def _factory(handler: Callable[[httpx.Request], httpx.Response]) -> Callable[[], httpx.AsyncClient]:
        return lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)

    return _factory


@pytest_asyncio.fixture
async def broker():
    b = Broker(buffer_size=4)
    b.start()
    yield b
    await b.stop()
