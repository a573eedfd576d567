from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime


class AlertKind(str, enum.Enum):
    DOWN = "down"
    TIMED_OUT = "timed_out"
    UP = "up"


@dataclass(frozen=True)
class ProbeResult:
    id: str
    url: str
    name: str
    description: str
    method: str
    interval: int
    timeout: int
    timestamp: datetime | None
    status_code: int
    response_time: int
    error: str
    previously_healthy: bool


@dataclass
class Target:
    """A monitored endpoint and the state observed by its latest probe.

    Only the probe currently running for this target mutates the observed
    fields. ``previously_healthy`` holds the outcome of the preceding probe
    and is read before the running probe overwrites it.
    """

    id: str
    url: str
    name: str
    interval: int
    timeout: int
    method: str = "GET"
    description: str = ""

    timestamp: datetime | None = None
    status_code: int = 0
    response_time: int = 0
    error: str = ""
    previously_healthy: bool = True

    def snapshot(self) -> ProbeResult:
        return ProbeResult(
            id=self.id,
            url=self.url,
            name=self.name,
            description=self.description,
            method=self.method,
            interval=self.interval,
            timeout=self.timeout,
            timestamp=self.timestamp,
            status_code=self.status_code,
            response_time=self.response_time,
            error=self.error,
            previously_healthy=self.previously_healthy,
        )
