from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, Sequence

from statusboard.core.models import AlertKind, Target

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlertEvent:
    target_id: str
    target_name: str
    url: str
    kind: AlertKind
    timeout_ms: int
    occurred_at: datetime | None = None

    @classmethod
    def for_target(cls, target: Target, kind: AlertKind) -> "AlertEvent":
        return cls(
            target_id=target.id,
            target_name=target.name,
            url=target.url,
            kind=kind,
            timeout_ms=target.timeout,
            occurred_at=target.timestamp,
        )

    @property
    def text(self) -> str:
        if self.kind is AlertKind.TIMED_OUT:
            return f"{self.target_name} [{self.url}] timed out after {self.timeout_ms}ms."
        if self.kind is AlertKind.DOWN:
            return f"{self.target_name} [{self.url}] is down."
        return f"{self.target_name} [{self.url}] is up."


class AlertSender(Protocol):
    async def send(self, event: AlertEvent) -> None:  # pragma: no cover - interface
        ...


class FanoutNotifier:
    def __init__(self, senders: Sequence[AlertSender]) -> None:
        self._senders = tuple(senders)

    async def send(self, event: AlertEvent) -> None:
        for sender in self._senders:
            try:
                await sender.send(event)
            except Exception:
                # sinks are best-effort; one failing sink must not starve the rest
                logger.exception("alert sender failed", extra={"target_id": event.target_id})

    async def aclose(self) -> None:
        for sender in self._senders:
            close = getattr(sender, "aclose", None)
            if close is not None:
                await close()
