from __future__ import annotations

import logging

import httpx

from statusboard.alerts.base import AlertEvent, AlertSender
from statusboard.core.monitor_config import SlackConfig

logger = logging.getLogger(__name__)


class SlackNotifier(AlertSender):
    def __init__(self, config: SlackConfig, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._client = client or httpx.AsyncClient(timeout=5.0)

    @property
    def enabled(self) -> bool:
        return bool(self._config.url)

    async def send(self, event: AlertEvent) -> None:
        if not self.enabled:
            return
        payload = {
            "username": self._config.username,
            "icon_emoji": self._config.icon_emoji,
            "channel": self._config.channel,
            "text": event.text,
        }
        try:
            await self._client.post(self._config.url, json=payload)
        except httpx.HTTPError as exc:
            # fire-and-forget: delivery failures never affect probing
            logger.warning(
                "slack alert not delivered",
                extra={"target_id": event.target_id, "error": str(exc)},
            )

    async def aclose(self) -> None:
        await self._client.aclose()
