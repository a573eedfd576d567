from __future__ import annotations

import logging

import httpx

from statusboard.alerts.base import AlertEvent, AlertSender

logger = logging.getLogger(__name__)


class TelegramNotifier(AlertSender):
    def __init__(
        self,
        token: str,
        chat_id: str,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not token:
            raise RuntimeError("Telegram bot token is not configured")
        self._client = client or httpx.AsyncClient(timeout=5.0)
        self._token = token
        self._chat_id = chat_id

    async def send(self, event: AlertEvent) -> None:
        url = f"https://api.telegram.org/bot{self._token}/sendMessage"
        payload = {
            "chat_id": self._chat_id,
            "text": event.text,
            "disable_web_page_preview": True,
        }
        try:
            await self._client.post(url, json=payload)
        except httpx.HTTPError as exc:
            logger.warning(
                "telegram alert not delivered",
                extra={"target_id": event.target_id, "error": str(exc)},
            )

    async def aclose(self) -> None:
        await self._client.aclose()
