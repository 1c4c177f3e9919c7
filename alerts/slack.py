"""Slack notifier posting one message per alert through chat.postMessage."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from alerts.notifiers.base import Notifier
from core.events import AlertEvent

LOGGER = logging.getLogger(__name__)


def format_text(event: AlertEvent) -> str:
    body = event.body or "(no result)"
    return f"*[{event.severity.value.upper()}] {event.title}*\n```{body}```"


@dataclass(slots=True)
class SlackNotifier(Notifier):
    """Team messaging channel."""

    token: str
    channel: str
    api_url: str = "https://slack.com/api"
    transport: Optional[httpx.AsyncBaseTransport] = None
    name: str = "slack"

    async def send(self, event: AlertEvent) -> bool:
        headers = {"Authorization": f"Bearer {self.token}"}
        payload = {"channel": self.channel, "text": format_text(event)}
        url = f"{self.api_url.rstrip('/')}/chat.postMessage"
        try:
            async with httpx.AsyncClient(timeout=10, transport=self.transport) as client:
                response = await client.post(url, headers=headers, json=payload)
                response.raise_for_status()
                data = response.json()
        except Exception as exc:
            LOGGER.exception("Failed to send Slack message: %s", exc)
            return False
        if not data.get("ok"):
            LOGGER.error("Slack message error: %s", data.get("error", "unknown error"))
            return False
        LOGGER.info("Slack message sent: %s", event.title)
        return True


__all__ = ["SlackNotifier", "format_text"]
