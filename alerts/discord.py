"""Discord webhook notifier delivering coalesced alerts as embeds."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import httpx

from alerts.notifiers.base import BatchNotifier
from core.events import AlertEvent

LOGGER = logging.getLogger(__name__)

TITLE_LIMIT = 256
DESCRIPTION_LIMIT = 4096
# Discord rejects a message whose embeds hold more characters than this in total.
MESSAGE_LIMIT = 6000


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    if limit <= 0:
        return ""
    return text[: limit - 1] + "…"


def _fair_shares(lengths: Sequence[int], budget: int) -> List[int]:
    """Split ``budget`` so short texts keep their length and long ones share the rest."""

    shares = list(lengths)
    if sum(lengths) <= budget:
        return shares
    remaining = budget
    order = sorted(range(len(lengths)), key=lambda i: lengths[i])
    for position, index in enumerate(order):
        share = min(lengths[index], remaining // (len(order) - position))
        shares[index] = share
        remaining -= share
    return shares


def build_embeds(events: Sequence[AlertEvent]) -> List[Dict[str, Any]]:
    """One embed per event, in buffer order.

    Each title and description is cut to Discord's per-field limits, then
    descriptions are shrunk further so the whole message stays within
    ``MESSAGE_LIMIT`` characters.
    """

    titles = [min(len(event.title), TITLE_LIMIT) for event in events]
    title_shares = _fair_shares(titles, MESSAGE_LIMIT)
    descriptions = [min(len(event.body), DESCRIPTION_LIMIT) for event in events]
    description_shares = _fair_shares(descriptions, MESSAGE_LIMIT - sum(title_shares))
    return [
        {
            "title": _truncate(event.title, title_share),
            "description": _truncate(event.body, description_share),
        }
        for event, title_share, description_share in zip(events, title_shares, description_shares)
    ]


async def post_embeds(
    webhook: str,
    embeds: List[Dict[str, Any]],
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> None:
    """POST ``embeds`` to a Discord webhook, raising on HTTP errors."""

    async with httpx.AsyncClient(timeout=10, transport=transport) as client:
        response = await client.post(webhook, json={"embeds": embeds})
        response.raise_for_status()


@dataclass(slots=True)
class DiscordWebhookNotifier(BatchNotifier):
    """Chat webhook channel."""

    webhook: str
    transport: Optional[httpx.AsyncBaseTransport] = None
    name: str = "discord"

    async def send_batch(self, events: Sequence[AlertEvent]) -> bool:
        if not events:
            return True
        try:
            await post_embeds(self.webhook, build_embeds(events), self.transport)
        except Exception as exc:
            LOGGER.exception("Error sending Discord alerts: %s", exc)
            return False
        LOGGER.info("Sent %d Discord alerts", len(events))
        return True


__all__ = ["DiscordWebhookNotifier", "MESSAGE_LIMIT", "build_embeds", "post_embeds"]
