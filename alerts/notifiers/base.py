"""Notifier abstraction keeping alert channels pluggable."""

from __future__ import annotations

from typing import Protocol, Sequence

from core.events import AlertEvent


class Notifier(Protocol):
    """Immediate channel: one outbound call per alert."""

    name: str

    async def send(self, event: AlertEvent) -> bool:
        """Deliver one alert and return whether it succeeded. Never raises."""


class BatchNotifier(Protocol):
    """Coalesced channel: one outbound call carrying a whole window of alerts."""

    name: str

    async def send_batch(self, events: Sequence[AlertEvent]) -> bool:
        """Deliver ``events`` in order in a single call. Never raises."""
