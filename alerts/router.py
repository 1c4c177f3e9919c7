"""Alert fan-out across the configured notification channels."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, List, Optional, Sequence, Set, Union

from alerts.coalescer import CoalescingBuffer
from alerts.discord import DiscordWebhookNotifier
from alerts.email import EmailNotifier
from alerts.notifiers.base import BatchNotifier, Notifier
from alerts.slack import SlackNotifier
from core.config_models import (
    ChannelConfig,
    ChatWebhookChannel,
    ConfigurationError,
    EmailChannel,
    TeamMessagingChannel,
)
from core.events import AlertEvent

LOGGER = logging.getLogger(__name__)

DEFAULT_FLUSH_DELAY_SECONDS = 1.0

AnyNotifier = Union[Notifier, BatchNotifier]


class AlertDispatcher:
    """Deliver every alert to every configured channel.

    Webhook channels are coalesced: alerts are buffered and a single flush
    runs ``flush_delay`` seconds after the first alert of a window. Team
    messaging and email channels deliver each alert immediately. Only the
    first webhook entry is used for flushing; further webhook entries share
    its buffer.
    """

    def __init__(
        self,
        channels: Sequence[ChannelConfig],
        flush_delay: float = DEFAULT_FLUSH_DELAY_SECONDS,
    ) -> None:
        self.channels = tuple(channels)
        self.flush_delay = flush_delay
        self._webhook_buffer = CoalescingBuffer()
        self._tasks: Set[asyncio.Task] = set()
        self._notifiers: List[Optional[AnyNotifier]] = self._build_notifiers(self.channels)
        LOGGER.info(
            "AlertDispatcher initialized with channels: %s",
            [type(channel).__name__ for channel in self.channels],
        )

    def _build_notifiers(self, channels: Sequence[ChannelConfig]) -> List[Optional[AnyNotifier]]:
        return [self._create_notifier(channel) for channel in channels]

    def _create_notifier(self, channel: ChannelConfig) -> Optional[AnyNotifier]:
        if isinstance(channel, ChatWebhookChannel):
            return DiscordWebhookNotifier(webhook=channel.endpoint)
        if isinstance(channel, TeamMessagingChannel):
            return SlackNotifier(token=channel.token, channel=channel.channel, api_url=channel.api_url)
        if isinstance(channel, EmailChannel):
            return EmailNotifier(
                smtp_host=channel.smtp_host,
                smtp_port=channel.smtp_port,
                recipients=channel.recipients,
                username=channel.username,
                password=channel.password,
                sender=channel.sender,
                use_tls=channel.use_tls,
            )
        LOGGER.warning("Unknown alert channel: %r", channel)
        return None

    @property
    def webhook_buffer(self) -> CoalescingBuffer:
        return self._webhook_buffer

    async def dispatch(self, event: AlertEvent) -> None:
        """Fan ``event`` out in configuration order.

        Delivery failures are logged and swallowed. An unsupported channel
        raises :class:`ConfigurationError` and skips the channels after it;
        deliveries already started still complete.
        """

        deliveries: List[asyncio.Task] = []
        try:
            for index, channel in enumerate(self.channels):
                if isinstance(channel, ChatWebhookChannel):
                    self._buffer_webhook_alert(event)
                elif isinstance(channel, (TeamMessagingChannel, EmailChannel)):
                    deliveries.append(self._spawn(self._deliver(self._notifiers[index], event)))
                else:
                    raise ConfigurationError(f"Unsupported alert type: {type(channel).__name__}")
        finally:
            if deliveries:
                await asyncio.gather(*deliveries, return_exceptions=True)

    async def join(self) -> None:
        """Wait for pending flush windows and in-flight deliveries to finish."""

        while self._tasks:
            await asyncio.gather(*tuple(self._tasks), return_exceptions=True)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _deliver(self, notifier: Optional[AnyNotifier], event: AlertEvent) -> None:
        if notifier is None:
            return
        try:
            success = await notifier.send(event)
        except Exception as exc:
            LOGGER.exception("Notifier %s raised: %s", notifier.name, exc)
            return
        if success:
            LOGGER.info("Delivered %s alert via %s", event.severity.value, notifier.name)
        else:
            LOGGER.warning("Failed to deliver %s alert via %s", event.severity.value, notifier.name)

    def _buffer_webhook_alert(self, event: AlertEvent) -> None:
        if self._webhook_buffer.enqueue(event):
            self._webhook_buffer.arm(self._spawn(self._flush_after_delay()))

    async def _flush_after_delay(self) -> None:
        try:
            await asyncio.sleep(self.flush_delay)
        except asyncio.CancelledError:
            # Pending alerts stay buffered for the next window.
            LOGGER.warning(
                "Webhook flush window cancelled with %d alerts pending",
                len(self._webhook_buffer.pending),
            )
            self._webhook_buffer.disarm()
            raise
        await self._send_buffered_webhook_alerts()

    async def _send_buffered_webhook_alerts(self) -> None:
        batch = self._webhook_buffer.drain()
        if not batch:
            return
        notifier = self._webhook_notifier()
        if notifier is None:
            LOGGER.debug("No webhook channel configured; dropped %d alerts", len(batch))
            return
        try:
            await notifier.send_batch(batch)
        except Exception as exc:
            LOGGER.exception("Webhook flush of %d alerts failed: %s", len(batch), exc)

    def _webhook_notifier(self) -> Optional[BatchNotifier]:
        for channel, notifier in zip(self.channels, self._notifiers):
            if isinstance(channel, ChatWebhookChannel):
                return notifier  # type: ignore[return-value]
        return None


__all__ = ["AlertDispatcher", "DEFAULT_FLUSH_DELAY_SECONDS"]
