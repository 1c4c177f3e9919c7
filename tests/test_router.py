import asyncio
import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Sequence

import httpx
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from alerts.discord import DiscordWebhookNotifier
from alerts.router import AlertDispatcher
from core.config_models import (
    ChatWebhookChannel,
    ConfigurationError,
    EmailChannel,
    TeamMessagingChannel,
)
from core.events import AlertEvent, Severity

WEBHOOK = ChatWebhookChannel(endpoint="https://discord.example/api/webhooks/1/abc")
SLACK = TeamMessagingChannel(token="xoxb-test", channel="#db")
EMAIL = EmailChannel(smtp_host="smtp.example.com", recipients=("dba@example.com",))


@dataclass
class _FakeBatchNotifier:
    name: str = "discord"
    succeed: bool = True
    batches: List[List[AlertEvent]] = field(default_factory=list)

    async def send_batch(self, events: Sequence[AlertEvent]) -> bool:
        self.batches.append(list(events))
        if not self.succeed:
            raise httpx.ConnectError("network down")
        return True


@dataclass
class _FakeNotifier:
    name: str
    succeed: bool = True
    messages: List[AlertEvent] = field(default_factory=list)

    async def send(self, event: AlertEvent) -> bool:
        self.messages.append(event)
        return self.succeed


@dataclass
class _UnknownChannel:
    url: str = "https://pager.example"


def _event(title: str) -> AlertEvent:
    return AlertEvent(title=title, body=f"body of {title}", severity=Severity.ERROR)


def _patch_notifiers(monkeypatch: pytest.MonkeyPatch, registry: Dict[type, object]) -> None:
    monkeypatch.setattr(
        AlertDispatcher,
        "_create_notifier",
        lambda self, channel: registry.get(type(channel)),
    )


def test_webhook_alerts_coalesce_into_one_call(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = _FakeBatchNotifier()
    _patch_notifiers(monkeypatch, {ChatWebhookChannel: fake})

    async def _run() -> None:
        dispatcher = AlertDispatcher([WEBHOOK], flush_delay=0.05)
        for title in ("E1", "E2", "E3"):
            await dispatcher.dispatch(_event(title))

        assert [e.title for e in dispatcher.webhook_buffer.pending] == ["E1", "E2", "E3"]
        assert fake.batches == []

        await dispatcher.join()

        assert len(fake.batches) == 1
        assert [e.title for e in fake.batches[0]] == ["E1", "E2", "E3"]
        assert dispatcher.webhook_buffer.pending == []
        assert not dispatcher.webhook_buffer.armed

    asyncio.run(_run())


def test_second_enqueue_does_not_arm_another_timer(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_notifiers(monkeypatch, {ChatWebhookChannel: _FakeBatchNotifier()})

    async def _run() -> None:
        dispatcher = AlertDispatcher([WEBHOOK], flush_delay=0.05)
        await dispatcher.dispatch(_event("E1"))
        first_timer = dispatcher.webhook_buffer.timer
        await dispatcher.dispatch(_event("E2"))

        assert first_timer is not None
        assert dispatcher.webhook_buffer.timer is first_timer
        await dispatcher.join()

    asyncio.run(_run())


def test_failed_flush_still_clears_buffer(monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture) -> None:
    fake = _FakeBatchNotifier(succeed=False)
    _patch_notifiers(monkeypatch, {ChatWebhookChannel: fake})

    async def _run() -> None:
        dispatcher = AlertDispatcher([WEBHOOK], flush_delay=0.01)
        await dispatcher.dispatch(_event("E1"))
        await dispatcher.dispatch(_event("E2"))
        await dispatcher.join()

        assert len(fake.batches) == 1
        assert dispatcher.webhook_buffer.pending == []
        assert not dispatcher.webhook_buffer.armed

        # the next window starts from an empty buffer, nothing is retried
        await dispatcher.dispatch(_event("E3"))
        await dispatcher.join()
        assert [e.title for e in fake.batches[1]] == ["E3"]

    caplog.set_level(logging.ERROR)
    asyncio.run(_run())
    assert "Webhook flush of 2 alerts failed" in caplog.text


def test_alerts_after_flush_open_a_new_window(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = _FakeBatchNotifier()
    _patch_notifiers(monkeypatch, {ChatWebhookChannel: fake})

    async def _run() -> None:
        dispatcher = AlertDispatcher([WEBHOOK], flush_delay=0.01)
        await dispatcher.dispatch(_event("E1"))
        await dispatcher.join()
        await dispatcher.dispatch(_event("E2"))
        await dispatcher.join()

    asyncio.run(_run())
    assert [[e.title for e in batch] for batch in fake.batches] == [["E1"], ["E2"]]


def test_immediate_channels_send_one_call_per_alert(monkeypatch: pytest.MonkeyPatch) -> None:
    webhook = _FakeBatchNotifier()
    slack = _FakeNotifier(name="slack")
    email = _FakeNotifier(name="email")
    _patch_notifiers(
        monkeypatch,
        {ChatWebhookChannel: webhook, TeamMessagingChannel: slack, EmailChannel: email},
    )

    async def _run() -> None:
        dispatcher = AlertDispatcher([WEBHOOK, SLACK, EMAIL], flush_delay=0.05)
        await dispatcher.dispatch(_event("E1"))
        await dispatcher.dispatch(_event("E2"))

        assert [e.title for e in slack.messages] == ["E1", "E2"]
        assert [e.title for e in email.messages] == ["E1", "E2"]
        assert webhook.batches == []

        await dispatcher.join()
        assert len(webhook.batches) == 1

    asyncio.run(_run())


def test_immediate_channel_failure_is_contained(monkeypatch: pytest.MonkeyPatch) -> None:
    slack = _FakeNotifier(name="slack", succeed=False)
    email = _FakeNotifier(name="email")
    _patch_notifiers(monkeypatch, {TeamMessagingChannel: slack, EmailChannel: email})

    async def _run() -> None:
        dispatcher = AlertDispatcher([SLACK, EMAIL])
        await dispatcher.dispatch(_event("E1"))

    asyncio.run(_run())
    assert len(slack.messages) == 1
    assert len(email.messages) == 1


def test_raising_notifier_is_contained(monkeypatch: pytest.MonkeyPatch) -> None:
    class _Raising:
        name = "slack"

        async def send(self, event: AlertEvent) -> bool:
            raise RuntimeError("unexpected")

    email = _FakeNotifier(name="email")
    _patch_notifiers(monkeypatch, {TeamMessagingChannel: _Raising(), EmailChannel: email})

    async def _run() -> None:
        dispatcher = AlertDispatcher([SLACK, EMAIL])
        await dispatcher.dispatch(_event("E1"))

    asyncio.run(_run())
    assert len(email.messages) == 1


def test_unsupported_channel_raises_and_skips_remaining(monkeypatch: pytest.MonkeyPatch) -> None:
    slack = _FakeNotifier(name="slack")
    email = _FakeNotifier(name="email")
    _patch_notifiers(monkeypatch, {TeamMessagingChannel: slack, EmailChannel: email})

    async def _run() -> None:
        dispatcher = AlertDispatcher([SLACK, _UnknownChannel(), EMAIL])  # type: ignore[list-item]
        with pytest.raises(ConfigurationError):
            await dispatcher.dispatch(_event("E1"))
        with pytest.raises(ConfigurationError):
            await dispatcher.dispatch(_event("E2"))

    asyncio.run(_run())
    assert [e.title for e in slack.messages] == ["E1", "E2"]
    assert email.messages == []


def test_discord_payload_carries_one_embed_per_alert() -> None:
    requests: List[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(204)

    async def _run() -> None:
        dispatcher = AlertDispatcher([WEBHOOK], flush_delay=0.01)
        dispatcher._notifiers[0] = DiscordWebhookNotifier(  # noqa: SLF001
            webhook=WEBHOOK.endpoint, transport=httpx.MockTransport(_handler)
        )
        await dispatcher.dispatch(_event("SELECT 1"))
        await dispatcher.dispatch(_event("SELECT 2"))
        await dispatcher.join()

    asyncio.run(_run())

    assert len(requests) == 1
    assert str(requests[0].url) == WEBHOOK.endpoint
    payload = json.loads(requests[0].content)
    assert payload == {
        "embeds": [
            {"title": "SELECT 1", "description": "body of SELECT 1"},
            {"title": "SELECT 2", "description": "body of SELECT 2"},
        ]
    }


def test_discord_http_error_clears_buffer() -> None:
    async def _run() -> AlertDispatcher:
        dispatcher = AlertDispatcher([WEBHOOK], flush_delay=0.01)
        dispatcher._notifiers[0] = DiscordWebhookNotifier(  # noqa: SLF001
            webhook=WEBHOOK.endpoint,
            transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        )
        await dispatcher.dispatch(_event("SELECT 1"))
        await dispatcher.join()
        return dispatcher

    dispatcher = asyncio.run(_run())
    assert dispatcher.webhook_buffer.pending == []
    assert not dispatcher.webhook_buffer.armed


def test_no_channels_is_a_no_op() -> None:
    async def _run() -> None:
        dispatcher = AlertDispatcher([])
        await dispatcher.dispatch(_event("E1"))
        await dispatcher.join()

    asyncio.run(_run())


def test_window_cancelled_with_its_loop_is_reopened_on_the_next_loop(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = _FakeBatchNotifier()
    _patch_notifiers(monkeypatch, {ChatWebhookChannel: fake})
    dispatcher = AlertDispatcher([WEBHOOK], flush_delay=0.05)

    asyncio.run(dispatcher.dispatch(_event("E1")))

    assert dispatcher.webhook_buffer.pending == [_event("E1")]
    assert not dispatcher.webhook_buffer.armed

    async def _second() -> None:
        await dispatcher.dispatch(_event("E2"))
        assert dispatcher.webhook_buffer.armed
        await dispatcher.join()

    asyncio.run(_second())

    assert [[e.title for e in batch] for batch in fake.batches] == [["E1", "E2"]]
    assert dispatcher.webhook_buffer.pending == []
    assert not dispatcher.webhook_buffer.armed
