"""Notification channel configuration, one dataclass per channel kind."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple, Union


class ConfigurationError(ValueError):
    """Raised for unsupported channel types, batteries or database URLs."""


@dataclass(frozen=True, slots=True)
class ChatWebhookChannel:
    """Discord-style webhook; alerts are coalesced into one POST per window."""

    endpoint: str


@dataclass(frozen=True, slots=True)
class TeamMessagingChannel:
    """Slack bot credentials, one message per alert."""

    token: str
    channel: str
    api_url: str = "https://slack.com/api"


@dataclass(frozen=True, slots=True)
class EmailChannel:
    """SMTP delivery, one mail per alert."""

    smtp_host: str
    recipients: Tuple[str, ...]
    smtp_port: int = 587
    username: str = ""
    password: str = ""
    sender: str = ""
    use_tls: bool = True


ChannelConfig = Union[ChatWebhookChannel, TeamMessagingChannel, EmailChannel]


__all__ = [
    "ChannelConfig",
    "ChatWebhookChannel",
    "ConfigurationError",
    "EmailChannel",
    "TeamMessagingChannel",
]
