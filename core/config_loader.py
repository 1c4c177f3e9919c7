"""Configuration loader for the diagnostics runner and its alert channels."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml
from dotenv import load_dotenv

from core.config_models import (
    ChannelConfig,
    ChatWebhookChannel,
    ConfigurationError,
    EmailChannel,
    TeamMessagingChannel,
)
from core.probes import Probe
from diagnostics.batteries import get_battery

BASE_PATH = Path(__file__).resolve().parents[1]
DEFAULT_CONFIG_PATH = BASE_PATH / "config.yaml"


def _env(name: Optional[str]) -> Optional[str]:
    return os.getenv(name) if name else None


def _secret(data: Dict[str, object], key: str) -> str:
    """Read ``key`` directly or through its ``<key>_env`` indirection."""

    value = data.get(key) or _env(data.get(f"{key}_env"))  # type: ignore[arg-type]
    return str(value) if value else ""


_TRUE_WORDS = {"true", "yes", "on", "1"}
_FALSE_WORDS = {"false", "no", "off", "0"}


def _flag(data: Dict[str, object], key: str, default: bool) -> bool:
    """Read a boolean option, accepting quoted YAML words like ``"false"``."""

    value = data.get(key, default)
    if isinstance(value, bool):
        return value
    word = str(value).strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    raise ValueError(f"{key} must be a boolean, got {value!r}")


def _channel_from_dict(data: Dict[str, object]) -> ChannelConfig:
    kind = str(data.get("type", "")).lower()
    if kind == "discord":
        endpoint = _secret(data, "webhook")
        if not endpoint:
            raise ValueError("discord channel requires 'webhook' or 'webhook_env'")
        return ChatWebhookChannel(endpoint=endpoint)
    if kind == "slack":
        token = _secret(data, "token")
        if not token or not data.get("channel"):
            raise ValueError("slack channel requires 'token'/'token_env' and 'channel'")
        return TeamMessagingChannel(
            token=token,
            channel=str(data["channel"]),
            api_url=str(data.get("api_url") or "https://slack.com/api"),
        )
    if kind == "email":
        recipients = tuple(str(item) for item in data.get("recipients") or [])  # type: ignore[union-attr]
        if not data.get("smtp_host") or not recipients:
            raise ValueError("email channel requires 'smtp_host' and 'recipients'")
        return EmailChannel(
            smtp_host=str(data["smtp_host"]),
            recipients=recipients,
            smtp_port=int(data.get("smtp_port", 587)),  # type: ignore[arg-type]
            username=_secret(data, "user"),
            password=_secret(data, "password"),
            sender=str(data.get("sender") or ""),
            use_tls=_flag(data, "use_tls", True),
        )
    raise ConfigurationError(f"Unsupported alert type: {kind or '<missing>'}")


@dataclass
class DiagnosticsConfig:
    """Which probes run and whether successful probes raise alerts."""

    battery: str = "sqlite"
    probes: List[Probe] = field(default_factory=list)
    alert_on_success: bool = True

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, object]]) -> "DiagnosticsConfig":
        if not data:
            return cls()
        battery = str(data.get("battery", "sqlite"))
        get_battery(battery)
        probes = [Probe.from_dict(item) for item in data.get("probes") or []]  # type: ignore[union-attr]
        return cls(
            battery=battery,
            probes=probes,
            alert_on_success=_flag(data, "alert_on_success", True),
        )

    def resolve_probes(self) -> Tuple[Probe, ...]:
        """Custom probes replace the built-in battery when present."""

        if self.probes:
            return tuple(self.probes)
        return get_battery(self.battery)


@dataclass
class AlertsConfig:
    """Notification channels in fan-out order."""

    flush_delay_seconds: float = 1.0
    channels: List[ChannelConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, object]]) -> "AlertsConfig":
        if not data:
            return cls()
        channels = [_channel_from_dict(item) for item in data.get("channels") or []]  # type: ignore[union-attr]
        return cls(
            flush_delay_seconds=float(data.get("flush_delay_seconds", 1.0)),  # type: ignore[arg-type]
            channels=channels,
        )


@dataclass
class AppConfig:
    """Top level configuration model."""

    name: str = "db-diagnostics"
    subject: str = "health check"
    database_url: Optional[str] = None
    diagnostics: DiagnosticsConfig = field(default_factory=DiagnosticsConfig)
    alerts: AlertsConfig = field(default_factory=AlertsConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "AppConfig":
        database = data.get("database") or {}
        if not isinstance(database, dict):
            raise ValueError("database must be a mapping")
        database_url = database.get("url") or _env(database.get("url_env"))
        return cls(
            name=str(data.get("name", "db-diagnostics")),
            subject=str(data.get("subject", "health check")),
            database_url=str(database_url) if database_url else None,
            diagnostics=DiagnosticsConfig.from_dict(data.get("diagnostics")),  # type: ignore[arg-type]
            alerts=AlertsConfig.from_dict(data.get("alerts")),  # type: ignore[arg-type]
        )


def load_config(
    config_path: Optional[Path] = None,
    env_path: Optional[Path] = None,
) -> AppConfig:
    """Load configuration from YAML, resolving secrets from the environment."""

    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
    if env_path is None:
        default_env = BASE_PATH / ".env"
        if default_env.exists():
            env_path = default_env

    if env_path is not None:
        load_dotenv(dotenv_path=env_path, override=False)

    with open(config_path, "r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{config_path} must contain a mapping")
    return AppConfig.from_dict(data)


__all__ = ["DEFAULT_CONFIG_PATH", "AlertsConfig", "AppConfig", "DiagnosticsConfig", "load_config"]
