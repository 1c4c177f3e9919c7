from __future__ import annotations

"""Main entry point running one diagnostics pass against a database."""

import argparse
import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from alerts.router import AlertDispatcher
from core.config_loader import DEFAULT_CONFIG_PATH, AppConfig, load_config
from core.config_models import ConfigurationError
from diagnostics.batteries import get_battery
from diagnostics.runner import DiagnosticRunner
from storage.session import open_session

LOGGER = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Database health diagnostics")
    parser.add_argument("--config", type=Path, default=None, help="YAML config file")
    parser.add_argument("--env", type=Path, default=None, help=".env file with channel secrets")
    parser.add_argument("--database", default=None, help="Database url, overrides the config")
    parser.add_argument("--subject", default=None, help="Label printed with every probe")
    parser.add_argument("--battery", default=None, help="Built-in probe battery (innodb, sqlite)")
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


def load_app_config(config_path: Optional[Path] = None, env_path: Optional[Path] = None) -> AppConfig:
    """Read ``config_path``, else the default ``config.yaml`` when it exists."""

    if config_path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            LOGGER.info("No config file found at %s; using defaults", DEFAULT_CONFIG_PATH)
            return AppConfig()
        config_path = DEFAULT_CONFIG_PATH
    return load_config(config_path=config_path, env_path=env_path)


def build_dispatcher(config: AppConfig) -> AlertDispatcher:
    return AlertDispatcher(config.alerts.channels, flush_delay=config.alerts.flush_delay_seconds)


def build_runner(config: AppConfig, dispatcher: AlertDispatcher, battery: Optional[str] = None) -> DiagnosticRunner:
    probes = get_battery(battery) if battery else config.diagnostics.resolve_probes()
    return DiagnosticRunner(
        name=config.name,
        probes=probes,
        dispatcher=dispatcher,
        alert_on_success=config.diagnostics.alert_on_success,
    )


async def run_once(config: AppConfig, database_url: str, subject: str, battery: Optional[str] = None) -> None:
    dispatcher = build_dispatcher(config)
    runner = build_runner(config, dispatcher, battery)
    session = open_session(database_url)
    try:
        await runner.run(subject, session)
        await dispatcher.join()
    finally:
        session.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)
    try:
        config = load_app_config(args.config, args.env)
        database_url = args.database or config.database_url
        if not database_url:
            raise ConfigurationError("No database configured; pass --database or set database.url")
        asyncio.run(run_once(config, database_url, args.subject or config.subject, args.battery))
    except ConfigurationError as exc:
        LOGGER.error("Configuration error: %s", exc)
        return 2
    except KeyboardInterrupt:
        LOGGER.info("Interrupted by user.")
        return 130
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
