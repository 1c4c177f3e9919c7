"""Sequential execution of a probe battery with per-probe error isolation."""
from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Tuple

from alerts.router import AlertDispatcher
from core.config_models import ConfigurationError
from core.events import AlertEvent, Severity
from core.probes import Probe, ProbeOutcome, serialize_rows
from storage.session import QueryExecutionError, QuerySession

LOGGER = logging.getLogger(__name__)


class DiagnosticRunner:
    """Run every probe in declaration order and forward each outcome as an alert.

    Probes share one session and are never issued concurrently. A failing
    probe is logged once and the next probe still runs. Every outcome, success
    included, becomes an error-severity alert unless ``alert_on_success`` is
    turned off.
    """

    def __init__(
        self,
        name: str,
        probes: Iterable[Probe],
        dispatcher: AlertDispatcher,
        alert_on_success: bool = True,
    ) -> None:
        self.name = name
        self.probes: Tuple[Probe, ...] = tuple(probes)
        self.dispatcher = dispatcher
        self.alert_on_success = alert_on_success

    async def run(self, subject: str, session: QuerySession) -> None:
        for probe in self.probes:
            outcome = await self._execute(subject, probe, session)
            if outcome.success and not self.alert_on_success:
                continue
            await self._forward(outcome)

    async def _execute(self, subject: str, probe: Probe, session: QuerySession) -> ProbeOutcome:
        LOGGER.info("--- %s: %s / %s ---", self.name, subject, probe.description)
        try:
            rows = await asyncio.to_thread(session.execute, probe.statement)
            payload = serialize_rows(rows)
        except QueryExecutionError as exc:
            LOGGER.error("Error executing query: %s: %s", probe.description, exc.detail)
            return ProbeOutcome.failed(probe, exc.detail)
        except Exception as exc:
            LOGGER.exception("Error executing query: %s", probe.description)
            return ProbeOutcome.failed(probe, f"{type(exc).__name__}: {exc}")
        LOGGER.info("%s", payload)
        return ProbeOutcome.succeeded(probe, payload)

    async def _forward(self, outcome: ProbeOutcome) -> None:
        event = AlertEvent(
            title=outcome.probe.statement,
            body=outcome.payload or "",
            severity=Severity.ERROR,
        )
        try:
            await self.dispatcher.dispatch(event)
        except ConfigurationError as exc:
            LOGGER.error("Alert dispatch misconfigured for %s: %s", outcome.probe.name, exc)
        except Exception:
            LOGGER.exception("Alert dispatch failed for %s", outcome.probe.name)


__all__ = ["DiagnosticRunner"]
