"""Alert event definitions shared by the diagnostics runner and notifiers.

The event layer stays transport agnostic: the runner produces ``AlertEvent``
instances and every channel decides on its own how to render them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Severity(str, Enum):
    """Alert severity."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass(slots=True)
class AlertEvent:
    """One alert raised for a probe outcome."""

    title: str
    body: str
    severity: Severity = Severity.ERROR


__all__ = ["AlertEvent", "Severity"]
