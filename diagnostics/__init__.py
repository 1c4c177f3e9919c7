"""Database diagnostics: probe batteries and the sequential runner."""

from .batteries import INNODB_BATTERY, SQLITE_BATTERY, get_battery
from .runner import DiagnosticRunner

__all__ = ["DiagnosticRunner", "INNODB_BATTERY", "SQLITE_BATTERY", "get_battery"]
