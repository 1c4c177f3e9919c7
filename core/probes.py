"""Probe definitions and per-execution outcomes."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional


@dataclass(frozen=True, slots=True)
class Probe:
    """A single named read-only diagnostic statement."""

    name: str
    statement: str
    description: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Probe":
        if not data.get("statement"):
            raise ValueError("probe requires 'statement'")
        description = str(data.get("description") or "")
        name = str(data.get("name") or description or "custom")
        return cls(name=name, statement=str(data["statement"]).strip(), description=description or name)


@dataclass(slots=True)
class ProbeOutcome:
    """Result of executing one probe: a serialized payload or an error detail."""

    probe: Probe
    success: bool
    payload: Optional[str] = None
    error_detail: Optional[str] = None

    @classmethod
    def succeeded(cls, probe: Probe, payload: str) -> "ProbeOutcome":
        return cls(probe=probe, success=True, payload=payload)

    @classmethod
    def failed(cls, probe: Probe, error_detail: str) -> "ProbeOutcome":
        return cls(probe=probe, success=False, error_detail=error_detail)


def serialize_rows(rows: Iterable[Mapping[str, Any]] | None) -> str:
    """Render a result set as indented JSON text."""

    if rows is None:
        return "[]"
    return json.dumps([dict(row) for row in rows], ensure_ascii=False, indent=2, default=str)


__all__ = ["Probe", "ProbeOutcome", "serialize_rows"]
