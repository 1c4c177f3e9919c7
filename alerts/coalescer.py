"""Per-channel buffer that coalesces alerts raised within one flush window."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional

from core.events import AlertEvent


@dataclass(slots=True)
class CoalescingBuffer:
    """Pending alerts plus the flush timer armed for them.

    A live timer is armed exactly when ``pending`` is non-empty. A timer task
    that finished without draining (cancelled with its event loop) no longer
    counts as armed, so the next alert opens a window that also carries the
    leftover alerts. Callers run on one event loop and neither method awaits,
    so an append never interleaves with a drain.
    """

    pending: List[AlertEvent] = field(default_factory=list)
    timer: Optional[asyncio.Task] = None

    @property
    def armed(self) -> bool:
        return self.timer is not None and not self.timer.done()

    def enqueue(self, event: AlertEvent) -> bool:
        """Append ``event``; return True when the caller must arm a timer."""

        self.pending.append(event)
        return not self.armed

    def arm(self, timer: asyncio.Task) -> None:
        if self.armed:
            raise RuntimeError("flush timer already armed")
        self.timer = timer

    def disarm(self) -> None:
        self.timer = None

    def drain(self) -> List[AlertEvent]:
        """Return pending alerts in enqueue order and reset to idle."""

        batch, self.pending = self.pending, []
        self.timer = None
        return batch


__all__ = ["CoalescingBuffer"]
