"""SMTP notifier sending one mail per alert."""

from __future__ import annotations

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Tuple

from alerts.notifiers.base import Notifier
from core.events import AlertEvent

LOGGER = logging.getLogger(__name__)

SUBJECT_PREFIX = "[DB Diagnostics]"


@dataclass(slots=True)
class EmailNotifier(Notifier):
    """Email channel; the blocking SMTP exchange runs in a worker thread."""

    smtp_host: str
    smtp_port: int
    recipients: Tuple[str, ...]
    username: str = ""
    password: str = ""
    sender: str = ""
    use_tls: bool = True
    name: str = "email"

    def build_message(self, event: AlertEvent) -> EmailMessage:
        subject_title = " ".join(event.title.split())[:120]
        msg = EmailMessage()
        msg["Subject"] = f"{SUBJECT_PREFIX} {event.severity.value.upper()} {subject_title}"
        msg["From"] = self.sender or self.username
        msg["To"] = ", ".join(self.recipients)
        msg.set_content(f"{event.title}\n\n{event.body or '(no result)'}")
        return msg

    def _deliver(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=20) as client:
            if self.use_tls:
                client.starttls()
            if self.username:
                client.login(self.username, self.password)
            client.send_message(msg)

    async def send(self, event: AlertEvent) -> bool:
        if not self.recipients:
            LOGGER.warning("Email notifier has no recipients; skip send")
            return False
        try:
            await asyncio.to_thread(self._deliver, self.build_message(event))
        except Exception as exc:
            LOGGER.exception("Failed to send email alert: %s", exc)
            return False
        LOGGER.info("Email alert sent to %d recipients", len(self.recipients))
        return True


__all__ = ["EmailNotifier"]
