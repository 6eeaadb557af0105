"""Failure notifications sent through the configured SMTP relay."""
from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from datetime import datetime
from email.message import EmailMessage
from typing import Optional

from .config import Settings

LOGGER = logging.getLogger(__name__)

FAILURE = "failure"
SUCCESS = "success"


@dataclass
class MailNotifier:
    smtp_server: str
    recipient: str
    hostname: str
    sender: str = "root@localhost"
    port: int = 25
    logger: logging.Logger = LOGGER

    @classmethod
    def from_settings(cls, settings: Settings) -> "MailNotifier":
        return cls(
            smtp_server=settings.smtp_server,
            recipient=settings.email,
            hostname=settings.hostname,
            sender=settings.mail_from,
            port=settings.smtp_port,
        )

    def notify(self, action: str, result: str, location: str, when: Optional[datetime] = None) -> bool:
        """Mail the operator about a failed run.

        Only ``failure`` results are mailed. Returns ``True`` when a message
        was handed to the relay. Delivery problems are logged, never raised.
        """

        if result != FAILURE:
            return False

        self.logger.info("Mailing %s about %s %s.", self.recipient, action, result)
        try:
            message = self.build_message(action, result, location, when)
            with smtplib.SMTP(self.smtp_server, self.port) as smtp:
                smtp.send_message(message, from_addr=self.sender, to_addrs=[self.recipient])
        except Exception as exc:  # mail must never abort the run
            self.logger.error("%s. Could not connect to mail server on %s", exc, self.smtp_server)
            return False
        return True

    def build_message(self, action: str, result: str, location: str, when: Optional[datetime] = None) -> EmailMessage:
        when = when or datetime.now()
        summary = f"{action} {result} on {self.hostname}"
        message = EmailMessage()
        message["From"] = f"mysql_tools_{result}@{self.hostname}"
        message["To"] = self.recipient
        message["Subject"] = summary
        message.set_content(f"{summary} at {when.replace(microsecond=0).isoformat(' ')}:\n\nLocation on S3: {location}\n")
        return message


__all__ = ["FAILURE", "MailNotifier", "SUCCESS"]
