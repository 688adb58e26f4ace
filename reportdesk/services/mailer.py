"""Best-effort outbound email."""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from typing import Protocol

from reportdesk.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class EmailDispatcher(Protocol):
    def send(self, recipient: str, subject: str, body: str) -> bool:
        """Deliver one message; returns False instead of raising on failure."""


class SmtpEmailDispatcher:
    """SMTP delivery; skipped when no SMTP host is configured."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()

    @property
    def configured(self) -> bool:
        return bool(self.settings.smtp_host)

    def send(self, recipient: str, subject: str, body: str) -> bool:
        if not self.configured:
            logger.info("Email not configured, skipping send to %s: %s", recipient, subject)
            return False

        message = EmailMessage()
        message["From"] = self.settings.smtp_sender
        message["To"] = recipient
        message["Subject"] = subject
        message.set_content(body)

        try:
            with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port, timeout=30) as smtp:
                if self.settings.smtp_use_tls:
                    smtp.starttls()
                if self.settings.smtp_username:
                    smtp.login(self.settings.smtp_username, self.settings.smtp_password)
                smtp.send_message(message)
        except (OSError, smtplib.SMTPException):
            logger.exception("Email send to %s failed", recipient)
            return False

        logger.info("Email sent to %s: %s", recipient, subject)
        return True


def daily_reminder_email(first_name: str, display_date: str) -> tuple[str, str]:
    subject = "Daily Report Reminder"
    body = (
        f"Hi {first_name},\n\n"
        f"This is a reminder to submit your daily report for {display_date}.\n"
        "Please log in to the system to submit your report.\n\n"
        "Best regards,\nDaily Report System\n"
    )
    return subject, body


def get_email_dispatcher() -> EmailDispatcher:
    return SmtpEmailDispatcher()
