"""Email Service.

Small wrapper around :mod:`smtplib` used for password reset and invitation
mails. When no SMTP host is configured, or a send fails, messages are kept
in a bounded in-memory outbox (newest ``outbox_size``) and logged.
"""

import asyncio
import logging
import smtplib
from collections import deque
from email.message import EmailMessage

from allowance.config import settings

logger = logging.getLogger(__name__)


class EmailClient:
    def __init__(
        self,
        host: str | None,
        port: int,
        *,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        sender: str = "no-reply@allowance.local",
        outbox_size: int = 100,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.sender = sender
        self._outbox: deque[EmailMessage] = deque(maxlen=outbox_size)

    def build_message(self, subject: str, body: str, recipient: str) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self.sender
        message["To"] = recipient
        message.set_content(body)
        return message

    def _send_sync(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=5) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username and self.password:
                smtp.login(self.username, self.password)
            smtp.send_message(message)

    async def send(self, subject: str, body: str, recipient: str) -> bool:
        """Send a plain-text mail. Returns False when it was only queued locally."""
        message = self.build_message(subject, body, recipient)
        if not self.host:
            self._outbox.append(message)
            logger.info("SMTP not configured, queued mail %r to %s", subject, recipient)
            return False

        try:
            await asyncio.to_thread(self._send_sync, message)
        except (OSError, smtplib.SMTPException):
            logger.exception("Sending mail %r to %s failed", subject, recipient)
            self._outbox.append(message)
            return False

        logger.info("Sent mail %r to %s", subject, recipient)
        return True

    def deliveries(self) -> tuple[EmailMessage, ...]:
        return tuple(self._outbox)

    def clear(self) -> None:
        self._outbox.clear()


email_client = EmailClient(
    settings.SMTP_HOST,
    settings.SMTP_PORT,
    username=settings.SMTP_USERNAME,
    password=settings.SMTP_PASSWORD,
    use_tls=settings.SMTP_USE_TLS,
    sender=settings.MAIL_FROM,
)


def get_email_client() -> EmailClient:
    """FastAPI dependency returning the shared mail client."""
    return email_client
