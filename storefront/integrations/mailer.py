"""SMTP email transport."""
import asyncio
import smtplib
from email.message import EmailMessage

import structlog

from storefront.config import get_settings
from storefront.core.exceptions import NotificationError

logger = structlog.get_logger(__name__)


def compose_message(sender: str, to: str, subject: str, html: str) -> EmailMessage:
    """Build a multipart message with a plain-text fallback."""
    msg = EmailMessage()
    msg["From"] = sender
    msg["To"] = to
    msg["Subject"] = subject
    msg.set_content("This message is best viewed in an HTML-capable email client.")
    msg.add_alternative(html, subtype="html")
    return msg


class SmtpTransport:
    """Delivers fully composed messages over SMTP, one connection per message."""

    def __init__(self) -> None:
        self.settings = get_settings()

    def _send_sync(self, message: EmailMessage) -> None:
        s = self.settings
        with smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=s.smtp_timeout_seconds) as smtp:
            if s.smtp_use_tls:
                smtp.starttls()
            if s.smtp_username:
                smtp.login(s.smtp_username, s.smtp_password or "")
            smtp.send_message(message)

    async def send(self, message: EmailMessage) -> None:
        """
        Send a message.

        Args:
            message: Composed message with From, To and Subject set

        Raises:
            NotificationError: If the SMTP exchange fails
        """
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._send_sync, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("smtp_send_failed", to=message["To"], error=str(e))
            raise NotificationError(f"Failed to send email to {message['To']}: {e}") from e

        logger.info("smtp_message_sent", to=message["To"], subject=message["Subject"])
