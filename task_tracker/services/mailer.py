"""
Outbound mail over SMTP.
"""
import asyncio
import logging
import smtplib
import ssl
from email.message import EmailMessage

from task_tracker.config import Settings
from task_tracker.errors import DeliveryError

logger = logging.getLogger(__name__)


class SmtpMailer:
    """Send HTML mail through an authenticated SMTP relay."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        sender: str = "",
        use_ssl: bool = True,
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender or username
        self.use_ssl = use_ssl
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmtpMailer":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            sender=settings.get_mail_sender(),
            use_ssl=settings.smtp_use_ssl,
        )

    def build_message(self, to: str, subject: str, html_body: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = to
        msg.set_content(html_body, subtype="html")
        return msg

    async def send(self, to: str, subject: str, html_body: str) -> None:
        """Deliver one message. Raises DeliveryError on any failure."""
        try:
            msg = self.build_message(to, subject, html_body)
        except (ValueError, TypeError) as e:
            raise DeliveryError(f"Could not build message for {to}: {e}") from e

        try:
            await asyncio.to_thread(self._deliver, msg)
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryError(f"Could not deliver message to {to}: {e}") from e
        logger.debug("Mail sent to %s: %s", to, subject)

    def _deliver(self, msg: EmailMessage) -> None:
        ctx = ssl.create_default_context()
        if self.use_ssl:
            with smtplib.SMTP_SSL(self.host, self.port, context=ctx, timeout=self.timeout) as s:
                s.login(self.username, self.password)
                s.send_message(msg)
        else:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as s:
                s.ehlo()
                s.starttls(context=ctx)
                s.login(self.username, self.password)
                s.send_message(msg)
