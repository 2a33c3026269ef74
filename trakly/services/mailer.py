import asyncio
import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional, Protocol
from trakly.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryResult:
    ok: bool
    error: Optional[str] = None


class NotificationSender(Protocol):
    async def send(self, to: str, subject: str, body: str) -> DeliveryResult: ...


class SmtpSender:
    """Delivers plain-text mail over SMTP. Never raises; failures come back as DeliveryResult."""

    def __init__(
        self,
        host: Optional[str],
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        sender: Optional[str] = None,
        timeout: float = 15.0,
        use_ssl: bool = False,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender or username
        self.timeout = timeout
        self.use_ssl = use_ssl

    @classmethod
    def from_settings(cls) -> "SmtpSender":
        return cls(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            sender=settings.mail_sender,
            timeout=settings.MAIL_TIMEOUT_SECONDS,
            use_ssl=settings.smtp_use_ssl,
        )

    @property
    def configured(self) -> bool:
        return bool(self.host and self.sender)

    def _build(self, to: str, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)
        return message

    def _connect(self) -> smtplib.SMTP:
        if self.use_ssl:
            return smtplib.SMTP_SSL(
                self.host, self.port, timeout=self.timeout, context=ssl.create_default_context()
            )
        return smtplib.SMTP(self.host, self.port, timeout=self.timeout)

    def _send_sync(self, message: EmailMessage) -> None:
        with self._connect() as smtp:
            smtp.ehlo()
            credentials = bool(self.username and self.password)
            if not self.use_ssl and (credentials or smtp.has_extn("starttls")):
                # Credentials never go out on a plain socket; no STARTTLS raises SMTPNotSupportedError
                smtp.starttls(context=ssl.create_default_context())
                smtp.ehlo()
            if credentials:
                smtp.login(self.username, self.password)
            smtp.send_message(message)

    async def send(self, to: str, subject: str, body: str) -> DeliveryResult:
        if not self.configured:
            return DeliveryResult(ok=False, error="mail transport not configured")

        message = self._build(to, subject, body)
        try:
            # smtplib's own timeout covers each socket op; this bounds the whole exchange
            await asyncio.wait_for(asyncio.to_thread(self._send_sync, message), timeout=self.timeout * 2)
        except asyncio.TimeoutError:
            logger.warning("Timed out sending mail to %s", to)
            return DeliveryResult(ok=False, error="timeout")
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("Mail delivery to %s failed: %s", to, exc)
            return DeliveryResult(ok=False, error=str(exc))
        return DeliveryResult(ok=True)
