"""Outbound mail for the verification flow.

Learn: The core only needs one thing from mail transport: "tell this
address its verification link". Backends:
- console: logs the link (development, tests)
- smtp:    sends via aiosmtplib

A failed send is logged and reported as False; it never rolls back the
registration that triggered it.
"""

from abc import ABC, abstractmethod
from email.message import EmailMessage
from urllib.parse import urlencode

import aiosmtplib
import structlog

from authcore.config import settings

logger = structlog.get_logger()


def verification_link(token: str) -> str:
    query = urlencode({"token": token})
    return f"{settings.app_url.rstrip('/')}{settings.api_prefix}/auth/verify?{query}"


class Mailer(ABC):
    """Abstract base class for mail backends."""

    @abstractmethod
    async def send(self, to: str, subject: str, text: str) -> bool:
        """Send a plain-text email. Returns True if it was handed off."""

    async def send_verification_email(self, to: str, token: str) -> bool:
        link = verification_link(token)
        return await self.send(
            to=to,
            subject="Verify your email",
            text=f"Click the link to verify your email: {link}",
        )


class ConsoleMailer(Mailer):
    """Logs mail instead of sending it."""

    async def send(self, to: str, subject: str, text: str) -> bool:
        logger.info("mail.console", to=to, subject=subject, body=text)
        return True


class SmtpMailer(Mailer):
    """Sends mail through an SMTP relay."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        from_address: str = "",
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_address = from_address

    async def send(self, to: str, subject: str, text: str) -> bool:
        message = EmailMessage()
        message["From"] = self.from_address
        message["To"] = to
        message["Subject"] = subject
        message.set_content(text)

        try:
            await aiosmtplib.send(
                message,
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                start_tls=self.use_tls,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error("mail.smtp_failed", to=to, error=str(e))
            return False
        logger.info("mail.sent", to=to, subject=subject)
        return True


def get_mailer() -> Mailer:
    """FastAPI dependency — the configured mail backend."""
    if settings.email_backend == "console":
        return ConsoleMailer()
    if settings.email_backend == "smtp":
        return SmtpMailer(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            from_address=settings.email_from,
        )
    raise ValueError(f"Unknown email backend: {settings.email_backend}")
