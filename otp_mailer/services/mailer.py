from __future__ import annotations

import asyncio
import logging
from email.errors import MessageError
from email.message import EmailMessage
from email.utils import formataddr
from typing import Optional, Protocol

import aiosmtplib

from ..config import Settings
from ..domain.schemas.otp import RenderedMessage
from ..errors import MailConfigurationError, MailTransportError

logger = logging.getLogger(__name__)


class MailTransport(Protocol):
    async def send(self, message: RenderedMessage, *, to: str) -> None: ...


def build_email(message: RenderedMessage, *, sender: str, to: str) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = formataddr((message.from_name, sender))
    msg["To"] = to
    msg["Subject"] = message.subject
    msg.set_content(message.text_body)
    msg.add_alternative(message.html_body, subtype="html")
    return msg


class SmtpMailer:
    """aiosmtplib sender with a hard deadline per message; no retries."""

    def __init__(self, settings: Settings) -> None:
        self._user: Optional[str] = settings.EMAIL_USER
        self._password: Optional[str] = settings.EMAIL_PASS
        self._host = settings.SMTP_HOST
        self._port = settings.SMTP_PORT
        self._start_tls = settings.SMTP_START_TLS
        self._timeout = settings.MAIL_SEND_TIMEOUT_SEC
        if not self.enabled:
            missing = [key for key, value in [("EMAIL_USER", self._user), ("EMAIL_PASS", self._password)] if not value]
            logger.info("SMTP mail disabled; missing settings: %s", ", ".join(missing))

    @property
    def enabled(self) -> bool:
        return bool(self._user and self._password)

    async def send(self, message: RenderedMessage, *, to: str) -> None:
        if not self.enabled:
            raise MailConfigurationError("Email credentials not configured")

        try:
            # EmailMessage rejects header values it cannot fold (e.g. embedded newlines)
            email = build_email(message, sender=self._user, to=to)  # type: ignore[arg-type]
        except (ValueError, TypeError, MessageError) as exc:
            raise MailTransportError(f"Invalid message: {exc}") from exc

        try:
            await asyncio.wait_for(
                aiosmtplib.send(
                    email,
                    hostname=self._host,
                    port=self._port,
                    username=self._user,
                    password=self._password,
                    start_tls=self._start_tls,
                    timeout=self._timeout,
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as exc:
            raise MailTransportError(f"SMTP send timed out after {self._timeout:g}s") from exc
        except (aiosmtplib.SMTPException, OSError) as exc:
            raise MailTransportError(str(exc)) from exc
