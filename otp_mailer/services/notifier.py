from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from ..config import Settings
from ..domain.schemas.otp import NotificationRequest, Purpose, SendOtpIn
from ..errors import ClientInputError, MailConfigurationError, MailError
from ..observability.metrics import OTP_EMAILS_FAILED, OTP_EMAILS_SENT
from .mailer import MailTransport
from .otp_codes import generate_otp
from .templates import render_message

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Dispatched:
    code: str
    generated: bool


def _blank(v: Optional[str]) -> bool:
    return v is None or not v.strip()


def validate_request(payload: SendOtpIn, *, require_code: bool, purpose: Optional[Purpose] = None) -> NotificationRequest:
    """Turn a parsed body into a NotificationRequest or raise ClientInputError.

    The address is passed through as given; a malformed one fails at the
    transport. ``purpose`` overrides the body's ``type`` for fixed-purpose routes.
    """
    if require_code:
        if _blank(payload.email) or _blank(payload.otp):
            raise ClientInputError("Email and OTP are required")
    elif _blank(payload.email):
        raise ClientInputError("Email is required")

    return NotificationRequest(
        recipient_email=payload.email.strip(),  # type: ignore[union-attr]
        display_name=payload.fullname,
        code=None if _blank(payload.otp) else payload.otp.strip(),  # type: ignore[union-attr]
        purpose=purpose or payload.type or Purpose.VERIFICATION,
    )


class OtpNotifier:
    def __init__(
        self,
        settings: Settings,
        mailer: MailTransport,
        code_factory: Callable[[], str] = generate_otp,
    ) -> None:
        self._brand = settings.BRAND_NAME
        self._mailer = mailer
        self._code_factory = code_factory

    async def dispatch(self, req: NotificationRequest) -> Dispatched:
        generated = req.code is None
        code = self._code_factory() if generated else req.code
        message = render_message(req.purpose, code, req.display_name, req.recipient_email, self._brand)  # type: ignore[arg-type]

        try:
            await self._mailer.send(message, to=req.recipient_email)
        except MailError as exc:
            reason = "config" if isinstance(exc, MailConfigurationError) else "transport"
            OTP_EMAILS_FAILED.labels(purpose=req.purpose.value, reason=reason).inc()
            raise

        OTP_EMAILS_SENT.labels(purpose=req.purpose.value).inc()
        log.info("otp email sent", extra={"extra": f"purpose={req.purpose.value} generated={generated}"})
        return Dispatched(code=code, generated=generated)  # type: ignore[arg-type]
