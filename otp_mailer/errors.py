from __future__ import annotations

from fastapi import status


class OtpMailerError(Exception):
    """Base for errors that map onto a JSON error envelope."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    public_message: str = "Internal server error"


class ClientInputError(OtpMailerError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.public_message = message


class MailError(OtpMailerError):
    public_message = "Failed to send email"


class MailConfigurationError(MailError):
    """Provider credentials are missing; nothing was sent."""


class MailTransportError(MailError):
    """The provider rejected the message, the connection failed or the deadline passed."""
