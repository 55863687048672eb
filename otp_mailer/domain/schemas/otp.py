from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class Purpose(str, Enum):
    VERIFICATION = "verification"
    PASSWORD_RESET = "password_reset"


class SendOtpIn(BaseModel):
    # every field optional here; required-ness depends on deployment flags
    model_config = ConfigDict(extra="ignore")

    email: Optional[str] = None
    otp: Optional[str] = None
    fullname: Optional[str] = None
    type: Optional[Purpose] = None

    @field_validator("otp", mode="before")
    @classmethod
    def _numeric_otp(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class SendOtpOut(BaseModel):
    success: bool = True
    message: str
    timestamp: str
    otp: Optional[str] = None


class ErrorOut(BaseModel):
    success: bool = False
    error: str
    details: Optional[str] = None


@dataclass(frozen=True)
class NotificationRequest:
    recipient_email: str
    display_name: Optional[str]
    code: Optional[str]
    purpose: Purpose = Purpose.VERIFICATION


@dataclass(frozen=True)
class RenderedMessage:
    subject: str
    html_body: str
    text_body: str
    from_name: str
