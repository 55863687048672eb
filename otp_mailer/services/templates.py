"""
Email rendering for OTP notifications.

Both purposes share one HTML layout (``templates/otp_email.html``); a purpose
only picks the colour theme and the copy. Rendering is pure: the same
arguments always produce the same bytes.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from html import escape
from pathlib import Path
from string import Template
from typing import Optional

from ..domain.schemas.otp import Purpose, RenderedMessage

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"
DEFAULT_BRAND = "Share Boost"
FALLBACK_NAME = "User"


@dataclass(frozen=True)
class Theme:
    accent: str
    accent_dark: str
    panel_from: str
    panel_to: str


VIOLET = Theme(accent="#8B5CF6", accent_dark="#7C3AED", panel_from="#f7fafc", panel_to="#edf2f7")
RED = Theme(accent="#ef4444", accent_dark="#dc2626", panel_from="#fef2f2", panel_to="#fee2e2")

THEMES = {
    Purpose.VERIFICATION: VIOLET,
    Purpose.PASSWORD_RESET: RED,
}


@lru_cache
def _layout() -> Template:
    return Template((TEMPLATE_DIR / "otp_email.html").read_text(encoding="utf-8"))


def _footer(*lines: str) -> str:
    return "\n".join(f'            <div class="footer-text">\n                {line}\n            </div>' for line in lines)


def display_name_or_default(display_name: Optional[str]) -> str:
    if display_name and display_name.strip():
        return display_name.strip()
    return FALLBACK_NAME


def _verification_copy(brand: str, recipient: str) -> dict[str, str]:
    return {
        "title": f"Email Verification - {brand}",
        "heading": brand,
        "subheading": "Verify Your Email Address",
        "intro": (
            f"Welcome to {brand}! We're excited to have you on board. To complete your registration "
            "and secure your account, please verify your email address using the verification code below."
        ),
        "code_label": "Verification Code",
        "instructions": (
            "Simply enter this 6-digit code in the verification field on our website to activate "
            "your account and start boosting your social media presence."
        ),
        "footer": _footer(
            f"This email was sent to <strong>{recipient}</strong> because you requested "
            f"email verification for {brand}.",
        ),
    }


def _password_reset_copy(brand: str, recipient: str) -> dict[str, str]:
    return {
        "title": f"Password Reset - {brand}",
        "heading": "Password Reset",
        "subheading": f"Reset Your {brand} Password",
        "intro": (
            f"We received a request to reset your {brand} account password. If you made this request, "
            "please use the verification code below to proceed with resetting your password."
        ),
        "code_label": "Password Reset Code",
        "instructions": "Enter this code on the password reset page to create a new password for your account.",
        "footer": _footer(
            "If you didn't request this password reset, please contact our support team immediately.",
            f"This email was sent to <strong>{recipient}</strong> for your {brand} account security.",
        ),
    }


def render_html(purpose: Purpose, code: str, display_name: Optional[str], recipient_email: str,
                brand: str = DEFAULT_BRAND) -> str:
    brand_html = escape(brand)
    recipient_html = escape(recipient_email)
    if purpose is Purpose.PASSWORD_RESET:
        copy = _password_reset_copy(brand_html, recipient_html)
    else:
        copy = _verification_copy(brand_html, recipient_html)
    theme = THEMES[purpose]
    return _layout().substitute(
        copy,
        accent=theme.accent,
        accent_dark=theme.accent_dark,
        panel_from=theme.panel_from,
        panel_to=theme.panel_to,
        name=escape(display_name_or_default(display_name)),
        code=escape(code),
    )


def render_text(purpose: Purpose, code: str, display_name: Optional[str], brand: str = DEFAULT_BRAND) -> str:
    name = display_name_or_default(display_name)
    if purpose is Purpose.PASSWORD_RESET:
        return (
            f"Hello {name},\n\n"
            f"We received a request to reset your {brand} account password.\n\n"
            f"Your password reset code is: {code}\n\n"
            "This code will expire in 5 minutes. If you didn't request this password reset, "
            "please ignore this email.\n\n"
            "Best regards,\n"
            f"{brand} Security Team"
        )
    return (
        f"Hello {name},\n\n"
        f"Welcome to {brand}! Your email verification code is: {code}\n\n"
        "This code will expire in 5 minutes. Please enter it on the verification page "
        "to complete your registration.\n\n"
        "Best regards,\n"
        f"{brand} Team"
    )


def render_message(purpose: Purpose, code: str, display_name: Optional[str], recipient_email: str,
                   brand: str = DEFAULT_BRAND) -> RenderedMessage:
    if purpose is Purpose.PASSWORD_RESET:
        subject = f"{code} - Your Password Reset Code"
        from_name = f"{brand} Security"
    else:
        subject = f"{code} - Your {brand} Verification Code"
        from_name = brand
    return RenderedMessage(
        subject=subject,
        html_body=render_html(purpose, code, display_name, recipient_email, brand),
        text_body=render_text(purpose, code, display_name, brand),
        from_name=from_name,
    )
