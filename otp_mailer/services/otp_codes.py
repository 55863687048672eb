from __future__ import annotations

import secrets

OTP_MIN = 100_000
OTP_MAX = 999_999


def generate_otp() -> str:
    """Six-digit code, uniform over [100000, 999999]. Not stored, not deduplicated."""
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))
