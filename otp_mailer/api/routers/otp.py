from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Request

from ...auth.deps import require_api_key
from ...config import Settings
from ...domain.schemas.otp import ErrorOut, Purpose, SendOtpIn, SendOtpOut
from ...services.notifier import OtpNotifier, validate_request
from ...services.rate_limit import limit_email_request

ERROR_RESPONSES = {
    400: {"model": ErrorOut},
    401: {"model": ErrorOut},
    429: {"model": ErrorOut},
    500: {"model": ErrorOut},
}

SUCCESS_MESSAGES = {
    Purpose.VERIFICATION: "OTP email sent successfully",
    Purpose.PASSWORD_RESET: "Password reset email sent successfully",
}


def build_router(settings: Settings) -> APIRouter:
    # rate gate runs before the auth gate; both only in the authenticated deployment
    deps = [Depends(limit_email_request), Depends(require_api_key)] if settings.ENFORCE_AUTH else []
    router = APIRouter(tags=["otp"], dependencies=deps, responses=ERROR_RESPONSES)

    async def _send(request: Request, payload: SendOtpIn, purpose: Optional[Purpose] = None) -> SendOtpOut:
        s: Settings = request.app.state.settings
        notifier: OtpNotifier = request.app.state.notifier
        req = validate_request(payload, require_code=s.REQUIRE_CALLER_OTP, purpose=purpose)
        sent = await notifier.dispatch(req)
        return SendOtpOut(
            message=SUCCESS_MESSAGES[req.purpose],
            timestamp=datetime.now(timezone.utc).isoformat(),
            otp=sent.code if (sent.generated and s.RETURN_GENERATED_OTP) else None,
        )

    @router.post("/api/send-otp", response_model=SendOtpOut, response_model_exclude_none=True)
    async def send_otp(payload: SendOtpIn, request: Request):
        return await _send(request, payload)

    router.add_api_route(
        "/send-otp", send_otp, methods=["POST"],
        response_model=SendOtpOut, response_model_exclude_none=True, include_in_schema=False,
    )

    if settings.ENFORCE_AUTH:
        @router.post("/api/send-password-reset", response_model=SendOtpOut, response_model_exclude_none=True)
        async def send_password_reset(payload: SendOtpIn, request: Request):
            return await _send(request, payload, purpose=Purpose.PASSWORD_RESET)

    return router
