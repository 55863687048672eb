from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api.routers import health as health_router
from .api.routers import metrics as metrics_router
from .api.routers import otp as otp_router
from .config import Settings, get_settings
from .errors import OtpMailerError
from .middleware.request_context import BodySizeLimitMiddleware, RequestContextMiddleware
from .observability.logging import setup_logging
from .observability.metrics import MetricsHTTPMiddleware
from .services.mailer import MailTransport, SmtpMailer
from .services.notifier import OtpNotifier
from .services.rate_limit import RateLimiter, build_rate_limiter

log = logging.getLogger(__name__)


def _envelope(request: Request, status_code: int, error: str, details: Optional[str] = None, headers=None) -> JSONResponse:
    content = {"success": False, "error": error}
    if details is not None:
        content["details"] = details
    # quota headers from the rate gate ride along on every response of a limited route
    merged = {**getattr(request.state, "rate_limit_headers", {}), **(headers or {})}
    return JSONResponse(status_code=status_code, content=content, headers=merged or None)


def _install_error_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(OtpMailerError)
    async def _domain_error(request: Request, exc: OtpMailerError) -> JSONResponse:
        if exc.status_code >= 500:
            log.error("request failed: %s", exc, exc_info=exc)
            details = str(exc) if settings.expose_error_details else None
            return _envelope(request, exc.status_code, exc.public_message, details)
        return _envelope(request, exc.status_code, exc.public_message)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
            # a known path with the wrong method is just another unmatched route
            return _envelope(request, status.HTTP_404_NOT_FOUND, "Endpoint not found")
        return _envelope(request, exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def _bad_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _envelope(request, status.HTTP_400_BAD_REQUEST, "Invalid request body")

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        log.error("API error: %s", exc, exc_info=exc)
        details = str(exc) if settings.expose_error_details else None
        return _envelope(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", details)


def create_app(
    settings: Optional[Settings] = None,
    *,
    mailer: Optional[MailTransport] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    settings = settings or get_settings()
    @asynccontextmanager
    async def lifespan(_: FastAPI):
        setup_logging(settings)
        log.info("Email API service running", extra={"extra": f"host={settings.APP_HOST} port={settings.PORT}"})
        yield

    app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG, lifespan=lifespan)

    app.state.settings = settings
    app.state.mailer = mailer or SmtpMailer(settings)
    app.state.notifier = OtpNotifier(settings, app.state.mailer)
    app.state.rate_limiter = rate_limiter or build_rate_limiter(settings)

    app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.MAX_BODY_BYTES)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        RequestContextMiddleware,
        request_id_header=settings.REQUEST_ID_HEADER,
        trust_forwarded_for=settings.RL_TRUST_FORWARDED_FOR,
    )
    app.add_middleware(MetricsHTTPMiddleware)

    _install_error_handlers(app, settings)

    app.include_router(health_router.router)
    app.include_router(otp_router.build_router(settings))
    app.include_router(metrics_router.router)

    return app


app = create_app()


def run() -> None:
    settings = app.state.settings
    uvicorn.run(app, host=settings.APP_HOST, port=settings.PORT, log_config=None)


if __name__ == "__main__":
    run()
