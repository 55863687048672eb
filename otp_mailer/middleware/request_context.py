from __future__ import annotations
import logging
import time
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from ..observability.logging import log_request, request_id_for
from ..services.rate_limit import client_ip

log = logging.getLogger("otp_mailer.request")

BODY_TOO_LARGE = "Request body too large"


class RequestContextMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, request_id_header: str = "X-Request-ID", trust_forwarded_for: bool = False):
        super().__init__(app)
        self.request_id_header = request_id_header
        self.trust_forwarded_for = trust_forwarded_for

    async def dispatch(self, request: Request, call_next):
        rid = request_id_for(request, self.request_id_header)
        start = time.perf_counter()
        fields = dict(
            path=request.url.path,
            method=request.method,
            client=client_ip(request, trust_forwarded_for=self.trust_forwarded_for),
        )

        try:
            response = await call_next(request)
        except Exception:
            ms = int((time.perf_counter() - start) * 1000)
            log_request(log, logging.ERROR, "unhandled_error", request_id=rid, ms=ms, **fields)
            raise

        ms = int((time.perf_counter() - start) * 1000)
        response.headers[self.request_id_header] = rid
        log_request(log, logging.INFO, "request", request_id=rid, status=response.status_code, ms=ms, **fields)
        return response


def _too_large() -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, content={"success": False, "error": BODY_TOO_LARGE})


class BodySizeLimitMiddleware:
    """Caps request bodies at ``max_bytes``.

    A declared Content-Length above the cap is refused before the app runs.
    Otherwise the streamed ``http.request`` chunks are counted as the app
    reads them, which also covers chunked uploads; crossing the cap raises a
    413 ``HTTPException`` that the app's handlers turn into the error envelope.
    """

    def __init__(self, app, *, max_bytes: int):
        self.app = app
        self.max_bytes = max_bytes

    def _declared_too_large(self, scope) -> bool:
        for name, value in scope.get("headers", []):
            if name == b"content-length":
                try:
                    return int(value) > self.max_bytes
                except ValueError:
                    return False
        return False

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            return await self.app(scope, receive, send)
        if self._declared_too_large(scope):
            return await _too_large()(scope, receive, send)

        received = 0
        started = False

        async def counting_receive():
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_bytes:
                    raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=BODY_TOO_LARGE)
            return message

        async def tracking_send(message):
            nonlocal started
            if message["type"] == "http.response.start":
                started = True
            await send(message)

        try:
            await self.app(scope, counting_receive, tracking_send)
        except HTTPException as exc:
            # body read outside the app's exception handling
            if exc.status_code != status.HTTP_413_REQUEST_ENTITY_TOO_LARGE or started:
                raise
            await _too_large()(scope, receive, send)
