from __future__ import annotations
import time
from fastapi import Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram, generate_latest

from ..errors import OtpMailerError

REGISTRY = CollectorRegistry(auto_describe=True)

# ---------- Metric definitions ----------
HTTP_REQS = Counter("http_requests_total", "HTTP requests", ["method", "path", "status"], registry=REGISTRY)
HTTP_LATENCY = Histogram("http_request_duration_seconds", "HTTP request latency", ["method", "path"], registry=REGISTRY)

OTP_EMAILS_SENT = Counter("otp_emails_sent_total", "OTP emails handed to the provider", ["purpose"], registry=REGISTRY)
OTP_EMAILS_FAILED = Counter("otp_emails_failed_total", "OTP emails that failed to send", ["purpose", "reason"], registry=REGISTRY)
RATE_LIMITED = Counter("rate_limited_total", "Send requests rejected by the rate gate", registry=REGISTRY)


class MetricsDisabled(OtpMailerError):
    status_code = 404
    public_message = "Endpoint not found"


# ---------- /metrics endpoint factory ----------
def metrics_app():
    async def _metrics(request: Request):
        if not request.app.state.settings.METRICS_ENABLED:
            raise MetricsDisabled()
        data = generate_latest(REGISTRY)
        return Response(content=data, media_type=CONTENT_TYPE_LATEST)
    return _metrics


def _route_label(scope) -> str:
    # route template keeps label cardinality bounded; unmatched paths collapse
    route = scope.get("route")
    return getattr(route, "path", None) or "unmatched"


# ---------- HTTP middleware for latency/counters ----------
class MetricsHTTPMiddleware:
    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            return await self.app(scope, receive, send)
        method = scope["method"]
        t0 = time.perf_counter()

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                path = _route_label(scope)
                HTTP_REQS.labels(method=method, path=path, status=message["status"]).inc()
                HTTP_LATENCY.labels(method=method, path=path).observe(time.perf_counter() - t0)
            await send(message)

        await self.app(scope, receive, send_wrapper)
