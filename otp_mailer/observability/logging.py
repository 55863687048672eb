from __future__ import annotations
import logging
import sys
import uuid
from pythonjsonlogger.json import JsonFormatter
from fastapi import Request
from ..config import Settings

LOG_FORMAT = "%(levelname)s %(name)s %(message)s %(asctime)s %(request_id)s %(extra)s"
QUIET_LOGGERS = ("uvicorn.access", "aiosmtplib")


def setup_logging(settings: Settings) -> None:
    """Send every logger through one JSON-lines handler on stdout."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter(
        LOG_FORMAT,
        rename_fields={"levelname": "level", "name": "logger"},
        static_fields={"service": settings.APP_NAME},
    ))

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(handler)
    root.setLevel(settings.LOG_LEVEL.upper())

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel("WARNING")


def request_id_for(req: Request, header: str) -> str:
    return req.headers.get(header) or uuid.uuid4().hex


def log_request(logger: logging.Logger, level: int, msg: str, *, request_id: str, **fields) -> None:
    # fields become one "k=v k=v" string under the "extra" key; None values are dropped
    extra = " ".join(f"{k}={v}" for k, v in fields.items() if v is not None)
    logger.log(level, msg, extra={"request_id": request_id, "extra": extra})
