from __future__ import annotations

import logging
import secrets
from typing import Optional

from fastapi import HTTPException, Request, status

from ..config import Settings

log = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


async def require_api_key(request: Request) -> None:
    settings: Settings = request.app.state.settings
    header: Optional[str] = request.headers.get("authorization")
    if not header or not header.startswith(BEARER_PREFIX):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing or invalid authorization header")

    expected = settings.EMAIL_API_KEY
    if not expected:
        log.error("EMAIL_API_KEY is not set; rejecting authenticated request")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")

    token = header[len(BEARER_PREFIX):]
    if not secrets.compare_digest(token.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")
