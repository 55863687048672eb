from __future__ import annotations

import math
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Protocol

from fastapi import HTTPException, Request, Response, status
from redis import asyncio as aioredis

from ..config import Settings
from ..observability.metrics import RATE_LIMITED

RATE_LIMIT_MESSAGE = "Too many email requests, please try again later."


@dataclass(frozen=True)
class Hit:
    allowed: bool
    limit: int
    remaining: int
    reset_sec: int


class RateLimiter(Protocol):
    async def hit(self, key: str, *, window_sec: int, limit: int) -> Hit: ...


class MemoryRateLimiter:
    """Rolling-window counter kept in this process.

    ``hit`` never awaits, so concurrent requests on one event loop cannot
    interleave inside it.
    """

    SWEEP_EVERY = 1000

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._calls = 0

    def _sweep(self, now: float, window_sec: int) -> None:
        for key in [k for k, q in self._hits.items() if not q or q[-1] <= now - window_sec]:
            del self._hits[key]

    async def hit(self, key: str, *, window_sec: int, limit: int) -> Hit:
        now = self._clock()
        self._calls += 1
        if self._calls % self.SWEEP_EVERY == 0:
            self._sweep(now, window_sec)

        q = self._hits.setdefault(key, deque())
        while q and q[0] <= now - window_sec:
            q.popleft()

        if len(q) >= limit:
            reset = max(1, math.ceil(q[0] + window_sec - now))
            return Hit(allowed=False, limit=limit, remaining=0, reset_sec=reset)

        q.append(now)
        reset = max(1, math.ceil(q[0] + window_sec - now))
        return Hit(allowed=True, limit=limit, remaining=limit - len(q), reset_sec=reset)


class RedisRateLimiter:
    """Fixed-window counter in Redis, shared by every worker."""

    def __init__(self, redis) -> None:
        self._redis = redis

    async def hit(self, key: str, *, window_sec: int, limit: int) -> Hit:
        count = await self._redis.incr(key)
        if count == 1:
            await self._redis.expire(key, window_sec)
        ttl = await self._redis.ttl(key)
        reset = ttl if ttl and ttl > 0 else window_sec
        if count > limit:
            return Hit(allowed=False, limit=limit, remaining=0, reset_sec=reset)
        return Hit(allowed=True, limit=limit, remaining=limit - count, reset_sec=reset)


def build_rate_limiter(settings: Settings) -> RateLimiter:
    if settings.RL_REDIS_URL:
        return RedisRateLimiter(aioredis.from_url(settings.RL_REDIS_URL, encoding="utf-8", decode_responses=True))
    return MemoryRateLimiter()


def client_ip(req: Request, *, trust_forwarded_for: bool = False) -> str:
    if trust_forwarded_for:
        # first hop of X-Forwarded-For, as set by the fronting proxy
        h = req.headers.get("x-forwarded-for")
        if h:
            return h.split(",")[0].strip()
    return req.client.host if req.client else "unknown"


def _headers(hit: Hit) -> dict[str, str]:
    return {
        "RateLimit-Limit": str(hit.limit),
        "RateLimit-Remaining": str(hit.remaining),
        "RateLimit-Reset": str(hit.reset_sec),
    }


async def limit_email_request(request: Request, response: Response) -> None:
    """Route dependency: per-source-address quota on the send endpoints."""
    settings: Settings = request.app.state.settings
    limiter: RateLimiter = request.app.state.rate_limiter
    ip = client_ip(request, trust_forwarded_for=settings.RL_TRUST_FORWARDED_FOR)
    hit = await limiter.hit(
        f"rl:email:ip:{ip}",
        window_sec=settings.RL_EMAIL_WINDOW_SEC,
        limit=settings.RL_EMAIL_MAX,
    )
    headers = _headers(hit)
    # error handlers copy these onto 4xx/5xx envelopes
    request.state.rate_limit_headers = headers
    if not hit.allowed:
        RATE_LIMITED.inc()
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=RATE_LIMIT_MESSAGE,
            headers={"Retry-After": str(hit.reset_sec), **headers},
        )
    response.headers.update(headers)
