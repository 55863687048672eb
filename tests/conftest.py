from __future__ import annotations

from typing import Optional

import httpx
import pytest
from httpx import ASGITransport

from otp_mailer.config import Settings
from otp_mailer.domain.schemas.otp import RenderedMessage
from otp_mailer.main import create_app

API_KEY = "test-api-key"
AUTH = {"Authorization": f"Bearer {API_KEY}"}


class FakeMailer:
    """Records messages instead of talking to SMTP; optionally raises."""

    def __init__(self, fail: Optional[Exception] = None) -> None:
        self.fail = fail
        self.sent: list[tuple[RenderedMessage, str]] = []

    async def send(self, message: RenderedMessage, *, to: str) -> None:
        if self.fail is not None:
            raise self.fail
        self.sent.append((message, to))


def mk_settings(**overrides) -> Settings:
    values = dict(
        ENV="test",
        EMAIL_API_KEY=API_KEY,
        EMAIL_USER="sender@example.test",
        EMAIL_PASS="app-password",
        RL_REDIS_URL=None,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


def mk_app(mailer=None, **overrides):
    return create_app(mk_settings(**overrides), mailer=mailer or FakeMailer())


def api(app) -> httpx.AsyncClient:
    # 500 handlers still produce a response; don't re-raise the original error in tests
    return httpx.AsyncClient(
        transport=ASGITransport(app=app, raise_app_exceptions=False),
        base_url="http://testserver",
    )


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()
