import asyncio

import aiosmtplib
import pytest

from otp_mailer.domain.schemas.otp import Purpose
from otp_mailer.errors import MailConfigurationError, MailTransportError
from otp_mailer.services.mailer import SmtpMailer, build_email
from otp_mailer.services.templates import render_message
from tests.conftest import mk_settings


def _message():
    return render_message(Purpose.VERIFICATION, "123456", "Ada", "ada@example.test")


@pytest.mark.asyncio
async def test_missing_credentials_fail_before_network(monkeypatch):
    async def _boom(*args, **kwargs):
        raise AssertionError("aiosmtplib.send must not be called")

    monkeypatch.setattr(aiosmtplib, "send", _boom)
    mailer = SmtpMailer(mk_settings(EMAIL_USER=None, EMAIL_PASS=None))

    assert not mailer.enabled
    with pytest.raises(MailConfigurationError):
        await mailer.send(_message(), to="ada@example.test")


@pytest.mark.asyncio
async def test_send_builds_multipart_message(monkeypatch):
    calls = []

    async def _fake_send(message, **kwargs):
        calls.append((message, kwargs))

    monkeypatch.setattr(aiosmtplib, "send", _fake_send)
    mailer = SmtpMailer(mk_settings(SMTP_HOST="smtp.example.test", SMTP_PORT=2525))

    await mailer.send(_message(), to="ada@example.test")

    assert len(calls) == 1
    email, kwargs = calls[0]
    assert email["To"] == "ada@example.test"
    assert email["Subject"] == "123456 - Your Share Boost Verification Code"
    assert "Share Boost" in email["From"] and "sender@example.test" in email["From"]
    assert email.is_multipart()
    assert email.get_body(preferencelist=("plain",)).get_content().startswith("Hello Ada,")
    assert "otp-code" in email.get_body(preferencelist=("html",)).get_content()
    assert kwargs["hostname"] == "smtp.example.test"
    assert kwargs["port"] == 2525
    assert kwargs["username"] == "sender@example.test"
    assert kwargs["password"] == "app-password"
    assert kwargs["start_tls"] is True


@pytest.mark.asyncio
async def test_provider_rejection_becomes_transport_error(monkeypatch):
    async def _reject(*args, **kwargs):
        raise aiosmtplib.SMTPException("550 mailbox unavailable")

    monkeypatch.setattr(aiosmtplib, "send", _reject)
    mailer = SmtpMailer(mk_settings())

    with pytest.raises(MailTransportError, match="550"):
        await mailer.send(_message(), to="nobody@example.test")


@pytest.mark.asyncio
async def test_network_failure_becomes_transport_error(monkeypatch):
    async def _refused(*args, **kwargs):
        raise ConnectionRefusedError("connection refused")

    monkeypatch.setattr(aiosmtplib, "send", _refused)

    with pytest.raises(MailTransportError):
        await SmtpMailer(mk_settings()).send(_message(), to="ada@example.test")


@pytest.mark.asyncio
async def test_hung_provider_hits_deadline(monkeypatch):
    async def _hang(*args, **kwargs):
        await asyncio.sleep(5)

    monkeypatch.setattr(aiosmtplib, "send", _hang)
    mailer = SmtpMailer(mk_settings(MAIL_SEND_TIMEOUT_SEC=0.05))

    with pytest.raises(MailTransportError, match="timed out"):
        await mailer.send(_message(), to="ada@example.test")


@pytest.mark.asyncio
async def test_header_injection_is_rejected(monkeypatch):
    async def _boom(*args, **kwargs):
        raise AssertionError("must not send")

    monkeypatch.setattr(aiosmtplib, "send", _boom)

    with pytest.raises(MailTransportError):
        await SmtpMailer(mk_settings()).send(_message(), to="a@example.test\r\nBcc: x@example.test")


def test_build_email_uses_display_name():
    msg = render_message(Purpose.PASSWORD_RESET, "123456", None, "ada@example.test")
    email = build_email(msg, sender="sender@example.test", to="ada@example.test")
    assert email["From"] == "Share Boost Security <sender@example.test>"
