from otp_mailer.config import Settings
from tests.conftest import mk_settings


def test_declared_defaults():
    # check field defaults rather than a live Settings(), which the environment may override
    fields = Settings.model_fields
    assert fields["ENFORCE_AUTH"].default is True
    assert fields["REQUIRE_CALLER_OTP"].default is True
    assert fields["RETURN_GENERATED_OTP"].default is False
    assert fields["RL_EMAIL_MAX"].default == 10
    assert fields["RL_EMAIL_WINDOW_SEC"].default == 900
    assert fields["ENV"].default == "prod"


def test_allowed_origins_parsing():
    assert mk_settings(ALLOWED_ORIGINS="").allowed_origins == ["*"]
    assert mk_settings(ALLOWED_ORIGINS=" , ").allowed_origins == ["*"]
    assert mk_settings(ALLOWED_ORIGINS="https://a.test, https://b.test,").allowed_origins == [
        "https://a.test",
        "https://b.test",
    ]


def test_error_details_only_exposed_in_dev():
    assert mk_settings(ENV="dev").expose_error_details
    assert not mk_settings(ENV="prod").expose_error_details
    assert not mk_settings(ENV="test").expose_error_details


def test_mail_configured_needs_both_credentials():
    assert mk_settings().mail_configured
    assert not mk_settings(EMAIL_PASS=None).mail_configured
    assert not mk_settings(EMAIL_USER="").mail_configured


def test_settings_read_from_environment(monkeypatch):
    monkeypatch.setenv("PORT", "8081")
    monkeypatch.setenv("ENFORCE_AUTH", "false")
    monkeypatch.setenv("ALLOWED_ORIGINS", "https://app.test")
    s = Settings(_env_file=None)
    assert s.PORT == 8081
    assert s.ENFORCE_AUTH is False
    assert s.allowed_origins == ["https://app.test"]
