from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore", frozen=True)

    ENV: Literal["dev", "prod", "test"] = "prod"
    DEBUG: bool = False

    # App
    APP_NAME: str = "email-api"
    APP_HOST: str = "0.0.0.0"
    PORT: int = 3000
    MAX_BODY_BYTES: int = 1024 * 1024

    # Deployment shape
    ENFORCE_AUTH: bool = True          # bearer gate + rate gate + /api/send-password-reset
    REQUIRE_CALLER_OTP: bool = True    # caller supplies the code; otherwise we generate it
    RETURN_GENERATED_OTP: bool = False # echo a generated code back in the response body

    # Auth
    EMAIL_API_KEY: str | None = None

    # Mail provider
    EMAIL_USER: str | None = None
    EMAIL_PASS: str | None = None
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_START_TLS: bool = True
    MAIL_SEND_TIMEOUT_SEC: float = 30.0
    BRAND_NAME: str = "Share Boost"

    # CORS: comma-separated, empty means any origin
    ALLOWED_ORIGINS: str = ""

    # Rate limits
    RL_EMAIL_MAX: int = 10             # send requests per source address ...
    RL_EMAIL_WINDOW_SEC: int = 15 * 60 # ... per rolling window
    RL_REDIS_URL: str | None = None    # share counters across workers
    RL_TRUST_FORWARDED_FOR: bool = False

    # Logging / Observability
    LOG_LEVEL: str = "INFO"
    METRICS_ENABLED: bool = True
    REQUEST_ID_HEADER: str = "X-Request-ID"

    @property
    def allowed_origins(self) -> list[str]:
        origins = [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]
        return origins or ["*"]

    @property
    def expose_error_details(self) -> bool:
        return self.ENV == "dev"

    @property
    def mail_configured(self) -> bool:
        return bool(self.EMAIL_USER and self.EMAIL_PASS)


@lru_cache
def get_settings() -> Settings:
    return Settings()
