"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).
AppSettings is constructed once in create_app() and handed to every
component at construction time; nothing below reads os.environ directly.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    storage_backend: Literal["mongo", "redis", "memory"] = "mongo"

    mongodb_uri: Optional[str] = None
    db_name: str = "form-verification"

    redis_uri: Optional[str] = None

    @model_validator(mode="after")
    def _require_backend_uri(self) -> "StorageSettings":
        if self.storage_backend == "mongo" and not self.mongodb_uri:
            raise ValueError("MONGODB_URI is required when STORAGE_BACKEND=mongo")
        if self.storage_backend == "redis" and not self.redis_uri:
            raise ValueError("REDIS_URI is required when STORAGE_BACKEND=redis")
        return self


class MailgunSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mailgun_api_key: str = ""
    mailgun_api_base_url: str = ""
    from_address: str = ""

    # Seconds before an outbound email/relay request is abandoned
    http_timeout_seconds: float = 10.0


class VerificationSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # "stored": token id in the URL, payload server-side (single use)
    # "signed": payload + signature in the URL, no server-side state
    link_mode: Literal["stored", "signed"] = "stored"

    # Server-wide secret for the signed link mode
    secret_signature: str = ""

    # None → links never expire
    link_ttl_seconds: Optional[int] = None

    # How long an address is locked out after a verification email is sent.
    # 0 disables the lockout.
    pending_timeout_seconds: int = 60

    # Upper bound on an encoded stored payload (bytes); 25 MB default
    max_payload_bytes: int = 25 * 1024 * 1024

    submit_path: str = "/submit-form"

    @model_validator(mode="after")
    def _require_secret_for_signed(self) -> "VerificationSettings":
        if self.link_mode == "signed" and not self.secret_signature:
            raise ValueError("SECRET_SIGNATURE is required when LINK_MODE=signed")
        return self


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    env: str = "development"
    app_name: str = "form-verification"

    # Public base URL used to build redemption links. Empty → derived from
    # the incoming request.
    public_url: str = ""

    cors_origins: list[str] = ["*"]

    docs_url: Optional[str] = "/docs"

    storage: Optional[StorageSettings] = None
    mailgun: Optional[MailgunSettings] = None
    verification: Optional[VerificationSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        if self.storage is None:
            self.storage = StorageSettings()
        if self.mailgun is None:
            self.mailgun = MailgunSettings()
        if self.verification is None:
            self.verification = VerificationSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()
        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
