"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).
Sub-configs are composed into AppSettings by a model_validator so each
concern can also be instantiated on its own in tests.
"""

from __future__ import annotations

from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mongodb_uri: str
    db_name: str = "telo-directory"


class JWTSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    jwt_issuer: str = "telo-directory"
    jwt_audience: str = "telo-directory.api"
    access_token_ttl_seconds: int = 900
    refresh_token_ttl_seconds: int = 604800
    admin_token_ttl_seconds: int = 86400

    # One secret per token type; a refresh token must never verify as access
    jwt_access_secret: str = ""
    jwt_refresh_secret: str = ""
    jwt_admin_secret: str = ""


class SecuritySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    max_login_attempts: int = 5
    account_lock_time: str = "2h"  # <int><s|m|h|d>
    user_deletion_delay_days: int = 5

    admin_username: str = ""
    admin_password: str = ""


class RegistrationSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    registration_ttl_seconds: int = 86400
    registration_max_pending: int = 10000
    registration_sweep_interval_seconds: int = 3600

    verification_token_ttl_seconds: int = 86400
    email_change_token_ttl_seconds: int = 86400
    password_reset_token_ttl_seconds: int = 1800


class RateLimitSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    email_resend_interval_seconds: int = 60
    ip_email_limit_per_window: int = 10
    ip_email_window_seconds: int = 3600


class EmailSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    zepto_api_token: str = ""
    zepto_from_email: str = "noreply@telo.directory"
    zepto_from_name: str = "Telo Directory"

    email_max_attempts: int = 3
    email_retry_base_delay_seconds: float = 2.0
    email_timeout_seconds: float = 10.0


class CleanupSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    cleanup_enabled: bool = True
    cleanup_initial_delay_seconds: int = 600
    cleanup_interval_seconds: int = 18000


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1
    sentry_profile_sample_rate: float = 0.05


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Core
    env: str = "development"
    app_url: str = "http://localhost:3000"
    app_name: str = "Telo Directory"

    cors_origins: list[str] = ["*"]

    # OpenAPI docs URL (None disables the docs UI in production)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    jwt: Optional[JWTSettings] = None
    security: Optional[SecuritySettings] = None
    registration: Optional[RegistrationSettings] = None
    rate_limit: Optional[RateLimitSettings] = None
    email: Optional[EmailSettings] = None
    cleanup: Optional[CleanupSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        if self.db is None:
            self.db = DatabaseSettings()
        if self.jwt is None:
            self.jwt = JWTSettings()
        if self.security is None:
            self.security = SecuritySettings()
        if self.registration is None:
            self.registration = RegistrationSettings()
        if self.rate_limit is None:
            self.rate_limit = RateLimitSettings()
        if self.email is None:
            self.email = EmailSettings()
        if self.cleanup is None:
            self.cleanup = CleanupSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()

        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def is_development(self) -> bool:
        return self.env == "development"
