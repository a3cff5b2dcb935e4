"""Unit tests for AppSettings and sub-configs."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from config import (
    AppSettings,
    CleanupSettings,
    DatabaseSettings,
    EmailSettings,
    JWTSettings,
    RateLimitSettings,
    RegistrationSettings,
    SecuritySettings,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def with_mongo(monkeypatch):
    """Set the required MONGODB_URI so AppSettings can be instantiated."""
    monkeypatch.setenv("MONGODB_URI", "mongodb://localhost:27017/")
    return monkeypatch


# ---------------------------------------------------------------------------
# DatabaseSettings
# ---------------------------------------------------------------------------


class TestDatabaseSettings:
    def test_loads_mongodb_uri(self, monkeypatch):
        monkeypatch.setenv("MONGODB_URI", "mongodb://db:27017/")
        assert DatabaseSettings().mongodb_uri == "mongodb://db:27017/"

    def test_default_db_name(self, with_mongo):
        assert DatabaseSettings().db_name == "telo-directory"

    def test_missing_mongodb_uri_raises(self, monkeypatch):
        monkeypatch.delenv("MONGODB_URI", raising=False)
        with pytest.raises(PydanticValidationError):
            DatabaseSettings()


# ---------------------------------------------------------------------------
# Identity settings
# ---------------------------------------------------------------------------


class TestJWTSettings:
    def test_lifetimes(self):
        s = JWTSettings()
        assert s.access_token_ttl_seconds == 15 * 60
        assert s.refresh_token_ttl_seconds == 7 * 24 * 3600
        assert s.admin_token_ttl_seconds == 24 * 3600

    def test_secrets_from_env(self, monkeypatch):
        monkeypatch.setenv("JWT_ACCESS_SECRET", "a-secret")
        monkeypatch.setenv("JWT_REFRESH_SECRET", "r-secret")
        s = JWTSettings()
        assert (s.jwt_access_secret, s.jwt_refresh_secret) == ("a-secret", "r-secret")


class TestSecuritySettings:
    def test_defaults(self):
        s = SecuritySettings()
        assert s.max_login_attempts == 5
        assert s.account_lock_time == "2h"
        assert s.user_deletion_delay_days == 5

    def test_lock_time_from_env(self, monkeypatch):
        monkeypatch.setenv("ACCOUNT_LOCK_TIME", "30m")
        assert SecuritySettings().account_lock_time == "30m"


def test_registration_defaults():
    s = RegistrationSettings()
    assert s.registration_ttl_seconds == 86400
    assert s.registration_max_pending == 10000
    assert s.password_reset_token_ttl_seconds == 1800


def test_rate_limit_defaults():
    s = RateLimitSettings()
    assert s.email_resend_interval_seconds == 60
    assert (s.ip_email_limit_per_window, s.ip_email_window_seconds) == (10, 3600)


def test_email_retry_defaults():
    s = EmailSettings()
    assert s.email_max_attempts == 3
    assert s.email_retry_base_delay_seconds == 2.0
    assert s.zepto_api_token == ""


def test_cleanup_defaults():
    s = CleanupSettings()
    assert s.cleanup_enabled
    assert s.cleanup_initial_delay_seconds == 600
    assert s.cleanup_interval_seconds == 5 * 3600


# ---------------------------------------------------------------------------
# AppSettings
# ---------------------------------------------------------------------------


class TestAppSettings:
    def test_sub_configs_populated(self, with_mongo):
        s = AppSettings()
        for sub in ("db", "jwt", "security", "registration", "rate_limit", "email", "cleanup"):
            assert getattr(s, sub) is not None

    def test_explicit_sub_config_kept(self, with_mongo):
        jwt = JWTSettings(jwt_access_secret="x", jwt_refresh_secret="y")
        assert AppSettings(jwt=jwt).jwt is jwt

    @pytest.mark.parametrize(
        "env, production, development",
        [("production", True, False), ("development", False, True), ("staging", False, False)],
    )
    def test_env_flags(self, with_mongo, env, production, development):
        with_mongo.setenv("ENV", env)
        s = AppSettings()
        assert s.is_production is production
        assert s.is_development is development
