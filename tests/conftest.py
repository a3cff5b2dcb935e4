"""Fixtures shared by unit and integration tests."""

import os
from datetime import timedelta

import pytest

from config import JWTSettings
from services.account_security import AccountSecurity
from services.mailer import VerificationMailer
from services.rate_limiter import IntervalRateLimiter, SlidingWindowRateLimiter
from services.registration_store import EphemeralRegistrationStore
from services.token_issuer import TokenIssuer
from tests.fakes import FakeClock, FakeMonotonic, InMemoryUserRepository, RecordingEmailProvider

# Ensure a MONGODB_URI is present so AppSettings can be instantiated
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017/")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def monotonic():
    return FakeMonotonic()


@pytest.fixture
def repo():
    return InMemoryUserRepository()


@pytest.fixture
def email_provider():
    return RecordingEmailProvider()


@pytest.fixture
def jwt_settings():
    return JWTSettings(
        jwt_access_secret="test-access-secret-0123456789abcdef0123",
        jwt_refresh_secret="test-refresh-secret-0123456789abcdef012",
        jwt_admin_secret="test-admin-secret-0123456789abcdef01234",
    )


@pytest.fixture
def registration_store(clock):
    return EphemeralRegistrationStore(ttl=timedelta(hours=24), capacity=100, clock=clock)


@pytest.fixture
def token_issuer(jwt_settings, repo, clock):
    return TokenIssuer(jwt_settings, repo, clock=clock)


@pytest.fixture
def account_security(repo, clock):
    return AccountSecurity(repo, max_attempts=5, lock_duration=timedelta(hours=2), clock=clock)


@pytest.fixture
def mailer(email_provider, monotonic):
    return VerificationMailer(
        email_provider,
        email_limiter=IntervalRateLimiter(60, clock=monotonic),
        ip_limiter=SlidingWindowRateLimiter(limit=10, window_seconds=3600, clock=monotonic),
        app_url="https://telo.example",
    )
