"""
Integration test wiring.

Builds the real routers and services on top of InMemoryUserRepository and a
recording email provider. No network connections are made.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app import attach_services
from config import AppSettings, DatabaseSettings, JWTSettings, SecuritySettings
from errors import register_error_handlers
from routes.account_routes import router as account_router
from routes.admin_routes import router as admin_router
from routes.auth_routes import router as auth_router
from routes.health_routes import router as health_router
from routes.verification_routes import router as verification_router
from tests.fakes import InMemoryUserRepository, RecordingEmailProvider

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "admin-pass-123"


@dataclass
class Harness:
    app: FastAPI
    client: TestClient
    repo: InMemoryUserRepository
    outbox: RecordingEmailProvider

    def auth(self, access_token: str) -> dict:
        return {"Authorization": f"Bearer {access_token}"}


def make_settings(**overrides) -> AppSettings:
    return AppSettings(
        db=DatabaseSettings(mongodb_uri="mongodb://localhost:27017/"),
        jwt=JWTSettings(
            jwt_access_secret="it-access-secret-0123456789abcdef0123",
            jwt_refresh_secret="it-refresh-secret-0123456789abcdef012",
            jwt_admin_secret="it-admin-secret-0123456789abcdef01234",
        ),
        security=SecuritySettings(
            admin_username=ADMIN_USERNAME, admin_password=ADMIN_PASSWORD
        ),
        **overrides,
    )


def build_test_app(
    settings: AppSettings,
    repo: InMemoryUserRepository,
    outbox: RecordingEmailProvider,
    *,
    mongo_ok: bool = True,
) -> FastAPI:
    mock_db = MagicMock()
    if mongo_ok:
        mock_db.client.admin.command = AsyncMock(return_value={"ok": 1})
    else:
        mock_db.client.admin.command = AsyncMock(side_effect=Exception("connection refused"))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.db = mock_db
        attach_services(app, settings, repo, outbox)
        yield

    app = FastAPI(lifespan=lifespan)
    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(verification_router)
    app.include_router(account_router)
    app.include_router(admin_router)
    return app


@pytest.fixture
def make_harness():
    """Factory for harnesses with custom settings or a failing database."""
    clients: list[TestClient] = []

    def factory(*, mongo_ok: bool = True, **setting_overrides) -> Harness:
        repo = InMemoryUserRepository()
        outbox = RecordingEmailProvider()
        app = build_test_app(make_settings(**setting_overrides), repo, outbox, mongo_ok=mongo_ok)
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return Harness(app=app, client=client, repo=repo, outbox=outbox)

    yield factory
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def harness(make_harness):
    return make_harness()
