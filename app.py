"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from errors import register_error_handlers
from infrastructure.email.console import ConsoleEmailProvider
from infrastructure.email.protocol import EmailKind, EmailProvider
from infrastructure.email.retry import RetryingEmailProvider
from infrastructure.email.zeptomail import ZeptoMailProvider
from infrastructure.http_client import HttpClient
from repositories.user_repository import UserRepository
from routes.account_routes import router as account_router
from routes.admin_routes import router as admin_router
from routes.auth_routes import router as auth_router
from routes.health_routes import router as health_router
from routes.verification_routes import router as verification_router
from services.account_security import AccountSecurity, resolve_lock_duration
from services.account_service import AccountService
from services.auth_service import AuthService
from services.cleanup_service import AccountCleanupService
from services.mailer import VerificationMailer
from services.password_service import PasswordService
from services.rate_limiter import (
    IntervalRateLimiter,
    SlidingWindowRateLimiter,
    purge_limiters,
)
from services.registration_store import EphemeralRegistrationStore
from services.token_issuer import TokenIssuer
from services.verification_service import VerificationService
from shared.logging import get_logger, setup_logging
from workers.scheduler import PeriodicTask

log = get_logger(__name__)


def attach_services(
    app: FastAPI,
    settings: AppSettings,
    repository: UserRepository,
    email_provider: EmailProvider,
) -> None:
    """Build every stateful component once and store it on app.state."""
    reg = settings.registration
    state = app.state
    state.settings = settings
    state.user_repository = repository

    state.registration_store = EphemeralRegistrationStore(
        ttl=timedelta(seconds=reg.registration_ttl_seconds),
        capacity=reg.registration_max_pending,
    )
    state.email_limiter = IntervalRateLimiter(
        interval_seconds=settings.rate_limit.email_resend_interval_seconds
    )
    state.ip_limiter = SlidingWindowRateLimiter(
        limit=settings.rate_limit.ip_email_limit_per_window,
        window_seconds=settings.rate_limit.ip_email_window_seconds,
    )
    state.mailer = VerificationMailer(
        email_provider,
        email_limiter=state.email_limiter,
        ip_limiter=state.ip_limiter,
        app_url=settings.app_url,
        link_ttls={
            EmailKind.VERIFICATION: reg.registration_ttl_seconds,
            EmailKind.EMAIL_CHANGE: reg.email_change_token_ttl_seconds,
            EmailKind.PASSWORD_RESET: reg.password_reset_token_ttl_seconds,
        },
    )

    state.token_issuer = TokenIssuer(settings.jwt, repository)
    state.account_security = AccountSecurity(
        repository,
        max_attempts=settings.security.max_login_attempts,
        lock_duration=resolve_lock_duration(settings.security.account_lock_time),
    )
    state.auth_service = AuthService(
        repository,
        state.registration_store,
        state.token_issuer,
        state.account_security,
        state.mailer,
    )
    state.verification_service = VerificationService(
        repository,
        state.registration_store,
        state.token_issuer,
        state.mailer,
        verification_ttl=timedelta(seconds=reg.verification_token_ttl_seconds),
        email_change_ttl=timedelta(seconds=reg.email_change_token_ttl_seconds),
    )
    state.password_service = PasswordService(
        repository,
        state.mailer,
        reset_ttl=timedelta(seconds=reg.password_reset_token_ttl_seconds),
    )
    state.account_service = AccountService(
        repository,
        deletion_delay=timedelta(days=settings.security.user_deletion_delay_days),
    )
    state.cleanup_service = AccountCleanupService(
        repository,
        interval=timedelta(seconds=settings.cleanup.cleanup_interval_seconds),
    )


def build_periodic_tasks(app: FastAPI, settings: AppSettings) -> list[PeriodicTask]:
    state = app.state
    tasks = [
        PeriodicTask(
            "registration_sweep",
            state.registration_store.sweep_expired,
            interval=settings.registration.registration_sweep_interval_seconds,
        ),
        PeriodicTask(
            "rate_limit_purge",
            lambda: purge_limiters(state.email_limiter, state.ip_limiter),
            interval=settings.rate_limit.ip_email_window_seconds,
        ),
    ]
    if settings.cleanup.cleanup_enabled:
        tasks.append(
            PeriodicTask(
                "account_cleanup",
                state.cleanup_service.run_cleanup,
                interval=settings.cleanup.cleanup_interval_seconds,
                initial_delay=settings.cleanup.cleanup_initial_delay_seconds,
            )
        )
    return tasks


def build_email_provider(
    settings: AppSettings, http_client: HttpClient
) -> EmailProvider:
    if not settings.email.zepto_api_token:
        log.warning("email_provider_console", reason="zepto_api_token_not_configured")
        return ConsoleEmailProvider()
    return RetryingEmailProvider(
        ZeptoMailProvider(settings.email, http_client, app_name=settings.app_name),
        max_attempts=settings.email.email_max_attempts,
        base_delay=settings.email.email_retry_base_delay_seconds,
    )


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(
        settings.logging.log_level,
        settings.logging.log_format,
        production=settings.is_production,
    )

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            environment=settings.env,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
            profiles_sample_rate=settings.sentry.sentry_profile_sample_rate,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        mongo_client: AsyncMongoClient = AsyncMongoClient(
            settings.db.mongodb_uri, tz_aware=True
        )
        app.state.mongo_client = mongo_client
        app.state.db = mongo_client[settings.db.db_name]

        repository = UserRepository.from_database(app.state.db)
        await repository.ensure_indexes()

        http_client = HttpClient(timeout=settings.email.email_timeout_seconds)
        attach_services(app, settings, repository, build_email_provider(settings, http_client))

        tasks = build_periodic_tasks(app, settings)
        for task in tasks:
            task.start()
        log.info("app_started", env=settings.env)

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        for task in tasks:
            await task.stop()
        await http_client.aclose()
        await mongo_client.close()
        log.info("app_stopped")

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app, debug=settings.is_development)
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(verification_router)
    app.include_router(account_router)
    app.include_router(admin_router)

    return app
