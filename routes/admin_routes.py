"""
Admin console endpoints.

POST /admin/auth/login               — admin token from configured credentials
GET  /admin/users/pending-deletions  — accounts with a deletion schedule
GET  /admin/cleanup/status           — cleanup service status and statistics
POST /admin/cleanup/run              — trigger a cleanup run now
GET  /admin/registrations            — registration store stats and pending list

Everything except login requires an admin bearer token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from dependencies import (
    get_cleanup_service,
    get_registration_store,
    get_settings,
    get_token_issuer,
    get_user_repository,
    require_admin,
)
from config import AppSettings
from repositories.user_repository import UserRepository
from schemas.dto.requests.account import AdminLoginRequest
from schemas.dto.responses.admin import (
    AdminLoginResponse,
    CleanupRunResponse,
    CleanupStatsResponse,
    CleanupStatusResponse,
    PendingDeletionItem,
    PendingDeletionsResponse,
    RegistrationsResponse,
)
from services.admin_auth import authenticate_admin
from services.cleanup_service import AccountCleanupService
from services.registration_store import EphemeralRegistrationStore
from services.token_issuer import TokenIssuer
from shared.datetime_utils import utc_now
from shared.ip_utils import get_client_ip

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/auth/login", response_model=AdminLoginResponse)
async def admin_login(
    body: AdminLoginRequest,
    request: Request,
    settings: AppSettings = Depends(get_settings),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> AdminLoginResponse:
    token = authenticate_admin(
        body.username,
        body.password,
        settings=settings.security,
        issuer=issuer,
        ip_address=get_client_ip(request),
    )
    return AdminLoginResponse(
        access_token=token, expires_in=settings.jwt.admin_token_ttl_seconds
    )


@router.get("/users/pending-deletions", response_model=PendingDeletionsResponse)
async def pending_deletions(
    _admin: str = Depends(require_admin),
    repository: UserRepository = Depends(get_user_repository),
) -> PendingDeletionsResponse:
    users = await repository.find_pending_deletions()
    now = utc_now()
    return PendingDeletionsResponse(
        count=len(users),
        users=[PendingDeletionItem.from_user(user, now) for user in users],
    )


@router.get("/cleanup/status", response_model=CleanupStatusResponse)
async def cleanup_status(
    _admin: str = Depends(require_admin),
    cleanup: AccountCleanupService = Depends(get_cleanup_service),
) -> CleanupStatusResponse:
    status = cleanup.get_status()
    return CleanupStatusResponse(
        is_running=status["is_running"],
        last_run_at=status["last_run_at"],
        next_run_estimate=status["next_run_estimate"],
        interval_seconds=status["interval_seconds"],
        stats=CleanupStatsResponse.from_stats(cleanup.get_stats()),
    )


@router.post("/cleanup/run", response_model=CleanupRunResponse)
async def run_cleanup(
    _admin: str = Depends(require_admin),
    cleanup: AccountCleanupService = Depends(get_cleanup_service),
) -> CleanupRunResponse:
    result = await cleanup.manual_cleanup()
    return CleanupRunResponse.from_result(result)


@router.get("/registrations", response_model=RegistrationsResponse)
async def registrations(
    _admin: str = Depends(require_admin),
    store: EphemeralRegistrationStore = Depends(get_registration_store),
) -> RegistrationsResponse:
    return RegistrationsResponse.build(store.stats(), store.pending())
