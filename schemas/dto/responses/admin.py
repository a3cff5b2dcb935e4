"""
Response DTOs for the admin surface.

AdminLoginResponse          — POST /admin/auth/login
PendingDeletionsResponse    — GET /admin/users/pending-deletions
CleanupRunResponse          — POST /admin/cleanup/run
CleanupStatusResponse       — GET /admin/cleanup/status
RegistrationsResponse       — GET /admin/registrations
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from schemas.models.user import UserDoc
from services.cleanup_service import CleanupRunResult, CleanupStats
from services.registration_store import RegistrationStoreStats


class AdminLoginResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    access_token: str
    token_type: str = "Bearer"
    expires_in: int


class PendingDeletionItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    email: str
    name: str
    deletion_scheduled_at: datetime
    deletion_scheduled_for: datetime
    overdue: bool

    @classmethod
    def from_user(cls, user: UserDoc, now: datetime) -> "PendingDeletionItem":
        return cls(
            id=user.user_id,
            email=user.email,
            name=user.name,
            deletion_scheduled_at=user.deletion_scheduled_at,
            deletion_scheduled_for=user.deletion_scheduled_for,
            overdue=user.deletion_scheduled_for <= now,
        )


class PendingDeletionsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    count: int
    users: list[PendingDeletionItem]


class CleanupFailureItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kind: str
    reason: str
    user_id: Optional[str] = None
    email: Optional[str] = None


class CleanupRunResponse(BaseModel):
    """Statistics for one cleanup run (or a skipped trigger)."""

    model_config = ConfigDict(populate_by_name=True)

    run_number: int
    skipped: bool
    reason: Optional[str] = None
    started_at: datetime
    finished_at: Optional[datetime] = None
    duration_ms: int
    processed: int
    deleted: int
    not_due: int
    errors: list[CleanupFailureItem]

    @classmethod
    def from_result(cls, result: CleanupRunResult) -> "CleanupRunResponse":
        return cls(
            run_number=result.run_number,
            skipped=result.skipped,
            reason=result.reason,
            started_at=result.started_at,
            finished_at=result.finished_at,
            duration_ms=result.duration_ms,
            processed=result.processed,
            deleted=result.deleted,
            not_due=result.not_due,
            errors=[
                CleanupFailureItem(
                    kind=f.kind, reason=f.reason, user_id=f.user_id, email=f.email
                )
                for f in result.errors
            ],
        )


class CleanupStatsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_runs: int
    total_skipped: int
    total_processed: int
    total_deleted: int
    total_errors: int
    last_run: Optional[CleanupRunResponse] = None

    @classmethod
    def from_stats(cls, stats: CleanupStats) -> "CleanupStatsResponse":
        return cls(
            total_runs=stats.total_runs,
            total_skipped=stats.total_skipped,
            total_processed=stats.total_processed,
            total_deleted=stats.total_deleted,
            total_errors=stats.total_errors,
            last_run=CleanupRunResponse.from_result(stats.last_run) if stats.last_run else None,
        )


class CleanupStatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_running: bool
    last_run_at: Optional[datetime] = None
    next_run_estimate: Optional[datetime] = None
    interval_seconds: Optional[int] = None
    stats: CleanupStatsResponse


class PendingRegistrationItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str
    name: str
    created_at: datetime
    expires_at: datetime
    minutes_remaining: int


class RegistrationsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: int
    valid: int
    expired: int
    capacity: int
    usage_percent: float
    pending: list[PendingRegistrationItem]

    @classmethod
    def build(
        cls, stats: RegistrationStoreStats, pending: list[dict]
    ) -> "RegistrationsResponse":
        return cls(
            total=stats.total,
            valid=stats.valid,
            expired=stats.expired,
            capacity=stats.capacity,
            usage_percent=stats.usage_percent,
            pending=[PendingRegistrationItem(**item) for item in pending],
        )
