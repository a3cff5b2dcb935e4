"""
Scheduled deletion cleanup.

Permanently removes accounts whose deletion deadline has passed. One
instance per process; run_cleanup() is single-flight: a trigger that arrives
while a run is in progress returns a skipped result instead of queueing.

Every scheduled account is examined (and counted as processed); only those
past their deadline are deleted. Each due account is re-read and re-checked
immediately before deletion, and the delete itself is conditional on the
schedule still being in place, so a cancellation that lands mid-run wins.
A failure on one account is recorded and the batch continues; a failure of
the candidate query is recorded as critical and ends the run.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

from repositories.user_repository import UserRepository
from schemas.models.user import UserDoc
from shared.datetime_utils import utc_now
from shared.logging import get_logger

log = get_logger(__name__)

FAILURE_PER_RECORD = "per_record_failure"
FAILURE_CRITICAL = "critical_failure"


@dataclass
class CleanupFailure:
    kind: str
    reason: str
    user_id: Optional[str] = None
    email: Optional[str] = None


@dataclass
class CleanupRunResult:
    run_number: int
    started_at: datetime
    finished_at: Optional[datetime] = None
    duration_ms: int = 0
    processed: int = 0
    deleted: int = 0
    not_due: int = 0
    errors: list[CleanupFailure] = field(default_factory=list)
    skipped: bool = False
    reason: Optional[str] = None


@dataclass
class CleanupStats:
    total_runs: int = 0
    total_skipped: int = 0
    total_processed: int = 0
    total_deleted: int = 0
    total_errors: int = 0
    last_run: Optional[CleanupRunResult] = None


def deletion_due(user: UserDoc, now: datetime) -> bool:
    return user.deletion_scheduled and user.deletion_scheduled_for <= now


class AccountCleanupService:
    def __init__(
        self,
        repository: UserRepository,
        *,
        interval: Optional[timedelta] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repo = repository
        self.interval = interval
        self._clock = clock
        self._running = False
        self._stats = CleanupStats()

    @property
    def is_running(self) -> bool:
        return self._running

    async def run_cleanup(self) -> CleanupRunResult:
        # Check-and-set with no await in between
        if self._running:
            self._stats.total_skipped += 1
            log.info("cleanup_skipped_already_running")
            return CleanupRunResult(
                run_number=self._stats.total_runs,
                started_at=self._clock(),
                finished_at=self._clock(),
                skipped=True,
                reason="Cleanup already in progress",
            )
        self._running = True

        self._stats.total_runs += 1
        result = CleanupRunResult(run_number=self._stats.total_runs, started_at=self._clock())
        started = time.perf_counter()
        log.info("cleanup_started", run_number=result.run_number)
        try:
            await self._process(result)
        finally:
            result.finished_at = self._clock()
            result.duration_ms = int((time.perf_counter() - started) * 1000)
            self._merge(result)
            self._running = False

        log.info(
            "cleanup_completed",
            run_number=result.run_number,
            processed=result.processed,
            deleted=result.deleted,
            not_due=result.not_due,
            errors=len(result.errors),
            duration_ms=result.duration_ms,
        )
        return result

    async def manual_cleanup(self) -> CleanupRunResult:
        log.info("cleanup_manual_trigger")
        return await self.run_cleanup()

    async def _process(self, result: CleanupRunResult) -> None:
        try:
            candidates = await self._repo.find_pending_deletions()
        except Exception as e:
            log.error("cleanup_query_failed", error=str(e), error_type=type(e).__name__)
            result.errors.append(CleanupFailure(kind=FAILURE_CRITICAL, reason=str(e)))
            return

        for candidate in candidates:
            result.processed += 1
            try:
                if not deletion_due(candidate, self._clock()):
                    result.not_due += 1
                    continue
                if await self._delete_if_still_due(candidate):
                    result.deleted += 1
            except Exception as e:
                log.error(
                    "cleanup_account_failed",
                    user_id=candidate.user_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                result.errors.append(
                    CleanupFailure(
                        kind=FAILURE_PER_RECORD,
                        reason=str(e),
                        user_id=candidate.user_id,
                        email=candidate.email,
                    )
                )

    async def _delete_if_still_due(self, candidate: UserDoc) -> bool:
        fresh = await self._repo.find_by_id(candidate.id)
        if fresh is None:
            log.info("cleanup_account_already_gone", user_id=candidate.user_id)
            return False
        now = self._clock()
        if not deletion_due(fresh, now):
            log.info("cleanup_account_no_longer_due", user_id=candidate.user_id)
            return False
        deleted = await self._repo.delete_if_due(fresh.id, now)
        if deleted:
            log.info("cleanup_account_deleted", user_id=fresh.user_id)
        return deleted

    def _merge(self, result: CleanupRunResult) -> None:
        self._stats.total_processed += result.processed
        self._stats.total_deleted += result.deleted
        self._stats.total_errors += len(result.errors)
        self._stats.last_run = result

    def get_stats(self) -> CleanupStats:
        return self._stats

    def get_status(self) -> dict:
        last = self._stats.last_run
        next_run: Optional[datetime] = None
        if last is not None and last.finished_at is not None and self.interval is not None:
            next_run = last.finished_at + self.interval
        return {
            "is_running": self._running,
            "total_runs": self._stats.total_runs,
            "last_run_at": last.started_at if last else None,
            "next_run_estimate": next_run,
            "interval_seconds": int(self.interval.total_seconds()) if self.interval else None,
        }
