"""
Login attempt tracking and temporary lockout.

States per account:
    Active(attempts=n)   lock_until absent or in the past
    Locked(until=t)      lock_until in the future

record_failure() on an account whose lock has lapsed starts a fresh count
at 1 instead of continuing the old one. Reaching the threshold while not
already locked sets lock_until in the same atomic write as the increment.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from repositories.user_repository import UserRepository
from schemas.models.user import UserDoc
from shared.datetime_utils import parse_duration, utc_now
from shared.logging import get_logger

log = get_logger(__name__)

DEFAULT_LOCK_DURATION = timedelta(hours=2)


def lock_active(user: UserDoc, now: datetime) -> bool:
    return user.lock_until is not None and user.lock_until > now


def resolve_lock_duration(value: str) -> timedelta:
    duration = parse_duration(value)
    if duration is None or duration <= timedelta(0):
        log.warning("invalid_account_lock_time", value=value, fallback="2h")
        return DEFAULT_LOCK_DURATION
    return duration


@dataclass(frozen=True)
class LoginAttemptState:
    attempts: int
    locked: bool
    lock_until: Optional[datetime] = None


class AccountSecurity:
    def __init__(
        self,
        repository: UserRepository,
        *,
        max_attempts: int = 5,
        lock_duration: timedelta = DEFAULT_LOCK_DURATION,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repo = repository
        self.max_attempts = max_attempts
        self.lock_duration = lock_duration
        self._clock = clock

    def is_locked(self, user: UserDoc) -> bool:
        return lock_active(user, self._clock())

    async def record_failure(self, user: UserDoc) -> LoginAttemptState:
        now = self._clock()

        if user.lock_until is not None and user.lock_until <= now:
            await self._repo.update(
                user.id, set_fields={"login_attempts": 1}, unset_fields=("lock_until",)
            )
            log.info("login_lock_expired_counter_reset", user_id=user.user_id)
            return LoginAttemptState(attempts=1, locked=False)

        already_locked = lock_active(user, now)
        lock_until = None
        if user.login_attempts + 1 >= self.max_attempts and not already_locked:
            lock_until = now + self.lock_duration

        updated = await self._repo.increment_login_attempts(user.id, lock_until=lock_until)
        attempts = updated.login_attempts if updated is not None else user.login_attempts + 1

        if lock_until is not None:
            log.warning(
                "account_locked",
                user_id=user.user_id,
                attempts=attempts,
                lock_seconds=int(self.lock_duration.total_seconds()),
            )
            return LoginAttemptState(attempts=attempts, locked=True, lock_until=lock_until)

        return LoginAttemptState(
            attempts=attempts,
            locked=already_locked,
            lock_until=user.lock_until if already_locked else None,
        )

    async def record_success(self, user: UserDoc) -> None:
        now = self._clock()
        await self._repo.update(
            user.id,
            set_fields={"last_login_at": now},
            unset_fields=("login_attempts", "lock_until"),
        )
        user.login_attempts = 0
        user.lock_until = None
        user.last_login_at = now
