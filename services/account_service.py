"""Owner-initiated deferred deletion: schedule and cancel."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable

from errors import AuthenticationError, ErrorCode, ValidationError
from repositories.user_repository import UserRepository
from schemas.models.user import UserDoc
from shared.crypto import verify_password
from shared.datetime_utils import utc_now
from shared.logging import get_logger

log = get_logger(__name__)


class AccountService:
    def __init__(
        self,
        repository: UserRepository,
        *,
        deletion_delay: timedelta = timedelta(days=5),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repo = repository
        self.deletion_delay = deletion_delay
        self._clock = clock

    async def schedule_deletion(self, user: UserDoc, password: str) -> UserDoc:
        if not verify_password(password, user.password_hash):
            raise AuthenticationError("Incorrect password", code=ErrorCode.INVALID_CREDENTIALS)
        if user.deletion_scheduled:
            return user

        now = self._clock()
        deadline = now + self.deletion_delay
        await self._repo.update(
            user.id,
            set_fields={"deletion_scheduled_at": now, "deletion_scheduled_for": deadline},
        )
        user.deletion_scheduled_at = now
        user.deletion_scheduled_for = deadline
        log.info("account_deletion_scheduled", user_id=user.user_id, deadline=deadline.isoformat())
        return user

    async def cancel_deletion(self, user: UserDoc) -> UserDoc:
        if not user.deletion_scheduled:
            raise ValidationError(
                "No account deletion is scheduled", code=ErrorCode.NO_DELETION_SCHEDULED
            )
        await self._repo.update(
            user.id, unset_fields=("deletion_scheduled_at", "deletion_scheduled_for")
        )
        user.deletion_scheduled_at = None
        user.deletion_scheduled_for = None
        log.info("account_deletion_cancelled", user_id=user.user_id)
        return user
