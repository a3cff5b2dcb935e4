"""
Forgot / reset password.

request_reset answers identically whether or not the account exists, and
whether or not the per-address resend interval has passed; only the per-IP
limit is surfaced as an error. confirm_reset never logs the user in.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable

from errors import ErrorCode, RateLimitError, ValidationError
from infrastructure.email.protocol import EmailKind
from repositories.user_repository import UserRepository
from services.auth_service import PASSWORD_RULES_MESSAGE
from services.mailer import VerificationMailer
from services.verification_service import require_token_format
from shared.crypto import hash_password, hash_token
from shared.datetime_utils import utc_now
from shared.generators import generate_one_time_token
from shared.logging import get_logger, hash_ip
from shared.validators import normalize_email, validate_email, validate_password

log = get_logger(__name__)

GENERIC_RESET_MESSAGE = (
    "If an account exists for this email, a password reset link has been sent."
)

_RESET_FIELDS = ("reset_password_token_hash", "reset_password_expires")


class PasswordService:
    def __init__(
        self,
        repository: UserRepository,
        mailer: VerificationMailer,
        *,
        reset_ttl: timedelta = timedelta(minutes=30),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repo = repository
        self._mailer = mailer
        self.reset_ttl = reset_ttl
        self._clock = clock

    async def request_reset(self, email: str, *, ip_address: str) -> str:
        email = normalize_email(email)
        if not validate_email(email):
            raise ValidationError(
                "Please provide a valid email address", field="email"
            )

        self._mailer.check_ip(ip_address)
        try:
            self._mailer.check_email(email)
        except RateLimitError:
            log.info("password_reset_throttled", ip=hash_ip(ip_address))
            return GENERIC_RESET_MESSAGE

        user = await self._repo.find_by_email(email)
        if user is None:
            log.info("password_reset_unknown_email", ip=hash_ip(ip_address))
            return GENERIC_RESET_MESSAGE

        token = generate_one_time_token()
        await self._repo.update(
            user.id,
            set_fields={
                "reset_password_token_hash": hash_token(token),
                "reset_password_expires": self._clock() + self.reset_ttl,
            },
        )
        sent = await self._mailer.send(
            EmailKind.PASSWORD_RESET, user.email, token, ip_address=ip_address, name=user.name
        )
        log.info("password_reset_requested", user_id=user.user_id, sent=sent)
        return GENERIC_RESET_MESSAGE

    async def confirm_reset(self, token: str, new_password: str) -> None:
        require_token_format(token)
        if not validate_password(new_password):
            raise ValidationError(PASSWORD_RULES_MESSAGE, field="password")

        user = await self._repo.find_by_reset_token(hash_token(token), self._clock())
        if user is None:
            raise ValidationError(
                "This password reset link is invalid or has expired",
                code=ErrorCode.INVALID_OR_EXPIRED_TOKEN,
            )

        await self._repo.update(
            user.id,
            set_fields={"password_hash": hash_password(new_password)},
            unset_fields=_RESET_FIELDS,
        )
        log.info("password_reset_completed", user_id=user.user_id)
