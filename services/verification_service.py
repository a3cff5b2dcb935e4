"""
Email verification workflows.

Registration confirmation
    consume the ephemeral registration first (creates a verified account);
    otherwise fall back to an unverified account holding the token hash
    (accounts created before verify-before-save). Both paths log the user in.

Resend verification
    pending registrations are re-issued a new token; then unverified accounts.
    Unknown addresses get the same generic answer.

Email change
    the link goes to the NEW address. Availability is checked when the change
    is requested and again when it is confirmed; a clash at confirmation
    leaves the current email untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from errors import (
    ConflictError,
    DuplicateEmailError,
    EmailDeliveryError,
    ErrorCode,
    ValidationError,
)
from infrastructure.email.protocol import EmailKind
from repositories.user_repository import UserRepository
from schemas.models.user import UserDoc
from services.auth_service import check_email_address
from services.mailer import VerificationMailer
from services.registration_store import EphemeralRegistrationStore
from services.token_issuer import TokenIssuer, TokenPair
from shared.crypto import hash_token
from shared.datetime_utils import utc_now
from shared.generators import generate_one_time_token, is_one_time_token
from shared.logging import get_logger
from shared.validators import normalize_email

log = get_logger(__name__)

GENERIC_RESEND_MESSAGE = (
    "If an account or pending registration exists for this email, "
    "a new verification link has been sent."
)

_VERIFICATION_FIELDS = ("verification_token_hash", "verification_token_expires")
_EMAIL_CHANGE_FIELDS = (
    "pending_email_change",
    "email_change_token_hash",
    "email_change_expires",
)


def require_token_format(token: str) -> None:
    if not is_one_time_token(token):
        raise ValidationError(
            "Invalid token format", code=ErrorCode.INVALID_TOKEN_FORMAT, field="token"
        )


@dataclass(frozen=True)
class VerificationResult:
    user: UserDoc
    tokens: TokenPair
    already_verified: bool = False


@dataclass(frozen=True)
class ResendResult:
    message: str
    already_verified: bool = False


@dataclass(frozen=True)
class EmailChangeRequest:
    new_email: str
    expires_at: datetime
    verification_sent: bool


class VerificationService:
    def __init__(
        self,
        repository: UserRepository,
        registration_store: EphemeralRegistrationStore,
        token_issuer: TokenIssuer,
        mailer: VerificationMailer,
        *,
        verification_ttl: timedelta = timedelta(hours=24),
        email_change_ttl: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repo = repository
        self._store = registration_store
        self._issuer = token_issuer
        self._mailer = mailer
        self.verification_ttl = verification_ttl
        self.email_change_ttl = email_change_ttl
        self._clock = clock

    # ── Registration confirmation ────────────────────────────────────────────

    async def confirm_registration(self, token: str) -> VerificationResult:
        require_token_format(token)
        now = self._clock()

        registration = self._store.consume(token)
        if registration is not None:
            user = UserDoc(
                email=registration.email,
                password_hash=registration.password_hash,
                name=registration.name,
                phone=registration.phone,
                email_verified=True,
                email_verified_at=now,
                registration_ip=registration.ip_address,
                created_at=now,
            )
            try:
                user = await self._repo.create(user)
            except DuplicateEmailError:
                log.warning("registration_promotion_conflict", email=registration.email)
                raise ConflictError(
                    "An account with this email already exists. Please log in instead.",
                    code=ErrorCode.EMAIL_ALREADY_EXISTS,
                )
            log.info("account_created_verified", user_id=user.user_id)
            return VerificationResult(user=user, tokens=self._issuer.issue(user.user_id))

        user = await self._repo.find_by_verification_token(hash_token(token), now)
        if user is None:
            raise ValidationError(
                "This verification link is invalid or has expired. Please request a new one.",
                code=ErrorCode.INVALID_OR_EXPIRED_TOKEN,
            )

        if user.email_verified:
            await self._repo.update(user.id, unset_fields=_VERIFICATION_FIELDS)
            return VerificationResult(
                user=user, tokens=self._issuer.issue(user.user_id), already_verified=True
            )

        await self._repo.update(
            user.id,
            set_fields={"email_verified": True, "email_verified_at": now},
            unset_fields=_VERIFICATION_FIELDS,
        )
        user.email_verified = True
        user.email_verified_at = now
        user.verification_token_hash = None
        user.verification_token_expires = None
        log.info("account_verified_legacy", user_id=user.user_id)
        return VerificationResult(user=user, tokens=self._issuer.issue(user.user_id))

    # ── Resend verification ──────────────────────────────────────────────────

    async def resend_verification(self, email: str, *, ip_address: str) -> ResendResult:
        email = normalize_email(email)
        details = check_email_address(email)
        if details:
            raise ValidationError("Validation failed", details=details)

        pending = self._store.find_by_email(email)
        if pending is not None:
            self._mailer.check(email, ip_address)
            token = generate_one_time_token()
            self._store.regenerate_token(email, token)
            await self._send_verification(email, token, pending.name, ip_address)
            return ResendResult(message="A new verification link has been sent to your email.")

        user = await self._repo.find_by_email(email)
        if user is None:
            log.info("resend_verification_unknown_email")
            return ResendResult(message=GENERIC_RESEND_MESSAGE)
        if user.email_verified:
            return ResendResult(
                message="This email is already verified. You can log in normally.",
                already_verified=True,
            )

        self._mailer.check(email, ip_address)
        token = generate_one_time_token()
        await self._repo.update(
            user.id,
            set_fields={
                "verification_token_hash": hash_token(token),
                "verification_token_expires": self._clock() + self.verification_ttl,
            },
        )
        await self._send_verification(email, token, user.name, ip_address)
        return ResendResult(message="A new verification link has been sent to your email.")

    async def _send_verification(
        self, email: str, token: str, name: Optional[str], ip_address: str
    ) -> None:
        sent = await self._mailer.send(
            EmailKind.VERIFICATION, email, token, ip_address=ip_address, name=name
        )
        if not sent:
            raise EmailDeliveryError(
                "We could not send the verification email. Please try again shortly."
            )

    # ── Email change ─────────────────────────────────────────────────────────

    async def request_email_change(
        self, user: UserDoc, new_email: str, *, ip_address: str
    ) -> EmailChangeRequest:
        new_email = normalize_email(new_email)
        details = check_email_address(new_email, field="new_email")
        if details:
            raise ValidationError("Validation failed", details=details)

        if new_email == user.email:
            raise ValidationError(
                "New email must be different from your current email",
                code=ErrorCode.SAME_EMAIL_ADDRESS,
                field="new_email",
            )
        if await self._repo.email_taken(new_email, exclude_id=user.id) or self._store.has_pending(
            new_email
        ):
            raise ConflictError(
                "This email address is already in use",
                code=ErrorCode.EMAIL_TAKEN,
                field="new_email",
            )

        self._mailer.check(new_email, ip_address)

        token = generate_one_time_token()
        expires_at = self._clock() + self.email_change_ttl
        await self._repo.update(
            user.id,
            set_fields={
                "pending_email_change": new_email,
                "email_change_token_hash": hash_token(token),
                "email_change_expires": expires_at,
            },
        )
        log.info("email_change_requested", user_id=user.user_id)

        sent = await self._mailer.send(
            EmailKind.EMAIL_CHANGE,
            new_email,
            token,
            ip_address=ip_address,
            name=user.name,
            extra={"current_email": user.email, "new_email": new_email},
        )
        return EmailChangeRequest(
            new_email=new_email, expires_at=expires_at, verification_sent=sent
        )

    async def confirm_email_change(self, user: UserDoc, token: str) -> UserDoc:
        require_token_format(token)
        now = self._clock()

        holder = await self._repo.find_by_email_change_token(hash_token(token), now)
        if holder is None or holder.id != user.id:
            raise ValidationError(
                "This email change link is invalid or has expired",
                code=ErrorCode.INVALID_OR_EXPIRED_TOKEN,
            )
        new_email = holder.pending_email_change
        if not new_email:
            raise ValidationError(
                "There is no pending email change for this account",
                code=ErrorCode.NO_PENDING_CHANGE,
            )

        if await self._repo.email_taken(new_email, exclude_id=holder.id):
            await self._repo.update(holder.id, unset_fields=_EMAIL_CHANGE_FIELDS)
            log.warning("email_change_target_taken", user_id=holder.user_id)
            raise ConflictError(
                "This email address was claimed by another account",
                code=ErrorCode.EMAIL_TAKEN,
            )

        try:
            await self._repo.update(
                holder.id,
                set_fields={
                    "email": new_email,
                    "email_verified": True,
                    "email_verified_at": now,
                    "email_changed_at": now,
                },
                unset_fields=_EMAIL_CHANGE_FIELDS,
            )
        except DuplicateEmailError:
            await self._repo.update(holder.id, unset_fields=_EMAIL_CHANGE_FIELDS)
            raise ConflictError(
                "This email address was claimed by another account",
                code=ErrorCode.EMAIL_TAKEN,
            )

        log.info("email_changed", user_id=holder.user_id)
        return await self._repo.find_by_id(holder.id) or holder
