"""
Registration and login.

Registration is verify-before-save: the validated payload (with an argon2
password hash) goes into the EphemeralRegistrationStore and only becomes a
MongoDB document once the emailed link is visited (VerificationService).

Login applies the lockout state machine. Unknown email and wrong password
return the same error so addresses cannot be enumerated; a locked account
answers AccountLocked without saying when the lock ends. A correct password
always clears the failure counter, even when the account is unverified and
the login is then refused.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from errors import (
    AccountLockedError,
    AuthenticationError,
    ConflictError,
    ErrorCode,
    ForbiddenError,
    ValidationError,
)
from infrastructure.email.protocol import EmailKind
from repositories.user_repository import UserRepository
from schemas.models.user import UserDoc
from services.account_security import AccountSecurity
from services.mailer import VerificationMailer
from services.registration_store import EphemeralRegistrationStore
from services.token_issuer import TokenIssuer, TokenPair
from shared.crypto import hash_password, verify_password
from shared.datetime_utils import utc_now
from shared.disposable_email import is_disposable_email
from shared.generators import generate_one_time_token
from shared.logging import get_logger, hash_ip
from shared.validators import (
    NAME_MAX_LENGTH,
    NAME_MIN_LENGTH,
    normalize_email,
    validate_email,
    validate_name,
    validate_password,
    validate_phone,
)

log = get_logger(__name__)

PASSWORD_RULES_MESSAGE = (
    "Password must be 8-128 characters and contain at least one letter and one number"
)


def check_email_address(email: str, field: str = "email") -> list[dict]:
    """Validation details for an email address (empty when acceptable)."""
    if not validate_email(email):
        return [{"field": field, "message": "Please provide a valid email address"}]
    if is_disposable_email(email):
        return [
            {
                "field": field,
                "message": "Disposable email addresses are not allowed. "
                "Please use a permanent email address",
            }
        ]
    return []


def validate_registration(
    email: str, password: str, name: str, phone: Optional[str]
) -> None:
    details = check_email_address(email)
    if not validate_password(password):
        details.append({"field": "password", "message": PASSWORD_RULES_MESSAGE})
    if not validate_name(name):
        details.append(
            {
                "field": "name",
                "message": f"Name must be between {NAME_MIN_LENGTH} and "
                f"{NAME_MAX_LENGTH} characters",
            }
        )
    if phone and not validate_phone(phone):
        details.append({"field": "phone", "message": "Please provide a valid phone number"})
    if details:
        raise ValidationError("Validation failed", details=details)


@dataclass(frozen=True)
class RegistrationResult:
    email: str
    verification_sent: bool
    expires_at: datetime


@dataclass(frozen=True)
class LoginResult:
    user: UserDoc
    tokens: TokenPair


class AuthService:
    def __init__(
        self,
        repository: UserRepository,
        registration_store: EphemeralRegistrationStore,
        token_issuer: TokenIssuer,
        security: AccountSecurity,
        mailer: VerificationMailer,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repo = repository
        self._store = registration_store
        self._issuer = token_issuer
        self._security = security
        self._mailer = mailer
        self._clock = clock

    async def register(
        self,
        *,
        email: str,
        password: str,
        name: str,
        phone: Optional[str] = None,
        ip_address: str,
        user_agent: Optional[str] = None,
    ) -> RegistrationResult:
        email = normalize_email(email)
        name = (name or "").strip()
        phone = phone.strip() if phone else None
        validate_registration(email, password, name, phone)

        if await self._repo.find_by_email(email) is not None:
            raise ConflictError(
                "An account with this email already exists",
                code=ErrorCode.EMAIL_ALREADY_EXISTS,
                field="email",
            )
        if self._store.has_pending(email):
            raise ConflictError(
                "A registration for this email is already waiting for verification. "
                "Check your inbox or request a new verification email.",
                code=ErrorCode.REGISTRATION_PENDING,
                field="email",
            )

        self._mailer.check(email, ip_address)

        token = generate_one_time_token()
        registration = self._store.new_registration(
            email=email,
            password_hash=hash_password(password),
            name=name,
            phone=phone,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self._store.store(token, registration)
        log.info("registration_pending", email=email, ip=hash_ip(ip_address))

        sent = await self._mailer.send(
            EmailKind.VERIFICATION, email, token, ip_address=ip_address, name=name
        )
        return RegistrationResult(
            email=email, verification_sent=sent, expires_at=registration.expires_at
        )

    async def login(self, *, email: str, password: str, ip_address: str) -> LoginResult:
        email = normalize_email(email)
        user = await self._repo.find_by_email(email)
        if user is None:
            log.info("login_failed", reason="unknown_email", ip=hash_ip(ip_address))
            raise AuthenticationError(
                "Invalid email or password", code=ErrorCode.INVALID_CREDENTIALS
            )

        if self._security.is_locked(user):
            log.info("login_rejected_locked", user_id=user.user_id, ip=hash_ip(ip_address))
            raise AccountLockedError(
                "Account is temporarily locked due to too many failed login attempts. "
                "Please try again later."
            )

        if not verify_password(password, user.password_hash):
            state = await self._security.record_failure(user)
            log.info(
                "login_failed",
                reason="wrong_password",
                user_id=user.user_id,
                attempts=state.attempts,
                ip=hash_ip(ip_address),
            )
            raise AuthenticationError(
                "Invalid email or password", code=ErrorCode.INVALID_CREDENTIALS
            )

        await self._security.record_success(user)

        if not user.email_verified:
            log.info("login_rejected_unverified", user_id=user.user_id)
            raise ForbiddenError(
                "Please verify your email address before logging in",
                code=ErrorCode.EMAIL_NOT_VERIFIED,
            )

        tokens = self._issuer.issue(user.user_id)
        log.info("login_success", user_id=user.user_id, ip=hash_ip(ip_address))
        return LoginResult(user=user, tokens=tokens)

    async def refresh(self, refresh_token: Optional[str]) -> LoginResult:
        tokens, user = await self._issuer.refresh(refresh_token)
        log.debug("token_refreshed", user_id=user.user_id)
        return LoginResult(user=user, tokens=tokens)

    async def get_user(self, user_id: str) -> UserDoc:
        user = await self._repo.find_by_id(user_id)
        if user is None:
            raise AuthenticationError("User not found", code=ErrorCode.USER_NOT_FOUND)
        return user
