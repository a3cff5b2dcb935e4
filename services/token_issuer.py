"""
Session token issuing and verification (PyJWT, HS256).

Access and refresh tokens carry a ``type`` claim and are signed with
different secrets, so one can never be accepted where the other is
required. Admin console tokens use a third secret and ``type=admin``.

Every failure is raised as an AuthenticationError whose code tells the
client what went wrong (expired, malformed, wrong type, not yet valid).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

import jwt

from config import JWTSettings
from errors import AccountLockedError, AuthenticationError, ErrorCode
from repositories.user_repository import UserRepository
from schemas.models.user import UserDoc
from services.account_security import lock_active
from shared.datetime_utils import utc_now
from shared.logging import get_logger

log = get_logger(__name__)

_ALGORITHM = "HS256"

TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_REFRESH = "refresh"
TOKEN_TYPE_ADMIN = "admin"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "Bearer"


class TokenIssuer:
    def __init__(
        self,
        settings: JWTSettings,
        repository: UserRepository,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if not settings.jwt_access_secret or not settings.jwt_refresh_secret:
            raise RuntimeError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must be set")
        if settings.jwt_access_secret == settings.jwt_refresh_secret:
            raise RuntimeError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must differ")
        self._settings = settings
        self._repo = repository
        self._clock = clock
        self._secrets = {
            TOKEN_TYPE_ACCESS: settings.jwt_access_secret,
            TOKEN_TYPE_REFRESH: settings.jwt_refresh_secret,
            TOKEN_TYPE_ADMIN: settings.jwt_admin_secret,
        }
        self._ttls = {
            TOKEN_TYPE_ACCESS: settings.access_token_ttl_seconds,
            TOKEN_TYPE_REFRESH: settings.refresh_token_ttl_seconds,
            TOKEN_TYPE_ADMIN: settings.admin_token_ttl_seconds,
        }

    def _encode(self, subject: str, token_type: str) -> str:
        now = self._clock()
        claims = {
            "iss": self._settings.jwt_issuer,
            "aud": self._settings.jwt_audience,
            "sub": subject,
            "type": token_type,
            "iat": int(now.timestamp()),
            "nbf": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=self._ttls[token_type])).timestamp()),
        }
        return jwt.encode(claims, self._secrets[token_type], algorithm=_ALGORITHM)

    def issue(self, subject_id: str) -> TokenPair:
        return TokenPair(
            access_token=self._encode(str(subject_id), TOKEN_TYPE_ACCESS),
            refresh_token=self._encode(str(subject_id), TOKEN_TYPE_REFRESH),
            expires_in=self._settings.access_token_ttl_seconds,
        )

    def verify(self, token: Optional[str], expected_type: str) -> str:
        """Validate *token* as *expected_type* and return its subject.

        Raises:
            AuthenticationError: with code no_token, malformed_token,
                expired_token, wrong_token_type or token_not_yet_valid.
        """
        if not token:
            raise AuthenticationError("Authentication required", code=ErrorCode.NO_TOKEN)

        secret = self._secrets.get(expected_type)
        if not secret:
            raise AuthenticationError("Invalid token", code=ErrorCode.MALFORMED_TOKEN)

        try:
            claims = jwt.decode(
                token,
                secret,
                algorithms=[_ALGORITHM],
                audience=self._settings.jwt_audience,
                issuer=self._settings.jwt_issuer,
                options={
                    "require": ["exp", "iat", "sub", "type"],
                    "verify_exp": False,
                    "verify_nbf": False,
                    "verify_iat": False,
                },
            )
        except jwt.InvalidSignatureError:
            if self._claimed_type(token) not in (None, expected_type):
                raise AuthenticationError(
                    "Wrong token type", code=ErrorCode.WRONG_TOKEN_TYPE
                )
            raise AuthenticationError("Invalid token", code=ErrorCode.MALFORMED_TOKEN)
        except jwt.InvalidTokenError:
            raise AuthenticationError("Invalid token", code=ErrorCode.MALFORMED_TOKEN)

        # Time claims are checked against the issuing clock, not the host clock
        now = int(self._clock().timestamp())
        try:
            expires_at = int(claims["exp"])
            not_before = int(claims.get("nbf", claims["iat"]))
        except (TypeError, ValueError):
            raise AuthenticationError("Invalid token", code=ErrorCode.MALFORMED_TOKEN)
        if expires_at <= now:
            raise AuthenticationError("Token has expired", code=ErrorCode.EXPIRED_TOKEN)
        if not_before > now:
            raise AuthenticationError(
                "Token is not yet valid", code=ErrorCode.TOKEN_NOT_YET_VALID
            )

        if claims.get("type") != expected_type:
            raise AuthenticationError("Wrong token type", code=ErrorCode.WRONG_TOKEN_TYPE)
        return str(claims["sub"])

    def optional_verify(self, token: Optional[str]) -> Optional[str]:
        """Access-token subject, or None for a missing or invalid token."""
        if not token:
            return None
        try:
            return self.verify(token, TOKEN_TYPE_ACCESS)
        except AuthenticationError:
            return None

    async def refresh(self, refresh_token: Optional[str]) -> tuple[TokenPair, UserDoc]:
        subject = self.verify(refresh_token, TOKEN_TYPE_REFRESH)
        user = await self._repo.find_by_id(subject)
        if user is None:
            raise AuthenticationError("User not found", code=ErrorCode.USER_NOT_FOUND)
        if lock_active(user, self._clock()):
            log.info("token_refresh_denied_locked", user_id=subject)
            raise AccountLockedError(
                "Account is temporarily locked due to too many failed login attempts"
            )
        return self.issue(subject), user

    # ── Admin console ────────────────────────────────────────────────────────

    def issue_admin(self, username: str) -> str:
        if not self._secrets[TOKEN_TYPE_ADMIN]:
            raise RuntimeError("JWT_ADMIN_SECRET must be set to issue admin tokens")
        return self._encode(username, TOKEN_TYPE_ADMIN)

    def verify_admin(self, token: Optional[str]) -> str:
        return self.verify(token, TOKEN_TYPE_ADMIN)

    @staticmethod
    def _claimed_type(token: str) -> Optional[str]:
        # Only used to pick an error code; the claims are not trusted.
        try:
            claims = jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError:
            return None
        claimed = claims.get("type")
        return claimed if isinstance(claimed, str) else None
