"""
Response DTOs for authentication and verification endpoints.

UserProfileResponse   — user shape embedded in most responses
SessionResponse       — user + TokenPair, base for login-like responses
LoginResponse         — POST /auth/login, POST /auth/refresh (200)
VerifyEmailResponse   — GET /auth/verify-email/{token} (200)
RegisterResponse      — POST /auth/register (201)
ResendResponse        — POST /auth/resend-verification (200)
EmailChangeResponse   — POST /auth/request-email-change (200)
EmailChangedResponse  — GET /auth/verify-email-change/{token} (200)
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from schemas.models.user import UserDoc
from services.token_issuer import TokenPair


class UserProfileResponse(BaseModel):
    """Public view of an account. Never carries hashes or token fields."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    email: str
    name: str
    phone: Optional[str] = None
    email_verified: bool
    email_verified_at: Optional[datetime] = None
    pending_email_change: Optional[str] = None
    last_login_at: Optional[datetime] = None
    deletion_scheduled_for: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_user(cls, user: UserDoc) -> "UserProfileResponse":
        return cls(
            id=user.user_id,
            email=user.email,
            name=user.name,
            phone=user.phone,
            email_verified=user.email_verified,
            email_verified_at=user.email_verified_at,
            pending_email_change=user.pending_email_change,
            last_login_at=user.last_login_at,
            deletion_scheduled_for=user.deletion_scheduled_for,
            created_at=user.created_at,
        )


class SessionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    user: UserProfileResponse
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int

    @classmethod
    def build(cls, message: str, user: UserDoc, tokens: TokenPair, **extra):
        return cls(
            message=message,
            user=UserProfileResponse.from_user(user),
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            token_type=tokens.token_type,
            expires_in=tokens.expires_in,
            **extra,
        )


class LoginResponse(SessionResponse):
    """Response body for POST /auth/login and POST /auth/refresh (200)."""


class VerifyEmailResponse(SessionResponse):
    """Response body for GET /auth/verify-email/{token} (200)."""

    already_verified: bool = False


class RegisterResponse(BaseModel):
    """Response body for POST /auth/register (201)."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    email: str
    requires_verification: bool = True
    verification_sent: bool
    expires_at: datetime


class ResendResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    already_verified: bool = False


class EmailChangeResponse(BaseModel):
    """Response body for POST /auth/request-email-change (200)."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    new_email: str
    verification_sent: bool
    expires_at: datetime


class EmailChangedResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    user: UserProfileResponse
