"""
FastAPI dependency providers.

Collaborators are built once in the app lifespan and stored on app.state;
these plain functions hand them to routes via Depends(). Tests swap them by
setting different objects on app.state.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import AppSettings
from errors import AccountLockedError, AuthenticationError, ErrorCode
from repositories.user_repository import UserRepository
from schemas.models.user import UserDoc
from services.account_security import AccountSecurity
from services.account_service import AccountService
from services.auth_service import AuthService
from services.cleanup_service import AccountCleanupService
from services.password_service import PasswordService
from services.registration_store import EphemeralRegistrationStore
from services.token_issuer import TOKEN_TYPE_ACCESS, TokenIssuer
from services.verification_service import VerificationService

_bearer = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


def get_user_repository(request: Request) -> UserRepository:
    return request.app.state.user_repository


def get_registration_store(request: Request) -> EphemeralRegistrationStore:
    return request.app.state.registration_store


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.token_issuer


def get_account_security(request: Request) -> AccountSecurity:
    return request.app.state.account_security


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_verification_service(request: Request) -> VerificationService:
    return request.app.state.verification_service


def get_password_service(request: Request) -> PasswordService:
    return request.app.state.password_service


def get_account_service(request: Request) -> AccountService:
    return request.app.state.account_service


def get_cleanup_service(request: Request) -> AccountCleanupService:
    return request.app.state.cleanup_service


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Optional[str]:
    return credentials.credentials if credentials else None


async def get_current_user(
    token: Optional[str] = Depends(get_bearer_token),
    issuer: TokenIssuer = Depends(get_token_issuer),
    repository: UserRepository = Depends(get_user_repository),
    security: AccountSecurity = Depends(get_account_security),
) -> UserDoc:
    """Resolve the access token to an account, or fail with 401/423."""
    subject = issuer.verify(token, TOKEN_TYPE_ACCESS)
    user = await repository.find_by_id(subject)
    if user is None:
        raise AuthenticationError("User not found", code=ErrorCode.USER_NOT_FOUND)
    if security.is_locked(user):
        raise AccountLockedError("Account is temporarily locked")
    return user


def get_optional_user_id(
    token: Optional[str] = Depends(get_bearer_token),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> Optional[str]:
    """Subject of a valid access token, or None for anonymous callers."""
    return issuer.optional_verify(token)


def require_admin(
    token: Optional[str] = Depends(get_bearer_token),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> str:
    return issuer.verify_admin(token)
