"""
Authentication endpoints.

POST /auth/register   — validate, hold in the registration store, email link
POST /auth/login      — password login with lockout
POST /auth/refresh    — new TokenPair from a refresh token
POST /auth/logout     — stateless; clients drop their tokens
GET  /auth/me         — current account profile
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from dependencies import get_auth_service, get_current_user
from schemas.dto.requests.auth import LoginRequest, RefreshRequest, RegisterRequest
from schemas.dto.responses.auth import LoginResponse, RegisterResponse, UserProfileResponse
from schemas.dto.responses.common import MessageResponse
from schemas.models.user import UserDoc
from services.auth_service import AuthService
from shared.ip_utils import get_client_ip, get_user_agent

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", status_code=201, response_model=RegisterResponse)
async def register(
    body: RegisterRequest,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
) -> RegisterResponse:
    result = await auth_service.register(
        email=body.email,
        password=body.password,
        name=body.name,
        phone=body.phone,
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    if result.verification_sent:
        message = "Registration received. Check your email to verify your account."
    else:
        message = (
            "Registration received, but we could not send the verification email. "
            "Please request a new verification email."
        )
    return RegisterResponse(
        message=message,
        email=result.email,
        verification_sent=result.verification_sent,
        expires_at=result.expires_at,
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    result = await auth_service.login(
        email=body.email, password=body.password, ip_address=get_client_ip(request)
    )
    return LoginResponse.build("Login successful", result.user, result.tokens)


@router.post("/refresh", response_model=LoginResponse)
async def refresh(
    body: RefreshRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    result = await auth_service.refresh(body.refresh_token)
    return LoginResponse.build("Token refreshed", result.user, result.tokens)


@router.post("/logout", response_model=MessageResponse)
async def logout() -> MessageResponse:
    return MessageResponse(success=True, message="Logged out")


@router.get("/me", response_model=UserProfileResponse)
async def me(user: UserDoc = Depends(get_current_user)) -> UserProfileResponse:
    return UserProfileResponse.from_user(user)
