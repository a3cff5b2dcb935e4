"""
Verification, email change and password reset endpoints.

GET  /auth/verify-email/{token}          — confirm registration, logs in
POST /auth/resend-verification           — new verification link
POST /auth/request-email-change          — (auth) link sent to the new address
GET  /auth/verify-email-change/{token}   — (auth) swap the primary email
POST /auth/forgot-password               — reset link, generic answer
POST /auth/reset-password                — set a new password
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from dependencies import get_current_user, get_password_service, get_verification_service
from schemas.dto.requests.auth import (
    EmailChangeRequest,
    ForgotPasswordRequest,
    ResendVerificationRequest,
    ResetPasswordRequest,
)
from schemas.dto.responses.auth import (
    EmailChangedResponse,
    EmailChangeResponse,
    ResendResponse,
    UserProfileResponse,
    VerifyEmailResponse,
)
from schemas.dto.responses.common import MessageResponse
from schemas.models.user import UserDoc
from services.password_service import PasswordService
from services.verification_service import VerificationService
from shared.ip_utils import get_client_ip

router = APIRouter(prefix="/auth", tags=["verification"])


@router.get("/verify-email/{token}", response_model=VerifyEmailResponse)
async def verify_email(
    token: str,
    verification: VerificationService = Depends(get_verification_service),
) -> VerifyEmailResponse:
    result = await verification.confirm_registration(token)
    message = (
        "Email already verified. You are now logged in."
        if result.already_verified
        else "Email verified successfully! You are now logged in."
    )
    return VerifyEmailResponse.build(
        message, result.user, result.tokens, already_verified=result.already_verified
    )


@router.post("/resend-verification", response_model=ResendResponse)
async def resend_verification(
    body: ResendVerificationRequest,
    request: Request,
    verification: VerificationService = Depends(get_verification_service),
) -> ResendResponse:
    result = await verification.resend_verification(
        body.email, ip_address=get_client_ip(request)
    )
    return ResendResponse(message=result.message, already_verified=result.already_verified)


@router.post("/request-email-change", response_model=EmailChangeResponse)
async def request_email_change(
    body: EmailChangeRequest,
    request: Request,
    user: UserDoc = Depends(get_current_user),
    verification: VerificationService = Depends(get_verification_service),
) -> EmailChangeResponse:
    result = await verification.request_email_change(
        user, body.new_email, ip_address=get_client_ip(request)
    )
    if result.verification_sent:
        message = f"A confirmation link has been sent to {result.new_email}."
    else:
        message = (
            "Email change requested, but we could not send the confirmation email. "
            "Please try again shortly."
        )
    return EmailChangeResponse(
        message=message,
        new_email=result.new_email,
        verification_sent=result.verification_sent,
        expires_at=result.expires_at,
    )


@router.get("/verify-email-change/{token}", response_model=EmailChangedResponse)
async def verify_email_change(
    token: str,
    user: UserDoc = Depends(get_current_user),
    verification: VerificationService = Depends(get_verification_service),
) -> EmailChangedResponse:
    updated = await verification.confirm_email_change(user, token)
    return EmailChangedResponse(
        message="Your email address has been updated.",
        user=UserProfileResponse.from_user(updated),
    )


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    body: ForgotPasswordRequest,
    request: Request,
    passwords: PasswordService = Depends(get_password_service),
) -> MessageResponse:
    message = await passwords.request_reset(body.email, ip_address=get_client_ip(request))
    return MessageResponse(success=True, message=message)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    body: ResetPasswordRequest,
    passwords: PasswordService = Depends(get_password_service),
) -> MessageResponse:
    await passwords.confirm_reset(body.token, body.password)
    return MessageResponse(
        success=True,
        message="Your password has been reset. Please log in with your new password.",
    )
