"""
Request DTOs for authentication and verification endpoints.

RegisterRequest             — POST /auth/register
LoginRequest                — POST /auth/login
RefreshRequest              — POST /auth/refresh
ResendVerificationRequest   — POST /auth/resend-verification
EmailChangeRequest          — POST /auth/request-email-change
ForgotPasswordRequest       — POST /auth/forgot-password
ResetPasswordRequest        — POST /auth/reset-password

Field rules (email syntax, password strength, name length, phone shape)
are enforced in the service layer so every caller gets the same errors.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""

    model_config = ConfigDict(populate_by_name=True)

    email: str
    password: str
    name: str
    phone: Optional[str] = None


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""

    model_config = ConfigDict(populate_by_name=True)

    email: str
    password: str


class RefreshRequest(BaseModel):
    """Request body for POST /auth/refresh."""

    model_config = ConfigDict(populate_by_name=True)

    refresh_token: str = Field(alias="refreshToken")


class ResendVerificationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str


class EmailChangeRequest(BaseModel):
    """Request body for POST /auth/request-email-change."""

    model_config = ConfigDict(populate_by_name=True)

    new_email: str = Field(alias="newEmail")


class ForgotPasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str


class ResetPasswordRequest(BaseModel):
    """Request body for POST /auth/reset-password."""

    model_config = ConfigDict(populate_by_name=True)

    token: str
    password: str
