"""
Request DTOs for account and admin endpoints.

DeleteAccountRequest — POST /account/deletion
AdminLoginRequest    — POST /admin/auth/login
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class DeleteAccountRequest(BaseModel):
    """Password re-confirmation before scheduling deletion."""

    model_config = ConfigDict(populate_by_name=True)

    password: str


class AdminLoginRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str
    password: str
