"""
User document model.

Maps to the `users` MongoDB collection.

Two creation paths produce the same shape:
- Verified-at-creation: promoted from a consumed ephemeral registration
- Legacy unverified: carries a verification token hash until confirmed

All one-time token fields hold SHA-256 hashes, never the emailed token.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from schemas.models.base import MongoBaseModel


class UserDoc(MongoBaseModel):
    """Document model for the `users` collection."""

    email: str
    password_hash: str
    name: str
    phone: Optional[str] = None

    email_verified: bool = False
    email_verified_at: Optional[datetime] = None
    verification_token_hash: Optional[str] = None
    verification_token_expires: Optional[datetime] = None

    reset_password_token_hash: Optional[str] = None
    reset_password_expires: Optional[datetime] = None

    pending_email_change: Optional[str] = None
    email_change_token_hash: Optional[str] = None
    email_change_expires: Optional[datetime] = None
    email_changed_at: Optional[datetime] = None

    login_attempts: int = 0
    lock_until: Optional[datetime] = None
    last_login_at: Optional[datetime] = None

    deletion_scheduled_at: Optional[datetime] = None
    deletion_scheduled_for: Optional[datetime] = None

    registration_ip: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def user_id(self) -> str:
        return str(self.id)

    @property
    def deletion_scheduled(self) -> bool:
        return self.deletion_scheduled_at is not None and self.deletion_scheduled_for is not None
