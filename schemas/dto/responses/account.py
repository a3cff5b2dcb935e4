"""Response DTOs for /account endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class DeletionScheduleResponse(BaseModel):
    """Response body for POST and DELETE /account/deletion (200)."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    deletion_scheduled_for: Optional[datetime] = None
