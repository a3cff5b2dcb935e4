"""
Account self-service.

POST   /account/deletion — schedule permanent deletion after the grace period
DELETE /account/deletion — cancel a scheduled deletion
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from dependencies import get_account_service, get_current_user
from schemas.dto.requests.account import DeleteAccountRequest
from schemas.dto.responses.account import DeletionScheduleResponse
from schemas.models.user import UserDoc
from services.account_service import AccountService

router = APIRouter(prefix="/account", tags=["account"])


@router.post("/deletion", response_model=DeletionScheduleResponse)
async def schedule_deletion(
    body: DeleteAccountRequest,
    user: UserDoc = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
) -> DeletionScheduleResponse:
    user = await accounts.schedule_deletion(user, body.password)
    return DeletionScheduleResponse(
        message="Your account is scheduled for deletion. "
        "Cancel before the deadline to keep it.",
        deletion_scheduled_for=user.deletion_scheduled_for,
    )


@router.delete("/deletion", response_model=DeletionScheduleResponse)
async def cancel_deletion(
    user: UserDoc = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
) -> DeletionScheduleResponse:
    await accounts.cancel_deletion(user)
    return DeletionScheduleResponse(message="Account deletion cancelled.")
