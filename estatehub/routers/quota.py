"""
Quota endpoint for the caller's own allowances.
"""

from fastapi import APIRouter, Depends
from estatehub.models.user import User
from estatehub.services.quota import QuotaLedger
from estatehub.schemas.quota import QuotaAccountResponse
from estatehub.schemas.error import get_error_responses
from estatehub.utils.dependencies import get_current_active_user, get_quota_ledger
from estatehub.utils.exceptions import NotFoundError


router = APIRouter(prefix="/quota", tags=["Quota"])


@router.get(
    "/me",
    response_model=QuotaAccountResponse,
    summary="My quota account",
    description="Professionals get an account when their registration is approved; individuals have none.",
    responses=get_error_responses(401, 404)
)
async def get_my_quota(
    current_user: User = Depends(get_current_active_user),
    ledger: QuotaLedger = Depends(get_quota_ledger)
) -> QuotaAccountResponse:
    account = await ledger.get_account(current_user.id)
    if not account:
        raise NotFoundError("Quota account")
    return QuotaAccountResponse.from_account(account)
