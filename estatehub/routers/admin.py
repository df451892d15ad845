"""
Moderation API endpoints for admins and sub-admins.
Listing moderation, registration resolution, quota adjustment, the
expiration sweep and ledger restoration all go through the moderation gateway.
"""

from fastapi import APIRouter, Depends, Path, Query, status
from typing import List, Optional
from uuid import UUID
from estatehub.models.quota import ListingLimit
from estatehub.models.requests import RequestStatus
from estatehub.models.user import User
from estatehub.services.moderation import AdminModerationGateway
from estatehub.schemas.listing import ListingResponse, PublishRequest, RejectRequest
from estatehub.schemas.quota import QuotaAdjustRequest, QuotaAccountResponse, LedgerStatusResponse
from estatehub.schemas.requests import RegistrationApproval, RegistrationRequestResponse
from estatehub.schemas.sweep import SweepRequest, SweepReportResponse
from estatehub.schemas.error import get_error_responses
from estatehub.utils.dependencies import get_moderator_user, get_moderation_gateway


router = APIRouter(prefix="/admin", tags=["Moderation"])


# Listings

@router.post(
    "/listings/{listing_id}/approve",
    response_model=ListingResponse,
    summary="Approve listing",
    responses=get_error_responses(401, 403, 404, 409)
)
async def approve_listing(
    listing_id: UUID = Path(..., description="Listing ID"),
    moderator: User = Depends(get_moderator_user),
    gateway: AdminModerationGateway = Depends(get_moderation_gateway)
) -> ListingResponse:
    listing = await gateway.approve_listing(listing_id, moderator)
    return ListingResponse.model_validate(listing)


@router.post(
    "/listings/{listing_id}/reject",
    response_model=ListingResponse,
    summary="Reject listing",
    description="Reject a pending or approved listing. The reason is stored and sent to the owner.",
    responses=get_error_responses(401, 403, 404, 409, 422)
)
async def reject_listing(
    rejection: RejectRequest,
    listing_id: UUID = Path(..., description="Listing ID"),
    moderator: User = Depends(get_moderator_user),
    gateway: AdminModerationGateway = Depends(get_moderation_gateway)
) -> ListingResponse:
    listing = await gateway.reject_listing(listing_id, moderator, rejection.reason)
    return ListingResponse.model_validate(listing)


@router.post(
    "/listings/{listing_id}/reset",
    response_model=ListingResponse,
    summary="Reset listing to pending",
    description="Send a rejected or expired listing back to review.",
    responses=get_error_responses(401, 403, 404, 409)
)
async def reset_listing(
    listing_id: UUID = Path(..., description="Listing ID"),
    moderator: User = Depends(get_moderator_user),
    gateway: AdminModerationGateway = Depends(get_moderation_gateway)
) -> ListingResponse:
    listing = await gateway.reset_listing(listing_id, moderator)
    return ListingResponse.model_validate(listing)


@router.post(
    "/listings/{listing_id}/reactivate",
    response_model=ListingResponse,
    summary="Publish on behalf of the owner",
    responses=get_error_responses(401, 403, 404, 409, 422, 503)
)
async def reactivate_listing(
    listing_id: UUID = Path(..., description="Listing ID"),
    publish_data: Optional[PublishRequest] = None,
    moderator: User = Depends(get_moderator_user),
    gateway: AdminModerationGateway = Depends(get_moderation_gateway)
) -> ListingResponse:
    duration_days = publish_data.duration_days if publish_data else None
    listing = await gateway.reactivate_listing(listing_id, moderator, duration_days)
    return ListingResponse.model_validate(listing)


@router.post(
    "/listings/{listing_id}/deactivate",
    response_model=ListingResponse,
    summary="Deactivate listing",
    responses=get_error_responses(401, 403, 404, 409)
)
async def deactivate_listing(
    listing_id: UUID = Path(..., description="Listing ID"),
    moderator: User = Depends(get_moderator_user),
    gateway: AdminModerationGateway = Depends(get_moderation_gateway)
) -> ListingResponse:
    listing = await gateway.deactivate_listing(listing_id, moderator)
    return ListingResponse.model_validate(listing)


@router.delete(
    "/listings/{listing_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete listing",
    responses=get_error_responses(401, 403, 404)
)
async def delete_listing(
    listing_id: UUID = Path(..., description="Listing ID"),
    moderator: User = Depends(get_moderator_user),
    gateway: AdminModerationGateway = Depends(get_moderation_gateway)
) -> None:
    await gateway.delete_listing(listing_id, moderator)


# Registration requests

@router.get(
    "/registration-requests",
    response_model=List[RegistrationRequestResponse],
    summary="List registration requests",
    responses=get_error_responses(401, 403)
)
async def list_registration_requests(
    status_filter: Optional[RequestStatus] = Query(RequestStatus.PENDING, alias="status"),
    moderator: User = Depends(get_moderator_user),
    gateway: AdminModerationGateway = Depends(get_moderation_gateway)
) -> List[RegistrationRequestResponse]:
    requests = await gateway.list_registrations(moderator, status_filter)
    return [RegistrationRequestResponse.model_validate(request) for request in requests]


@router.post(
    "/registration-requests/{request_id}/approve",
    response_model=RegistrationRequestResponse,
    summary="Approve registration request",
    description="Grant the requested role and open the quota account with the given allowances.",
    responses=get_error_responses(401, 403, 404, 409, 422)
)
async def approve_registration_request(
    approval: RegistrationApproval,
    request_id: UUID = Path(..., description="Registration request ID"),
    moderator: User = Depends(get_moderator_user),
    gateway: AdminModerationGateway = Depends(get_moderation_gateway)
) -> RegistrationRequestResponse:
    request = await gateway.approve_registration(request_id, moderator, approval.grant.to_grant())
    return RegistrationRequestResponse.model_validate(request)


@router.post(
    "/registration-requests/{request_id}/reject",
    response_model=RegistrationRequestResponse,
    summary="Reject registration request",
    responses=get_error_responses(401, 403, 404, 409, 422)
)
async def reject_registration_request(
    rejection: RejectRequest,
    request_id: UUID = Path(..., description="Registration request ID"),
    moderator: User = Depends(get_moderator_user),
    gateway: AdminModerationGateway = Depends(get_moderation_gateway)
) -> RegistrationRequestResponse:
    request = await gateway.reject_registration(request_id, moderator, rejection.reason)
    return RegistrationRequestResponse.model_validate(request)


# Quotas, sweeps and the ledger

@router.patch(
    "/quota-accounts/{account_id}",
    response_model=QuotaAccountResponse,
    summary="Adjust quota account",
    description="Overwrite allowances. Lowering a limit below usage blocks new publishes only.",
    responses=get_error_responses(401, 403, 404, 422, 503)
)
async def adjust_quota_account(
    adjustment: QuotaAdjustRequest,
    account_id: UUID = Path(..., description="Quota account ID"),
    moderator: User = Depends(get_moderator_user),
    gateway: AdminModerationGateway = Depends(get_moderation_gateway)
) -> QuotaAccountResponse:
    listing_limit = None
    if adjustment.listing_limit is not None:
        listing_limit = ListingLimit.parse(adjustment.listing_limit)

    account = await gateway.adjust_quota(
        account_id,
        moderator,
        listing_limit=listing_limit,
        gold_cards=adjustment.gold_cards,
        featured_listings=adjustment.featured_listings,
        plan=adjustment.plan,
        recompute_usage=adjustment.recompute_usage
    )
    return QuotaAccountResponse.from_account(account)


@router.post(
    "/sweeps",
    response_model=SweepReportResponse,
    summary="Run the expiration sweep",
    responses=get_error_responses(401, 403)
)
async def run_expiration_sweep(
    sweep: Optional[SweepRequest] = None,
    moderator: User = Depends(get_moderator_user),
    gateway: AdminModerationGateway = Depends(get_moderation_gateway)
) -> SweepReportResponse:
    report = await gateway.run_expiration_sweep(moderator, sweep.now if sweep else None)
    return SweepReportResponse.model_validate(report)


@router.get(
    "/ledger",
    response_model=LedgerStatusResponse,
    summary="Quota ledger status",
    responses=get_error_responses(401, 403)
)
async def get_ledger_status(
    moderator: User = Depends(get_moderator_user),
    gateway: AdminModerationGateway = Depends(get_moderation_gateway)
) -> LedgerStatusResponse:
    return LedgerStatusResponse(**await gateway.ledger_status(moderator))


@router.post(
    "/ledger/restore",
    response_model=LedgerStatusResponse,
    summary="Restore the quota ledger",
    description="Recount usage on every account and resume publishing.",
    responses=get_error_responses(401, 403, 503)
)
async def restore_ledger(
    moderator: User = Depends(get_moderator_user),
    gateway: AdminModerationGateway = Depends(get_moderation_gateway)
) -> LedgerStatusResponse:
    return LedgerStatusResponse(**await gateway.restore_ledger(moderator))
