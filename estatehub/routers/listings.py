"""
Listing API endpoints for owners: create, read, edit, publish, deactivate, feature, delete.
Moderator-only transitions live in the admin router.
"""

from fastapi import APIRouter, Depends, Query, Path, status
from typing import Optional
from uuid import UUID
from estatehub.models.listing import ListingStatus
from estatehub.models.user import User
from estatehub.services.listing import ListingService
from estatehub.schemas.listing import (
    ListingCreate,
    ListingUpdate,
    PublishRequest,
    ListingResponse,
    ListingListResponse,
)
from estatehub.schemas.error import get_error_responses
from estatehub.utils.dependencies import (
    get_current_active_user,
    get_optional_current_user,
    get_listing_service,
)


router = APIRouter(prefix="/listings", tags=["Listings"])


@router.post(
    "",
    response_model=ListingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create listing",
    description="Create a listing in pending status. Gold-card and featured drafts spend one grant each.",
    responses=get_error_responses(401, 403, 409, 422)
)
async def create_listing(
    listing_data: ListingCreate,
    current_user: User = Depends(get_current_active_user),
    listing_service: ListingService = Depends(get_listing_service)
) -> ListingResponse:
    listing = await listing_service.create(current_user, listing_data)
    return ListingResponse.model_validate(listing)


@router.get(
    "/mine",
    response_model=ListingListResponse,
    status_code=status.HTTP_200_OK,
    summary="List my listings",
    responses=get_error_responses(401)
)
async def list_my_listings(
    status_filter: Optional[ListingStatus] = Query(None, alias="status", description="Filter by status"),
    page: int = Query(1, ge=1, description="Page number (starts from 1)"),
    page_size: int = Query(20, ge=1, le=100, description="Number of listings per page"),
    current_user: User = Depends(get_current_active_user),
    listing_service: ListingService = Depends(get_listing_service)
) -> ListingListResponse:
    skip = (page - 1) * page_size
    listings, total = await listing_service.list_for_owner(current_user.id, status_filter, skip, page_size)

    return ListingListResponse(
        listings=[ListingResponse.model_validate(listing) for listing in listings],
        total=total,
        page=page,
        page_size=page_size,
        has_next=skip + len(listings) < total
    )


@router.get(
    "/{listing_id}",
    response_model=ListingResponse,
    status_code=status.HTTP_200_OK,
    summary="Get listing",
    description="Active listings are public; other statuses are visible to the owner and moderators.",
    responses=get_error_responses(403, 404)
)
async def get_listing(
    listing_id: UUID = Path(..., description="Listing ID"),
    current_user: Optional[User] = Depends(get_optional_current_user),
    listing_service: ListingService = Depends(get_listing_service)
) -> ListingResponse:
    listing = await listing_service.get(listing_id, current_user)
    return ListingResponse.model_validate(listing)


@router.patch(
    "/{listing_id}",
    response_model=ListingResponse,
    status_code=status.HTTP_200_OK,
    summary="Edit listing",
    description="Change the content of a pending or rejected listing. Editing a rejected listing resubmits it for review.",
    responses=get_error_responses(401, 403, 404, 409, 422)
)
async def update_listing(
    changes: ListingUpdate,
    listing_id: UUID = Path(..., description="Listing ID"),
    current_user: User = Depends(get_current_active_user),
    listing_service: ListingService = Depends(get_listing_service)
) -> ListingResponse:
    listing = await listing_service.update(listing_id, current_user, changes)
    return ListingResponse.model_validate(listing)


@router.post(
    "/{listing_id}/publish",
    response_model=ListingResponse,
    status_code=status.HTTP_200_OK,
    summary="Publish listing",
    description="Make an approved or inactive listing active. Consumes a listing slot when needed.",
    responses=get_error_responses(401, 403, 404, 409, 422, 503)
)
async def publish_listing(
    listing_id: UUID = Path(..., description="Listing ID"),
    publish_data: Optional[PublishRequest] = None,
    current_user: User = Depends(get_current_active_user),
    listing_service: ListingService = Depends(get_listing_service)
) -> ListingResponse:
    duration_days = publish_data.duration_days if publish_data else None
    listing = await listing_service.publish(listing_id, current_user, duration_days)
    return ListingResponse.model_validate(listing)


@router.post(
    "/{listing_id}/deactivate",
    response_model=ListingResponse,
    status_code=status.HTTP_200_OK,
    summary="Deactivate listing",
    responses=get_error_responses(401, 403, 404, 409)
)
async def deactivate_listing(
    listing_id: UUID = Path(..., description="Listing ID"),
    current_user: User = Depends(get_current_active_user),
    listing_service: ListingService = Depends(get_listing_service)
) -> ListingResponse:
    listing = await listing_service.deactivate(listing_id, current_user)
    return ListingResponse.model_validate(listing)


@router.post(
    "/{listing_id}/feature",
    response_model=ListingResponse,
    status_code=status.HTTP_200_OK,
    summary="Feature listing",
    description="Spend one featured slot on this listing.",
    responses=get_error_responses(401, 403, 404, 409)
)
async def feature_listing(
    listing_id: UUID = Path(..., description="Listing ID"),
    current_user: User = Depends(get_current_active_user),
    listing_service: ListingService = Depends(get_listing_service)
) -> ListingResponse:
    listing = await listing_service.feature(listing_id, current_user)
    return ListingResponse.model_validate(listing)


@router.delete(
    "/{listing_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete listing",
    description="Delete a listing from any status. Gold cards and featured slots are not refunded.",
    responses=get_error_responses(401, 403, 404)
)
async def delete_listing(
    listing_id: UUID = Path(..., description="Listing ID"),
    current_user: User = Depends(get_current_active_user),
    listing_service: ListingService = Depends(get_listing_service)
) -> None:
    await listing_service.delete(listing_id, current_user)
