"""
Notification endpoints for the caller's inbox.
"""

from fastapi import APIRouter, Depends, Path, Query
from typing import List
from uuid import UUID
from estatehub.models.user import User
from estatehub.services.notifications import NotificationService
from estatehub.schemas.notification import NotificationResponse
from estatehub.schemas.error import get_error_responses
from estatehub.utils.dependencies import get_current_active_user, get_notification_service


router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get(
    "",
    response_model=List[NotificationResponse],
    summary="My notifications",
    responses=get_error_responses(401)
)
async def list_notifications(
    unread_only: bool = Query(False, description="Only return unread notifications"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    notification_service: NotificationService = Depends(get_notification_service)
) -> List[NotificationResponse]:
    notifications = await notification_service.list_for_user(
        current_user.id,
        unread_only=unread_only,
        skip=(page - 1) * page_size,
        limit=page_size
    )
    return [NotificationResponse.model_validate(notification) for notification in notifications]


@router.post(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    summary="Mark notification as read",
    responses=get_error_responses(401, 404)
)
async def mark_notification_read(
    notification_id: UUID = Path(..., description="Notification ID"),
    current_user: User = Depends(get_current_active_user),
    notification_service: NotificationService = Depends(get_notification_service)
) -> NotificationResponse:
    notification = await notification_service.mark_read(notification_id, current_user.id)
    return NotificationResponse.model_validate(notification)
