"""
Notification service.
Emits events into the outbox table; delivery is handled elsewhere.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from estatehub.repositories.notification import NotificationRepository
from estatehub.models.notification import Notification, NotificationType
from estatehub.utils.exceptions import NotFoundError
from typing import List, Optional
import uuid
import logging

logger = logging.getLogger(__name__)


class NotificationService:
    """Writes and reads notification rows for a user."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.notification_repo = NotificationRepository(db_session)

    async def emit(
        self,
        user_id: uuid.UUID,
        type: NotificationType,
        message: str,
        subject_id: Optional[uuid.UUID] = None,
        subject_type: Optional[str] = None
    ) -> Notification:
        """
        Stage a notification in the caller's transaction.

        The row becomes visible only if the caller commits the state
        change it describes.
        """
        notification = await self.notification_repo.create(
            {
                "user_id": user_id,
                "type": type,
                "message": message,
                "subject_id": subject_id,
                "subject_type": subject_type,
            },
            commit=False
        )
        logger.debug(
            f"Notification {type.value} staged for user {user_id}",
            extra={"subject_id": str(subject_id) if subject_id else None}
        )
        return notification

    async def list_for_user(
        self,
        user_id: uuid.UUID,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 50
    ) -> List[Notification]:
        return await self.notification_repo.list_for_user(user_id, unread_only, skip, limit)

    async def mark_read(self, notification_id: uuid.UUID, user_id: uuid.UUID) -> Notification:
        """
        Mark a notification as read.

        Raises:
            NotFoundError: If the notification does not exist or belongs to someone else
        """
        if not await self.notification_repo.mark_read(notification_id, user_id):
            raise NotFoundError("Notification", str(notification_id))
        return await self.notification_repo.get_by_id(notification_id, fresh=True)
