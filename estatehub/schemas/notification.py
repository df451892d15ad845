"""
Pydantic schemas for notifications.
"""

from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime
from estatehub.models.notification import NotificationType
import uuid


class NotificationResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    type: NotificationType
    message: str
    subject_id: Optional[uuid.UUID] = None
    subject_type: Optional[str] = None
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
