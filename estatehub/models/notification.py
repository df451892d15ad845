"""
Notification outbox model.
Rows are written in the same transaction as the state change they describe.
"""

from sqlalchemy import String, Text, Boolean, ForeignKey, Index, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column
from estatehub.database import Base
from typing import Optional
import enum
import uuid


class NotificationType(str, enum.Enum):
    REGISTRATION_SUBMITTED = "registration_submitted"
    REGISTRATION_APPROVED = "registration_approved"
    REGISTRATION_REJECTED = "registration_rejected"
    LISTING_PENDING = "listing_pending"
    LISTING_APPROVED = "listing_approved"
    LISTING_REJECTED = "listing_rejected"
    LISTING_PUBLISHED = "listing_published"
    LISTING_EXPIRED = "listing_expired"
    LISTING_STATUS_UPDATED = "listing_status_updated"
    SUBSCRIPTION_UPDATED = "subscription_updated"
    AGENCY_LINK_REQUEST_RECEIVED = "agency_link_request_received"
    AGENCY_LINK_APPROVED = "agency_link_approved"
    AGENCY_LINK_REJECTED = "agency_link_rejected"


class Notification(Base):
    """A single event addressed to one user."""

    __tablename__ = "notifications"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    type: Mapped[NotificationType] = mapped_column(SQLEnum(NotificationType), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    # Entity the event is about, if any
    subject_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    subject_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, user_id={self.user_id}, type={self.type})>"


unread_index = Index("idx_notifications_user_read", Notification.user_id, Notification.is_read)
