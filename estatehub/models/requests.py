"""
Approval request models: role-upgrade registration and agent-to-agency linking.
Both share the pending/approved/rejected terminal status columns.
"""

from sqlalchemy import String, Text, DateTime, ForeignKey, Index, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column
from estatehub.database import Base
from estatehub.models.user import UserRole
from datetime import datetime
from typing import Optional
import enum
import uuid


class RequestStatus(str, enum.Enum):
    """Status of an approval request; approved and rejected are terminal."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Gender(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"


class ApprovalRequestMixin:
    """Status columns shared by every approval request."""

    status: Mapped[RequestStatus] = mapped_column(
        SQLEnum(RequestStatus),
        nullable=False,
        default=RequestStatus.PENDING,
        index=True
    )

    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    resolved_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_terminal(self) -> bool:
        return self.status != RequestStatus.PENDING


class RegistrationRequest(ApprovalRequestMixin, Base):
    """An individual's request to become an agent, agency or promoter."""

    __tablename__ = "registration_requests"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    desired_role: Mapped[UserRole] = mapped_column(SQLEnum(UserRole), nullable=False)

    # Applicant profile
    gender: Mapped[Gender] = mapped_column(SQLEnum(Gender), nullable=False)
    first_name: Mapped[str] = mapped_column(String(120), nullable=False)
    last_name: Mapped[str] = mapped_column(String(120), nullable=False)
    phone_number: Mapped[str] = mapped_column(String(32), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    company_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    place_of_birth: Mapped[str] = mapped_column(String(120), nullable=False)
    city: Mapped[str] = mapped_column(String(120), nullable=False)
    country: Mapped[str] = mapped_column(String(120), nullable=False)

    def __repr__(self) -> str:
        return f"<RegistrationRequest(id={self.id}, user_id={self.user_id}, status={self.status})>"


class LinkingRequest(ApprovalRequestMixin, Base):
    """An agent's request to join an agency."""

    __tablename__ = "linking_requests"

    agent_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    agency_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    def __repr__(self) -> str:
        return f"<LinkingRequest(id={self.id}, agent_id={self.agent_id}, agency_id={self.agency_id}, status={self.status})>"


# At most one pending linking request per agent
one_pending_link_per_agent = Index(
    "uq_linking_requests_one_pending_per_agent",
    LinkingRequest.agent_id,
    unique=True,
    postgresql_where=LinkingRequest.status == RequestStatus.PENDING,
    sqlite_where=LinkingRequest.status == RequestStatus.PENDING,
)

one_pending_registration_per_user = Index(
    "uq_registration_requests_one_pending_per_user",
    RegistrationRequest.user_id,
    unique=True,
    postgresql_where=RegistrationRequest.status == RequestStatus.PENDING,
    sqlite_where=RegistrationRequest.status == RequestStatus.PENDING,
)
