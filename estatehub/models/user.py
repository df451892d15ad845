"""
User model with authentication, role and approval management.
Handles individuals, agents, agencies, promoters and moderators.
"""

from sqlalchemy import String, Boolean, ForeignKey, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column
from estatehub.database import Base
from passlib.context import CryptContext
from email_validator import validate_email, EmailNotValidError
import enum
import uuid
from typing import Optional

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class UserRole(str, enum.Enum):
    """User role enumeration for role-based access control."""
    USER = "user"
    AGENT = "agent"
    AGENCY = "agency"
    PROMOTER = "promoter"
    ADMIN = "admin"
    SUB_ADMIN = "sub_admin"


# Roles that hold a quota account once their registration is approved
PROFESSIONAL_ROLES = frozenset({UserRole.AGENT, UserRole.AGENCY, UserRole.PROMOTER})
MODERATOR_ROLES = frozenset({UserRole.ADMIN, UserRole.SUB_ADMIN})


class ApprovalStatus(str, enum.Enum):
    """Outcome of the user's role-upgrade registration."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class User(Base):
    """
    User model for authentication and authorization.
    Agents may be linked to exactly one agency through agency_id.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
        comment="User email address - must be unique and valid"
    )

    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Bcrypt hashed password"
    )

    full_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="User's full name"
    )

    phone: Mapped[Optional[str]] = mapped_column(
        String(32),
        nullable=True
    )

    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole),
        nullable=False,
        default=UserRole.USER,
        index=True,
        comment="User role for access control"
    )

    approval_status: Mapped[ApprovalStatus] = mapped_column(
        SQLEnum(ApprovalStatus),
        nullable=False,
        default=ApprovalStatus.PENDING,
        comment="Registration outcome for role upgrades"
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        index=True,
        comment="Whether the user account is active"
    )

    # Agent -> agency link; the agency side is the set of users pointing at it
    agency_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Agency this agent is linked to"
    )

    def __repr__(self) -> str:
        """String representation of the user."""
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"

    @classmethod
    def validate_email_format(cls, email: str) -> str:
        """
        Validate email format using email-validator.

        Returns:
            Normalized email address

        Raises:
            ValueError: If email format is invalid
        """
        try:
            valid_email = validate_email(email, check_deliverability=False)
            return valid_email.normalized.lower()
        except (EmailNotValidError, TypeError) as e:
            raise ValueError(f"Invalid email format: {str(e)}")

    @classmethod
    def hash_password(cls, password: str) -> str:
        """Hash a password using bcrypt."""
        if not password or len(password) < 8:
            raise ValueError("Password must be at least 8 characters long")

        return pwd_context.hash(password)

    def verify_password(self, password: str) -> bool:
        """Verify a password against the stored hash."""
        return pwd_context.verify(password, self.hashed_password)

    @property
    def is_moderator(self) -> bool:
        """Admins and sub-admins may moderate any listing or request."""
        return self.role in MODERATOR_ROLES

    @property
    def is_professional(self) -> bool:
        """Agents, agencies and promoters hold quota accounts."""
        return self.role in PROFESSIONAL_ROLES

    @property
    def is_individual(self) -> bool:
        return self.role == UserRole.USER

    def can_manage_listing(self, owner_id: uuid.UUID) -> bool:
        """Moderators manage every listing; everyone else only their own."""
        if self.is_moderator:
            return True
        return self.id == owner_id
