"""
Listing model for property advertisements and their lifecycle status.
"""

from sqlalchemy import String, Text, Integer, Numeric, Boolean, DateTime, ForeignKey, Index, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column
from estatehub.database import Base
from estatehub.utils.clock import ensure_utc
from datetime import datetime
from decimal import Decimal
from typing import Dict, FrozenSet, Optional
import enum
import uuid


class ListingStatus(str, enum.Enum):
    """Lifecycle status of a listing."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ACTIVE = "active"
    INACTIVE = "inactive"
    EXPIRED = "expired"


class ListingCategory(str, enum.Enum):
    FOR_SALE = "for-sale"
    FOR_RENT = "for-rent"
    OFFICES = "offices"
    OFFICE_RENT = "office-rent"
    LAND = "land"


class PropertyType(str, enum.Enum):
    APARTMENT = "Apartment"
    HOUSE = "House"
    VILLA = "Villa"
    PENTHOUSE = "Penthouse"
    DUPLEX = "Duplex"
    LAND = "Land"
    OFFICE = "Office"
    COMMERCIAL = "Commercial"
    OTHER = "Other"


class Currency(str, enum.Enum):
    USD = "USD"
    EUR = "EUR"
    MUR = "MUR"


# Legal source statuses for every listing operation
LISTING_TRANSITIONS: Dict[str, FrozenSet[ListingStatus]] = {
    "approve": frozenset({ListingStatus.PENDING}),
    "reject": frozenset({ListingStatus.PENDING, ListingStatus.APPROVED}),
    "publish": frozenset({ListingStatus.APPROVED, ListingStatus.INACTIVE}),
    "deactivate": frozenset({ListingStatus.ACTIVE}),
    "expire": frozenset({ListingStatus.ACTIVE}),
    "reset": frozenset({ListingStatus.REJECTED, ListingStatus.EXPIRED}),
    "update": frozenset({ListingStatus.PENDING, ListingStatus.REJECTED}),
}


def counted_statuses(inactive_holds_quota: bool = True) -> FrozenSet[ListingStatus]:
    """Statuses in which a listing occupies one of its owner's listing slots."""
    if inactive_holds_quota:
        return frozenset({ListingStatus.ACTIVE, ListingStatus.INACTIVE})
    return frozenset({ListingStatus.ACTIVE})


class Listing(Base):
    """
    A single property advertisement owned by one actor.
    Status changes go through conditional updates in ListingRepository.
    """

    __tablename__ = "listings"

    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="ID of the actor who owns this listing"
    )

    # Draft content
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[ListingCategory] = mapped_column(SQLEnum(ListingCategory), nullable=False)
    property_type: Mapped[PropertyType] = mapped_column(SQLEnum(PropertyType), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(precision=14, scale=2), nullable=False)
    currency: Mapped[Currency] = mapped_column(SQLEnum(Currency), nullable=False, default=Currency.MUR)
    city: Mapped[str] = mapped_column(String(120), nullable=False)
    country: Mapped[str] = mapped_column(String(120), nullable=False, default="Mauritius")
    area: Mapped[int] = mapped_column(Integer, nullable=False, comment="Area in square meters")
    bedrooms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bathrooms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Lifecycle
    status: Mapped[ListingStatus] = mapped_column(
        SQLEnum(ListingStatus),
        nullable=False,
        default=ListingStatus.PENDING,
        index=True
    )

    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
        comment="Set when the listing is first published"
    )

    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    status_changed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Quota-backed flags
    is_gold_card: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_premium: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)

    def __repr__(self) -> str:
        return f"<Listing(id={self.id}, status={self.status}, owner_id={self.owner_id})>"

    def is_expired_at(self, now: datetime) -> bool:
        """Whether an active listing has reached its expiry time."""
        expires_at = ensure_utc(self.expires_at)
        return expires_at is not None and ensure_utc(now) >= expires_at


# The sweeper scans active listings by expiry time
status_expiry_index = Index(
    "idx_listings_status_expires_at",
    Listing.status,
    Listing.expires_at,
)

owner_status_index = Index(
    "idx_listings_owner_status",
    Listing.owner_id,
    Listing.status,
)
