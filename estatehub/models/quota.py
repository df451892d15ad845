"""
Quota account model: per-actor listing, gold-card and featured-slot allowances.
"""

from sqlalchemy import Integer, String, ForeignKey, CheckConstraint, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column
from estatehub.database import Base
from dataclasses import dataclass
from typing import Optional, Union
import enum
import uuid


UNLIMITED = "unlimited"


@dataclass(frozen=True)
class ListingLimit:
    """
    Either Finite(n) or Unlimited.

    Stored as a nullable integer column where NULL means unlimited;
    everything above the model works with this value instead.
    """

    value: Optional[int] = None

    def __post_init__(self):
        if self.value is not None and self.value < 0:
            raise ValueError("Listing limit cannot be negative")

    @classmethod
    def finite(cls, value: int) -> "ListingLimit":
        return cls(value)

    @classmethod
    def unlimited(cls) -> "ListingLimit":
        return cls(None)

    @classmethod
    def parse(cls, raw: Union[int, str, "ListingLimit"]) -> "ListingLimit":
        """Build a limit from an API value: an integer or the 'unlimited' sentinel."""
        if isinstance(raw, ListingLimit):
            return raw
        if isinstance(raw, str):
            if raw.strip().lower() == UNLIMITED:
                return cls.unlimited()
            raise ValueError(f"Listing limit must be an integer or '{UNLIMITED}'")
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise ValueError(f"Listing limit must be an integer or '{UNLIMITED}'")
        return cls.finite(raw)

    @property
    def is_unlimited(self) -> bool:
        return self.value is None

    def allows(self, used: int) -> bool:
        """Whether one more slot fits on top of `used`."""
        return self.is_unlimited or used < self.value

    def to_column(self) -> Optional[int]:
        return self.value

    def to_api(self) -> Union[int, str]:
        return UNLIMITED if self.is_unlimited else self.value

    def __str__(self) -> str:
        return UNLIMITED if self.is_unlimited else str(self.value)


class SubscriptionPlan(str, enum.Enum):
    BASIC = "basic"
    ELITE = "elite"
    PLATINUM = "platinum"


@dataclass(frozen=True)
class QuotaGrant:
    """Allowances handed out when a registration request is approved."""

    listing_limit: ListingLimit
    gold_cards: int = 0
    featured_listings: int = 0
    plan: Optional[SubscriptionPlan] = None

    def __post_init__(self):
        if self.gold_cards < 0 or self.featured_listings < 0:
            raise ValueError("Quota grants cannot be negative")


class QuotaAccount(Base):
    """
    One account per agent, agency or promoter.
    Counters are only mutated through conditional updates in QuotaRepository.
    """

    __tablename__ = "quota_accounts"
    __table_args__ = (
        CheckConstraint("listings_used >= 0", name="ck_quota_listings_used_non_negative"),
        CheckConstraint("gold_cards >= 0", name="ck_quota_gold_cards_non_negative"),
        CheckConstraint("featured_listings >= 0", name="ck_quota_featured_non_negative"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True
    )

    listing_limit_value: Mapped[Optional[int]] = mapped_column(
        "listing_limit",
        Integer,
        nullable=True,
        comment="NULL means unlimited"
    )

    listings_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    gold_cards: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    featured_listings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    plan: Mapped[Optional[SubscriptionPlan]] = mapped_column(SQLEnum(SubscriptionPlan), nullable=True)

    def __repr__(self) -> str:
        return f"<QuotaAccount(user_id={self.user_id}, used={self.listings_used}/{self.listing_limit})>"

    @property
    def listing_limit(self) -> ListingLimit:
        return ListingLimit(self.listing_limit_value)

    @listing_limit.setter
    def listing_limit(self, limit: ListingLimit) -> None:
        self.listing_limit_value = limit.to_column()

    @property
    def has_listing_room(self) -> bool:
        return self.listing_limit.allows(self.listings_used)

    @property
    def is_over_quota(self) -> bool:
        """True after an admin shrinks the limit below current usage."""
        limit = self.listing_limit
        return not limit.is_unlimited and self.listings_used > limit.value
