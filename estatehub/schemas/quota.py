"""
Pydantic schemas for quota accounts and administrative adjustments.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Annotated, Literal, Optional, Union
from datetime import datetime
from estatehub.models.quota import ListingLimit, SubscriptionPlan, QuotaAccount, QuotaGrant
import uuid


ListingLimitValue = Union[Annotated[int, Field(ge=0)], Literal["unlimited"]]


class QuotaGrantRequest(BaseModel):
    """Allowances granted when a registration request is approved."""

    listing_limit: ListingLimitValue = Field(
        ...,
        description="Maximum simultaneous counted listings, or 'unlimited'",
        examples=[15, "unlimited"]
    )
    gold_cards: int = Field(0, ge=0)
    featured_listings: int = Field(0, ge=0)
    plan: Optional[SubscriptionPlan] = None

    def to_grant(self) -> QuotaGrant:
        return QuotaGrant(
            listing_limit=ListingLimit.parse(self.listing_limit),
            gold_cards=self.gold_cards,
            featured_listings=self.featured_listings,
            plan=self.plan
        )


class QuotaAdjustRequest(BaseModel):
    """Administrative overwrite; omitted fields are left unchanged."""

    listing_limit: Optional[ListingLimitValue] = Field(None, examples=[20, "unlimited"])
    gold_cards: Optional[int] = Field(None, ge=0)
    featured_listings: Optional[int] = Field(None, ge=0)
    plan: Optional[SubscriptionPlan] = None
    recompute_usage: bool = Field(
        False,
        description="Reset listings_used to the live count of counted listings"
    )


class QuotaAccountResponse(BaseModel):
    """Quota account as seen by its owner or a moderator."""

    id: uuid.UUID
    user_id: uuid.UUID
    listing_limit: ListingLimitValue
    listings_used: int
    gold_cards: int
    featured_listings: int
    plan: Optional[SubscriptionPlan] = None
    is_over_quota: bool
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator('listing_limit', mode='before')
    @classmethod
    def render_limit(cls, v):
        """Render the tagged limit as an integer or 'unlimited'."""
        if isinstance(v, ListingLimit):
            return v.to_api()
        return v

    @classmethod
    def from_account(cls, account: QuotaAccount) -> "QuotaAccountResponse":
        return cls.model_validate(account)


class LedgerStatusResponse(BaseModel):
    publishing_enabled: bool
    reason: Optional[str] = None
    tripped_at: Optional[datetime] = None
    accounts_recomputed: int = 0
