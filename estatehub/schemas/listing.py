"""
Pydantic schemas for listing requests and responses.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from estatehub.models.listing import ListingStatus, ListingCategory, PropertyType, Currency
import uuid


class ListingBase(BaseModel):
    """Descriptive listing fields shared by requests and responses."""

    title: str = Field(
        ...,
        min_length=3,
        max_length=100,
        description="Listing title",
        examples=["Sea-view apartment in Grand Baie"]
    )

    description: str = Field(
        ...,
        min_length=10,
        max_length=5000,
        description="Detailed property description"
    )

    category: ListingCategory = Field(..., description="Listing category", examples=["for-sale"])
    property_type: PropertyType = Field(..., description="Kind of property", examples=["Apartment"])

    price: Decimal = Field(..., ge=0, description="Asking price", examples=[8500000])
    currency: Currency = Field(Currency.MUR, description="Price currency")

    city: str = Field(..., min_length=1, max_length=120, examples=["Grand Baie"])
    country: str = Field("Mauritius", min_length=1, max_length=120)

    area: int = Field(..., ge=0, le=1000000, description="Area in square meters", examples=[140])
    bedrooms: int = Field(0, ge=0, le=50)
    bathrooms: int = Field(0, ge=0, le=50)

    @field_validator('title', 'description', 'city', 'country')
    @classmethod
    def validate_not_blank(cls, v):
        """Strip surrounding whitespace and reject blank text."""
        if not v or not v.strip():
            raise ValueError("Field cannot be empty")
        return v.strip()


class ListingCreate(ListingBase):
    """Schema for creating a new listing; it always starts in pending."""

    is_gold_card: bool = Field(False, description="Spend a gold card on this listing")
    is_premium: bool = Field(False, description="Premium placement flag")
    is_featured: bool = Field(False, description="Spend a featured slot on this listing")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Sea-view apartment in Grand Baie",
                "description": "Three bedroom apartment with a large terrace facing the lagoon.",
                "category": "for-sale",
                "property_type": "Apartment",
                "price": 8500000,
                "currency": "MUR",
                "city": "Grand Baie",
                "country": "Mauritius",
                "area": 140,
                "bedrooms": 3,
                "bathrooms": 2,
                "is_gold_card": False,
            }
        }
    )


class ListingUpdate(BaseModel):
    """
    Partial edit of a draft listing. Only the fields sent are changed;
    status and the paid flags cannot be edited here.
    """

    title: Optional[str] = Field(None, min_length=3, max_length=100)
    description: Optional[str] = Field(None, min_length=10, max_length=5000)
    category: Optional[ListingCategory] = None
    property_type: Optional[PropertyType] = None
    price: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[Currency] = None
    city: Optional[str] = Field(None, min_length=1, max_length=120)
    country: Optional[str] = Field(None, min_length=1, max_length=120)
    area: Optional[int] = Field(None, ge=0, le=1000000)
    bedrooms: Optional[int] = Field(None, ge=0, le=50)
    bathrooms: Optional[int] = Field(None, ge=0, le=50)

    model_config = ConfigDict(extra="forbid")

    @field_validator('title', 'description', 'city', 'country')
    @classmethod
    def validate_not_blank(cls, v):
        if v is None:
            return v
        if not v.strip():
            raise ValueError("Field cannot be empty")
        return v.strip()


class PublishRequest(BaseModel):
    """Optional body for publishing a listing."""

    duration_days: Optional[int] = Field(
        None,
        ge=1,
        description="Days until the listing expires; the configured default applies when omitted"
    )


class RejectRequest(BaseModel):
    """Rejection of a listing or an approval request."""

    reason: str = Field(
        "",
        max_length=2000,
        description="Reason shown to the owner; must not be blank",
        examples=["Photos do not match the described property"]
    )


class ListingResponse(ListingBase):
    """Schema for listing responses."""

    id: uuid.UUID
    owner_id: uuid.UUID
    status: ListingStatus
    expires_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    is_gold_card: bool
    is_premium: bool
    is_featured: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ListingListResponse(BaseModel):
    """Paginated listing collection."""

    listings: List[ListingResponse]
    total: int = Field(..., examples=[12])
    page: int = Field(..., examples=[1])
    page_size: int = Field(..., examples=[20])
    has_next: bool
