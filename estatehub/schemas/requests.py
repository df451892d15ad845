"""
Pydantic schemas for registration and linking requests.
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime
from estatehub.models.user import UserRole, PROFESSIONAL_ROLES
from estatehub.models.requests import RequestStatus, Gender
from estatehub.schemas.quota import QuotaGrantRequest
import uuid


class RegistrationRequestCreate(BaseModel):
    """An individual's application for a professional role."""

    desired_role: UserRole = Field(..., description="agent, agency or promoter", examples=["agent"])
    gender: Gender
    first_name: str = Field(..., min_length=1, max_length=120)
    last_name: str = Field(..., min_length=1, max_length=120)
    phone_number: str = Field(..., min_length=3, max_length=32)
    email: EmailStr
    company_name: Optional[str] = Field(None, max_length=255)
    place_of_birth: str = Field(..., min_length=1, max_length=120)
    city: str = Field(..., min_length=1, max_length=120)
    country: str = Field(..., min_length=1, max_length=120)

    @field_validator('desired_role')
    @classmethod
    def validate_desired_role(cls, v):
        """Only professional roles can be requested."""
        if v not in PROFESSIONAL_ROLES:
            raise ValueError("desired_role must be one of: agent, agency, promoter")
        return v

    @field_validator('first_name', 'last_name', 'place_of_birth', 'city', 'country')
    @classmethod
    def validate_not_blank(cls, v):
        if not v.strip():
            raise ValueError("Field cannot be empty")
        return v.strip()


class RegistrationApproval(BaseModel):
    """Moderator approval carrying the quota grant for the new account."""

    grant: QuotaGrantRequest


class RequestResponseBase(BaseModel):
    id: uuid.UUID
    status: RequestStatus
    rejection_reason: Optional[str] = None
    resolved_by_id: Optional[uuid.UUID] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RegistrationRequestResponse(RequestResponseBase):
    user_id: uuid.UUID
    desired_role: UserRole
    gender: Gender
    first_name: str
    last_name: str
    phone_number: str
    email: str
    company_name: Optional[str] = None
    place_of_birth: str
    city: str
    country: str


class LinkingRequestCreate(BaseModel):
    """An agent's request to join an agency."""

    agency_id: uuid.UUID = Field(..., description="Target agency user id")


class LinkingRequestResponse(RequestResponseBase):
    agent_id: uuid.UUID
    agency_id: uuid.UUID
