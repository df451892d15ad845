"""
Pydantic schemas for user registration and responses.
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime
from estatehub.models.user import UserRole, ApprovalStatus
import uuid


class UserBase(BaseModel):
    """Base user schema with common fields."""

    email: EmailStr = Field(
        ...,
        description="User's email address",
        examples=["owner@example.com"]
    )

    full_name: str = Field(
        ...,
        min_length=2,
        max_length=255,
        description="User's full name",
        examples=["Anika Ramdin"]
    )

    phone: Optional[str] = Field(None, max_length=32, examples=["+230 5712 3456"])

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        """Normalize email to lowercase."""
        return v.lower().strip()

    @field_validator('full_name')
    @classmethod
    def validate_full_name(cls, v):
        """Validate and clean full name."""
        if not v or not v.strip():
            raise ValueError("Full name cannot be empty")
        return v.strip()


class UserCreate(UserBase):
    """
    Self-service sign-up. Everyone starts as an individual; professional
    roles are granted through a registration request.
    """

    password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        description="User's password (minimum 8 characters)",
        examples=["securepassword123"]
    )

    @field_validator('password')
    @classmethod
    def validate_password(cls, v):
        """Validate password strength."""
        if not any(c.isalpha() for c in v):
            raise ValueError("Password must contain at least one letter")
        if not any(c.isdigit() for c in v):
            raise ValueError("Password must contain at least one number")
        return v


class UserResponse(BaseModel):
    """User response schema (excluding sensitive data)."""

    id: uuid.UUID
    email: EmailStr
    full_name: str
    phone: Optional[str] = None
    role: UserRole
    approval_status: ApprovalStatus
    agency_id: Optional[uuid.UUID] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
