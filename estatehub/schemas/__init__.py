"""
Pydantic schemas for request/response validation.
"""

from .auth import LoginRequest, RefreshTokenRequest, AccessTokenResponse, LoginResponse
from .user import UserBase, UserCreate, UserResponse
from .listing import (
    ListingBase,
    ListingCreate,
    ListingUpdate,
    PublishRequest,
    RejectRequest,
    ListingResponse,
    ListingListResponse,
)
from .quota import QuotaGrantRequest, QuotaAdjustRequest, QuotaAccountResponse, LedgerStatusResponse
from .requests import (
    RegistrationRequestCreate,
    RegistrationApproval,
    RegistrationRequestResponse,
    LinkingRequestCreate,
    LinkingRequestResponse,
)
from .sweep import SweepRequest, SweepReportResponse
from .notification import NotificationResponse
from .error import ErrorResponse, APIErrorResponse, get_error_responses

__all__ = [
    # Authentication
    "LoginRequest",
    "RefreshTokenRequest",
    "AccessTokenResponse",
    "LoginResponse",

    # User
    "UserBase",
    "UserCreate",
    "UserResponse",

    # Listing
    "ListingBase",
    "ListingCreate",
    "ListingUpdate",
    "PublishRequest",
    "RejectRequest",
    "ListingResponse",
    "ListingListResponse",

    # Quota
    "QuotaGrantRequest",
    "QuotaAdjustRequest",
    "QuotaAccountResponse",
    "LedgerStatusResponse",

    # Approval requests
    "RegistrationRequestCreate",
    "RegistrationApproval",
    "RegistrationRequestResponse",
    "LinkingRequestCreate",
    "LinkingRequestResponse",

    # Sweeps
    "SweepRequest",
    "SweepReportResponse",

    # Notifications
    "NotificationResponse",

    # Errors
    "ErrorResponse",
    "APIErrorResponse",
    "get_error_responses",
]
