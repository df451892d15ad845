"""
Database models for the EstateHub listing governance API.
Includes users, listings, quota accounts, approval requests and notifications.
"""

from estatehub.models.user import User, UserRole, ApprovalStatus, PROFESSIONAL_ROLES, MODERATOR_ROLES
from estatehub.models.listing import (
    Listing,
    ListingStatus,
    ListingCategory,
    PropertyType,
    Currency,
    LISTING_TRANSITIONS,
    counted_statuses,
)
from estatehub.models.quota import QuotaAccount, QuotaGrant, ListingLimit, SubscriptionPlan, UNLIMITED
from estatehub.models.requests import RegistrationRequest, LinkingRequest, RequestStatus, Gender
from estatehub.models.notification import Notification, NotificationType

# Export all models for easy importing
__all__ = [
    "User",
    "UserRole",
    "ApprovalStatus",
    "PROFESSIONAL_ROLES",
    "MODERATOR_ROLES",
    "Listing",
    "ListingStatus",
    "ListingCategory",
    "PropertyType",
    "Currency",
    "LISTING_TRANSITIONS",
    "counted_statuses",
    "QuotaAccount",
    "QuotaGrant",
    "ListingLimit",
    "SubscriptionPlan",
    "UNLIMITED",
    "RegistrationRequest",
    "LinkingRequest",
    "RequestStatus",
    "Gender",
    "Notification",
    "NotificationType",
]
