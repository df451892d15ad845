"""
Repository layer for data access operations.
Status and counter changes are conditional updates that leave committing to the services.
"""

from estatehub.repositories.base import BaseRepository
from estatehub.repositories.user import UserRepository
from estatehub.repositories.listing import ListingRepository
from estatehub.repositories.quota import QuotaRepository
from estatehub.repositories.requests import (
    ApprovalRequestRepository,
    RegistrationRequestRepository,
    LinkingRequestRepository,
)
from estatehub.repositories.notification import NotificationRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "ListingRepository",
    "QuotaRepository",
    "ApprovalRequestRepository",
    "RegistrationRequestRepository",
    "LinkingRequestRepository",
    "NotificationRepository",
]
