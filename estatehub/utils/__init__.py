"""
Utility modules for the listing governance API.
"""

from .exceptions import (
    APIException,
    ValidationError,
    NotFoundError,
    UnauthorizedError,
    ForbiddenError,
    ConflictError,
    BadRequestError,
    InvalidCredentialsError,
    TokenExpiredError,
    InvalidTokenError,
    InactiveUserError,
    NotAuthorizedError,
    InvalidTransitionError,
    QuotaExceededError,
    MissingReasonError,
    DuplicatePendingRequestError,
    LedgerUnavailableError,
)
from .clock import Clock, SystemClock, system_clock

# Auth helpers and dependencies are imported directly where needed to avoid circular imports

__all__ = [
    # Exceptions
    "APIException",
    "ValidationError",
    "NotFoundError",
    "UnauthorizedError",
    "ForbiddenError",
    "ConflictError",
    "BadRequestError",
    "InvalidCredentialsError",
    "TokenExpiredError",
    "InvalidTokenError",
    "InactiveUserError",
    "NotAuthorizedError",
    "InvalidTransitionError",
    "QuotaExceededError",
    "MissingReasonError",
    "DuplicatePendingRequestError",
    "LedgerUnavailableError",

    # Clock
    "Clock",
    "SystemClock",
    "system_clock",
]
