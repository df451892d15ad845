"""
Custom exception classes for the listing governance API.
Provides structured error handling with appropriate HTTP status codes.
"""

from typing import Any, Dict, Optional, List
from fastapi import HTTPException, status


class APIException(HTTPException):
    """Base API exception class."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None,
        details: Optional[List[Dict[str, Any]]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code
        self.details = details or []


class ValidationError(APIException):
    """Validation error exception."""

    def __init__(
        self,
        detail: str,
        field_errors: Optional[List[Dict[str, str]]] = None,
        error_code: str = "VALIDATION_ERROR"
    ):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
            error_code=error_code,
            details=field_errors
        )
        self.field_errors = field_errors or []


class NotFoundError(APIException):
    """Resource not found exception."""

    def __init__(self, resource: str, resource_id: Optional[str] = None):
        detail = f"{resource} not found"
        if resource_id:
            detail += f" with ID: {resource_id}"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            error_code="NOT_FOUND"
        )


class UnauthorizedError(APIException):
    """Authentication required exception."""

    def __init__(self, detail: str = "Authentication required"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="UNAUTHORIZED",
            headers={"WWW-Authenticate": "Bearer"}
        )


class ForbiddenError(APIException):
    """Access forbidden exception."""

    def __init__(self, detail: str = "Access forbidden", error_code: str = "FORBIDDEN"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code=error_code
        )


class ConflictError(APIException):
    """Resource conflict exception."""

    def __init__(
        self,
        detail: str,
        error_code: str = "CONFLICT",
        details: Optional[List[Dict[str, Any]]] = None
    ):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code=error_code,
            details=details
        )


class BadRequestError(APIException):
    """Bad request exception."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code="BAD_REQUEST"
        )


# Authentication specific exceptions
class InvalidCredentialsError(UnauthorizedError):
    """Invalid login credentials exception."""

    def __init__(self, detail: str = "Invalid email or password"):
        super().__init__(detail)


class TokenExpiredError(UnauthorizedError):
    """JWT token expired exception."""

    def __init__(self, detail: str = "Token has expired"):
        super().__init__(detail)


class InvalidTokenError(UnauthorizedError):
    """Invalid JWT token exception."""

    def __init__(self, detail: str = "Invalid token"):
        super().__init__(detail)


class InactiveUserError(ForbiddenError):
    """Inactive user account exception."""

    def __init__(self, detail: str = "User account is inactive"):
        super().__init__(detail)


class NotAuthorizedError(ForbiddenError):
    """Actor lacks the role or ownership required for the operation."""

    def __init__(self, action: str):
        super().__init__(f"Not authorized to {action}", error_code="NOT_AUTHORIZED")
        self.action = action


class DuplicateResourceError(ConflictError):
    """Duplicate resource exception."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(f"{resource} with identifier '{identifier}' already exists")


# Lifecycle and quota exceptions
class InvalidTransitionError(ConflictError):
    """Operation attempted from a state that does not permit it."""

    def __init__(self, entity: str, current: Optional[str], attempted: str):
        current_label = current if current is not None else "unknown"
        super().__init__(
            f"Cannot {attempted} {entity} in status '{current_label}'",
            error_code="INVALID_TRANSITION",
            details=[{"entity": entity, "current": current, "attempted": attempted}]
        )
        self.entity = entity
        self.current = current
        self.attempted = attempted


class QuotaExceededError(APIException):
    """Publish, gold-card or featured-slot request exceeds the remaining allowance."""

    def __init__(
        self,
        resource: str,
        used: Optional[int] = None,
        limit: Optional[int] = None,
        remaining: Optional[int] = None
    ):
        if limit is not None:
            detail = f"{resource} quota exceeded ({used}/{limit} used)"
        else:
            detail = f"No {resource} remaining"
        details = {"resource": resource, "used": used, "limit": limit}
        if remaining is not None:
            details["remaining"] = remaining
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code="QUOTA_EXCEEDED",
            details=[details]
        )
        self.resource = resource
        self.used = used
        self.limit = limit
        self.remaining = remaining


class MissingReasonError(ValidationError):
    """Rejection attempted without a human-readable reason."""

    def __init__(self, detail: str = "A rejection reason is required"):
        super().__init__(
            detail,
            field_errors=[{"field": "reason", "message": detail}],
            error_code="MISSING_REASON"
        )


class DuplicatePendingRequestError(ConflictError):
    """A second request submitted while one is already pending."""

    def __init__(self, request_type: str):
        super().__init__(
            f"A pending {request_type} already exists",
            error_code="DUPLICATE_PENDING_REQUEST"
        )
        self.request_type = request_type


# Service unavailable exceptions
class ServiceUnavailableError(APIException):
    """Service unavailable exception."""

    def __init__(self, detail: str = "Service temporarily unavailable", error_code: str = "SERVICE_UNAVAILABLE"):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
            error_code=error_code
        )


class LedgerUnavailableError(ServiceUnavailableError):
    """Quota ledger integrity cannot be trusted; publishing is suspended."""

    def __init__(self, reason: Optional[str] = None):
        detail = "Publishing is suspended until quota ledger integrity is restored"
        if reason:
            detail += f": {reason}"
        super().__init__(detail, error_code="LEDGER_UNAVAILABLE")
