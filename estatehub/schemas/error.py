"""
Error response schemas for API documentation and consistent error formatting.
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Any, Dict


class ErrorResponse(BaseModel):
    """Schema for standardized error responses."""

    code: str = Field(..., description="Error code identifier", examples=["INVALID_TRANSITION"])
    message: str = Field(..., description="Human-readable error message")
    timestamp: str = Field(..., description="Error timestamp in ISO format", examples=["2026-01-01T00:00:00Z"])
    request_id: Optional[str] = Field(None, description="Unique request identifier for tracking")
    details: Optional[List[Dict[str, Any]]] = Field(
        None,
        description="Structured context, e.g. field errors or quota usage"
    )


class APIErrorResponse(BaseModel):
    """Schema for API error response wrapper."""

    error: ErrorResponse


def _example(code: str, message: str, details: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    error = {
        "code": code,
        "message": message,
        "timestamp": "2026-01-01T00:00:00Z",
        "request_id": "abc12345",
    }
    if details:
        error["details"] = details
    return {"error": error}


COMMON_ERROR_RESPONSES: Dict[int, Dict[str, Any]] = {
    401: {
        "description": "Unauthorized",
        "model": APIErrorResponse,
        "content": {"application/json": {"example": _example("UNAUTHORIZED", "Authentication required")}},
    },
    403: {
        "description": "Forbidden",
        "model": APIErrorResponse,
        "content": {"application/json": {"example": _example("NOT_AUTHORIZED", "Not authorized to approve listings")}},
    },
    404: {
        "description": "Not Found",
        "model": APIErrorResponse,
        "content": {"application/json": {"example": _example("NOT_FOUND", "Listing not found")}},
    },
    409: {
        "description": "Conflict",
        "model": APIErrorResponse,
        "content": {
            "application/json": {
                "examples": {
                    "invalid_transition": {
                        "summary": "Invalid transition",
                        "value": _example(
                            "INVALID_TRANSITION",
                            "Cannot publish listing in status 'pending'",
                            [{"entity": "listing", "current": "pending", "attempted": "publish"}]
                        ),
                    },
                    "quota_exceeded": {
                        "summary": "Quota exceeded",
                        "value": _example(
                            "QUOTA_EXCEEDED",
                            "listing quota exceeded (15/15 used)",
                            [{"resource": "listing", "used": 15, "limit": 15}]
                        ),
                    },
                }
            }
        },
    },
    422: {
        "description": "Validation Error",
        "model": APIErrorResponse,
        "content": {"application/json": {"example": _example("MISSING_REASON", "A rejection reason is required")}},
    },
    503: {
        "description": "Service Unavailable",
        "model": APIErrorResponse,
        "content": {
            "application/json": {
                "example": _example(
                    "LEDGER_UNAVAILABLE",
                    "Publishing is suspended until quota ledger integrity is restored"
                )
            }
        },
    },
}


def get_error_responses(*status_codes: int) -> Dict[int, Dict[str, Any]]:
    """
    Get error response schemas for specific status codes.

    Args:
        status_codes: HTTP status codes to include

    Returns:
        Dictionary of error response schemas
    """
    return {
        code: COMMON_ERROR_RESPONSES[code]
        for code in status_codes
        if code in COMMON_ERROR_RESPONSES
    }
