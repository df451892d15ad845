"""
Service layer for business logic implementation.
Contains the listing lifecycle, quota ledger, approval workflows, expiration
sweeper, moderation gateway, notifications, authentication and error handling.
"""

from .auth import AuthService
from .quota import QuotaLedger, PublishGate
from .listing import ListingService
from .notifications import NotificationService
from .approval import ApprovalWorkflow, RegistrationWorkflow, LinkingWorkflow
from .sweeper import ExpirationSweeper, SweepScheduler, SweepReport
from .moderation import AdminModerationGateway
from .error_handler import ErrorHandlerService

__all__ = [
    "AuthService",
    "QuotaLedger",
    "PublishGate",
    "ListingService",
    "NotificationService",
    "ApprovalWorkflow",
    "RegistrationWorkflow",
    "LinkingWorkflow",
    "ExpirationSweeper",
    "SweepScheduler",
    "SweepReport",
    "AdminModerationGateway",
    "ErrorHandlerService",
]
