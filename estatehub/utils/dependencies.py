"""
FastAPI dependency injection utilities.
Provides the caller's identity, the injected collaborators (clock, publish
gate, session factory) and the services built on them.
"""

from typing import Callable, Optional
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from estatehub.config import settings
from estatehub.database import get_db, database
from estatehub.models.user import User
from estatehub.services.auth import AuthService
from estatehub.services.listing import ListingService
from estatehub.services.quota import QuotaLedger, PublishGate
from estatehub.services.approval import RegistrationWorkflow, LinkingWorkflow
from estatehub.services.moderation import AdminModerationGateway
from estatehub.services.notifications import NotificationService
from estatehub.utils.clock import Clock, system_clock
from estatehub.utils.exceptions import UnauthorizedError, InactiveUserError, NotAuthorizedError


# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


def get_clock(request: Request) -> Clock:
    """The application clock, or the system clock when none is installed."""
    return getattr(request.app.state, "clock", None) or system_clock


def get_publish_gate(request: Request) -> PublishGate:
    """
    The process-wide publish gate.
    Created on first use when the lifespan has not installed one.
    """
    gate = getattr(request.app.state, "publish_gate", None)
    if gate is None:
        gate = PublishGate(get_clock(request))
        request.app.state.publish_gate = gate
    return gate


def get_session_factory() -> Callable[[], AsyncSession]:
    """Session factory for work that runs outside the request session."""
    return database.session


async def get_auth_service(db: AsyncSession = Depends(get_db)) -> AuthService:
    return AuthService(db)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> User:
    """
    Get current authenticated user from JWT token.

    Raises:
        UnauthorizedError: If no token provided or token is invalid
        TokenExpiredError: If token is expired
        InactiveUserError: If user account is inactive
    """
    if not credentials:
        raise UnauthorizedError("Authentication token required")

    return await auth_service.get_current_user(credentials.credentials)


async def get_current_active_user(
    current_user: User = Depends(get_current_user)
) -> User:
    if not current_user.is_active:
        raise InactiveUserError()
    return current_user


async def get_moderator_user(
    current_user: User = Depends(get_current_active_user)
) -> User:
    """
    Raises:
        NotAuthorizedError: If the caller is not an admin or sub-admin
    """
    if not current_user.is_moderator:
        raise NotAuthorizedError("access moderation resources")
    return current_user


async def get_optional_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> Optional[User]:
    """The caller if a valid token is supplied, otherwise None."""
    if not credentials:
        return None
    return await auth_service.get_current_user(credentials.credentials)


async def get_listing_service(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    gate: PublishGate = Depends(get_publish_gate)
) -> ListingService:
    return ListingService(db, clock=clock, gate=gate, settings=settings)


async def get_quota_ledger(
    db: AsyncSession = Depends(get_db),
    gate: PublishGate = Depends(get_publish_gate)
) -> QuotaLedger:
    return QuotaLedger(db, gate=gate, settings=settings)


async def get_registration_workflow(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    ledger: QuotaLedger = Depends(get_quota_ledger)
) -> RegistrationWorkflow:
    return RegistrationWorkflow(db, clock, ledger=ledger)


async def get_linking_workflow(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock)
) -> LinkingWorkflow:
    return LinkingWorkflow(db, clock)


async def get_notification_service(db: AsyncSession = Depends(get_db)) -> NotificationService:
    return NotificationService(db)


async def get_moderation_gateway(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    gate: PublishGate = Depends(get_publish_gate),
    session_factory: Callable[[], AsyncSession] = Depends(get_session_factory)
) -> AdminModerationGateway:
    return AdminModerationGateway(
        db,
        clock=clock,
        gate=gate,
        settings=settings,
        session_factory=session_factory
    )
