"""
Approval workflow engine.

One generic pending -> approved | rejected workflow. Each concrete workflow
supplies who may submit, who may resolve, and what approval or rejection
does; the engine supplies the conditional resolution, the duplicate-pending
guard and the transaction around every step.
"""

from typing import Any, Dict, Generic, List, Optional, TypeVar
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from estatehub.database import unit_of_work
from estatehub.models.notification import NotificationType
from estatehub.models.quota import QuotaGrant
from estatehub.models.requests import RegistrationRequest, LinkingRequest, RequestStatus
from estatehub.models.user import User, UserRole, ApprovalStatus
from estatehub.repositories.requests import (
    ApprovalRequestRepository,
    RegistrationRequestRepository,
    LinkingRequestRepository,
)
from estatehub.repositories.user import UserRepository
from estatehub.services.notifications import NotificationService
from estatehub.services.quota import QuotaLedger
from estatehub.utils.clock import Clock, system_clock
from estatehub.utils.exceptions import (
    NotFoundError,
    ValidationError,
    NotAuthorizedError,
    InvalidTransitionError,
    MissingReasonError,
    DuplicatePendingRequestError,
)
import uuid
import logging

logger = logging.getLogger(__name__)

RequestT = TypeVar("RequestT", RegistrationRequest, LinkingRequest)


class ApprovalWorkflow(Generic[RequestT]):
    """
    Base class for two-sided approval flows.

    Subclasses set ``label`` and implement the hooks below.
    """

    label: str = "request"

    def __init__(self, db_session: AsyncSession, clock: Clock = system_clock):
        self.db = db_session
        self.clock = clock
        self.user_repo = UserRepository(db_session)
        self.notifications = NotificationService(db_session)
        self.request_repo: ApprovalRequestRepository = self._make_repository(db_session)

    # Hooks

    def _make_repository(self, db_session: AsyncSession) -> ApprovalRequestRepository:
        raise NotImplementedError

    async def validate_submission(self, submitter: User, data: Dict[str, Any]) -> None:
        """Raise if ``submitter`` may not file this request."""

    def submitter_id(self, submitter: User) -> uuid.UUID:
        return submitter.id

    def build_request(self, submitter: User, data: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    async def on_submitted(self, request: RequestT, submitter: User) -> None:
        pass

    def can_resolve(self, request: RequestT, actor: User) -> bool:
        return actor.is_moderator

    def validate_approval(self, params: Any) -> None:
        """Raise if the approval parameters are unusable."""

    async def on_approved(self, request: RequestT, actor: User, params: Any) -> None:
        pass

    async def on_rejected(self, request: RequestT, actor: User, reason: str) -> None:
        pass

    # Operations

    async def submit(self, submitter: User, data: Optional[Dict[str, Any]] = None) -> RequestT:
        """
        File a new pending request.

        Raises:
            NotAuthorizedError: If the submitter may not file this request
            DuplicatePendingRequestError: If the submitter already has a pending one
        """
        data = data or {}

        async with unit_of_work(self.db, f"Submit {self.label} for {submitter.id}"):
            await self.validate_submission(submitter, data)

            if await self.request_repo.get_pending_for(self.submitter_id(submitter)):
                raise DuplicatePendingRequestError(self.label)

            try:
                request = await self.request_repo.create(self.build_request(submitter, data), commit=False)
            except IntegrityError:
                # A concurrent submission won the partial unique index
                raise DuplicatePendingRequestError(self.label)

            await self.on_submitted(request, submitter)

        logger.info(f"{self.label.capitalize()} {request.id} submitted by {submitter.email}")
        return request

    async def approve(self, request_id: uuid.UUID, actor: User, params: Any = None) -> RequestT:
        """
        Approve a pending request and apply its side effects atomically.

        Raises:
            NotFoundError: If the request does not exist
            NotAuthorizedError: If the actor may not resolve it
            InvalidTransitionError: If the request is already resolved
        """
        async with unit_of_work(self.db, f"Approve {self.label} {request_id}"):
            request = await self._get_request(request_id)
            if not self.can_resolve(request, actor):
                raise NotAuthorizedError(f"approve this {self.label}")
            self.validate_approval(params)

            await self._resolve(request, actor, RequestStatus.APPROVED)
            await self.on_approved(request, actor, params)
            request = await self._get_request(request_id)

        logger.info(f"{self.label.capitalize()} {request_id} approved by {actor.email}")
        return request

    async def reject(self, request_id: uuid.UUID, actor: User, reason: Optional[str]) -> RequestT:
        """
        Reject a pending request with a reason.

        Raises:
            NotAuthorizedError: If the actor may not resolve it
            MissingReasonError: If the reason is blank
            InvalidTransitionError: If the request is already resolved
        """
        async with unit_of_work(self.db, f"Reject {self.label} {request_id}"):
            request = await self._get_request(request_id)
            if not self.can_resolve(request, actor):
                raise NotAuthorizedError(f"reject this {self.label}")

            reason = (reason or "").strip()
            if not reason:
                raise MissingReasonError()

            await self._resolve(request, actor, RequestStatus.REJECTED, reason)
            await self.on_rejected(request, actor, reason)
            request = await self._get_request(request_id)

        logger.info(f"{self.label.capitalize()} {request_id} rejected by {actor.email}", extra={"reason": reason})
        return request

    async def get(self, request_id: uuid.UUID) -> RequestT:
        return await self._get_request(request_id)

    # Helpers

    async def _get_request(self, request_id: uuid.UUID) -> RequestT:
        request = await self.request_repo.get_by_id(request_id, fresh=True)
        if not request:
            raise NotFoundError(self.label.capitalize(), str(request_id))
        return request

    async def _resolve(
        self,
        request: RequestT,
        actor: User,
        outcome: RequestStatus,
        reason: Optional[str] = None
    ) -> None:
        applied = await self.request_repo.resolve(
            request.id,
            outcome,
            resolved_by_id=actor.id,
            resolved_at=self.clock.now(),
            rejection_reason=reason
        )
        if not applied:
            current = await self._get_request(request.id)
            attempted = "approve" if outcome == RequestStatus.APPROVED else "reject"
            raise InvalidTransitionError(self.label, current.status.value, attempted)


class RegistrationWorkflow(ApprovalWorkflow[RegistrationRequest]):
    """
    Individual -> agent, agency or promoter.
    Approval changes the role and opens the quota account in one transaction.
    """

    label = "registration request"

    def __init__(self, db_session: AsyncSession, clock: Clock = system_clock, ledger: Optional[QuotaLedger] = None):
        super().__init__(db_session, clock)
        self.ledger = ledger or QuotaLedger(db_session)

    def _make_repository(self, db_session: AsyncSession) -> RegistrationRequestRepository:
        return RegistrationRequestRepository(db_session)

    async def validate_submission(self, submitter: User, data: Dict[str, Any]) -> None:
        if not submitter.is_individual:
            raise NotAuthorizedError("submit a registration request")

    def build_request(self, submitter: User, data: Dict[str, Any]) -> Dict[str, Any]:
        return {**data, "user_id": submitter.id, "status": RequestStatus.PENDING}

    async def on_submitted(self, request: RegistrationRequest, submitter: User) -> None:
        await self.user_repo.set_approval_status(submitter.id, ApprovalStatus.PENDING)
        await self.notifications.emit(
            submitter.id,
            NotificationType.REGISTRATION_SUBMITTED,
            f"Your request to register as {request.desired_role.value} was received.",
            subject_id=request.id,
            subject_type="registration_request"
        )

    def validate_approval(self, params: Any) -> None:
        if not isinstance(params, QuotaGrant):
            raise ValidationError(
                "A quota grant is required to approve a registration",
                field_errors=[{"field": "grant", "message": "Field required"}]
            )

    async def on_approved(self, request: RegistrationRequest, actor: User, params: QuotaGrant) -> None:
        await self.user_repo.set_role(request.user_id, request.desired_role, ApprovalStatus.APPROVED)
        await self.ledger.open_account(request.user_id, params)
        await self.notifications.emit(
            request.user_id,
            NotificationType.REGISTRATION_APPROVED,
            f"You are now registered as {request.desired_role.value} with a listing limit of {params.listing_limit}.",
            subject_id=request.id,
            subject_type="registration_request"
        )

    async def on_rejected(self, request: RegistrationRequest, actor: User, reason: str) -> None:
        await self.user_repo.set_approval_status(request.user_id, ApprovalStatus.REJECTED)
        await self.notifications.emit(
            request.user_id,
            NotificationType.REGISTRATION_REJECTED,
            f"Your registration request was rejected: {reason}",
            subject_id=request.id,
            subject_type="registration_request"
        )

    async def list_by_status(self, status: Optional[RequestStatus] = RequestStatus.PENDING) -> List[RegistrationRequest]:
        return await self.request_repo.list_by_status(status)

    async def list_for_user(self, user_id: uuid.UUID) -> List[RegistrationRequest]:
        return await self.request_repo.list_for_user(user_id)


class LinkingWorkflow(ApprovalWorkflow[LinkingRequest]):
    """
    Agent -> agency association, resolved by the agency or a moderator.
    """

    label = "linking request"

    def _make_repository(self, db_session: AsyncSession) -> LinkingRequestRepository:
        return LinkingRequestRepository(db_session)

    async def validate_submission(self, submitter: User, data: Dict[str, Any]) -> None:
        if submitter.role != UserRole.AGENT:
            raise NotAuthorizedError("submit a linking request")

        agency = await self.user_repo.get_by_id(data.get("agency_id"))
        if not agency or agency.role != UserRole.AGENCY:
            raise NotFoundError("Agency", str(data.get("agency_id")))

    def build_request(self, submitter: User, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "agent_id": submitter.id,
            "agency_id": data["agency_id"],
            "status": RequestStatus.PENDING,
        }

    async def on_submitted(self, request: LinkingRequest, submitter: User) -> None:
        await self.notifications.emit(
            request.agency_id,
            NotificationType.AGENCY_LINK_REQUEST_RECEIVED,
            f"{submitter.full_name} asked to join your agency.",
            subject_id=request.id,
            subject_type="linking_request"
        )

    def can_resolve(self, request: LinkingRequest, actor: User) -> bool:
        return actor.is_moderator or actor.id == request.agency_id

    async def on_approved(self, request: LinkingRequest, actor: User, params: Any) -> None:
        await self.user_repo.link_to_agency(request.agent_id, request.agency_id)
        await self.notifications.emit(
            request.agent_id,
            NotificationType.AGENCY_LINK_APPROVED,
            "Your request to join the agency was approved.",
            subject_id=request.id,
            subject_type="linking_request"
        )

    async def on_rejected(self, request: LinkingRequest, actor: User, reason: str) -> None:
        await self.notifications.emit(
            request.agent_id,
            NotificationType.AGENCY_LINK_REJECTED,
            f"Your request to join the agency was rejected: {reason}",
            subject_id=request.id,
            subject_type="linking_request"
        )

    async def list_for_agent(self, agent_id: uuid.UUID) -> List[LinkingRequest]:
        return await self.request_repo.list_for_agent(agent_id)

    async def list_incoming(self, agency_id: uuid.UUID, status: Optional[RequestStatus] = None) -> List[LinkingRequest]:
        return await self.request_repo.list_for_agency(agency_id, status)

    async def list_agents(self, actor: User, agency_id: Optional[uuid.UUID] = None) -> List[User]:
        """
        Agents currently linked to an agency.

        An agency sees its own roster; a moderator may name any agency.
        """
        if agency_id is None or agency_id == actor.id:
            if actor.role != UserRole.AGENCY and not actor.is_moderator:
                raise NotAuthorizedError("list agency agents")
            agency_id = actor.id
        elif not actor.is_moderator:
            raise NotAuthorizedError("list agency agents")
        return await self.user_repo.get_agents_of(agency_id)
