"""
Repositories for registration and linking requests.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from estatehub.repositories.base import BaseRepository, ModelType
from estatehub.models.requests import RegistrationRequest, LinkingRequest, RequestStatus
from datetime import datetime
from typing import Optional, List, Type
import uuid
import logging

logger = logging.getLogger(__name__)


class ApprovalRequestRepository(BaseRepository[ModelType]):
    """Shared data access for any model built on ApprovalRequestMixin."""

    # Column naming the submitter; one pending request per value is allowed
    owner_field: str = "user_id"

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        super().__init__(model, db)

    async def resolve(
        self,
        request_id: uuid.UUID,
        outcome: RequestStatus,
        resolved_by_id: uuid.UUID,
        resolved_at: datetime,
        rejection_reason: Optional[str] = None
    ) -> bool:
        """
        Move a pending request to a terminal status.

        Returns:
            False if the request was no longer pending
        """
        return await self.conditional_update(
            request_id,
            [RequestStatus.PENDING],
            {
                "status": outcome,
                "resolved_by_id": resolved_by_id,
                "resolved_at": resolved_at,
                "rejection_reason": rejection_reason,
            }
        )

    async def get_pending_for(self, owner_id: uuid.UUID) -> Optional[ModelType]:
        """The submitter's pending request, if any."""
        owner_column = getattr(self.model, self.owner_field)
        query = select(self.model).where(
            owner_column == owner_id,
            self.model.status == RequestStatus.PENDING
        )
        result = await self.db.execute(query)
        return result.scalars().first()

    async def list_where(
        self,
        *conditions,
        status: Optional[RequestStatus] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[ModelType]:
        query = select(self.model).where(*conditions)
        if status is not None:
            query = query.where(self.model.status == status)
        query = query.order_by(desc(self.model.created_at)).offset(skip).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())


class RegistrationRequestRepository(ApprovalRequestRepository[RegistrationRequest]):
    owner_field = "user_id"

    def __init__(self, db: AsyncSession):
        super().__init__(RegistrationRequest, db)

    async def list_for_user(self, user_id: uuid.UUID) -> List[RegistrationRequest]:
        return await self.list_where(RegistrationRequest.user_id == user_id)

    async def list_by_status(self, status: Optional[RequestStatus], skip: int = 0, limit: int = 50) -> List[RegistrationRequest]:
        return await self.list_where(status=status, skip=skip, limit=limit)


class LinkingRequestRepository(ApprovalRequestRepository[LinkingRequest]):
    owner_field = "agent_id"

    def __init__(self, db: AsyncSession):
        super().__init__(LinkingRequest, db)

    async def list_for_agent(self, agent_id: uuid.UUID) -> List[LinkingRequest]:
        return await self.list_where(LinkingRequest.agent_id == agent_id)

    async def list_for_agency(self, agency_id: uuid.UUID, status: Optional[RequestStatus] = None) -> List[LinkingRequest]:
        return await self.list_where(LinkingRequest.agency_id == agency_id, status=status)
