"""
Listing repository: draft persistence, status transitions and expiry scans.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_, or_, desc
from estatehub.repositories.base import BaseRepository
from estatehub.models.listing import Listing, ListingStatus
from datetime import datetime
from typing import Optional, List, Dict, Any, Iterable, Tuple
import uuid
import logging

logger = logging.getLogger(__name__)


class ListingRepository(BaseRepository[Listing]):
    """Data access for listings. Status changes never commit on their own."""

    def __init__(self, db: AsyncSession):
        super().__init__(Listing, db)

    async def create_listing(self, listing_data: Dict[str, Any]) -> Listing:
        """
        Insert a listing into the caller's open transaction.

        Args:
            listing_data: Column values; must include owner_id

        Returns:
            The flushed listing with generated id and timestamps
        """
        listing = await self.create(listing_data, commit=False)
        logger.debug(f"Listing {listing.id} staged for owner {listing.owner_id}")
        return listing

    async def transition(
        self,
        listing_id: uuid.UUID,
        from_statuses: Iterable[ListingStatus],
        values: Dict[str, Any],
        *conditions
    ) -> bool:
        """
        Move a listing out of one of ``from_statuses``.
        Extra ``conditions`` narrow the match further, e.g. on expires_at.

        Returns:
            True if the listing was in an expected status and was updated
        """
        return await self.conditional_update(listing_id, from_statuses, values, extra_conditions=conditions)

    async def get_status(self, listing_id: uuid.UUID) -> Optional[ListingStatus]:
        """Current status straight from the database, bypassing the identity map."""
        result = await self.db.execute(select(Listing.status).where(Listing.id == listing_id))
        return result.scalar_one_or_none()

    async def count_in_statuses(self, owner_id: uuid.UUID, statuses: Iterable[ListingStatus]) -> int:
        """Number of an owner's listings currently in any of ``statuses``."""
        query = select(func.count(Listing.id)).where(
            Listing.owner_id == owner_id,
            Listing.status.in_(list(statuses))
        )
        result = await self.db.execute(query)
        return result.scalar() or 0

    async def count_flagged(self, owner_id: uuid.UUID, flag: str, exclude_id: Optional[uuid.UUID] = None) -> int:
        """Number of an owner's listings with a boolean flag such as ``is_gold_card`` set."""
        conditions = [Listing.owner_id == owner_id, getattr(Listing, flag).is_(True)]
        if exclude_id is not None:
            conditions.append(Listing.id != exclude_id)
        result = await self.db.execute(select(func.count(Listing.id)).where(*conditions))
        return result.scalar() or 0

    async def update_draft(
        self,
        listing_id: uuid.UUID,
        from_statuses: Iterable[ListingStatus],
        values: Dict[str, Any]
    ) -> bool:
        """Overwrite descriptive fields, only while the listing is in one of ``from_statuses``."""
        return await self.conditional_update(listing_id, from_statuses, values)

    async def get_due_for_expiry(
        self,
        now: datetime,
        after: Optional[Tuple[datetime, uuid.UUID]] = None,
        limit: int = 200
    ) -> List[Tuple[uuid.UUID, datetime]]:
        """
        One page of active listings whose expiry time has passed.

        Pages are keyed on ``(expires_at, id)`` so rows that leave the result
        set between pages never shift the window.

        Args:
            now: Cut-off time; listings expiring at or before it are due
            after: Key of the last row of the previous page
            limit: Page size

        Returns:
            List of (listing id, expires_at) pairs in key order
        """
        conditions = [
            Listing.status == ListingStatus.ACTIVE,
            Listing.expires_at.is_not(None),
            Listing.expires_at <= now,
        ]
        if after is not None:
            last_expires_at, last_id = after
            conditions.append(
                or_(
                    Listing.expires_at > last_expires_at,
                    and_(Listing.expires_at == last_expires_at, Listing.id > last_id)
                )
            )

        query = (
            select(Listing.id, Listing.expires_at)
            .where(and_(*conditions))
            .order_by(Listing.expires_at, Listing.id)
            .limit(limit)
        )
        result = await self.db.execute(query)
        rows = [(row[0], row[1]) for row in result.all()]
        logger.debug(f"Found {len(rows)} listings due for expiry", extra={"after": str(after)})
        return rows

    async def get_for_owner(
        self,
        owner_id: uuid.UUID,
        status: Optional[ListingStatus] = None,
        skip: int = 0,
        limit: int = 50
    ) -> Tuple[List[Listing], int]:
        """
        An owner's listings, newest first.

        Returns:
            Tuple of (listings, total count)
        """
        conditions = [Listing.owner_id == owner_id]
        if status is not None:
            conditions.append(Listing.status == status)

        count_result = await self.db.execute(select(func.count(Listing.id)).where(*conditions))
        total = count_result.scalar() or 0

        query = (
            select(Listing)
            .where(*conditions)
            .order_by(desc(Listing.created_at), Listing.id)
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all()), total
