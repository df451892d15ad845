"""
Quota account repository.

Every counter change is one conditional UPDATE so that concurrent callers
are linearised by the database. Methods return the raw row count and never
commit; QuotaLedger interprets the counts inside the caller's transaction.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from estatehub.repositories.base import BaseRepository
from estatehub.models.quota import QuotaAccount
from typing import Optional, List, Dict, Any
import uuid
import logging

logger = logging.getLogger(__name__)


class QuotaRepository(BaseRepository[QuotaAccount]):
    """Data access for quota accounts."""

    def __init__(self, db: AsyncSession):
        super().__init__(QuotaAccount, db)

    async def get_by_user(self, user_id: uuid.UUID, fresh: bool = True) -> Optional[QuotaAccount]:
        """The quota account of a user, if they have one."""
        query = select(QuotaAccount).where(QuotaAccount.user_id == user_id)
        if fresh:
            query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_all_ids(self) -> List[uuid.UUID]:
        result = await self.db.execute(select(QuotaAccount.id).order_by(QuotaAccount.id))
        return list(result.scalars().all())

    async def _execute_counter_update(self, stmt, operation: str, account_id: uuid.UUID) -> int:
        result = await self.db.execute(stmt.execution_options(synchronize_session=False))
        logger.debug(f"Quota {operation} on account {account_id}", extra={"rowcount": result.rowcount})
        return result.rowcount

    async def consume_listing_slot(self, account_id: uuid.UUID) -> int:
        """Increment usage if the limit leaves room. NULL limit means unlimited."""
        limit_column = QuotaAccount.listing_limit_value
        stmt = (
            update(QuotaAccount)
            .where(
                QuotaAccount.id == account_id,
                (limit_column.is_(None)) | (QuotaAccount.listings_used < limit_column)
            )
            .values(listings_used=QuotaAccount.listings_used + 1)
        )
        return await self._execute_counter_update(stmt, "consume_listing_slot", account_id)

    async def release_listing_slot(self, account_id: uuid.UUID) -> int:
        """Decrement usage, never below zero."""
        stmt = (
            update(QuotaAccount)
            .where(QuotaAccount.id == account_id, QuotaAccount.listings_used > 0)
            .values(listings_used=QuotaAccount.listings_used - 1)
        )
        return await self._execute_counter_update(stmt, "release_listing_slot", account_id)

    async def spend_gold_card(self, account_id: uuid.UUID) -> int:
        stmt = (
            update(QuotaAccount)
            .where(QuotaAccount.id == account_id, QuotaAccount.gold_cards > 0)
            .values(gold_cards=QuotaAccount.gold_cards - 1)
        )
        return await self._execute_counter_update(stmt, "spend_gold_card", account_id)

    async def spend_featured_slot(self, account_id: uuid.UUID) -> int:
        stmt = (
            update(QuotaAccount)
            .where(QuotaAccount.id == account_id, QuotaAccount.featured_listings > 0)
            .values(featured_listings=QuotaAccount.featured_listings - 1)
        )
        return await self._execute_counter_update(stmt, "spend_featured_slot", account_id)

    async def overwrite(self, account_id: uuid.UUID, values: Dict[str, Any]) -> int:
        """Administrative overwrite of any account columns, None included."""
        # Keys are attribute names; listing_limit_value maps to the listing_limit column
        stmt = (
            update(QuotaAccount)
            .where(QuotaAccount.id == account_id)
            .values({getattr(QuotaAccount, key): value for key, value in values.items()})
        )
        return await self._execute_counter_update(stmt, "overwrite", account_id)

    async def set_usage(self, account_id: uuid.UUID, listings_used: int) -> int:
        stmt = (
            update(QuotaAccount)
            .where(QuotaAccount.id == account_id)
            .values(listings_used=listings_used)
        )
        return await self._execute_counter_update(stmt, "set_usage", account_id)
