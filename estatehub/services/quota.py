"""
Quota ledger service.

Wraps the atomic counter updates of QuotaRepository, turns failed updates
into typed errors, and guards ledger integrity through the PublishGate.
Nothing here commits: every ledger change belongs to the caller's transaction.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import OperationalError, InternalError
from estatehub.repositories.quota import QuotaRepository
from estatehub.repositories.listing import ListingRepository
from estatehub.models.quota import QuotaAccount, QuotaGrant, ListingLimit, SubscriptionPlan
from estatehub.models.listing import counted_statuses
from estatehub.config import Settings, settings as default_settings
from estatehub.utils.clock import Clock, system_clock
from estatehub.utils.exceptions import (
    NotFoundError,
    ValidationError,
    QuotaExceededError,
    LedgerUnavailableError,
)
from datetime import datetime
from typing import Awaitable, Callable, Optional, List
import uuid
import logging

logger = logging.getLogger(__name__)


class PublishGate:
    """
    Process-wide switch that suspends publishing when the ledger cannot be trusted.

    Tripped by QuotaLedger on an impossible row count or a transaction-level
    database failure during a ledger write. Only a moderator restores it.
    """

    def __init__(self, clock: Clock = system_clock):
        self.clock = clock
        self.reason: Optional[str] = None
        self.tripped_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.reason is None

    def trip(self, reason: str) -> None:
        if self.is_open:
            self.tripped_at = self.clock.now()
        self.reason = reason
        logger.error(f"Publishing suspended: {reason}", extra={"ledger_gate": "tripped"})

    def restore(self) -> None:
        if not self.is_open:
            logger.warning(f"Publishing restored after: {self.reason}", extra={"ledger_gate": "restored"})
        self.reason = None
        self.tripped_at = None

    def ensure_open(self) -> None:
        """
        Raises:
            LedgerUnavailableError: While the gate is tripped
        """
        if not self.is_open:
            raise LedgerUnavailableError(self.reason)

    def to_dict(self) -> dict:
        return {
            "publishing_enabled": self.is_open,
            "reason": self.reason,
            "tripped_at": self.tripped_at.isoformat() if self.tripped_at else None,
        }


class QuotaLedger:
    """
    Per-actor allowances for listing slots, gold cards and featured slots.
    """

    def __init__(
        self,
        db_session: AsyncSession,
        gate: Optional[PublishGate] = None,
        settings: Optional[Settings] = None
    ):
        self.db = db_session
        self.gate = gate or PublishGate()
        self.settings = settings or default_settings
        self.quota_repo = QuotaRepository(db_session)
        self.listing_repo = ListingRepository(db_session)

    @property
    def counted_statuses(self):
        return counted_statuses(self.settings.inactive_listings_hold_quota)

    async def get_account(self, user_id: uuid.UUID) -> Optional[QuotaAccount]:
        return await self.quota_repo.get_by_user(user_id)

    async def require_account(self, account_id: uuid.UUID) -> QuotaAccount:
        """
        Raises:
            NotFoundError: If no account has this id
        """
        account = await self.quota_repo.get_by_id(account_id, fresh=True)
        if not account:
            raise NotFoundError("Quota account", str(account_id))
        return account

    async def _guarded(
        self,
        operation: str,
        account_id: uuid.UUID,
        write: Callable[[uuid.UUID], Awaitable[int]]
    ) -> bool:
        try:
            rowcount = await write(account_id)
        except (OperationalError, InternalError) as e:
            reason = f"{operation} failed on account {account_id}: {e.__class__.__name__}"
            self.gate.trip(reason)
            raise LedgerUnavailableError(reason) from e

        if rowcount > 1:
            reason = f"{operation} touched {rowcount} rows for account {account_id}"
            self.gate.trip(reason)
            raise LedgerUnavailableError(reason)

        return rowcount == 1

    async def try_consume_listing_slot(self, account_id: uuid.UUID) -> bool:
        """True if a slot was taken; False if the account is at its limit."""
        return await self._guarded("consume_listing_slot", account_id, self.quota_repo.consume_listing_slot)

    async def release_listing_slot(self, account_id: uuid.UUID) -> bool:
        """Give a slot back. False if usage was already zero."""
        released = await self._guarded("release_listing_slot", account_id, self.quota_repo.release_listing_slot)
        if not released:
            logger.warning(f"Release on account {account_id} found no usage to release")
        return released

    async def try_spend_gold_card(self, account_id: uuid.UUID) -> bool:
        return await self._guarded("spend_gold_card", account_id, self.quota_repo.spend_gold_card)

    async def try_spend_featured_slot(self, account_id: uuid.UUID) -> bool:
        return await self._guarded("spend_featured_slot", account_id, self.quota_repo.spend_featured_slot)

    async def check_listing_room(self, account: QuotaAccount) -> None:
        """
        Re-read the account and report its usage if it has no room left.

        Raises:
            QuotaExceededError: With the current usage and limit
        """
        current = await self.require_account(account.id)
        if not current.has_listing_room:
            raise QuotaExceededError(
                "listing",
                used=current.listings_used,
                limit=current.listing_limit.value
            )

    async def adjust(
        self,
        account_id: uuid.UUID,
        listing_limit: Optional[ListingLimit] = None,
        gold_cards: Optional[int] = None,
        featured_listings: Optional[int] = None,
        plan: Optional[SubscriptionPlan] = None
    ) -> QuotaAccount:
        """
        Overwrite allowances. Usage is left alone, so a limit below current
        usage blocks new publishes without touching live listings.

        Raises:
            NotFoundError: If the account does not exist
            ValidationError: If a counter is negative
        """
        await self.require_account(account_id)

        values = {}
        if listing_limit is not None:
            values["listing_limit_value"] = listing_limit.to_column()
        for field, value in (("gold_cards", gold_cards), ("featured_listings", featured_listings)):
            if value is not None:
                if value < 0:
                    raise ValidationError(
                        f"{field} cannot be negative",
                        field_errors=[{"field": field, "message": "Must be zero or more"}]
                    )
                values[field] = value
        if plan is not None:
            values["plan"] = plan

        if values:
            await self._guarded("adjust", account_id, lambda acc_id: self.quota_repo.overwrite(acc_id, values))
            logger.info(f"Quota account {account_id} adjusted", extra={"fields": sorted(values)})

        return await self.require_account(account_id)

    async def recompute_usage(self, account_id: uuid.UUID) -> QuotaAccount:
        """Set listings_used to the live count of the owner's counted listings."""
        account = await self.require_account(account_id)
        live = await self.listing_repo.count_in_statuses(account.user_id, self.counted_statuses)

        if live != account.listings_used:
            logger.warning(
                f"Quota account {account_id} usage drifted: stored {account.listings_used}, live {live}"
            )
        await self._guarded("set_usage", account_id, lambda acc_id: self.quota_repo.set_usage(acc_id, live))
        return await self.require_account(account_id)

    async def recompute_all(self) -> List[QuotaAccount]:
        accounts = []
        for account_id in await self.quota_repo.get_all_ids():
            accounts.append(await self.recompute_usage(account_id))
        return accounts

    async def open_account(self, user_id: uuid.UUID, grant: QuotaGrant) -> QuotaAccount:
        """
        Create the user's account from a grant, or re-grant an existing one.
        Usage on an existing account is kept.
        """
        existing = await self.quota_repo.get_by_user(user_id)
        if existing:
            return await self.adjust(
                existing.id,
                listing_limit=grant.listing_limit,
                gold_cards=grant.gold_cards,
                featured_listings=grant.featured_listings,
                plan=grant.plan
            )

        account = await self.quota_repo.create(
            {
                "user_id": user_id,
                "listing_limit": grant.listing_limit,
                "listings_used": 0,
                "gold_cards": grant.gold_cards,
                "featured_listings": grant.featured_listings,
                "plan": grant.plan,
            },
            commit=False
        )
        logger.info(f"Quota account opened for user {user_id} with limit {grant.listing_limit}")
        return account
