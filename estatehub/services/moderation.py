"""
Admin moderation gateway.

The single entry point for moderator actions. Every operation checks the
moderator predicate first and then delegates to the service that owns the
state being changed.
"""

from datetime import datetime
from typing import Callable, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from estatehub.config import Settings, settings as default_settings
from estatehub.database import unit_of_work
from estatehub.models.listing import Listing
from estatehub.models.quota import QuotaAccount, QuotaGrant, ListingLimit, SubscriptionPlan
from estatehub.models.requests import RegistrationRequest, LinkingRequest, RequestStatus
from estatehub.models.user import User
from estatehub.services.approval import RegistrationWorkflow, LinkingWorkflow
from estatehub.services.listing import ListingService
from estatehub.services.quota import QuotaLedger, PublishGate
from estatehub.services.sweeper import ExpirationSweeper, SweepReport
from estatehub.utils.clock import Clock, system_clock, ensure_utc
from estatehub.utils.exceptions import NotAuthorizedError
import uuid
import logging

logger = logging.getLogger(__name__)


class AdminModerationGateway:
    """Moderator-only operations on listings, requests, quotas and the ledger."""

    def __init__(
        self,
        db_session: AsyncSession,
        clock: Clock = system_clock,
        gate: Optional[PublishGate] = None,
        settings: Optional[Settings] = None,
        session_factory: Optional[Callable[[], AsyncSession]] = None
    ):
        self.db = db_session
        self.clock = clock
        self.settings = settings or default_settings
        self.gate = gate or PublishGate(clock)
        self.session_factory = session_factory
        self.listings = ListingService(db_session, clock=clock, gate=self.gate, settings=self.settings)
        self.ledger = self.listings.ledger
        self.registrations = RegistrationWorkflow(db_session, clock, ledger=self.ledger)
        self.linking = LinkingWorkflow(db_session, clock)

    def _authorize(self, actor: User, action: str) -> None:
        if not actor.is_moderator:
            logger.warning(f"User {actor.email} denied moderator action: {action}")
            raise NotAuthorizedError(action)

    # Listings

    async def approve_listing(self, listing_id: uuid.UUID, actor: User) -> Listing:
        self._authorize(actor, "approve listings")
        return await self.listings.approve(listing_id, actor)

    async def reject_listing(self, listing_id: uuid.UUID, actor: User, reason: Optional[str]) -> Listing:
        self._authorize(actor, "reject listings")
        return await self.listings.reject(listing_id, actor, reason)

    async def reset_listing(self, listing_id: uuid.UUID, actor: User) -> Listing:
        self._authorize(actor, "reset listings")
        return await self.listings.reset(listing_id, actor)

    async def reactivate_listing(
        self,
        listing_id: uuid.UUID,
        actor: User,
        duration_days: Optional[int] = None
    ) -> Listing:
        """Publish on behalf of the owner; the owner's quota is charged as usual."""
        self._authorize(actor, "reactivate listings")
        return await self.listings.publish(listing_id, actor, duration_days)

    async def deactivate_listing(self, listing_id: uuid.UUID, actor: User) -> Listing:
        self._authorize(actor, "deactivate listings")
        return await self.listings.deactivate(listing_id, actor)

    async def delete_listing(self, listing_id: uuid.UUID, actor: User) -> None:
        self._authorize(actor, "delete listings")
        await self.listings.delete(listing_id, actor)

    # Approval requests

    async def list_registrations(
        self,
        actor: User,
        status: Optional[RequestStatus] = RequestStatus.PENDING
    ) -> List[RegistrationRequest]:
        self._authorize(actor, "view registration requests")
        return await self.registrations.list_by_status(status)

    async def approve_registration(
        self,
        request_id: uuid.UUID,
        actor: User,
        grant: QuotaGrant
    ) -> RegistrationRequest:
        self._authorize(actor, "approve registration requests")
        return await self.registrations.approve(request_id, actor, grant)

    async def reject_registration(
        self,
        request_id: uuid.UUID,
        actor: User,
        reason: Optional[str]
    ) -> RegistrationRequest:
        self._authorize(actor, "reject registration requests")
        return await self.registrations.reject(request_id, actor, reason)

    async def resolve_linking(
        self,
        request_id: uuid.UUID,
        actor: User,
        approve: bool,
        reason: Optional[str] = None
    ) -> LinkingRequest:
        self._authorize(actor, "resolve linking requests")
        if approve:
            return await self.linking.approve(request_id, actor)
        return await self.linking.reject(request_id, actor, reason)

    # Quotas and ledger

    async def adjust_quota(
        self,
        account_id: uuid.UUID,
        actor: User,
        listing_limit: Optional[ListingLimit] = None,
        gold_cards: Optional[int] = None,
        featured_listings: Optional[int] = None,
        plan: Optional[SubscriptionPlan] = None,
        recompute_usage: bool = False
    ) -> QuotaAccount:
        """
        Overwrite an account's allowances, optionally recounting its usage
        from the owner's live listings in the same transaction.
        """
        self._authorize(actor, "adjust quotas")

        async with unit_of_work(self.db, f"Adjust quota account {account_id}"):
            account = await self.ledger.adjust(
                account_id,
                listing_limit=listing_limit,
                gold_cards=gold_cards,
                featured_listings=featured_listings,
                plan=plan
            )
            if recompute_usage:
                account = await self.ledger.recompute_usage(account_id)

        logger.info(
            f"Quota account {account_id} adjusted by {actor.email}",
            extra={"listings_used": account.listings_used, "recomputed": recompute_usage}
        )
        return account

    async def ledger_status(self, actor: User) -> dict:
        self._authorize(actor, "view ledger status")
        return self.gate.to_dict()

    async def restore_ledger(self, actor: User) -> dict:
        """
        Recount every account's usage and reopen publishing.

        The gate stays tripped if the recount itself fails.
        """
        self._authorize(actor, "restore the quota ledger")

        async with unit_of_work(self.db, "Restore quota ledger"):
            accounts = await self.ledger.recompute_all()

        self.gate.restore()
        logger.warning(f"Quota ledger restored by {actor.email}: {len(accounts)} accounts recomputed")
        return {**self.gate.to_dict(), "accounts_recomputed": len(accounts)}

    async def run_expiration_sweep(self, actor: User, now: Optional[datetime] = None) -> SweepReport:
        """
        Run one sweep now. A cut-off later than the clock is pulled back to
        the clock, so a manual run never expires a listing before it is due.
        """
        self._authorize(actor, "run the expiration sweep")
        if now is not None:
            current = self.clock.now()
            now = ensure_utc(now)
            if now > current:
                logger.warning(
                    f"Sweep cut-off {now.isoformat()} is in the future; using {current.isoformat()}",
                    extra={"actor": actor.email}
                )
                now = current

        # End the read transaction so the sweep sessions can take the write lock
        await self.db.commit()
        sweeper = ExpirationSweeper(
            self.session_factory or self._session_from_bind,
            clock=self.clock,
            gate=self.gate,
            settings=self.settings
        )
        report = await sweeper.run(now)
        logger.info(f"Expiration sweep run by {actor.email}", extra={"sweep": report.to_dict()})
        return report

    def _session_from_bind(self) -> AsyncSession:
        return AsyncSession(self.db.bind, expire_on_commit=False)
