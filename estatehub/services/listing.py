"""
Listing service: the listing lifecycle state machine.

Every status change is a conditional update keyed on the expected current
status, committed together with its quota effect and owner notification.
"""

from typing import Optional, List, Tuple
from datetime import datetime, timedelta
from sqlalchemy.ext.asyncio import AsyncSession
from estatehub.database import unit_of_work
from estatehub.repositories.listing import ListingRepository
from estatehub.repositories.user import UserRepository
from estatehub.models.listing import Listing, ListingStatus, LISTING_TRANSITIONS, counted_statuses
from estatehub.models.notification import NotificationType
from estatehub.models.quota import QuotaAccount
from estatehub.models.user import User
from estatehub.schemas.listing import ListingCreate, ListingUpdate
from estatehub.services.quota import QuotaLedger, PublishGate
from estatehub.services.notifications import NotificationService
from estatehub.config import Settings, settings as default_settings
from estatehub.utils.clock import Clock, system_clock, ensure_utc
from estatehub.utils.exceptions import (
    NotFoundError,
    ValidationError,
    ConflictError,
    NotAuthorizedError,
    InvalidTransitionError,
    QuotaExceededError,
    MissingReasonError,
)
import uuid
import logging

logger = logging.getLogger(__name__)


class ListingService:
    """
    Owns every listing transition and its quota side effects.

    Collaborators are injected: the clock drives expiry times and the
    publish gate suspends publishing while the quota ledger is untrusted.
    """

    def __init__(
        self,
        db_session: AsyncSession,
        clock: Clock = system_clock,
        gate: Optional[PublishGate] = None,
        settings: Optional[Settings] = None
    ):
        self.db = db_session
        self.clock = clock
        self.settings = settings or default_settings
        self.listing_repo = ListingRepository(db_session)
        self.user_repo = UserRepository(db_session)
        self.ledger = QuotaLedger(db_session, gate=gate, settings=self.settings)
        self.notifications = NotificationService(db_session)

    @property
    def gate(self) -> PublishGate:
        return self.ledger.gate

    @property
    def counted(self):
        return counted_statuses(self.settings.inactive_listings_hold_quota)

    async def create(self, owner: User, draft: ListingCreate) -> Listing:
        """
        Create a listing in pending status. No listing slot is consumed.

        Gold-card and featured drafts spend one grant from the owner's quota
        account in the same transaction.

        Args:
            owner: Actor creating the listing
            draft: Listing content and flags

        Returns:
            The created listing

        Raises:
            NotAuthorizedError: If the owner's account is inactive
            QuotaExceededError: If a gold card or featured slot is requested without one left
        """
        if not owner.is_active:
            raise NotAuthorizedError("create listings with an inactive account")

        data = draft.model_dump()

        async with unit_of_work(self.db, f"Create listing for {owner.id}"):
            if data.get("is_gold_card"):
                account = await self._require_account(owner.id, "gold_card")
                if not await self.ledger.try_spend_gold_card(account.id):
                    raise await self._grant_exhausted(account.id, "gold_card", "gold_cards", "is_gold_card")

            if data.get("is_featured"):
                account = await self._require_account(owner.id, "featured_listing")
                if not await self.ledger.try_spend_featured_slot(account.id):
                    raise await self._grant_exhausted(
                        account.id, "featured_listing", "featured_listings", "is_featured"
                    )

            now = self.clock.now()
            listing = await self.listing_repo.create_listing({
                **data,
                "owner_id": owner.id,
                "status": ListingStatus.PENDING,
                "status_changed_at": now,
            })

            await self.notifications.emit(
                owner.id,
                NotificationType.LISTING_PENDING,
                f"Your listing '{listing.title}' was submitted and is awaiting review.",
                subject_id=listing.id,
                subject_type="listing"
            )

        logger.info(f"Listing created by {owner.email}: {listing.title} (ID: {listing.id})")
        return listing

    async def update(self, listing_id: uuid.UUID, actor: User, changes: ListingUpdate) -> Listing:
        """
        Edit the descriptive fields of a listing that has not been approved.

        Editing a rejected listing resubmits it: it returns to pending and
        the rejection reason is cleared.

        Raises:
            ValidationError: If no field is changed
            NotAuthorizedError: If the actor neither owns the listing nor moderates
            InvalidTransitionError: If the listing is past review
        """
        values = changes.model_dump(exclude_unset=True, exclude_none=True)
        if not values:
            raise ValidationError("No listing fields to update")

        async with unit_of_work(self.db, f"Update listing {listing_id}"):
            listing = await self._get_listing(listing_id)
            self._require_owner_or_moderator(listing, actor, "edit this listing")

            source = listing.status
            if source not in LISTING_TRANSITIONS["update"]:
                raise InvalidTransitionError("listing", source.value, "update")

            resubmitted = source == ListingStatus.REJECTED
            if resubmitted:
                values.update({
                    "status": ListingStatus.PENDING,
                    "status_changed_at": self.clock.now(),
                    "rejection_reason": None,
                })

            # Matches only the status read above, so an approval in between wins
            if not await self.listing_repo.update_draft(listing.id, [source], values):
                await self._raise_invalid(listing.id, "update")

            if resubmitted:
                await self.notifications.emit(
                    listing.owner_id,
                    NotificationType.LISTING_PENDING,
                    f"Your listing '{values.get('title', listing.title)}' was resubmitted for review.",
                    subject_id=listing.id,
                    subject_type="listing"
                )
            listing = await self._refresh(listing_id)

        logger.info(f"Listing {listing_id} edited by {actor.email}", extra={"fields": sorted(changes.model_fields_set)})
        return listing

    async def approve(self, listing_id: uuid.UUID, actor: User) -> Listing:
        """
        Approve a pending listing.

        Raises:
            NotAuthorizedError: If the actor is not a moderator
            NotFoundError: If the listing does not exist
            InvalidTransitionError: If the listing is not pending
        """
        self._require_moderator(actor, "approve listings")

        async with unit_of_work(self.db, f"Approve listing {listing_id}"):
            listing = await self._get_listing(listing_id)
            await self._transition(listing, "approve", {
                "status": ListingStatus.APPROVED,
                "rejection_reason": None,
            })
            await self.notifications.emit(
                listing.owner_id,
                NotificationType.LISTING_APPROVED,
                f"Your listing '{listing.title}' was approved and can now be published.",
                subject_id=listing.id,
                subject_type="listing"
            )
            listing = await self._refresh(listing_id)

        logger.info(f"Listing {listing_id} approved by {actor.email}")
        return listing

    async def reject(self, listing_id: uuid.UUID, actor: User, reason: Optional[str]) -> Listing:
        """
        Reject a pending or approved listing with a reason shown to the owner.

        Raises:
            NotAuthorizedError: If the actor is not a moderator
            MissingReasonError: If the reason is empty after trimming
            InvalidTransitionError: If the listing is not pending or approved
        """
        self._require_moderator(actor, "reject listings")
        reason = (reason or "").strip()
        if not reason:
            raise MissingReasonError()

        async with unit_of_work(self.db, f"Reject listing {listing_id}"):
            listing = await self._get_listing(listing_id)
            await self._transition(listing, "reject", {
                "status": ListingStatus.REJECTED,
                "rejection_reason": reason,
            })
            await self.notifications.emit(
                listing.owner_id,
                NotificationType.LISTING_REJECTED,
                f"Your listing '{listing.title}' was rejected: {reason}",
                subject_id=listing.id,
                subject_type="listing"
            )
            listing = await self._refresh(listing_id)

        logger.info(f"Listing {listing_id} rejected by {actor.email}", extra={"reason": reason})
        return listing

    async def publish(
        self,
        listing_id: uuid.UUID,
        actor: User,
        duration_days: Optional[int] = None
    ) -> Listing:
        """
        Make an approved or inactive listing active for ``duration_days``.

        A listing coming from a status that holds no slot consumes one from
        the owner's allowance. The status change is undone if that fails.

        Args:
            listing_id: Listing to publish
            actor: Owner of the listing or a moderator
            duration_days: Days until expiry; defaults to the configured duration

        Returns:
            The active listing

        Raises:
            LedgerUnavailableError: While publishing is suspended
            NotAuthorizedError: If the actor neither owns the listing nor moderates
            ValidationError: If the duration is out of range
            InvalidTransitionError: If the listing is not approved or inactive
            QuotaExceededError: If the owner has no listing slot left
        """
        self.gate.ensure_open()
        duration = self._resolve_duration(duration_days)

        async with unit_of_work(self.db, f"Publish listing {listing_id}"):
            listing = await self._get_listing(listing_id)
            self._require_owner_or_moderator(listing, actor, "publish this listing")

            source = listing.status
            if source not in LISTING_TRANSITIONS["publish"]:
                raise InvalidTransitionError("listing", source.value, "publish")

            now = self.clock.now()
            # Keyed on the observed source so the slot decision below stays valid
            applied = await self.listing_repo.transition(listing.id, [source], {
                "status": ListingStatus.ACTIVE,
                "expires_at": now + timedelta(days=duration),
                "published_at": now,
                "status_changed_at": now,
            })
            if not applied:
                await self._raise_invalid(listing.id, "publish")

            if source not in self.counted:
                await self._consume_slot(listing.owner_id)

            await self.notifications.emit(
                listing.owner_id,
                NotificationType.LISTING_PUBLISHED,
                f"Your listing '{listing.title}' is live for {duration} days.",
                subject_id=listing.id,
                subject_type="listing"
            )
            listing = await self._refresh(listing_id)

        logger.info(
            f"Listing {listing_id} published by {actor.email}",
            extra={"source_status": source.value, "expires_at": listing.expires_at.isoformat()}
        )
        return listing

    async def deactivate(self, listing_id: uuid.UUID, actor: User) -> Listing:
        """
        Take an active listing offline.

        The slot stays held unless inactive listings are configured not to
        hold quota.

        Raises:
            NotAuthorizedError: If the actor neither owns the listing nor moderates
            InvalidTransitionError: If the listing is not active
        """
        async with unit_of_work(self.db, f"Deactivate listing {listing_id}"):
            listing = await self._get_listing(listing_id)
            self._require_owner_or_moderator(listing, actor, "deactivate this listing")

            await self._transition(listing, "deactivate", {"status": ListingStatus.INACTIVE})

            if ListingStatus.INACTIVE not in self.counted:
                await self._release_slot(listing.owner_id)

            await self.notifications.emit(
                listing.owner_id,
                NotificationType.LISTING_STATUS_UPDATED,
                f"Your listing '{listing.title}' is now inactive.",
                subject_id=listing.id,
                subject_type="listing"
            )
            listing = await self._refresh(listing_id)

        logger.info(f"Listing {listing_id} deactivated by {actor.email}")
        return listing

    async def expire(self, listing_id: uuid.UUID, now: Optional[datetime] = None) -> Listing:
        """
        Retire an active listing whose expiry time has passed and release its slot.

        Expiring an already expired listing is a no-op, so overlapping sweeps
        never release twice.

        Raises:
            NotFoundError: If the listing does not exist
            InvalidTransitionError: If the listing is in any other status or not yet due
        """
        await self.try_expire(listing_id, now)
        return await self._get_listing(listing_id)

    async def try_expire(self, listing_id: uuid.UUID, now: Optional[datetime] = None) -> bool:
        """
        Same as expire(), but reports whether this call did the transition.

        Returns:
            True if the listing was expired now, False if it already was
        """
        now = ensure_utc(now) if now else self.clock.now()

        async with unit_of_work(self.db, f"Expire listing {listing_id}"):
            listing = await self._get_listing(listing_id)
            if listing.status == ListingStatus.EXPIRED:
                logger.debug(f"Listing {listing_id} already expired")
                return False

            applied = await self.listing_repo.transition(
                listing.id,
                LISTING_TRANSITIONS["expire"],
                {"status": ListingStatus.EXPIRED, "status_changed_at": now},
                Listing.expires_at <= now
            )
            if not applied:
                current = await self.listing_repo.get_status(listing.id)
                if current == ListingStatus.EXPIRED:
                    return False
                raise InvalidTransitionError("listing", current.value if current else None, "expire")

            await self._release_slot(listing.owner_id)
            await self.notifications.emit(
                listing.owner_id,
                NotificationType.LISTING_EXPIRED,
                f"Your listing '{listing.title}' has expired.",
                subject_id=listing.id,
                subject_type="listing"
            )

        logger.info(f"Listing {listing_id} expired", extra={"expired_at": now.isoformat()})
        return True

    async def delete(self, listing_id: uuid.UUID, actor: User) -> None:
        """
        Delete a listing from any status.

        A listing in a counted status gives its slot back. Gold cards and
        featured slots are never restored.

        Raises:
            NotAuthorizedError: If the actor neither owns the listing nor moderates
            NotFoundError: If the listing does not exist
        """
        async with unit_of_work(self.db, f"Delete listing {listing_id}"):
            listing = await self.listing_repo.get_for_update(listing_id)
            if not listing:
                raise NotFoundError("Listing", str(listing_id))
            self._require_owner_or_moderator(listing, actor, "delete this listing")

            status = listing.status
            await self.listing_repo.delete(listing.id, commit=False)

            if status in self.counted:
                await self._release_slot(listing.owner_id)

            if actor.id != listing.owner_id:
                await self.notifications.emit(
                    listing.owner_id,
                    NotificationType.LISTING_STATUS_UPDATED,
                    f"Your listing '{listing.title}' was removed by a moderator.",
                    subject_id=listing.id,
                    subject_type="listing"
                )

        logger.info(f"Listing {listing_id} deleted by {actor.email}", extra={"status": status.value})

    async def feature(self, listing_id: uuid.UUID, actor: User) -> Listing:
        """
        Mark a listing as featured, spending one of the owner's featured slots.

        Raises:
            NotAuthorizedError: If the actor neither owns the listing nor moderates
            ConflictError: If the listing is already featured
            InvalidTransitionError: If the listing is rejected or expired
            QuotaExceededError: If the owner has no featured slot left
        """
        featurable = [
            ListingStatus.PENDING,
            ListingStatus.APPROVED,
            ListingStatus.ACTIVE,
            ListingStatus.INACTIVE,
        ]

        async with unit_of_work(self.db, f"Feature listing {listing_id}"):
            listing = await self._get_listing(listing_id)
            self._require_owner_or_moderator(listing, actor, "feature this listing")

            if listing.is_featured:
                raise ConflictError("Listing is already featured", error_code="ALREADY_FEATURED")

            applied = await self.listing_repo.transition(
                listing.id,
                featurable,
                {"is_featured": True},
                Listing.is_featured.is_(False)
            )
            if not applied:
                current = await self._refresh(listing_id)
                if current.is_featured:
                    raise ConflictError("Listing is already featured", error_code="ALREADY_FEATURED")
                raise InvalidTransitionError("listing", current.status.value, "feature")

            account = await self._require_account(listing.owner_id, "featured_listing")
            if not await self.ledger.try_spend_featured_slot(account.id):
                raise await self._grant_exhausted(
                    account.id, "featured_listing", "featured_listings", "is_featured", exclude_id=listing.id
                )

            listing = await self._refresh(listing_id)

        logger.info(f"Listing {listing_id} featured by {actor.email}")
        return listing

    async def reset(self, listing_id: uuid.UUID, actor: User) -> Listing:
        """
        Send a rejected or expired listing back to review.
        The rejection reason is cleared; any expiry time is kept.

        Raises:
            NotAuthorizedError: If the actor is not a moderator
            InvalidTransitionError: If the listing is not rejected or expired
        """
        self._require_moderator(actor, "reset listings")

        async with unit_of_work(self.db, f"Reset listing {listing_id}"):
            listing = await self._get_listing(listing_id)
            await self._transition(listing, "reset", {
                "status": ListingStatus.PENDING,
                "rejection_reason": None,
            })
            await self.notifications.emit(
                listing.owner_id,
                NotificationType.LISTING_STATUS_UPDATED,
                f"Your listing '{listing.title}' was returned to review.",
                subject_id=listing.id,
                subject_type="listing"
            )
            listing = await self._refresh(listing_id)

        logger.info(f"Listing {listing_id} reset to pending by {actor.email}")
        return listing

    async def get(self, listing_id: uuid.UUID, actor: Optional[User] = None) -> Listing:
        """
        Get a listing. Listings that are not active are only visible to
        their owner and to moderators.

        Raises:
            NotFoundError: If the listing does not exist
            NotAuthorizedError: If the listing is not visible to the actor
        """
        listing = await self._get_listing(listing_id)
        if listing.status != ListingStatus.ACTIVE:
            if actor is None or not actor.can_manage_listing(listing.owner_id):
                raise NotAuthorizedError("view this listing")
        return listing

    async def list_for_owner(
        self,
        owner_id: uuid.UUID,
        status: Optional[ListingStatus] = None,
        skip: int = 0,
        limit: int = 50
    ) -> Tuple[List[Listing], int]:
        """An owner's listings, newest first, with the total count."""
        return await self.listing_repo.get_for_owner(owner_id, status, skip, limit)

    # Helpers

    def _resolve_duration(self, duration_days: Optional[int]) -> int:
        if duration_days is None:
            return self.settings.default_listing_duration_days
        if duration_days < 1 or duration_days > self.settings.max_listing_duration_days:
            raise ValidationError(
                "Invalid listing duration",
                field_errors=[{
                    "field": "duration_days",
                    "message": f"Must be between 1 and {self.settings.max_listing_duration_days}"
                }]
            )
        return duration_days

    def _require_moderator(self, actor: User, action: str) -> None:
        if not actor.is_moderator:
            raise NotAuthorizedError(action)

    def _require_owner_or_moderator(self, listing: Listing, actor: User, action: str) -> None:
        if not actor.can_manage_listing(listing.owner_id):
            raise NotAuthorizedError(action)

    async def _get_listing(self, listing_id: uuid.UUID) -> Listing:
        listing = await self.listing_repo.get_by_id(listing_id, fresh=True)
        if not listing:
            raise NotFoundError("Listing", str(listing_id))
        return listing

    async def _refresh(self, listing_id: uuid.UUID) -> Listing:
        return await self._get_listing(listing_id)

    async def _transition(self, listing: Listing, operation: str, values: dict) -> None:
        values.setdefault("status_changed_at", self.clock.now())
        applied = await self.listing_repo.transition(listing.id, LISTING_TRANSITIONS[operation], values)
        if not applied:
            await self._raise_invalid(listing.id, operation)

    async def _raise_invalid(self, listing_id: uuid.UUID, operation: str) -> None:
        current = await self.listing_repo.get_status(listing_id)
        if current is None:
            raise NotFoundError("Listing", str(listing_id))
        raise InvalidTransitionError("listing", current.value, operation)

    async def _require_account(self, owner_id: uuid.UUID, resource: str) -> QuotaAccount:
        account = await self.ledger.get_account(owner_id)
        if not account:
            raise QuotaExceededError(resource, used=0, limit=0, remaining=0)
        return account

    async def _grant_exhausted(
        self,
        account_id: uuid.UUID,
        resource: str,
        balance_field: str,
        flag: str,
        exclude_id: Optional[uuid.UUID] = None
    ) -> QuotaExceededError:
        """
        Build the refusal for a spent-out gold card or featured grant.
        Spent grants are counted from the owner's flagged listings; deleted
        listings no longer show up there.
        """
        account = await self.ledger.require_account(account_id)
        remaining = getattr(account, balance_field)
        spent = await self.listing_repo.count_flagged(account.user_id, flag, exclude_id)
        return QuotaExceededError(resource, used=spent, limit=spent + remaining, remaining=remaining)

    async def _consume_slot(self, owner_id: uuid.UUID) -> None:
        account = await self.ledger.get_account(owner_id)
        if account:
            if not await self.ledger.try_consume_listing_slot(account.id):
                await self.ledger.check_listing_room(account)
                # Room appeared between the failed update and the re-read
                raise QuotaExceededError(
                    "listing",
                    used=account.listings_used,
                    limit=account.listing_limit.value
                )
            return

        # Row lock serializes an owner's concurrent publishes until commit
        owner = await self.user_repo.get_for_update(owner_id)
        if owner is None:
            raise NotFoundError("User", str(owner_id))
        if owner.is_moderator:
            return
        if owner.is_individual:
            # The listing being published is already counted at this point
            live = await self.listing_repo.count_in_statuses(owner_id, self.counted)
            allowance = self.settings.individual_free_listings
            if live > allowance:
                raise QuotaExceededError("listing", used=live - 1, limit=allowance)
            return

        raise QuotaExceededError("listing", used=0, limit=0)

    async def _release_slot(self, owner_id: uuid.UUID) -> None:
        account = await self.ledger.get_account(owner_id)
        if account:
            await self.ledger.release_listing_slot(account.id)
