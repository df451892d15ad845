"""
Tests for the admin moderation gateway.
"""

import pytest
from datetime import timedelta

from estatehub.models.listing import ListingStatus
from estatehub.models.quota import ListingLimit, QuotaGrant, SubscriptionPlan
from estatehub.models.requests import RequestStatus, Gender
from estatehub.models.user import UserRole
from estatehub.services.moderation import AdminModerationGateway
from estatehub.utils.exceptions import NotAuthorizedError, LedgerUnavailableError, QuotaExceededError
from tests.conftest import UserFactory, QuotaFactory, ListingFactory


class TestModeratorPredicate:
    """Only admins and sub-admins get through."""

    @pytest.mark.asyncio
    async def test_non_moderators_are_refused(
        self, moderation_gateway: AdminModerationGateway, listing_repository, agent, agency, individual
    ):
        listing = await ListingFactory.create_listing(listing_repository, agent)

        for actor in (agent, agency, individual):
            with pytest.raises(NotAuthorizedError):
                await moderation_gateway.approve_listing(listing.id, actor)
            with pytest.raises(NotAuthorizedError):
                await moderation_gateway.ledger_status(actor)
            with pytest.raises(NotAuthorizedError):
                await moderation_gateway.run_expiration_sweep(actor)

        assert (await moderation_gateway.listings.get(listing.id, agent)).status == ListingStatus.PENDING

    @pytest.mark.asyncio
    async def test_sub_admin_moderates(
        self, moderation_gateway: AdminModerationGateway, user_repository, listing_repository, agent
    ):
        sub_admin = await UserFactory.create_user(user_repository, role=UserRole.SUB_ADMIN)
        listing = await ListingFactory.create_listing(listing_repository, agent)

        approved = await moderation_gateway.approve_listing(listing.id, sub_admin)

        assert approved.status == ListingStatus.APPROVED


class TestListingModeration:

    @pytest.mark.asyncio
    async def test_reactivate_charges_owner(
        self, moderation_gateway: AdminModerationGateway, listing_repository, agent, admin, agent_account
    ):
        listing = await ListingFactory.create_listing(listing_repository, agent, status=ListingStatus.INACTIVE)
        approved = await ListingFactory.create_listing(listing_repository, agent, status=ListingStatus.APPROVED)

        await moderation_gateway.reactivate_listing(listing.id, admin, duration_days=10)
        await moderation_gateway.reactivate_listing(approved.id, admin)

        account = await moderation_gateway.ledger.require_account(agent_account.id)
        assert account.listings_used == 1

    @pytest.mark.asyncio
    async def test_reactivate_respects_owner_limit(
        self, moderation_gateway: AdminModerationGateway, listing_repository, quota_repository, agent, admin
    ):
        await QuotaFactory.create_account(quota_repository, agent, listing_limit=ListingLimit.finite(1), listings_used=1)
        listing = await ListingFactory.create_listing(listing_repository, agent, status=ListingStatus.APPROVED)

        with pytest.raises(QuotaExceededError):
            await moderation_gateway.reactivate_listing(listing.id, admin)

    @pytest.mark.asyncio
    async def test_deactivate_and_delete(
        self, moderation_gateway: AdminModerationGateway, listing_repository, notification_service,
        agent, admin, agent_account
    ):
        listing = await ListingFactory.create_listing(listing_repository, agent, status=ListingStatus.ACTIVE)

        deactivated = await moderation_gateway.deactivate_listing(listing.id, admin)
        assert deactivated.status == ListingStatus.INACTIVE

        await moderation_gateway.delete_listing(listing.id, admin)
        messages = [n.message for n in await notification_service.list_for_user(agent.id)]
        assert any("removed by a moderator" in message for message in messages)


class TestRequestModeration:

    @pytest.mark.asyncio
    async def test_registration_round_trip(self, moderation_gateway: AdminModerationGateway, individual, admin):
        request = await moderation_gateway.registrations.submit(individual, {
            "desired_role": UserRole.AGENCY,
            "gender": Gender.MALE,
            "first_name": "Ravi",
            "last_name": "Persand",
            "phone_number": "+230 5 222 3333",
            "email": "ravi@example.com",
            "company_name": "Persand Homes",
            "place_of_birth": "Mahebourg",
            "city": "Rose Hill",
            "country": "Mauritius",
        })

        pending = await moderation_gateway.list_registrations(admin)
        assert [r.id for r in pending] == [request.id]

        approved = await moderation_gateway.approve_registration(
            request.id, admin, QuotaGrant(listing_limit=ListingLimit.finite(40), plan=SubscriptionPlan.PLATINUM)
        )
        assert approved.status == RequestStatus.APPROVED
        assert await moderation_gateway.list_registrations(admin) == []

        account = await moderation_gateway.ledger.get_account(individual.id)
        assert account.listing_limit == ListingLimit.finite(40)

    @pytest.mark.asyncio
    async def test_resolve_linking(self, moderation_gateway: AdminModerationGateway, agent, agency, admin):
        request = await moderation_gateway.linking.submit(agent, {"agency_id": agency.id})

        rejected = await moderation_gateway.resolve_linking(request.id, admin, approve=False, reason="Unknown agent")

        assert rejected.status == RequestStatus.REJECTED


class TestQuotaAndLedger:

    @pytest.mark.asyncio
    async def test_adjust_with_recompute(
        self, moderation_gateway: AdminModerationGateway, listing_repository, quota_repository, agent, admin
    ):
        """Recomputing replaces drifted usage with the live count."""
        account = await QuotaFactory.create_account(quota_repository, agent, listings_used=7)
        await ListingFactory.create_listing(listing_repository, agent, status=ListingStatus.ACTIVE)
        await ListingFactory.create_listing(listing_repository, agent, status=ListingStatus.ACTIVE)

        adjusted = await moderation_gateway.adjust_quota(
            account.id, admin, listing_limit=ListingLimit.unlimited(), featured_listings=5, recompute_usage=True
        )

        assert adjusted.listings_used == 2
        assert adjusted.listing_limit.is_unlimited
        assert adjusted.featured_listings == 5

    @pytest.mark.asyncio
    async def test_restore_ledger_reopens_publishing(
        self, moderation_gateway: AdminModerationGateway, listing_repository, quota_repository,
        agent, admin
    ):
        account = await QuotaFactory.create_account(quota_repository, agent, listings_used=9)
        await ListingFactory.create_listing(listing_repository, agent, status=ListingStatus.INACTIVE)
        listing = await ListingFactory.create_listing(listing_repository, agent, status=ListingStatus.APPROVED)
        account_id, listing_id = account.id, listing.id
        moderation_gateway.gate.trip("set_usage touched 2 rows")

        status = await moderation_gateway.ledger_status(admin)
        assert status["publishing_enabled"] is False
        assert status["reason"] == "set_usage touched 2 rows"

        with pytest.raises(LedgerUnavailableError):
            await moderation_gateway.reactivate_listing(listing_id, admin)

        result = await moderation_gateway.restore_ledger(admin)

        assert result["publishing_enabled"] is True
        assert result["accounts_recomputed"] == 1
        assert (await moderation_gateway.ledger.require_account(account_id)).listings_used == 1

        await moderation_gateway.reactivate_listing(listing_id, admin)
        assert (await moderation_gateway.ledger.require_account(account_id)).listings_used == 2

    @pytest.mark.asyncio
    async def test_run_expiration_sweep(
        self, moderation_gateway: AdminModerationGateway, listing_repository, quota_repository,
        agent, admin, clock
    ):
        account = await QuotaFactory.create_account(quota_repository, agent, listings_used=1)
        listing = await ListingFactory.create_listing(
            listing_repository, agent, status=ListingStatus.ACTIVE, expires_at=clock.now() - timedelta(days=1)
        )
        account_id, listing_id = account.id, listing.id

        report = await moderation_gateway.run_expiration_sweep(admin)

        assert report.expired == 1
        assert report.completed

        assert (await moderation_gateway.listings.get(listing_id, admin)).status == ListingStatus.EXPIRED
        assert (await moderation_gateway.ledger.require_account(account_id)).listings_used == 0

    @pytest.mark.asyncio
    async def test_future_sweep_cut_off_is_clamped_to_now(
        self, moderation_gateway: AdminModerationGateway, listing_repository, agent, admin, clock
    ):
        """A manual sweep never expires listings ahead of their expiry time."""
        due = await ListingFactory.create_listing(
            listing_repository, agent, status=ListingStatus.ACTIVE, expires_at=clock.now() - timedelta(hours=1)
        )
        not_due = await ListingFactory.create_listing(
            listing_repository, agent, status=ListingStatus.ACTIVE, expires_at=clock.now() + timedelta(days=2)
        )
        due_id, not_due_id = due.id, not_due.id

        report = await moderation_gateway.run_expiration_sweep(admin, clock.now() + timedelta(days=30))

        assert report.expired == 1
        assert (await moderation_gateway.listings.get(due_id, admin)).status == ListingStatus.EXPIRED
        assert (await moderation_gateway.listings.get(not_due_id, admin)).status == ListingStatus.ACTIVE
