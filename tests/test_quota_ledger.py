"""
Tests for the quota ledger and the publish gate.
"""

import pytest
import uuid
from sqlalchemy.exc import OperationalError

from estatehub.models.listing import ListingStatus
from estatehub.models.quota import ListingLimit, QuotaGrant, SubscriptionPlan
from estatehub.services.quota import QuotaLedger, PublishGate
from estatehub.utils.exceptions import (
    NotFoundError,
    ValidationError,
    QuotaExceededError,
    LedgerUnavailableError,
)
from tests.conftest import QuotaFactory, ListingFactory


class TestQuotaCounters:
    """Atomic counter updates."""

    @pytest.mark.asyncio
    async def test_consume_until_limit(self, ledger: QuotaLedger, quota_repository, agent):
        account = await QuotaFactory.create_account(quota_repository, agent, listing_limit=ListingLimit.finite(2))

        assert await ledger.try_consume_listing_slot(account.id) is True
        assert await ledger.try_consume_listing_slot(account.id) is True
        assert await ledger.try_consume_listing_slot(account.id) is False

        stored = await ledger.require_account(account.id)
        assert stored.listings_used == 2

    @pytest.mark.asyncio
    async def test_unlimited_account_always_consumes(self, ledger: QuotaLedger, quota_repository, agent):
        account = await QuotaFactory.create_account(
            quota_repository, agent, listing_limit=ListingLimit.unlimited(), listings_used=1000
        )

        assert await ledger.try_consume_listing_slot(account.id) is True
        assert (await ledger.require_account(account.id)).listings_used == 1001

    @pytest.mark.asyncio
    async def test_release_never_goes_below_zero(self, ledger: QuotaLedger, quota_repository, agent):
        account = await QuotaFactory.create_account(quota_repository, agent, listings_used=1)

        assert await ledger.release_listing_slot(account.id) is True
        assert await ledger.release_listing_slot(account.id) is False
        assert (await ledger.require_account(account.id)).listings_used == 0

    @pytest.mark.asyncio
    async def test_gold_cards_and_featured_slots(self, ledger: QuotaLedger, quota_repository, agent):
        account = await QuotaFactory.create_account(quota_repository, agent, gold_cards=1, featured_listings=0)

        assert await ledger.try_spend_gold_card(account.id) is True
        assert await ledger.try_spend_gold_card(account.id) is False
        assert await ledger.try_spend_featured_slot(account.id) is False

        stored = await ledger.require_account(account.id)
        assert stored.gold_cards == 0
        assert stored.featured_listings == 0

    @pytest.mark.asyncio
    async def test_check_listing_room_reports_usage(self, ledger: QuotaLedger, quota_repository, agent):
        account = await QuotaFactory.create_account(
            quota_repository, agent, listing_limit=ListingLimit.finite(15), listings_used=15
        )

        with pytest.raises(QuotaExceededError) as exc_info:
            await ledger.check_listing_room(account)

        assert exc_info.value.used == 15
        assert exc_info.value.limit == 15
        assert exc_info.value.details == [{"resource": "listing", "used": 15, "limit": 15}]


class TestQuotaAdministration:
    """Adjustments, recomputation and account opening."""

    @pytest.mark.asyncio
    async def test_adjust_overwrites_allowances_only(self, ledger: QuotaLedger, quota_repository, agent):
        account = await QuotaFactory.create_account(quota_repository, agent, listings_used=15)

        adjusted = await ledger.adjust(
            account.id,
            listing_limit=ListingLimit.finite(20),
            gold_cards=3,
            plan=SubscriptionPlan.ELITE
        )

        assert adjusted.listing_limit == ListingLimit.finite(20)
        assert adjusted.gold_cards == 3
        assert adjusted.featured_listings == 0
        assert adjusted.plan == SubscriptionPlan.ELITE
        assert adjusted.listings_used == 15

    @pytest.mark.asyncio
    async def test_shrinking_limit_below_usage_keeps_usage(self, ledger: QuotaLedger, quota_repository, agent):
        account = await QuotaFactory.create_account(quota_repository, agent, listings_used=10)

        adjusted = await ledger.adjust(account.id, listing_limit=ListingLimit.finite(5))

        assert adjusted.listings_used == 10
        assert adjusted.is_over_quota
        assert await ledger.try_consume_listing_slot(account.id) is False

    @pytest.mark.asyncio
    async def test_adjust_rejects_negative_counters(self, ledger: QuotaLedger, agent_account):
        with pytest.raises(ValidationError):
            await ledger.adjust(agent_account.id, gold_cards=-1)

    @pytest.mark.asyncio
    async def test_adjust_unknown_account(self, ledger: QuotaLedger):
        with pytest.raises(NotFoundError):
            await ledger.adjust(uuid.uuid4(), gold_cards=1)

    @pytest.mark.asyncio
    async def test_recompute_usage_matches_live_listings(
        self, ledger: QuotaLedger, quota_repository, listing_repository, agent
    ):
        account = await QuotaFactory.create_account(quota_repository, agent, listings_used=9)
        await ListingFactory.create_listing(listing_repository, agent, status=ListingStatus.ACTIVE)
        await ListingFactory.create_listing(listing_repository, agent, status=ListingStatus.INACTIVE)
        await ListingFactory.create_listing(listing_repository, agent, status=ListingStatus.APPROVED)
        await ListingFactory.create_listing(listing_repository, agent, status=ListingStatus.EXPIRED)

        recomputed = await ledger.recompute_usage(account.id)

        assert recomputed.listings_used == 2

    @pytest.mark.asyncio
    async def test_open_account_and_regrant(self, ledger: QuotaLedger, quota_repository, agent):
        grant = QuotaGrant(listing_limit=ListingLimit.finite(15), gold_cards=2, featured_listings=1)

        account = await ledger.open_account(agent.id, grant)
        await ledger.try_consume_listing_slot(account.id)

        regranted = await ledger.open_account(
            agent.id,
            QuotaGrant(listing_limit=ListingLimit.unlimited(), plan=SubscriptionPlan.PLATINUM)
        )

        assert regranted.id == account.id
        assert regranted.listing_limit.is_unlimited
        assert regranted.gold_cards == 0
        assert regranted.listings_used == 1


class TestPublishGate:
    """Ledger integrity guard."""

    def test_gate_starts_open(self, gate: PublishGate):
        assert gate.is_open
        gate.ensure_open()
        assert gate.to_dict() == {"publishing_enabled": True, "reason": None, "tripped_at": None}

    def test_trip_and_restore(self, gate: PublishGate, clock):
        gate.trip("manual test")

        assert not gate.is_open
        assert gate.tripped_at == clock.now()
        with pytest.raises(LedgerUnavailableError):
            gate.ensure_open()

        gate.restore()
        assert gate.is_open
        assert gate.tripped_at is None

    @pytest.mark.asyncio
    async def test_impossible_rowcount_trips_gate(self, ledger: QuotaLedger, agent_account, monkeypatch):
        async def touches_two_rows(account_id):
            return 2

        monkeypatch.setattr(ledger.quota_repo, "consume_listing_slot", touches_two_rows)

        with pytest.raises(LedgerUnavailableError):
            await ledger.try_consume_listing_slot(agent_account.id)

        assert not ledger.gate.is_open
        assert "touched 2 rows" in ledger.gate.reason

    @pytest.mark.asyncio
    async def test_database_failure_trips_gate(self, ledger: QuotaLedger, agent_account, monkeypatch):
        async def disk_failure(account_id):
            raise OperationalError("UPDATE quota_accounts", {}, Exception("disk I/O error"))

        monkeypatch.setattr(ledger.quota_repo, "release_listing_slot", disk_failure)

        with pytest.raises(LedgerUnavailableError) as exc_info:
            await ledger.release_listing_slot(agent_account.id)

        assert exc_info.value.status_code == 503
        assert exc_info.value.error_code == "LEDGER_UNAVAILABLE"
        assert not ledger.gate.is_open
