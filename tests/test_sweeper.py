"""
Tests for the expiration sweeper and its background scheduler.
"""

import pytest
import asyncio
from datetime import datetime, timedelta, timezone

from estatehub.models.listing import ListingStatus
from estatehub.repositories.listing import ListingRepository
from estatehub.repositories.quota import QuotaRepository
from estatehub.services.listing import ListingService
from estatehub.services.sweeper import ExpirationSweeper, SweepReport, SweepScheduler
from estatehub.utils.exceptions import InvalidTransitionError
from tests.conftest import QuotaFactory, ListingFactory


async def read_usage(session_factory, account_id) -> int:
    async with session_factory() as session:
        account = await QuotaRepository(session).get_by_id(account_id)
        await session.commit()
        return account.listings_used


async def read_status(session_factory, listing_id) -> ListingStatus:
    async with session_factory() as session:
        status = await ListingRepository(session).get_status(listing_id)
        await session.commit()
        return status


class TestExpirationSweeper:
    """Batch expiry of due listings."""

    @pytest.mark.asyncio
    async def test_sweep_expires_due_listings_only(
        self, sweeper: ExpirationSweeper, db_session, session_factory,
        listing_repository, quota_repository, agent, clock
    ):
        account = await QuotaFactory.create_account(quota_repository, agent, listings_used=3)
        yesterday = clock.now() - timedelta(days=1)
        due = await ListingFactory.create_listing(
            listing_repository, agent, status=ListingStatus.ACTIVE, expires_at=yesterday
        )
        also_due = await ListingFactory.create_listing(
            listing_repository, agent, status=ListingStatus.ACTIVE, expires_at=clock.now()
        )
        not_due = await ListingFactory.create_listing(
            listing_repository, agent, status=ListingStatus.ACTIVE, expires_at=clock.now() + timedelta(days=1)
        )
        parked = await ListingFactory.create_listing(
            listing_repository, agent, status=ListingStatus.INACTIVE, expires_at=yesterday
        )
        await db_session.commit()

        report = await sweeper.run()

        assert report.scanned == 2
        assert report.expired == 2
        assert report.skipped == 0
        assert report.completed
        assert report.finished_at == clock.now()

        assert await read_status(session_factory, due.id) == ListingStatus.EXPIRED
        assert await read_status(session_factory, also_due.id) == ListingStatus.EXPIRED
        assert await read_status(session_factory, not_due.id) == ListingStatus.ACTIVE
        assert await read_status(session_factory, parked.id) == ListingStatus.INACTIVE
        assert await read_usage(session_factory, account.id) == 1

    @pytest.mark.asyncio
    async def test_second_sweep_is_a_no_op(
        self, sweeper: ExpirationSweeper, db_session, session_factory,
        listing_repository, quota_repository, agent, clock
    ):
        account = await QuotaFactory.create_account(quota_repository, agent, listings_used=1)
        await ListingFactory.create_listing(
            listing_repository, agent, status=ListingStatus.ACTIVE, expires_at=clock.now() - timedelta(hours=1)
        )
        await db_session.commit()

        first = await sweeper.run()
        second = await sweeper.run()

        assert first.expired == 1
        assert second.scanned == 0
        assert second.expired == 0
        assert await read_usage(session_factory, account.id) == 0

    @pytest.mark.asyncio
    async def test_overlapping_sweeps_expire_each_listing_once(
        self, db_session, session_factory, clock, gate, test_settings,
        listing_repository, quota_repository, agent
    ):
        """Two sweeps running at the same time release every slot exactly once."""
        account = await QuotaFactory.create_account(quota_repository, agent, listings_used=6)
        still_live = await ListingFactory.create_listing(
            listing_repository, agent, status=ListingStatus.ACTIVE, expires_at=clock.now() + timedelta(days=1)
        )
        listing_ids = []
        for hours in range(5):
            listing = await ListingFactory.create_listing(
                listing_repository, agent,
                status=ListingStatus.ACTIVE,
                expires_at=clock.now() - timedelta(hours=hours + 1)
            )
            listing_ids.append(listing.id)
        await db_session.commit()
        settings = test_settings.model_copy(update={"sweep_batch_size": 2})
        first = ExpirationSweeper(session_factory, clock=clock, gate=gate, settings=settings)
        second = ExpirationSweeper(session_factory, clock=clock, gate=gate, settings=settings)

        reports = await asyncio.gather(first.run(), second.run())

        assert sum(report.expired for report in reports) == 5
        assert all(report.skipped == 0 for report in reports)
        assert await read_usage(session_factory, account.id) == 1
        assert await read_status(session_factory, still_live.id) == ListingStatus.ACTIVE
        for listing_id in listing_ids:
            assert await read_status(session_factory, listing_id) == ListingStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_explicit_cut_off(
        self, sweeper: ExpirationSweeper, db_session, session_factory, listing_repository, agent, clock
    ):
        """A sweep with a later cut-off picks up listings the clock considers current."""
        listing = await ListingFactory.create_listing(
            listing_repository, agent, status=ListingStatus.ACTIVE, expires_at=clock.now() + timedelta(days=2)
        )
        await db_session.commit()

        report = await sweeper.run(now=clock.now() + timedelta(days=3))

        assert report.expired == 1
        assert await read_status(session_factory, listing.id) == ListingStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_pages_through_every_due_listing(
        self, db_session, session_factory, clock, gate, test_settings, listing_repository, agent
    ):
        for minutes in range(5):
            await ListingFactory.create_listing(
                listing_repository, agent,
                status=ListingStatus.ACTIVE,
                expires_at=clock.now() - timedelta(minutes=minutes)
            )
        await db_session.commit()
        sweeper = ExpirationSweeper(
            session_factory,
            clock=clock,
            gate=gate,
            settings=test_settings.model_copy(update={"sweep_batch_size": 2})
        )

        report = await sweeper.run()

        assert report.scanned == 5
        assert report.expired == 5
        assert report.completed

    @pytest.mark.asyncio
    async def test_stops_at_time_budget(
        self, db_session, session_factory, clock, gate, test_settings, listing_repository, agent
    ):
        for _ in range(3):
            await ListingFactory.create_listing(
                listing_repository, agent, status=ListingStatus.ACTIVE, expires_at=clock.now() - timedelta(days=1)
            )
        await db_session.commit()
        ticks = iter(range(100))
        sweeper = ExpirationSweeper(
            session_factory, clock=clock, gate=gate, settings=test_settings, monotonic=lambda: next(ticks)
        )

        report = await sweeper.run(time_budget_seconds=2.5)

        assert not report.completed
        assert report.expired == 1
        assert report.scanned == 1

    @pytest.mark.asyncio
    async def test_failed_listing_is_skipped(
        self, sweeper: ExpirationSweeper, db_session, session_factory,
        listing_repository, agent, clock, monkeypatch
    ):
        expired_at = clock.now() - timedelta(days=1)
        broken = await ListingFactory.create_listing(
            listing_repository, agent, status=ListingStatus.ACTIVE, expires_at=expired_at
        )
        healthy = await ListingFactory.create_listing(
            listing_repository, agent, status=ListingStatus.ACTIVE, expires_at=expired_at
        )
        broken_id, healthy_id = broken.id, healthy.id
        await db_session.commit()

        original = ListingService.try_expire

        async def flaky_try_expire(self, listing_id, now=None):
            if listing_id == broken_id:
                raise InvalidTransitionError("listing", "active", "expire")
            return await original(self, listing_id, now)

        monkeypatch.setattr(ListingService, "try_expire", flaky_try_expire)

        report = await sweeper.run()

        assert report.scanned == 2
        assert report.expired == 1
        assert report.skipped == 1
        assert report.completed
        assert await read_status(session_factory, broken_id) == ListingStatus.ACTIVE
        assert await read_status(session_factory, healthy_id) == ListingStatus.EXPIRED

    def test_report_to_dict(self):
        started = datetime(2026, 3, 1, 3, 0, tzinfo=timezone.utc)
        report = SweepReport(started_at=started, scanned=4, expired=3, skipped=1)

        data = report.to_dict()

        assert data["started_at"] == started.isoformat()
        assert data["finished_at"] is None
        assert data["expired"] == 3
        assert data["completed"] is True


class StubSweeper:
    """Sweeper stand-in that fails on its first run."""

    def __init__(self):
        self.runs = 0

    async def run(self):
        self.runs += 1
        if self.runs == 1:
            raise RuntimeError("database went away")
        return SweepReport(started_at=datetime(2026, 3, 1, tzinfo=timezone.utc))


class TestSweepScheduler:
    """Background scheduling."""

    def test_daily_delay_later_today(self, clock):
        scheduler = SweepScheduler(StubSweeper(), clock=clock, daily_at="15:30")

        assert scheduler.seconds_until_next_run(datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)) == 3.5 * 3600

    def test_daily_delay_rolls_over_to_tomorrow(self, clock):
        scheduler = SweepScheduler(StubSweeper(), clock=clock, daily_at="03:00")

        assert scheduler.seconds_until_next_run(datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)) == 15 * 3600
        assert scheduler.seconds_until_next_run(datetime(2026, 3, 1, 3, 0, tzinfo=timezone.utc)) == 24 * 3600

    def test_interval_overrides_daily_time(self, clock):
        scheduler = SweepScheduler(StubSweeper(), clock=clock, interval_seconds=600)

        assert scheduler.seconds_until_next_run(clock.now()) == 600.0

    def test_from_settings(self, clock, test_settings):
        settings = test_settings.model_copy(update={"sweep_daily_at": "04:15", "sweep_interval_seconds": None})

        scheduler = SweepScheduler.from_settings(StubSweeper(), settings, clock=clock)

        assert (scheduler.hour, scheduler.minute) == (4, 15)
        assert scheduler.interval_seconds is None

    @pytest.mark.asyncio
    async def test_loop_survives_failed_run_and_stops(self, clock):
        """A failing run is logged; the next one still happens and stop() ends the task."""
        sweeper = StubSweeper()
        delays = []
        second_run_done = asyncio.Event()

        async def fake_sleep(delay):
            delays.append(delay)
            if len(delays) == 3:
                second_run_done.set()
                await asyncio.Event().wait()

        scheduler = SweepScheduler(sweeper, clock=clock, interval_seconds=60, sleep=fake_sleep)
        scheduler.start()
        scheduler.start()

        await asyncio.wait_for(second_run_done.wait(), timeout=5)

        assert scheduler.is_running
        assert sweeper.runs == 2
        assert scheduler.last_report is not None
        assert delays == [60.0, 60.0, 60.0]

        await scheduler.stop()
        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_stop_before_start(self, clock):
        scheduler = SweepScheduler(StubSweeper(), clock=clock)

        await scheduler.stop()

        assert not scheduler.is_running
