"""
Expiration sweeper and its scheduler.

The sweeper retires active listings past their expiry time, one listing
per transaction, so a failure on one listing never blocks the others.
The scheduler runs it in the background on a daily time or a fixed interval.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from estatehub.config import Settings, settings as default_settings
from estatehub.repositories.listing import ListingRepository
from estatehub.services.listing import ListingService
from estatehub.services.quota import PublishGate
from estatehub.utils.clock import Clock, system_clock, ensure_utc
from estatehub.utils.exceptions import APIException
import asyncio
import logging
import time

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    """Outcome of one sweeper run."""

    started_at: datetime
    scanned: int = 0
    expired: int = 0
    skipped: int = 0
    completed: bool = True
    finished_at: Optional[datetime] = field(default=None)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        data["finished_at"] = self.finished_at.isoformat() if self.finished_at else None
        return data


class ExpirationSweeper:
    """
    Pages through due listings by ``(expires_at, id)`` and expires each one.

    Safe to run concurrently with itself: expiring an expired listing is a
    no-op, and a listing whose transition fails is skipped until the next run.
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        clock: Clock = system_clock,
        gate: Optional[PublishGate] = None,
        settings: Optional[Settings] = None,
        monotonic: Callable[[], float] = time.monotonic
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.gate = gate
        self.settings = settings or default_settings
        self.monotonic = monotonic

    async def run(
        self,
        now: Optional[datetime] = None,
        time_budget_seconds: Optional[float] = None
    ) -> SweepReport:
        """
        Expire every active listing with ``expires_at <= now``.

        Args:
            now: Cut-off time; defaults to the clock
            time_budget_seconds: Stop after this long and report completed=False;
                defaults to the configured budget

        Returns:
            SweepReport with scanned, expired and skipped counts
        """
        now = ensure_utc(now) if now else self.clock.now()
        budget = time_budget_seconds if time_budget_seconds is not None else self.settings.sweep_time_budget_seconds
        deadline = self.monotonic() + budget if budget is not None else None
        batch_size = self.settings.sweep_batch_size

        report = SweepReport(started_at=now)
        logger.info(f"Expiration sweep started for listings due by {now.isoformat()}")

        after = None
        while True:
            if self._out_of_time(deadline):
                report.completed = False
                break

            async with self.session_factory() as session:
                page = await ListingRepository(session).get_due_for_expiry(now, after=after, limit=batch_size)

            if not page:
                break

            for listing_id, expires_at in page:
                if self._out_of_time(deadline):
                    report.completed = False
                    break

                report.scanned += 1
                if await self._expire_one(listing_id, now):
                    report.expired += 1
                else:
                    report.skipped += 1

            if not report.completed or len(page) < batch_size:
                break
            last_id, last_expires_at = page[-1]
            after = (last_expires_at, last_id)

        report.finished_at = self.clock.now()
        log = logger.info if report.completed else logger.warning
        log(
            f"Expiration sweep {'finished' if report.completed else 'stopped at time budget'}: "
            f"{report.expired} expired, {report.skipped} skipped of {report.scanned} scanned",
            extra={"sweep": report.to_dict()}
        )
        return report

    async def _expire_one(self, listing_id, now: datetime) -> bool:
        try:
            async with self.session_factory() as session:
                service = ListingService(session, clock=self.clock, gate=self.gate, settings=self.settings)
                return await service.try_expire(listing_id, now)
        except (APIException, SQLAlchemyError) as e:
            logger.warning(
                f"Skipping listing {listing_id} during expiration sweep: {e}",
                extra={"listing_id": str(listing_id), "exception_type": type(e).__name__}
            )
            return False

    def _out_of_time(self, deadline: Optional[float]) -> bool:
        return deadline is not None and self.monotonic() >= deadline


class SweepScheduler:
    """
    Runs the sweeper in a background asyncio task.

    Fires daily at ``daily_at`` (UTC ``HH:MM``), or every ``interval_seconds``
    when that is set. A failed run is logged and the loop carries on.
    """

    def __init__(
        self,
        sweeper: ExpirationSweeper,
        clock: Clock = system_clock,
        daily_at: str = "03:00",
        interval_seconds: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        hour, minute = daily_at.split(":")
        self.sweeper = sweeper
        self.clock = clock
        self.hour = int(hour)
        self.minute = int(minute)
        self.interval_seconds = interval_seconds
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self.last_report: Optional[SweepReport] = None

    @classmethod
    def from_settings(cls, sweeper: ExpirationSweeper, settings: Settings, clock: Clock = system_clock) -> "SweepScheduler":
        return cls(
            sweeper,
            clock=clock,
            daily_at=settings.sweep_daily_at,
            interval_seconds=settings.sweep_interval_seconds
        )

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def seconds_until_next_run(self, now: datetime) -> float:
        if self.interval_seconds:
            return float(self.interval_seconds)

        now = ensure_utc(now)
        next_run = now.replace(hour=self.hour, minute=self.minute, second=0, microsecond=0)
        if next_run <= now:
            next_run += timedelta(days=1)
        return (next_run - now).total_seconds()

    def start(self) -> None:
        """Start the background loop; calling it twice is harmless."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._loop(), name="expiration-sweeper")
        logger.info(
            "Expiration sweep scheduler started",
            extra={"interval_seconds": self.interval_seconds, "daily_at": f"{self.hour:02d}:{self.minute:02d}"}
        )

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Expiration sweep scheduler stopped")

    async def run_once(self) -> SweepReport:
        self.last_report = await self.sweeper.run()
        return self.last_report

    async def _loop(self) -> None:
        while True:
            delay = self.seconds_until_next_run(self.clock.now())
            logger.debug(f"Next expiration sweep in {delay:.0f}s")
            await self._sleep(delay)
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Scheduled expiration sweep failed: {e}", exc_info=True)
