"""Recurring expiry sweeps for the in-memory stores."""
from typing import Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from navconfig.logging import logging

from ..conf import SWEEP_INTERVAL


SweepCallable = Callable[[], Awaitable[int]]


class SweepScheduler:
    """Schedules periodic ``sweep_expired`` calls via APScheduler.

    Each registered sweep runs on its own fixed interval. A failing sweep is
    logged and swallowed so the next iteration still runs; the stores keep
    their lazy expiry checks regardless.
    """

    def __init__(self, interval: int = SWEEP_INTERVAL):
        self.interval = interval
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._sweeps: dict[str, tuple[SweepCallable, int]] = {}
        self.logger = logging.getLogger("warden.services.sweeper")

    def register(
        self,
        name: str,
        sweep: SweepCallable,
        interval: Optional[int] = None,
    ) -> str:
        """Register a sweep coroutine function.

        Args:
            name: Unique sweep name, used as job id suffix.
            sweep: Coroutine function returning the number of removed entries.
            interval: Seconds between runs (defaults to the scheduler interval).

        Returns:
            The APScheduler job ID.
        """
        seconds = interval or self.interval
        self._sweeps[name] = (sweep, seconds)
        job_id = f"sweep_{name}"
        if self._scheduler is not None:
            self._add_job(name, sweep, seconds)
        self.logger.debug(f"Registered sweep '{name}' (interval={seconds}s)")
        return job_id

    def _add_job(self, name: str, sweep: SweepCallable, seconds: int) -> None:
        self._scheduler.add_job(
            self.run_sweep,
            trigger=IntervalTrigger(seconds=seconds),
            id=f"sweep_{name}",
            name=f"Sweep: {name}",
            kwargs={"name": name, "sweep": sweep},
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )

    async def run_sweep(self, name: str, sweep: SweepCallable) -> Optional[int]:
        """Run one sweep iteration; never raises."""
        try:
            removed = await sweep()
        except Exception as exc:  # pylint: disable=broad-except
            self.logger.error(f"Sweep '{name}' failed: {exc}")
            return None
        if removed:
            self.logger.debug(f"Sweep '{name}' removed {removed} entries")
        return removed

    async def run_all(self) -> dict[str, Optional[int]]:
        """Run every registered sweep once, in registration order."""
        return {
            name: await self.run_sweep(name, sweep)
            for name, (sweep, _) in self._sweeps.items()
        }

    def start(self) -> None:
        """Start the scheduler on the running event loop."""
        if self.running:
            return
        self._scheduler = AsyncIOScheduler()
        for name, (sweep, seconds) in self._sweeps.items():
            self._add_job(name, sweep, seconds)
        self._scheduler.start()
        self.logger.info(
            f"Sweep scheduler started with {len(self._sweeps)} sweep(s)"
        )

    def stop(self) -> None:
        """Stop the scheduler."""
        if self.running:
            self._scheduler.shutdown(wait=False)
            self.logger.info("Sweep scheduler stopped")
        self._scheduler = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    @property
    def registered_count(self) -> int:
        return len(self._sweeps)
