"""APScheduler-driven price feed loop."""

import logging
from collections.abc import Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)

_JOB_ID = "price_tick"


class PriceFeedScheduler:
    """Runs ``on_tick`` every ``interval_seconds`` on the running event loop.

    One tick at a time: a tick that overruns the interval makes the next one
    wait (and missed runs collapse into one) instead of overlapping it.
    """

    def __init__(
        self,
        on_tick: Callable[[], Awaitable[object]],
        interval_seconds: float,
    ) -> None:
        self._on_tick = on_tick
        self._interval = interval_seconds
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        """Start ticking. Must be called from inside the event loop."""
        if self.running:
            return
        # A shut-down APScheduler instance is not reusable, so every start gets a fresh one.
        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self._run_tick,
            IntervalTrigger(seconds=self._interval),
            id=_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info("Price feed started — interval: %.1fs", self._interval)

    def stop(self) -> None:
        if not self.running:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Price feed stopped")

    async def _run_tick(self) -> None:
        try:
            await self._on_tick()
        except Exception as e:
            logger.error("Price tick failed: %s", e, exc_info=True)
