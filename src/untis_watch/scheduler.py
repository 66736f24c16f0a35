"""Refresh scheduler: periodic fetch -> diff -> publish cycles.

An APScheduler AsyncIOScheduler runs one cycle at startup and then on a
fixed interval. The job allows a single running instance and coalesces
missed runs, so ticks that pass while a cycle is still running are skipped,
never queued. A failed cycle only records the error, so readers keep getting
the last good snapshot and diff.
"""

import asyncio
import contextlib
import time
from datetime import datetime, timezone
from enum import Enum

from apscheduler.events import EVENT_JOB_MAX_INSTANCES, JobSubmissionEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from untis_watch.differ import ComparisonPolicy, compute_diff
from untis_watch.errors import DiffInvariantViolation, FetchError, NetworkError, StalePublishError
from untis_watch.fetcher import TimetableFetcher
from untis_watch.logging import get_logger
from untis_watch.store import StateStore

logger = get_logger(__name__)

REFRESH_JOB_ID = "untis_refresh"


class SchedulerState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    SUCCESS = "success"
    FAILED = "failed"


class RefreshScheduler:
    """Drives refresh cycles against a StateStore.

    state is FETCHING while a cycle runs and IDLE otherwise; last_outcome
    holds SUCCESS or FAILED for the most recent finished cycle.
    """

    def __init__(
        self,
        fetcher: TimetableFetcher,
        store: StateStore,
        *,
        interval: float,
        fetch_timeout: float,
        policy: ComparisonPolicy | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        if fetch_timeout <= 0:
            raise ValueError("fetch_timeout must be positive")
        self.fetcher = fetcher
        self.store = store
        self.interval = interval
        self.fetch_timeout = fetch_timeout
        self.policy = policy
        self.state = SchedulerState.IDLE
        self.last_outcome: SchedulerState | None = None
        self.skipped_ticks = 0
        self._cycle_lock = asyncio.Lock()
        self._scheduler: AsyncIOScheduler | None = None
        self._tick_task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    async def start(self) -> None:
        """Validate prerequisites and schedule the refresh job.

        Raises:
            ConfigurationError: From the fetcher preflight. Fatal at startup.
        """
        if self.running:
            return
        await self.fetcher.preflight()

        scheduler = AsyncIOScheduler(event_loop=asyncio.get_running_loop(), timezone=timezone.utc)
        scheduler.add_job(
            self._tick,
            IntervalTrigger(seconds=self.interval, timezone=timezone.utc),
            id=REFRESH_JOB_ID,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=None,
            next_run_time=datetime.now(timezone.utc),
        )
        scheduler.add_listener(self._on_tick_skipped, EVENT_JOB_MAX_INSTANCES)
        scheduler.start()
        self._scheduler = scheduler
        logger.info("scheduler_started", interval=self.interval, fetch_timeout=self.fetch_timeout)

    async def stop(self) -> None:
        """Shut the scheduler down and cancel the in-flight cycle, if any."""
        scheduler, self._scheduler = self._scheduler, None
        if scheduler is None:
            return
        scheduler.shutdown(wait=False)
        task = self._tick_task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self.state = SchedulerState.IDLE
        logger.info("scheduler_stopped")

    async def run_once(self) -> bool | None:
        """Run one refresh cycle.

        Returns:
            True if a new state was published, False if the cycle failed, None
            if another cycle was already in flight (nothing was fetched).
        """
        if self._cycle_lock.locked():
            logger.info("refresh_skipped", reason="cycle_in_flight")
            return None
        async with self._cycle_lock:
            self.state = SchedulerState.FETCHING
            try:
                ok = await self._cycle()
            finally:
                self.state = SchedulerState.IDLE
            self.last_outcome = SchedulerState.SUCCESS if ok else SchedulerState.FAILED
            return ok

    async def _tick(self) -> None:
        self._tick_task = asyncio.current_task()
        try:
            await self.run_once()
        except asyncio.CancelledError:
            logger.info("refresh_cancelled")
        finally:
            self._tick_task = None

    def _on_tick_skipped(self, event: JobSubmissionEvent) -> None:
        self.skipped_ticks += 1
        logger.warning(
            "refresh_tick_skipped",
            reason="cycle_in_flight",
            scheduled_at=[run.isoformat() for run in event.scheduled_run_times],
            interval=self.interval,
        )

    async def _cycle(self) -> bool:
        started = time.monotonic()
        sequence = self.store.next_sequence()
        logger.debug("refresh_started", sequence=sequence)
        try:
            snapshot = await asyncio.wait_for(
                self.fetcher.fetch_timetable(), timeout=self.fetch_timeout
            )
            diff = compute_diff(self.store.read().snapshot, snapshot, self.policy)
        except asyncio.TimeoutError:
            err = NetworkError(f"Fetch did not complete within {self.fetch_timeout}s")
            logger.warning("refresh_failed", error=str(err), type="NetworkError")
            self.store.record_error(err)
            return False
        except DiffInvariantViolation as e:
            logger.error("diff_invariant_violation", duplicate_keys=e.duplicate_keys)
            self.store.record_error(e)
            return False
        except FetchError as e:
            logger.warning("refresh_failed", error=str(e), type=type(e).__name__)
            self.store.record_error(e)
            return False
        except Exception as e:
            logger.exception("refresh_crashed", error=str(e), type=type(e).__name__)
            self.store.record_error(e)
            return False

        if not self.store.publish(snapshot, diff, sequence):
            err = StalePublishError(f"Refresh #{sequence} finished after a later refresh was published")
            logger.warning("refresh_failed", error=str(err), type="StalePublishError")
            self.store.record_error(err)
            return False

        logger.info(
            "refresh_succeeded",
            sequence=sequence,
            records=len(snapshot),
            duration_s=round(time.monotonic() - started, 3),
            **diff.summary(),
        )
        return True
