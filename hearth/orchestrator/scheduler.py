"""
Scheduler loop.

An APScheduler interval job polls the store for due jobs and re-enters
the pipeline with a synthetic turn, exactly like a front-end would.

Per job:  Scheduled → Due → Fired → Scheduled   (or → Cancelled)

A job only advances past its next_fire_at after its reply was delivered.
If the process dies in between, the job fires again on the next poll
after restart (at-least-once).
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ..core.errors import HearthError, InvalidCronExpression, StoreError
from ..models.base import utcnow
from ..models.job import ScheduledJob
from ..services import realtime
from ..services.store import Store
from .cron import compute_next
from .orchestrator import SOURCE_SCHEDULER, Engine, TurnResult

logger = logging.getLogger(__name__)

POLL_JOB_ID = "hearth_poll_due_jobs"

# Receives (job, result) after a scheduled turn completed
DeliveryFn = Callable[[ScheduledJob, TurnResult], Awaitable[None]]


class SchedulerLoop:
    """Fires due jobs through the engine on a fixed polling interval."""

    def __init__(
        self,
        store: Store,
        engine: Engine,
        poll_seconds: int = 30,
        timezone: str = "UTC",
        clock: Callable[[], datetime] = utcnow,
        user_allowed: Optional[Callable[[str], bool]] = None,
    ):
        self.store = store
        self.engine = engine
        self.poll_seconds = poll_seconds
        self.timezone = timezone
        self.clock = clock
        self.user_allowed = user_allowed
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._listeners: list[DeliveryFn] = []
        self._in_flight: set[int] = set()

    def add_listener(self, fn: DeliveryFn) -> None:
        """Register a front-end callback for scheduled replies."""
        if fn not in self._listeners:
            self._listeners.append(fn)

    # ── Lifecycle ────────────────────────────────────────────────────

    def start(self) -> None:
        if self.scheduler is not None:
            return
        self.scheduler = AsyncIOScheduler(timezone=self.timezone)
        self.scheduler.add_job(
            self.poll_once,
            "interval",
            seconds=self.poll_seconds,
            id=POLL_JOB_ID,
            name="poll due jobs",
            max_instances=1,
            coalesce=True,
            next_run_time=self.clock(),
        )
        self.scheduler.start()
        logger.info("Scheduler started (poll every %ds, tz=%s)", self.poll_seconds, self.timezone)

    def stop(self) -> None:
        if self.scheduler is None:
            return
        self.scheduler.shutdown(wait=False)
        self.scheduler = None
        logger.info("Scheduler stopped")

    # ── Polling ──────────────────────────────────────────────────────

    async def poll_once(self, now: Optional[datetime] = None) -> list[int]:
        """Fire every due job once. Returns the ids that were fired."""
        now = now or self.clock()
        try:
            jobs = await self.store.list_active_jobs()
        except StoreError as e:
            logger.error("Scheduler poll failed: %s", e)
            return []

        due = [j for j in jobs if j.is_due(now) and j.id not in self._in_flight]
        if not due:
            return []

        logger.info("Scheduler: %d due job(s) at %s", len(due), now.isoformat())
        outcomes = await asyncio.gather(*(self._fire(job, now) for job in due))
        return [job.id for job, fired in zip(due, outcomes) if fired]

    async def _deactivate(self, job: ScheduledJob, reason: str) -> None:
        logger.warning("Deactivating job #%d: %s", job.id, reason)
        await self.store.deactivate_job(job.id)
        await realtime.job_deactivated(job.user_id, job.id, reason)

    async def _fire(self, job: ScheduledJob, now: datetime) -> bool:
        self._in_flight.add(job.id)
        try:
            if self.user_allowed is not None and not self.user_allowed(job.user_id):
                await self._deactivate(job, f"user {job.user_id} is no longer allowed")
                return False

            # An expression that no longer parses deactivates the job instead of firing
            try:
                next_fire_at = compute_next(
                    job.cron_expression, max(now, job.next_fire_at), self.timezone
                )
            except InvalidCronExpression as e:
                await self._deactivate(job, str(e))
                return False

            logger.info("Cron job #%d triggered: %s", job.id, job.injected_prompt[:80])
            try:
                result = await self.engine.handle_turn(
                    job.user_id, job.injected_prompt, source=SOURCE_SCHEDULER
                )
            except HearthError as e:
                # No retries of the model call: report and move on to the next occurrence
                logger.error("Job #%d turn failed: %s", job.id, e)
                await realtime.job_failed(job.user_id, job.id, str(e))
                result = None
            except Exception as e:
                logger.exception("Job #%d turn crashed", job.id)
                await realtime.job_failed(job.user_id, job.id, str(e))
                result = None

            if result is not None:
                await self._deliver(job, result)
                await realtime.job_fired(job.user_id, job.id, result.render())

            await self.store.mark_job_fired(job.id, next_fire_at, fired_at=now)
            return True
        except StoreError as e:
            logger.error("Job #%d bookkeeping failed: %s", job.id, e)
            return False
        finally:
            self._in_flight.discard(job.id)

    async def _deliver(self, job: ScheduledJob, result: TurnResult) -> None:
        if not self._listeners:
            logger.warning("No delivery listeners registered — reply for job #%d only logged", job.id)
            logger.info("Cron response #%d: %s", job.id, result.content[:200])
            return
        for listener in self._listeners:
            try:
                await listener(job, result)
            except Exception as e:
                # Keep delivering to the remaining listeners
                logger.warning("Delivery of job #%d failed: %s", job.id, e)
