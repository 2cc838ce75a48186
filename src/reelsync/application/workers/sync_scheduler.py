"""Sync Scheduler - fires cadence-driven triggers that fill the job queue.

Hey future me - the scheduler itself knows NOTHING about movies or images!
A trigger is just (name, cadence, async fn -> list[JobRequest], batch_size).
The concrete triggers live in application/services/sync_triggers.py.

On each fire:
1. call the trigger fn
2. cap the returned requests at batch_size (bounds queue growth)
3. enqueue them as new Jobs (one transaction)
4. write a TriggerRunModel row (found / enqueued / error)

That row is ALSO the persisted "last fired" time. run_due() reads it back from
the DB, so a restart doesn't make every trigger fire again immediately and a
daily trigger stays daily even if the process only lives for minutes.

NO deduplication here - two triggers may enqueue the same target. The executor
is idempotent, so duplicates only cost an API call.
"""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reelsync.application.workers.persistent_job_queue import PersistentJobQueue
from reelsync.domain.entities import Cadence, JobRequest, TriggerRunSummary
from reelsync.domain.exceptions import EntityNotFoundException, ValidationException
from reelsync.infrastructure.observability.logging import correlation_scope
from reelsync.infrastructure.persistence.models import utc_now
from reelsync.infrastructure.persistence.repositories import TriggerRunRepository

logger = logging.getLogger(__name__)

TriggerFn = Callable[[], Awaitable[list[JobRequest]]]


@dataclass
class RegisteredTrigger:
    """A trigger and its cadence."""

    name: str
    cadence: Cadence
    trigger_fn: TriggerFn
    batch_size: int


class SyncScheduler:
    """Cadence-driven trigger runner."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        queue: PersistentJobQueue,
        tick_seconds: int = 60,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize scheduler.

        Args:
            session_factory: Factory for creating DB sessions (trigger history)
            queue: Queue that fired triggers enqueue into
            tick_seconds: How often the loop checks for due triggers
            clock: Injected for tests
        """
        self._session_factory = session_factory
        self._queue = queue
        self.tick_seconds = tick_seconds
        self._clock = clock
        self._triggers: dict[str, RegisteredTrigger] = {}
        self._last_runs: dict[str, TriggerRunSummary] = {}
        self._fire_lock = asyncio.Lock()
        self._running = False
        self._task: asyncio.Task[None] | None = None

    @property
    def triggers(self) -> list[RegisteredTrigger]:
        return list(self._triggers.values())

    def register_trigger(
        self,
        name: str,
        cadence: Cadence,
        trigger_fn: TriggerFn,
        batch_size: int,
    ) -> None:
        """Register a trigger under a unique name.

        Raises:
            ValidationException: Duplicate name or batch_size < 1
        """
        if name in self._triggers:
            raise ValidationException(f"Trigger '{name}' is already registered")
        if batch_size < 1:
            raise ValidationException(
                f"Trigger '{name}': batch_size must be >= 1, got {batch_size}"
            )
        self._triggers[name] = RegisteredTrigger(
            name=name, cadence=cadence, trigger_fn=trigger_fn, batch_size=batch_size
        )
        logger.info(
            f"Registered trigger '{name}' ({cadence.value}, batch {batch_size})"
        )

    def clear_triggers(self) -> None:
        self._triggers.clear()
        self._last_runs.clear()

    async def fire(self, name: str) -> TriggerRunSummary:
        """Run one trigger now, regardless of its cadence.

        Trigger errors are recorded in the summary, not raised.

        Raises:
            EntityNotFoundException: Unknown trigger name
        """
        trigger = self._triggers.get(name)
        if trigger is None:
            raise EntityNotFoundException("Trigger", name)

        async with self._fire_lock:
            with correlation_scope(f"trigger-{name}"):
                return await self._fire(trigger)

    async def _fire(self, trigger: RegisteredTrigger) -> TriggerRunSummary:
        summary = TriggerRunSummary(trigger_name=trigger.name, started_at=self._clock())
        logger.info(f"Trigger '{trigger.name}' started")

        try:
            requests = await trigger.trigger_fn()
            summary.found = len(requests)
            capped = requests[: trigger.batch_size]
            job_ids = await self._queue.enqueue_many(r.to_job() for r in capped)
            summary.enqueued = len(job_ids)
        except Exception as e:
            summary.error = f"{type(e).__name__}: {e}"
            logger.error(f"Trigger '{trigger.name}' failed: {e}", exc_info=True)

        summary.finished_at = self._clock()

        try:
            async with self._session_factory() as session:
                await TriggerRunRepository(session).add(summary)
                await session.commit()
        except Exception as e:
            logger.warning(
                f"Could not record run of trigger '{trigger.name}': {e}", exc_info=True
            )
        self._last_runs[trigger.name] = summary

        if summary.error is None:
            logger.info(
                f"Trigger '{trigger.name}' complete: found {summary.found}, "
                f"enqueued {summary.enqueued}"
            )
        return summary

    async def last_run(self, name: str) -> TriggerRunSummary | None:
        """Most recent persisted run of a trigger."""
        async with self._session_factory() as session:
            summary = await TriggerRunRepository(session).last_run(name)
        if summary is not None:
            self._last_runs[name] = summary
        return summary

    async def is_due(self, name: str, now: datetime | None = None) -> bool:
        trigger = self._triggers[name]
        last = await self.last_run(name)
        if last is None:
            return True
        now = now or self._clock()
        return now - last.started_at >= trigger.cadence.interval

    async def run_due(self, now: datetime | None = None) -> list[TriggerRunSummary]:
        """Fire every trigger whose cadence has elapsed since its last run."""
        now = now or self._clock()
        fired: list[TriggerRunSummary] = []
        for name in list(self._triggers):
            if await self.is_due(name, now):
                fired.append(await self.fire(name))
        return fired

    async def start(self) -> None:
        """Start the scheduler loop."""
        if self._running:
            logger.warning("SyncScheduler is already running")
            return
        if not self._triggers:
            logger.info("SyncScheduler has no triggers registered, not starting")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(
            f"SyncScheduler started ({len(self._triggers)} triggers, "
            f"tick: {self.tick_seconds}s)"
        )

    async def stop(self) -> None:
        """Stop the scheduler loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        logger.info("SyncScheduler stopped")

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.run_due()
            except Exception as e:
                logger.error(f"Error in sync scheduler loop: {e}", exc_info=True)

            await asyncio.sleep(self.tick_seconds)

    async def get_trigger_status(self) -> list[dict[str, Any]]:
        """Per trigger: cadence, last run summary, next due time."""
        status = []
        for trigger in self._triggers.values():
            last = await self.last_run(trigger.name)
            next_due = last.started_at + trigger.cadence.interval if last else None
            status.append(
                {
                    "name": trigger.name,
                    "cadence": trigger.cadence.value,
                    "batch_size": trigger.batch_size,
                    "last_run": last.to_dict() if last else None,
                    "next_due_at": next_due.isoformat() if next_due else None,
                }
            )
        return status

    def get_status(self) -> dict[str, Any]:
        """Scheduler status for monitoring (cached last runs, no DB access)."""
        return {
            "name": "Sync Scheduler",
            "running": self._running,
            "status": "active" if self._running else "stopped",
            "tick_seconds": self.tick_seconds,
            "triggers": {
                name: {
                    "cadence": trigger.cadence.value,
                    "batch_size": trigger.batch_size,
                    "last_run": self._last_runs[name].to_dict()
                    if name in self._last_runs
                    else None,
                }
                for name, trigger in self._triggers.items()
            },
        }
