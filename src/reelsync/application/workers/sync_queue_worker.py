# Hey future me - SyncQueueWorker is the thing that actually burns API quota!
#
# Every cycle (default: every 15 minutes):
# 1. Sweep: PROCESSING records older than the processing timeout -> FAILED
#    (a previous process died mid-job, nothing else would ever finish them)
# 2. Dequeue at most max_batch jobs (default 10), atomically
# 3. For each job IN ORDER:
#      QUEUED -> PROCESSING
#      rate limiter wait (shared with everything else that calls the API)
#      executor.execute(job) under a timeout (default 30s)
#      PROCESSING -> COMPLETED | FAILED (with message + trace)
#    plus a fixed cooldown between jobs (default 2s) ON TOP of the rate limiter,
#    because one job can fire several API calls in the executor.
#
# FAILURE ISOLATION: one job blowing up never stops the batch. Failed jobs are NOT
# re-queued - the operator restarts them (SyncOperations.restart_failed_jobs).
# Jobs that never reached PROCESSING (shutdown mid-batch, DB hiccup on the
# PROCESSING write) ARE put back, they never ran.
#
# CLEANUP jobs don't touch the metadata API, they go to the MaintenanceRunner.
"""Sync Queue Worker - drains the job queue in bounded, paced batches."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from reelsync.domain.entities import Job, JobError, JobStatus, JobType, SyncResult
from reelsync.domain.exceptions import DomainException
from reelsync.infrastructure.observability.logging import correlation_scope

if TYPE_CHECKING:
    from reelsync.application.services.maintenance_service import MaintenanceRunner
    from reelsync.application.workers.job_status_store import JobStatusStore
    from reelsync.application.workers.persistent_job_queue import PersistentJobQueue
    from reelsync.config import SyncSettings
    from reelsync.domain.ports import ISyncExecutor
    from reelsync.infrastructure.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

MAX_BATCH = 10


class SyncQueueWorker:
    """Background worker executing queued sync jobs.

    run_cycle() is the unit of work. start()/stop() wrap it in a timer loop for
    the long-running app; an external cron can call run_cycle() directly instead.
    """

    def __init__(
        self,
        queue: PersistentJobQueue,
        status_store: JobStatusStore,
        executor: ISyncExecutor,
        rate_limiter: RateLimiter,
        maintenance: MaintenanceRunner | None = None,
        max_batch: int = MAX_BATCH,
        cooldown_seconds: float = 2.0,
        executor_timeout_seconds: float = 30.0,
        processing_timeout_seconds: float = 600.0,
        interval_minutes: int = 15,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize sync queue worker.

        Args:
            queue: Queue to drain
            status_store: Lifecycle records, written at every transition
            executor: Performs the actual fetch + upsert per job
            rate_limiter: Shared limiter consulted before every executor call
            maintenance: Runner for CLEANUP jobs (they fail if None)
            max_batch: Max jobs per cycle
            cooldown_seconds: Pause between two jobs of one batch
            executor_timeout_seconds: Per-job executor timeout
            processing_timeout_seconds: Age after which PROCESSING counts as crashed
            interval_minutes: Loop interval for start()
            sleep: Injected for tests (cooldown only)
            clock: Injected for tests (execution time)
        """
        self._queue = queue
        self._status_store = status_store
        self._executor = executor
        self._rate_limiter = rate_limiter
        self._maintenance = maintenance
        self.max_batch = max_batch
        self.cooldown_seconds = cooldown_seconds
        self.executor_timeout_seconds = executor_timeout_seconds
        self.processing_timeout = timedelta(seconds=processing_timeout_seconds)
        self.check_interval_seconds = interval_minutes * 60
        self._sleep = sleep
        self._clock = clock

        self._cycle_lock = asyncio.Lock()
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._last_run_at: datetime | None = None
        self._last_run_stats: dict[str, Any] | None = None
        self._cycles_run = 0

    async def start(self) -> None:
        """Start the worker loop."""
        if self._running:
            logger.warning("SyncQueueWorker is already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(
            f"SyncQueueWorker started (interval: {self.check_interval_seconds}s, "
            f"batch: {self.max_batch})"
        )

    async def stop(self) -> None:
        """Stop the worker loop.

        A job in flight is abandoned (the sweep fails it later). Jobs of the batch that
        never started go back onto the queue.
        """
        self._running = False
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        logger.info("SyncQueueWorker stopped")

    def get_status(self) -> dict[str, Any]:
        """Worker status for monitoring."""
        return {
            "name": "Sync Queue Worker",
            "running": self._running,
            "status": "active" if self._running else "stopped",
            "cycle_in_progress": self._cycle_lock.locked(),
            "check_interval_seconds": self.check_interval_seconds,
            "max_batch": self.max_batch,
            "cooldown_seconds": self.cooldown_seconds,
            "cycles_run": self._cycles_run,
            "last_run_at": self._last_run_at.isoformat() if self._last_run_at else None,
            "last_run_stats": self._last_run_stats,
        }

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.run_cycle()
            except Exception as e:
                # Only infrastructure trouble (DB down...) gets here, job errors don't
                logger.error(f"Error in sync queue worker loop: {e}", exc_info=True)

            await asyncio.sleep(self.check_interval_seconds)

    async def run_cycle(self) -> dict[str, Any]:
        """Process one batch from the queue.

        Returns:
            Stats dict (dequeued/completed/failed counts, stale jobs swept)
        """
        stats: dict[str, Any] = {
            "started_at": datetime.now(UTC).isoformat(),
            "stale_failed": 0,
            "dequeued": 0,
            "completed": 0,
            "failed": 0,
            "skipped": 0,
            "requeued": 0,
            "skipped_busy": False,
        }

        # At most one cycle per process at a time
        if self._cycle_lock.locked():
            logger.info("Sync cycle already in progress, skipping this tick")
            stats["skipped_busy"] = True
            return stats

        async with self._cycle_lock:
            with correlation_scope("cycle"):
                await self._process_batch(stats)

        stats["completed_at"] = datetime.now(UTC).isoformat()
        self._last_run_at = datetime.now(UTC)
        self._last_run_stats = stats
        self._cycles_run += 1
        return stats

    async def _process_batch(self, stats: dict[str, Any]) -> None:
        try:
            stats["stale_failed"] = await self._status_store.fail_stale_processing(
                self.processing_timeout
            )
        except Exception as e:
            logger.warning(f"Stale processing sweep failed: {e}", exc_info=True)

        batch = await self._queue.dequeue_batch(self.max_batch)
        stats["dequeued"] = len(batch)
        if not batch:
            logger.debug("Sync queue empty, nothing to do")
            return

        logger.info(f"Processing {len(batch)} sync jobs")

        # Hey future me - dequeued jobs only live in this list until they reach
        # PROCESSING! Anything still in `unstarted` when we leave (stop() cancelled us,
        # the DB refused the PROCESSING write...) goes back onto the queue. Its status
        # record is still QUEUED, so the next cycle picks it up like nothing happened.
        unstarted = list(batch)
        try:
            for index, job in enumerate(batch):
                if index > 0:
                    await self._sleep(self.cooldown_seconds)
                outcome = await self._start_job(job)
                if outcome is None:
                    continue
                unstarted.remove(job)
                if outcome == "started":
                    outcome = await self._run_job(job)
                stats[outcome] += 1
        finally:
            if unstarted:
                stats["requeued"] = await self._return_to_queue(unstarted)

        logger.info(
            f"Sync cycle finished: {stats['completed']} completed, "
            f"{stats['failed']} failed, {stats['skipped']} skipped, "
            f"{stats['requeued']} requeued"
        )

    async def _start_job(self, job: Job) -> str | None:
        """QUEUED -> PROCESSING.

        Returns "started", "skipped" when the record can't move (missing or already
        moved by someone else), or None when the write itself failed and the job
        should go back onto the queue.
        """
        try:
            await self._status_store.transition(job.id, JobStatus.PROCESSING)
        except DomainException as e:
            logger.error(f"Skipping job {job.id}: {e}")
            return "skipped"
        except Exception as e:
            logger.error(
                f"Could not mark job {job.id} as processing, returning it to the queue: {e}",
                exc_info=True,
            )
            return None
        return "started"

    async def _return_to_queue(self, jobs: list[Job]) -> int:
        try:
            await self._queue.requeue(jobs)
        except Exception as e:
            logger.error(
                f"Could not return {len(jobs)} unstarted jobs to the queue "
                f"{[job.id for job in jobs]}: {e}",
                exc_info=True,
            )
            return 0
        logger.warning(f"Returned {len(jobs)} unstarted jobs to the queue")
        return len(jobs)

    async def _run_job(self, job: Job) -> str:
        """Execute a PROCESSING job and record the outcome. Returns the stats key to bump."""
        started = self._clock()
        error: JobError | None = None
        try:
            result = await self._dispatch(job)
            if not result.success:
                error = JobError(
                    message=result.error or "Sync executor reported failure",
                    error_type="SyncFailed",
                )
        except TimeoutError as e:
            error = JobError(
                message=f"Sync executor timed out after {self.executor_timeout_seconds}s",
                trace=JobError.from_exception(e).trace,
                error_type="TimeoutError",
            )
        except Exception as e:
            error = JobError.from_exception(e)
        execution_time = self._clock() - started

        try:
            if error is None:
                await self._status_store.transition(
                    job.id, JobStatus.COMPLETED, execution_time=execution_time
                )
                logger.debug(f"Job {job.id} ({job.job_type.value} {job.target}) completed")
                return "completed"

            await self._status_store.transition(
                job.id, JobStatus.FAILED, execution_time=execution_time, error=error
            )
            logger.warning(
                f"Job {job.id} ({job.job_type.value} {job.target}) failed: "
                f"[{error.error_type}] {error.message}"
            )
            return "failed"
        except Exception as e:
            # Terminal write lost - the stale sweep will fail it on a later cycle
            logger.error(
                f"Could not record outcome of job {job.id}: {e}", exc_info=True
            )
            return "skipped"

    async def _dispatch(self, job: Job) -> SyncResult:
        if job.job_type == JobType.CLEANUP:
            if self._maintenance is None:
                return SyncResult.failed("No maintenance runner configured")
            report = await self._maintenance.run()
            return SyncResult.ok(**report.to_dict())

        await self._rate_limiter.wait_if_needed()
        return await asyncio.wait_for(
            self._executor.execute(job), timeout=self.executor_timeout_seconds
        )


def create_sync_queue_worker(
    queue: PersistentJobQueue,
    status_store: JobStatusStore,
    executor: ISyncExecutor,
    rate_limiter: RateLimiter,
    settings: SyncSettings,
    maintenance: MaintenanceRunner | None = None,
) -> SyncQueueWorker:
    """Create a SyncQueueWorker configured from SyncSettings."""
    return SyncQueueWorker(
        queue=queue,
        status_store=status_store,
        executor=executor,
        rate_limiter=rate_limiter,
        maintenance=maintenance,
        max_batch=settings.max_batch,
        cooldown_seconds=settings.job_cooldown_seconds,
        executor_timeout_seconds=settings.executor_timeout_seconds,
        processing_timeout_seconds=settings.processing_timeout_seconds,
        interval_minutes=settings.worker_interval_minutes,
    )
