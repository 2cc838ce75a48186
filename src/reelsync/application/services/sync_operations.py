"""Operator actions on the sync engine (invoked out-of-band, not on a schedule).

Thin layer over the queue and status store. The HTTP router in api/routers/sync.py
is one caller; a CLI or admin page of the host app can be another.
"""

import logging

from reelsync.application.workers.job_status_store import JobStatusStore
from reelsync.application.workers.persistent_job_queue import PersistentJobQueue
from reelsync.domain.entities import (
    Job,
    JobStatus,
    JobStatusRecord,
    JobType,
    QueueStatistics,
    SyncOptions,
    TargetRef,
)
from reelsync.domain.exceptions import ValidationException

logger = logging.getLogger(__name__)


class SyncOperations:
    """Operator surface: enqueue, restart, clear, introspection."""

    def __init__(self, queue: PersistentJobQueue, status_store: JobStatusStore) -> None:
        self._queue = queue
        self._status_store = status_store

    async def enqueue(
        self,
        job_type: JobType,
        target: TargetRef | None,
        options: SyncOptions | None = None,
        priority: int | None = None,
    ) -> str:
        """Queue a single job by hand.

        Raises:
            ValidationException: Missing target or options not valid for job_type
        """
        job = Job.create(job_type, target, options, priority)
        job_id = await self._queue.enqueue(job)
        logger.info(f"Operator enqueued job {job_id} ({job_type.value} {target})")
        return job_id

    # Hey future me - restart does NOT touch the failed record! The failed row stays
    # as history, and a brand-new Job (new id, same target + options + priority) goes
    # into the queue. Calling this twice restarts every failure twice - the executor
    # is idempotent, so that's wasted quota, not corruption.
    async def restart_failed_jobs(self) -> int:
        """Re-enqueue a fresh copy of every Failed job.

        Returns:
            Number of jobs restarted
        """
        failed = await self._status_store.list_by_status(JobStatus.FAILED)
        if not failed:
            return 0

        jobs: list[Job] = []
        for record in failed:
            try:
                jobs.append(record.job.restarted())
            except ValidationException as e:
                logger.warning(f"Cannot restart job {record.job_id}, bad snapshot: {e}")

        await self._queue.enqueue_many(jobs)
        logger.info(f"Restarted {len(jobs)} of {len(failed)} failed jobs")
        return len(jobs)

    async def clear_queue(self) -> int:
        """Drop every pending job. Irreversible.

        Returns:
            Number of jobs removed
        """
        return await self._queue.clear()

    async def queue_statistics(self) -> QueueStatistics:
        return await self._queue.statistics()

    async def job_status(self, job_id: str) -> JobStatusRecord:
        """Status record of a job.

        Raises:
            EntityNotFoundException: Unknown job id
        """
        return await self._status_store.get(job_id)

    async def list_jobs(
        self, status: JobStatus, limit: int | None = None
    ) -> list[JobStatusRecord]:
        return await self._status_store.list_by_status(status, limit)

    async def status_counts(self) -> dict[str, int]:
        return await self._status_store.count_by_status()
