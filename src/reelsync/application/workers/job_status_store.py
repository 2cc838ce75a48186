"""Job status store - lifecycle/audit records for every sync job.

Hey future me - this is the single source of truth for "what happened to job X"!

Lifecycle is strictly monotonic:

    QUEUED -> PROCESSING -> COMPLETED
                         -> FAILED

Anything else (Completed -> Queued, Queued -> Completed, ...) raises
InvalidTransition. That's a programming bug, so it's logged at ERROR and
propagated - never "fixed up" silently. The stored status is left as it was.
"""

import logging
from datetime import timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reelsync.domain.entities import Job, JobError, JobStatus, JobStatusRecord
from reelsync.domain.exceptions import (
    EntityNotFoundException,
    InvalidTransition,
    ValidationException,
)
from reelsync.infrastructure.persistence.models import utc_now
from reelsync.infrastructure.persistence.repositories import JobStatusRepository
from reelsync.infrastructure.persistence.retry import with_db_retry

logger = logging.getLogger(__name__)

PROCESSING_TIMEOUT_ERROR = "ProcessingTimeout"


class JobStatusStore:
    """Persistent job lifecycle records keyed by job id."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Initialize store.

        Args:
            session_factory: Factory for creating DB sessions
        """
        self._session_factory = session_factory

    @with_db_retry()
    async def create(self, job: Job) -> JobStatusRecord:
        """Create the Queued record for a job that is tracked outside the queue.

        PersistentJobQueue.enqueue() already does this in its own transaction.
        """
        async with self._session_factory() as session:
            repo = JobStatusRepository(session)
            await repo.add_queued(job, queued_at=utc_now())
            await session.commit()
            record = await repo.get(job.id)
        if record is None:
            raise EntityNotFoundException("JobStatus", job.id)
        return record

    @with_db_retry()
    async def transition(
        self,
        job_id: str,
        new_status: JobStatus,
        *,
        execution_time: float | None = None,
        error: JobError | None = None,
    ) -> JobStatusRecord:
        """Move a job to new_status and stamp the matching timestamp.

        Processing sets started_at, Completed sets completed_at, Failed sets
        failed_at. execution_time/error are only accepted on terminal moves,
        error only on Failed.

        Raises:
            EntityNotFoundException: No record for job_id
            InvalidTransition: The move violates the lifecycle, or a concurrent
                writer changed the status first
            ValidationException: error given for a non-Failed transition
        """
        if error is not None and new_status != JobStatus.FAILED:
            raise ValidationException(
                f"Job {job_id}: error can only be recorded on a failed transition"
            )
        if execution_time is not None and not new_status.is_terminal:
            raise ValidationException(
                f"Job {job_id}: execution_time is only set on terminal transitions"
            )

        async with self._session_factory() as session:
            repo = JobStatusRepository(session)
            current = await repo.get(job_id)
            if current is None:
                raise EntityNotFoundException("JobStatus", job_id)

            try:
                current.check_transition(new_status)
            except InvalidTransition:
                logger.error(
                    f"Rejected status transition for job {job_id}: "
                    f"{current.status.value} -> {new_status.value}"
                )
                raise

            now = utc_now()
            values: dict[str, Any] = {"updated_at": now}
            if new_status == JobStatus.PROCESSING:
                values["started_at"] = now
            elif new_status == JobStatus.COMPLETED:
                values["completed_at"] = now
                values["execution_time"] = execution_time
            elif new_status == JobStatus.FAILED:
                values["failed_at"] = now
                values["execution_time"] = execution_time
                failure = error or JobError(message="Job failed")
                values["error_message"] = failure.message
                values["error_trace"] = failure.trace
                values["error_type"] = failure.error_type

            applied = await repo.compare_and_set(
                job_id, current.status, new_status, values
            )
            if not applied:
                # Someone else moved it between our read and our write
                await session.rollback()
                latest = await repo.get(job_id)
                actual = latest.status if latest else current.status
                logger.error(
                    f"Concurrent status change for job {job_id}: expected "
                    f"{current.status.value}, found {actual.value}"
                )
                raise InvalidTransition(job_id, actual, new_status)

            await session.commit()
            record = await repo.get(job_id)

        if record is None:
            raise EntityNotFoundException("JobStatus", job_id)
        logger.debug(
            f"Job {job_id}: {current.status.value} -> {new_status.value}"
        )
        return record

    async def get(self, job_id: str) -> JobStatusRecord:
        """Get the record for a job.

        Raises:
            EntityNotFoundException: No record for job_id
        """
        record = await self.find(job_id)
        if record is None:
            raise EntityNotFoundException("JobStatus", job_id)
        return record

    async def find(self, job_id: str) -> JobStatusRecord | None:
        async with self._session_factory() as session:
            return await JobStatusRepository(session).get(job_id)

    async def list_by_status(
        self, status: JobStatus, limit: int | None = None
    ) -> list[JobStatusRecord]:
        async with self._session_factory() as session:
            return await JobStatusRepository(session).list_by_status(status, limit)

    async def count_by_status(self) -> dict[str, int]:
        async with self._session_factory() as session:
            return await JobStatusRepository(session).count_by_status()

    @with_db_retry()
    async def delete_older_than(self, age: timedelta) -> int:
        """Delete records that fell out of the retention window.

        Terminal records go once their last update is older than age. Queued
        records go once they were queued before that AND their queue row is gone
        (dropped by PersistentJobQueue.clear()). Processing records are never
        deleted here, no matter how old.

        Returns:
            Number of records deleted
        """
        cutoff = utc_now() - age
        async with self._session_factory() as session:
            repo = JobStatusRepository(session)
            deleted = await repo.delete_terminal_before(cutoff)
            deleted += await repo.delete_orphaned_queued_before(cutoff)
            await session.commit()

        if deleted:
            logger.info(f"Deleted {deleted} job status records older than {age.days} days")
        return deleted

    # Hey future me - this is the crash recovery! If the process dies between
    # PROCESSING and the terminal write, the record would sit in PROCESSING forever.
    # Anything that has been "processing" longer than older_than is declared dead and
    # marked FAILED, which makes it visible to restart_failed_jobs().
    @with_db_retry()
    async def fail_stale_processing(self, older_than: timedelta) -> int:
        """Force Processing records started before now - older_than to Failed.

        Returns:
            Number of records failed
        """
        now = utc_now()
        cutoff = now - older_than
        failed = 0

        async with self._session_factory() as session:
            repo = JobStatusRepository(session)
            for record in await repo.list_processing_since_before(cutoff):
                started = record.started_at or record.updated_at
                applied = await repo.compare_and_set(
                    record.job_id,
                    JobStatus.PROCESSING,
                    JobStatus.FAILED,
                    {
                        "updated_at": now,
                        "failed_at": now,
                        "execution_time": (now - started).total_seconds(),
                        "error_message": (
                            f"Job exceeded processing timeout of "
                            f"{int(older_than.total_seconds())}s"
                        ),
                        "error_trace": None,
                        "error_type": PROCESSING_TIMEOUT_ERROR,
                    },
                )
                if applied:
                    failed += 1
            await session.commit()

        if failed:
            logger.warning(f"Marked {failed} stuck processing jobs as failed")
        return failed


def create_job_status_store(
    session_factory: async_sessionmaker[AsyncSession],
) -> JobStatusStore:
    """Create a JobStatusStore bound to the given session factory."""
    return JobStatusStore(session_factory=session_factory)
