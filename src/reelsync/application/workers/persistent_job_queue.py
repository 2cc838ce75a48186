"""Persistent Job Queue - Database-backed priority queue for sync jobs.

Hey future me - this is the QUEUE the scheduler fills and the worker drains!

PROBLEM:
Scheduler ticks and worker cycles are independent invocations. Nothing held in
memory survives between them (container restart, cron-style ticks, two workers
on two hosts...). An in-memory heap would lose every pending job.

SOLUTION:
Every mutation goes straight to the DB:
1. enqueue() inserts the queue row AND the Queued status record in ONE transaction
2. dequeue_batch() atomically removes the first N rows and hands them out
3. A failed job never comes back on its own - the operator restarts it (new Job, new id)
4. requeue() is the one way back: the worker returns jobs it took but never
   started (shutdown mid-batch), same id, same place in line

ORDERING:
```
(priority ASC, created_at ASC, seq ASC)
   lower value       oldest        insertion order
   runs first        first         tie-break
```

USAGE:
```python
queue = PersistentJobQueue(session_factory=db.get_session_factory())
job_id = await queue.enqueue(Job.create(JobType.SYNC, TargetRef(TargetKind.MOVIE, "42")))
batch = await queue.dequeue_batch(10)
```
"""

import asyncio
import logging
from collections.abc import Iterable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reelsync.domain.entities import Job, QueueStatistics
from reelsync.infrastructure.persistence.models import utc_now
from reelsync.infrastructure.persistence.repositories import (
    JobStatusRepository,
    QueuedJobRepository,
)
from reelsync.infrastructure.persistence.retry import with_db_retry

logger = logging.getLogger(__name__)


class PersistentJobQueue:
    """Durable priority queue of pending sync jobs.

    Hey future me - the asyncio.Lock only serializes dequeues inside THIS process.
    Across processes the DELETE ... RETURNING in QueuedJobRepository.take_front()
    is what guarantees a job is handed out once.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Initialize persistent job queue.

        Args:
            session_factory: Factory for creating DB sessions
        """
        self._session_factory = session_factory
        self._dequeue_lock = asyncio.Lock()

    @with_db_retry()
    async def enqueue(self, job: Job) -> str:
        """Add a job to the queue and create its Queued status record.

        Both rows are written in one transaction - either the job is queued AND
        tracked, or neither happened.

        Args:
            job: Job to enqueue

        Returns:
            Job ID
        """
        async with self._session_factory() as session:
            await QueuedJobRepository(session).add(job)
            await JobStatusRepository(session).add_queued(job, queued_at=utc_now())
            await session.commit()

        logger.debug(
            f"Enqueued job {job.id} ({job.job_type.value} {job.target}) "
            f"with priority {job.priority}"
        )
        return job.id

    @with_db_retry()
    async def enqueue_many(self, jobs: Iterable[Job]) -> list[str]:
        """Enqueue several jobs in one transaction (used by scheduler triggers)."""
        jobs = list(jobs)
        if not jobs:
            return []

        now = utc_now()
        async with self._session_factory() as session:
            queue_repo = QueuedJobRepository(session)
            status_repo = JobStatusRepository(session)
            for job in jobs:
                await queue_repo.add(job)
                await status_repo.add_queued(job, queued_at=now)
            await session.commit()

        logger.debug(f"Enqueued {len(jobs)} jobs")
        return [job.id for job in jobs]

    @with_db_retry()
    async def requeue(self, jobs: Iterable[Job]) -> int:
        """Put dequeued-but-never-started jobs back, keeping id, priority and created_at.

        Only the queue rows are written. The status records are still QUEUED from
        the original enqueue, so the jobs sort back into their old position.
        """
        jobs = list(jobs)
        if not jobs:
            return 0

        async with self._session_factory() as session:
            queue_repo = QueuedJobRepository(session)
            for job in jobs:
                await queue_repo.add(job)
            await session.commit()

        logger.debug(f"Requeued {len(jobs)} jobs: {[job.id for job in jobs]}")
        return len(jobs)

    async def dequeue_batch(self, max_count: int) -> list[Job]:
        """Atomically remove and return up to max_count jobs from the front.

        An empty list is the normal idle condition, not an error.
        """
        if max_count <= 0:
            return []
        async with self._dequeue_lock:
            return await self._take_front(max_count)

    @with_db_retry()
    async def _take_front(self, max_count: int) -> list[Job]:
        async with self._session_factory() as session:
            jobs = await QueuedJobRepository(session).take_front(max_count)
            await session.commit()

        if jobs:
            logger.debug(f"Dequeued {len(jobs)} jobs: {[job.id for job in jobs]}")
        return jobs

    async def size(self) -> int:
        async with self._session_factory() as session:
            return await QueuedJobRepository(session).count()

    async def peek(self, limit: int | None = None) -> list[Job]:
        """Queued jobs in dispatch order, without removing them."""
        async with self._session_factory() as session:
            return await QueuedJobRepository(session).list_all(limit)

    async def statistics(self) -> QueueStatistics:
        async with self._session_factory() as session:
            return await QueuedJobRepository(session).statistics()

    # Listen up, clear() only drops the QUEUE rows! Their status records stay in
    # "queued" as an audit trail of what was thrown away. Nothing will ever move
    # them again, maintenance deletes them once they fall out of the retention window
    # (JobStatusStore.delete_older_than, queued records without a queue row).
    @with_db_retry()
    async def clear(self) -> int:
        """Empty the queue unconditionally. Irreversible.

        Returns:
            Number of jobs removed
        """
        async with self._dequeue_lock:
            async with self._session_factory() as session:
                removed = await QueuedJobRepository(session).clear()
                await session.commit()

        logger.warning(f"Queue cleared, {removed} pending jobs removed")
        return removed


def create_persistent_job_queue(
    session_factory: async_sessionmaker[AsyncSession],
) -> PersistentJobQueue:
    """Create a PersistentJobQueue bound to the given session factory."""
    return PersistentJobQueue(session_factory=session_factory)
