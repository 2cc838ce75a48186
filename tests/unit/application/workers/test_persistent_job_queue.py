"""Tests for PersistentJobQueue (DB-backed priority queue)."""

import asyncio
from collections.abc import Callable
from pathlib import Path

from reelsync.application.workers.job_status_store import JobStatusStore
from reelsync.application.workers.persistent_job_queue import (
    PersistentJobQueue,
    create_persistent_job_queue,
)
from reelsync.config import Settings
from reelsync.domain.entities import Job, JobStatus, JobType
from reelsync.infrastructure.persistence.database import Database


class TestEnqueue:
    """enqueue() / enqueue_many()."""

    async def test_enqueue_returns_id_and_creates_queued_record(
        self,
        queue: PersistentJobQueue,
        status_store: JobStatusStore,
        make_job: Callable[..., Job],
    ) -> None:
        job = make_job()
        job_id = await queue.enqueue(job)

        assert job_id == job.id
        assert await queue.size() == 1
        record = await status_store.get(job_id)
        assert record.status == JobStatus.QUEUED
        assert record.job == job

    async def test_enqueue_many_tracks_every_job(
        self,
        queue: PersistentJobQueue,
        status_store: JobStatusStore,
        make_job: Callable[..., Job],
    ) -> None:
        jobs = [make_job(entity_id=str(i)) for i in range(3)]
        ids = await queue.enqueue_many(jobs)

        assert ids == [job.id for job in jobs]
        assert await queue.size() == 3
        counts = await status_store.count_by_status()
        assert counts["queued"] == 3

    async def test_enqueue_many_empty_is_noop(self, queue: PersistentJobQueue) -> None:
        assert await queue.enqueue_many([]) == []
        assert await queue.size() == 0


class TestDequeueBatch:
    """Ordering and batch bounds."""

    async def test_lower_priority_value_first(
        self, queue: PersistentJobQueue, make_job: Callable[..., Job]
    ) -> None:
        # Hey future me - lower number = more urgent
        for entity_id, priority in (("a", 5), ("b", 1), ("c", 10)):
            await queue.enqueue(make_job(entity_id=entity_id, priority=priority))

        batch = await queue.dequeue_batch(10)

        assert [job.priority for job in batch] == [1, 5, 10]
        assert [job.target.entity_id for job in batch if job.target] == ["b", "a", "c"]

    async def test_equal_priority_is_fifo(
        self, queue: PersistentJobQueue, make_job: Callable[..., Job]
    ) -> None:
        jobs = [make_job(entity_id=str(i), priority=10) for i in range(5)]
        await queue.enqueue_many(jobs)

        batch = await queue.dequeue_batch(5)

        assert [job.id for job in batch] == [job.id for job in jobs]

    async def test_batch_is_bounded_and_removes_taken_jobs(
        self, queue: PersistentJobQueue, make_job: Callable[..., Job]
    ) -> None:
        await queue.enqueue_many([make_job(entity_id=str(i)) for i in range(12)])

        first = await queue.dequeue_batch(10)
        second = await queue.dequeue_batch(10)

        assert len(first) == 10
        assert len(second) == 2
        assert not {job.id for job in first} & {job.id for job in second}
        assert await queue.size() == 0

    async def test_empty_queue_returns_empty_list(self, queue: PersistentJobQueue) -> None:
        assert await queue.dequeue_batch(10) == []

    async def test_non_positive_count_returns_nothing(
        self, queue: PersistentJobQueue, make_job: Callable[..., Job]
    ) -> None:
        await queue.enqueue(make_job())
        assert await queue.dequeue_batch(0) == []
        assert await queue.size() == 1

    async def test_dequeued_job_keeps_payload(
        self, queue: PersistentJobQueue, make_job: Callable[..., Job]
    ) -> None:
        job = Job.create(JobType.CLEANUP, None, priority=50)
        await queue.enqueue(job)
        await queue.enqueue(make_job())

        batch = await queue.dequeue_batch(2)

        assert batch[1] == job
        assert batch[1].target is None

    async def test_dequeue_does_not_change_status(
        self,
        queue: PersistentJobQueue,
        status_store: JobStatusStore,
        make_job: Callable[..., Job],
    ) -> None:
        job_id = await queue.enqueue(make_job())
        await queue.dequeue_batch(1)
        # The worker moves it to processing, not the queue
        assert (await status_store.get(job_id)).status == JobStatus.QUEUED


class TestConcurrentDequeue:
    """Two queues on one database file, like two worker processes."""

    async def test_concurrent_batches_never_share_a_job(
        self, tmp_path: Path, make_job: Callable[..., Job]
    ) -> None:
        settings = Settings(
            app_env="test",
            database={"url": f"sqlite+aiosqlite:///{tmp_path / 'queue.db'}"},
        )
        database = Database(settings)
        await database.create_tables()
        try:
            first = PersistentJobQueue(database.get_session_factory())
            second = PersistentJobQueue(database.get_session_factory())
            await first.enqueue_many([make_job(entity_id=str(i)) for i in range(40)])

            batches = await asyncio.gather(
                first.dequeue_batch(15), second.dequeue_batch(15)
            )

            taken = [job.id for batch in batches for job in batch]
            assert taken
            assert len(taken) == len(set(taken))
            assert not {job.id for job in batches[0]} & {job.id for job in batches[1]}
            assert len(taken) + await first.size() == 40
        finally:
            await database.close()


class TestRequeue:
    async def test_requeued_jobs_keep_their_place(
        self,
        queue: PersistentJobQueue,
        status_store: JobStatusStore,
        make_job: Callable[..., Job],
    ) -> None:
        urgent = make_job(entity_id="1", priority=1)
        later = make_job(entity_id="2", priority=20)
        await queue.enqueue_many([urgent, later])
        batch = await queue.dequeue_batch(1)

        assert await queue.requeue(batch) == 1

        assert [job.id for job in await queue.peek()] == [urgent.id, later.id]
        assert (await status_store.get(urgent.id)).status == JobStatus.QUEUED

    async def test_requeue_nothing(self, queue: PersistentJobQueue) -> None:
        assert await queue.requeue([]) == 0
        assert await queue.size() == 0


class TestInspection:
    """size(), peek(), statistics(), clear()."""

    async def test_peek_is_read_only(
        self, queue: PersistentJobQueue, make_job: Callable[..., Job]
    ) -> None:
        await queue.enqueue(make_job(priority=20))
        await queue.enqueue(make_job(priority=5))

        peeked = await queue.peek()

        assert [job.priority for job in peeked] == [5, 20]
        assert await queue.size() == 2
        assert len(await queue.peek(limit=1)) == 1

    async def test_statistics(
        self, queue: PersistentJobQueue, make_job: Callable[..., Job]
    ) -> None:
        first = make_job(priority=5)
        await queue.enqueue(first)
        await queue.enqueue(make_job(priority=5, job_type=JobType.BULK_SYNC))
        last = make_job(priority=15)
        await queue.enqueue(last)

        stats = await queue.statistics()

        assert stats.total_queued == 3
        assert stats.by_type == {"sync": 2, "bulk_sync": 1}
        assert stats.by_priority == {5: 2, 15: 1}
        assert stats.oldest_job is not None and stats.oldest_job.id == first.id
        assert stats.newest_job is not None and stats.newest_job.id == last.id

    async def test_statistics_of_empty_queue(self, queue: PersistentJobQueue) -> None:
        stats = await queue.statistics()
        assert stats.total_queued == 0
        assert stats.oldest_job is None

    async def test_clear_removes_all_and_keeps_status_records(
        self,
        queue: PersistentJobQueue,
        status_store: JobStatusStore,
        make_job: Callable[..., Job],
    ) -> None:
        ids = await queue.enqueue_many([make_job(entity_id=str(i)) for i in range(4)])

        removed = await queue.clear()

        assert removed == 4
        assert await queue.size() == 0
        assert await queue.dequeue_batch(10) == []
        assert (await status_store.get(ids[0])).status == JobStatus.QUEUED

    async def test_factory(self, database: Database) -> None:
        queue = create_persistent_job_queue(database.get_session_factory())
        assert isinstance(queue, PersistentJobQueue)
