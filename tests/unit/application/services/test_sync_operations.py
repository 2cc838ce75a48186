"""Tests for operator actions."""

from collections.abc import Callable

import pytest

from reelsync.application.services.sync_operations import SyncOperations
from reelsync.application.workers.job_status_store import JobStatusStore
from reelsync.application.workers.persistent_job_queue import PersistentJobQueue
from reelsync.domain.entities import (
    Job,
    JobError,
    JobStatus,
    JobType,
    SyncOptions,
    TargetKind,
    TargetRef,
)
from reelsync.domain.exceptions import EntityNotFoundException, ValidationException


@pytest.fixture
def operations(queue: PersistentJobQueue, status_store: JobStatusStore) -> SyncOperations:
    return SyncOperations(queue, status_store)


async def _fail(status_store: JobStatusStore, job_id: str) -> None:
    await status_store.transition(job_id, JobStatus.PROCESSING)
    await status_store.transition(
        job_id, JobStatus.FAILED, error=JobError(message="upstream 503")
    )


class TestEnqueue:
    async def test_enqueue_creates_queued_job(
        self, operations: SyncOperations, queue: PersistentJobQueue
    ) -> None:
        target = TargetRef(kind=TargetKind.TV, entity_id="1399")
        job_id = await operations.enqueue(
            JobType.SYNC, target, SyncOptions(sync_credits=False), priority=3
        )

        (job,) = await queue.peek()
        assert job.id == job_id
        assert job.priority == 3
        assert (await operations.job_status(job_id)).status == JobStatus.QUEUED

    async def test_enqueue_without_target_rejected(
        self, operations: SyncOperations, queue: PersistentJobQueue
    ) -> None:
        with pytest.raises(ValidationException):
            await operations.enqueue(JobType.SYNC, None)
        assert await queue.size() == 0


class TestRestartFailedJobs:
    async def test_restart_creates_new_job_with_same_payload(
        self,
        operations: SyncOperations,
        queue: PersistentJobQueue,
        status_store: JobStatusStore,
        make_job: Callable[..., Job],
    ) -> None:
        original = make_job(entity_id="42", options=SyncOptions(sync_images=True))
        await queue.enqueue(original)
        await queue.dequeue_batch(1)
        await _fail(status_store, original.id)

        restarted = await operations.restart_failed_jobs()

        assert restarted == 1
        (copy,) = await queue.peek()
        assert copy.id != original.id
        assert copy.target == original.target
        assert copy.options == original.options
        assert copy.priority == original.priority
        # The failed record is history and stays as it was
        failed = await status_store.get(original.id)
        assert failed.status == JobStatus.FAILED
        assert failed.error is not None
        assert failed.error.message == "upstream 503"
        assert (await status_store.get(copy.id)).status == JobStatus.QUEUED

    async def test_nothing_failed(self, operations: SyncOperations) -> None:
        assert await operations.restart_failed_jobs() == 0

    async def test_only_failed_jobs_are_restarted(
        self,
        operations: SyncOperations,
        queue: PersistentJobQueue,
        status_store: JobStatusStore,
        make_job: Callable[..., Job],
    ) -> None:
        failed_id, done_id = await queue.enqueue_many([make_job("1"), make_job("2")])
        await queue.dequeue_batch(2)
        await _fail(status_store, failed_id)
        await status_store.transition(done_id, JobStatus.PROCESSING)
        await status_store.transition(done_id, JobStatus.COMPLETED)

        assert await operations.restart_failed_jobs() == 1
        (copy,) = await queue.peek()
        assert copy.target == TargetRef(kind=TargetKind.MOVIE, entity_id="1")


class TestIntrospection:
    async def test_clear_and_statistics(
        self,
        operations: SyncOperations,
        queue: PersistentJobQueue,
        make_job: Callable[..., Job],
    ) -> None:
        await queue.enqueue_many([make_job(str(i)) for i in range(3)])

        assert (await operations.queue_statistics()).total_queued == 3
        assert await operations.clear_queue() == 3
        assert (await operations.queue_statistics()).total_queued == 0

    async def test_job_status_unknown(self, operations: SyncOperations) -> None:
        with pytest.raises(EntityNotFoundException):
            await operations.job_status("missing")

    async def test_list_jobs_and_counts(
        self,
        operations: SyncOperations,
        queue: PersistentJobQueue,
        make_job: Callable[..., Job],
    ) -> None:
        await queue.enqueue(make_job())

        assert len(await operations.list_jobs(JobStatus.QUEUED)) == 1
        assert (await operations.status_counts())["queued"] == 1
