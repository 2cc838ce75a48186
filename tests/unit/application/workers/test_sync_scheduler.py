"""Tests for SyncScheduler."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from reelsync.application.workers.persistent_job_queue import PersistentJobQueue
from reelsync.application.workers.sync_scheduler import SyncScheduler
from reelsync.domain.entities import Cadence, JobRequest, JobType, TargetKind, TargetRef
from reelsync.domain.exceptions import EntityNotFoundException, ValidationException
from reelsync.infrastructure.persistence.database import Database


class MutableClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now


def _requests(count: int, priority: int = 10) -> list[JobRequest]:
    return [
        JobRequest(
            target=TargetRef(kind=TargetKind.MOVIE, entity_id=str(i)),
            job_type=JobType.SYNC,
            priority=priority,
        )
        for i in range(count)
    ]


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
def scheduler(
    database: Database, queue: PersistentJobQueue, clock: MutableClock
) -> SyncScheduler:
    return SyncScheduler(database.get_session_factory(), queue, clock=clock)


class TestRegistration:
    def test_duplicate_name_rejected(self, scheduler: SyncScheduler) -> None:
        scheduler.register_trigger("recent", Cadence.HOURLY, AsyncMock(), 10)
        with pytest.raises(ValidationException, match="already registered"):
            scheduler.register_trigger("recent", Cadence.DAILY, AsyncMock(), 10)

    def test_batch_size_must_be_positive(self, scheduler: SyncScheduler) -> None:
        with pytest.raises(ValidationException):
            scheduler.register_trigger("recent", Cadence.HOURLY, AsyncMock(), 0)

    def test_clear_triggers(self, scheduler: SyncScheduler) -> None:
        scheduler.register_trigger("recent", Cadence.HOURLY, AsyncMock(), 10)
        scheduler.clear_triggers()
        assert scheduler.triggers == []


class TestFire:
    """fire(): call, cap, enqueue, record."""

    async def test_fire_caps_at_batch_size(
        self, scheduler: SyncScheduler, queue: PersistentJobQueue
    ) -> None:
        trigger_fn = AsyncMock(return_value=_requests(30))
        scheduler.register_trigger("stale", Cadence.TWICE_DAILY, trigger_fn, 25)

        summary = await scheduler.fire("stale")

        assert summary.found == 30
        assert summary.enqueued == 25
        assert summary.error is None
        assert await queue.size() == 25

    async def test_fire_enqueues_with_request_priority(
        self, scheduler: SyncScheduler, queue: PersistentJobQueue
    ) -> None:
        scheduler.register_trigger(
            "recent", Cadence.HOURLY, AsyncMock(return_value=_requests(2, priority=5)), 10
        )
        await scheduler.fire("recent")
        assert {job.priority for job in await queue.peek()} == {5}

    async def test_fire_unknown_trigger(self, scheduler: SyncScheduler) -> None:
        with pytest.raises(EntityNotFoundException):
            await scheduler.fire("nope")

    async def test_trigger_error_is_recorded_not_raised(
        self, scheduler: SyncScheduler, queue: PersistentJobQueue
    ) -> None:
        trigger_fn = AsyncMock(side_effect=RuntimeError("content source down"))
        scheduler.register_trigger("recent", Cadence.HOURLY, trigger_fn, 10)

        summary = await scheduler.fire("recent")

        assert summary.enqueued == 0
        assert summary.error == "RuntimeError: content source down"
        assert await queue.size() == 0
        persisted = await scheduler.last_run("recent")
        assert persisted is not None
        assert persisted.error == summary.error

    async def test_fire_persists_last_run(
        self, scheduler: SyncScheduler, clock: MutableClock
    ) -> None:
        scheduler.register_trigger("recent", Cadence.HOURLY, AsyncMock(return_value=[]), 10)
        await scheduler.fire("recent")

        last = await scheduler.last_run("recent")

        assert last is not None
        assert last.started_at == clock.now
        assert last.found == 0


class TestCadence:
    """is_due() / run_due() read the persisted last run."""

    async def test_never_run_trigger_is_due(self, scheduler: SyncScheduler) -> None:
        scheduler.register_trigger("daily", Cadence.DAILY, AsyncMock(return_value=[]), 1)
        assert await scheduler.is_due("daily")

    async def test_run_due_respects_cadence(
        self, scheduler: SyncScheduler, clock: MutableClock
    ) -> None:
        hourly = AsyncMock(return_value=[])
        daily = AsyncMock(return_value=[])
        scheduler.register_trigger("hourly", Cadence.HOURLY, hourly, 10)
        scheduler.register_trigger("daily", Cadence.DAILY, daily, 1)

        first = await scheduler.run_due()
        assert {s.trigger_name for s in first} == {"hourly", "daily"}

        clock.now += timedelta(minutes=30)
        assert await scheduler.run_due() == []

        clock.now += timedelta(minutes=30)
        second = await scheduler.run_due()
        assert [s.trigger_name for s in second] == ["hourly"]
        assert hourly.await_count == 2
        assert daily.await_count == 1

    async def test_last_run_survives_new_scheduler_instance(
        self,
        database: Database,
        queue: PersistentJobQueue,
        scheduler: SyncScheduler,
        clock: MutableClock,
    ) -> None:
        scheduler.register_trigger("daily", Cadence.DAILY, AsyncMock(return_value=[]), 1)
        await scheduler.fire("daily")

        # Simulates a process restart
        restarted = SyncScheduler(database.get_session_factory(), queue, clock=clock)
        restarted.register_trigger("daily", Cadence.DAILY, AsyncMock(return_value=[]), 1)

        clock.now += timedelta(hours=2)
        assert not await restarted.is_due("daily")


class TestStatus:
    async def test_trigger_status_includes_next_due(
        self, scheduler: SyncScheduler, clock: MutableClock
    ) -> None:
        scheduler.register_trigger("hourly", Cadence.HOURLY, AsyncMock(return_value=[]), 10)
        await scheduler.fire("hourly")

        (status,) = await scheduler.get_trigger_status()

        assert status["name"] == "hourly"
        assert status["cadence"] == "hourly"
        assert status["next_due_at"] == (clock.now + timedelta(hours=1)).isoformat()
        assert status["last_run"]["enqueued"] == 0

    async def test_start_without_triggers_does_nothing(
        self, scheduler: SyncScheduler
    ) -> None:
        await scheduler.start()
        assert scheduler.get_status()["running"] is False

    async def test_start_and_stop(self, scheduler: SyncScheduler) -> None:
        scheduler.register_trigger("hourly", Cadence.HOURLY, AsyncMock(return_value=[]), 10)
        await scheduler.start()
        assert scheduler.get_status()["running"] is True
        await scheduler.stop()
        assert scheduler.get_status()["running"] is False
