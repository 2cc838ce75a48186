"""Shared fixtures: in-memory database, queue and status store.

Hey future me - every test gets a FRESH in-memory SQLite DB. Database pins a
single connection (StaticPool) for ":memory:" URLs, otherwise each session would
see its own empty database.
"""

from collections.abc import AsyncGenerator, Callable

import pytest

from reelsync.application.workers.job_status_store import JobStatusStore
from reelsync.application.workers.persistent_job_queue import PersistentJobQueue
from reelsync.config import Settings
from reelsync.domain.entities import Job, JobType, SyncOptions, TargetKind, TargetRef
from reelsync.infrastructure.persistence.database import Database


@pytest.fixture
def settings() -> Settings:
    return Settings(
        app_env="test",
        database={"url": "sqlite+aiosqlite:///:memory:"},
    )


@pytest.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    db = Database(settings)
    await db.create_tables()
    yield db
    await db.close()


@pytest.fixture
def queue(database: Database) -> PersistentJobQueue:
    return PersistentJobQueue(database.get_session_factory())


@pytest.fixture
def status_store(database: Database) -> JobStatusStore:
    return JobStatusStore(database.get_session_factory())


def _make_job(
    entity_id: str = "603",
    priority: int = 10,
    job_type: JobType = JobType.SYNC,
    kind: TargetKind = TargetKind.MOVIE,
    options: SyncOptions | None = None,
) -> Job:
    return Job.create(
        job_type,
        TargetRef(kind=kind, entity_id=entity_id),
        options=options,
        priority=priority,
    )


@pytest.fixture
def make_job() -> Callable[..., Job]:
    """Factory for jobs with a fresh id (movie target by default)."""
    return _make_job
