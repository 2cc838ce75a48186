"""SQLAlchemy repositories for the sync queue, status records and trigger runs.

Hey future me - repositories NEVER commit! The caller owns the session and the
transaction (see PersistentJobQueue / JobStatusStore), so "enqueue = queue row +
status row" stays one atomic unit.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from reelsync.domain.entities import (
    Job,
    JobError,
    JobStatus,
    JobStatusRecord,
    JobType,
    QueueStatistics,
    SyncOptions,
    TargetKind,
    TargetRef,
    TriggerRunSummary,
)
from reelsync.domain.exceptions import ValidationException
from reelsync.infrastructure.persistence.models import (
    JobStatusModel,
    QueuedJobModel,
    TriggerRunModel,
    ensure_utc_aware,
)

# (priority, created_at, seq) ascending = stable priority queue
_QUEUE_ORDER = (
    QueuedJobModel.priority,
    QueuedJobModel.created_at,
    QueuedJobModel.seq,
)


class QueuedJobRepository:
    """Pending jobs, ordered by priority then enqueue order."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def add(self, job: Job) -> None:
        """Insert a job into the queue table."""
        self.session.add(
            QueuedJobModel(
                job_id=job.id,
                job_type=job.job_type.value,
                target_kind=job.target.kind.value if job.target else None,
                target_id=job.target.entity_id if job.target else None,
                options=job.options.to_dict(),
                priority=job.priority,
                created_at=job.created_at,
            )
        )
        await self.session.flush()

    # Yo, this is the "atomic read-and-remove". We SELECT the front rows, then DELETE
    # them by seq with RETURNING. If a concurrent worker already deleted some of them,
    # they're simply missing from RETURNING - so a job can never be handed to two
    # workers. On PostgreSQL SKIP LOCKED keeps concurrent workers off each other's
    # rows; SQLite serializes writers anyway and ignores FOR UPDATE.
    async def take_front(self, max_count: int) -> list[Job]:
        """Remove and return up to max_count jobs from the front of the queue."""
        if max_count <= 0:
            return []

        stmt = (
            select(QueuedJobModel)
            .order_by(*_QUEUE_ORDER)
            .limit(max_count)
            .with_for_update(skip_locked=True)
        )
        models = list((await self.session.execute(stmt)).scalars().all())
        if not models:
            return []

        result = await self.session.execute(
            delete(QueuedJobModel)
            .where(QueuedJobModel.seq.in_([m.seq for m in models]))
            .returning(QueuedJobModel.seq)
        )
        deleted = set(result.scalars().all())
        return [self._model_to_job(m) for m in models if m.seq in deleted]

    async def count(self) -> int:
        stmt = select(func.count()).select_from(QueuedJobModel)
        return int((await self.session.execute(stmt)).scalar_one())

    async def list_all(self, limit: int | None = None) -> list[Job]:
        """Queued jobs in dispatch order (read-only)."""
        stmt = select(QueuedJobModel).order_by(*_QUEUE_ORDER)
        if limit is not None:
            stmt = stmt.limit(limit)
        models = (await self.session.execute(stmt)).scalars().all()
        return [self._model_to_job(m) for m in models]

    async def clear(self) -> int:
        result = await self.session.execute(delete(QueuedJobModel))
        return result.rowcount or 0  # type: ignore[attr-defined]

    async def statistics(self) -> QueueStatistics:
        stats = QueueStatistics()

        by_type = await self.session.execute(
            select(QueuedJobModel.job_type, func.count()).group_by(
                QueuedJobModel.job_type
            )
        )
        stats.by_type = {job_type: int(count) for job_type, count in by_type.all()}

        by_priority = await self.session.execute(
            select(QueuedJobModel.priority, func.count()).group_by(
                QueuedJobModel.priority
            )
        )
        stats.by_priority = {
            int(priority): int(count) for priority, count in by_priority.all()
        }
        stats.total_queued = sum(stats.by_type.values())

        if stats.total_queued:
            oldest = await self.session.execute(
                select(QueuedJobModel)
                .order_by(QueuedJobModel.created_at, QueuedJobModel.seq)
                .limit(1)
            )
            newest = await self.session.execute(
                select(QueuedJobModel)
                .order_by(QueuedJobModel.created_at.desc(), QueuedJobModel.seq.desc())
                .limit(1)
            )
            stats.oldest_job = self._model_to_job(oldest.scalar_one())
            stats.newest_job = self._model_to_job(newest.scalar_one())

        return stats

    def _model_to_job(self, model: QueuedJobModel) -> Job:
        target = None
        if model.target_kind is not None and model.target_id is not None:
            target = TargetRef(kind=TargetKind(model.target_kind), entity_id=model.target_id)
        return Job(
            id=model.job_id,
            job_type=JobType(model.job_type),
            target=target,
            options=SyncOptions.from_dict(model.options),
            priority=model.priority,
            created_at=ensure_utc_aware(model.created_at),
        )


class JobStatusRepository:
    """Job lifecycle records."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def add_queued(self, job: Job, queued_at: datetime) -> None:
        self.session.add(
            JobStatusModel(
                job_id=job.id,
                status=JobStatus.QUEUED.value,
                job_type=job.job_type.value,
                job_snapshot=job.to_snapshot(),
                queued_at=queued_at,
                updated_at=queued_at,
            )
        )
        await self.session.flush()

    async def get(self, job_id: str) -> JobStatusRecord | None:
        # populate_existing: callers re-read right after a bulk UPDATE in the same session
        model = await self.session.get(JobStatusModel, job_id, populate_existing=True)
        return self._model_to_record(model) if model else None

    # Hey future me - the WHERE status = :expected is the whole trick! Two concurrent
    # writers can both read "processing", but only one UPDATE matches. The loser gets
    # rowcount 0 and the store raises InvalidTransition instead of overwriting.
    async def compare_and_set(
        self,
        job_id: str,
        expected: JobStatus,
        new_status: JobStatus,
        values: dict[str, Any],
    ) -> bool:
        """Move expected -> new_status with extra column values; False if it didn't match."""
        result = await self.session.execute(
            update(JobStatusModel)
            .where(
                JobStatusModel.job_id == job_id,
                JobStatusModel.status == expected.value,
            )
            .values(status=new_status.value, **values)
        )
        return (result.rowcount or 0) == 1  # type: ignore[attr-defined]

    async def list_by_status(
        self, status: JobStatus, limit: int | None = None
    ) -> list[JobStatusRecord]:
        stmt = (
            select(JobStatusModel)
            .where(JobStatusModel.status == status.value)
            .order_by(JobStatusModel.updated_at)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        models = (await self.session.execute(stmt)).scalars().all()
        return [self._model_to_record(m) for m in models]

    async def list_processing_since_before(self, cutoff: datetime) -> list[JobStatusRecord]:
        """Processing records whose start is older than cutoff."""
        stmt = select(JobStatusModel).where(
            JobStatusModel.status == JobStatus.PROCESSING.value,
            JobStatusModel.started_at < cutoff,
        )
        models = (await self.session.execute(stmt)).scalars().all()
        return [self._model_to_record(m) for m in models]

    async def delete_terminal_before(self, cutoff: datetime) -> int:
        """Delete Completed/Failed records last updated before cutoff."""
        result = await self.session.execute(
            delete(JobStatusModel).where(
                JobStatusModel.status.in_(
                    [JobStatus.COMPLETED.value, JobStatus.FAILED.value]
                ),
                JobStatusModel.updated_at < cutoff,
            )
        )
        return result.rowcount or 0  # type: ignore[attr-defined]

    # Hey future me - a QUEUED record whose queue row is gone was thrown away by
    # clear(). The worker's own in-flight batch is the only other case, and it's
    # seconds old, nowhere near any retention cutoff.
    async def delete_orphaned_queued_before(self, cutoff: datetime) -> int:
        """Delete Queued records queued before cutoff that have no queue row left."""
        has_queue_row = (
            select(QueuedJobModel.seq)
            .where(QueuedJobModel.job_id == JobStatusModel.job_id)
            .exists()
        )
        result = await self.session.execute(
            delete(JobStatusModel).where(
                JobStatusModel.status == JobStatus.QUEUED.value,
                JobStatusModel.queued_at < cutoff,
                ~has_queue_row,
            )
        )
        return result.rowcount or 0  # type: ignore[attr-defined]

    async def count_by_status(self) -> dict[str, int]:
        result = await self.session.execute(
            select(JobStatusModel.status, func.count()).group_by(JobStatusModel.status)
        )
        counts = {status.value: 0 for status in JobStatus}
        counts.update({status: int(count) for status, count in result.all()})
        return counts

    def _model_to_record(self, model: JobStatusModel) -> JobStatusRecord:
        try:
            status = JobStatus(model.status)
        except ValueError as e:
            raise ValidationException(
                f"Invalid job status '{model.status}' for job {model.job_id}"
            ) from e

        error = None
        if model.error_message is not None:
            error = JobError(
                message=model.error_message,
                trace=model.error_trace,
                error_type=model.error_type,
            )

        return JobStatusRecord(
            job_id=model.job_id,
            status=status,
            job_snapshot=dict(model.job_snapshot),
            queued_at=ensure_utc_aware(model.queued_at),
            updated_at=ensure_utc_aware(model.updated_at),
            started_at=ensure_utc_aware(model.started_at) if model.started_at else None,
            completed_at=ensure_utc_aware(model.completed_at)
            if model.completed_at
            else None,
            failed_at=ensure_utc_aware(model.failed_at) if model.failed_at else None,
            execution_time=model.execution_time,
            error=error,
        )


class TriggerRunRepository:
    """Scheduler trigger execution summaries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    async def add(self, summary: TriggerRunSummary) -> None:
        self.session.add(
            TriggerRunModel(
                trigger_name=summary.trigger_name,
                started_at=summary.started_at,
                finished_at=summary.finished_at,
                found=summary.found,
                enqueued=summary.enqueued,
                error=summary.error,
            )
        )
        await self.session.flush()

    async def last_run(self, trigger_name: str) -> TriggerRunSummary | None:
        stmt = (
            select(TriggerRunModel)
            .where(TriggerRunModel.trigger_name == trigger_name)
            .order_by(TriggerRunModel.started_at.desc(), TriggerRunModel.id.desc())
            .limit(1)
        )
        model = (await self.session.execute(stmt)).scalar_one_or_none()
        return self._model_to_summary(model) if model else None

    async def delete_before(self, cutoff: datetime) -> int:
        result = await self.session.execute(
            delete(TriggerRunModel).where(TriggerRunModel.started_at < cutoff)
        )
        return result.rowcount or 0  # type: ignore[attr-defined]

    def _model_to_summary(self, model: TriggerRunModel) -> TriggerRunSummary:
        return TriggerRunSummary(
            trigger_name=model.trigger_name,
            started_at=ensure_utc_aware(model.started_at),
            finished_at=ensure_utc_aware(model.finished_at) if model.finished_at else None,
            found=model.found,
            enqueued=model.enqueued,
            error=model.error,
        )
