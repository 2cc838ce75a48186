"""Request/response models for the sync operator API."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from reelsync.domain.entities import (
    Job,
    JobStatus,
    JobStatusRecord,
    JobType,
    QueueStatistics,
    SyncOptions,
    TargetKind,
    TargetRef,
)


class TargetRefSchema(BaseModel):
    """Local entity a job synchronizes."""

    kind: TargetKind
    entity_id: str = Field(min_length=1, max_length=64)

    def to_domain(self) -> TargetRef:
        return TargetRef(kind=self.kind, entity_id=self.entity_id)


class SyncOptionsSchema(BaseModel):
    """Option flags; unset (null) means "not specified for this job"."""

    sync_images: bool | None = None
    sync_videos: bool | None = None
    sync_credits: bool | None = None
    update_popularity_only: bool | None = None

    def to_domain(self) -> SyncOptions:
        return SyncOptions(**self.model_dump())


class EnqueueJobRequest(BaseModel):
    """Manually queue one job."""

    job_type: JobType
    target: TargetRefSchema | None = None
    options: SyncOptionsSchema = Field(default_factory=SyncOptionsSchema)
    priority: int | None = Field(
        default=None, ge=0, description="Lower runs first (default 10)"
    )


class EnqueueJobResponse(BaseModel):
    job_id: str


class JobSchema(BaseModel):
    """A queued job."""

    id: str
    job_type: JobType
    target: TargetRefSchema | None
    options: dict[str, bool]
    priority: int
    created_at: datetime

    @classmethod
    def from_domain(cls, job: Job) -> "JobSchema":
        return cls(
            id=job.id,
            job_type=job.job_type,
            target=TargetRefSchema(kind=job.target.kind, entity_id=job.target.entity_id)
            if job.target
            else None,
            options=job.options.to_dict(),
            priority=job.priority,
            created_at=job.created_at,
        )


class JobErrorSchema(BaseModel):
    message: str
    trace: str | None = None
    error_type: str | None = None


class JobStatusResponse(BaseModel):
    """Lifecycle record of one job."""

    job_id: str
    status: JobStatus
    job_type: str | None = None
    queued_at: datetime
    updated_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    failed_at: datetime | None = None
    execution_time: float | None = Field(default=None, description="Seconds")
    error: JobErrorSchema | None = None
    job_snapshot: dict[str, Any]

    @classmethod
    def from_domain(cls, record: JobStatusRecord) -> "JobStatusResponse":
        return cls(
            job_id=record.job_id,
            status=record.status,
            job_type=record.job_snapshot.get("job_type"),
            queued_at=record.queued_at,
            updated_at=record.updated_at,
            started_at=record.started_at,
            completed_at=record.completed_at,
            failed_at=record.failed_at,
            execution_time=record.execution_time,
            error=JobErrorSchema(**record.error.to_dict()) if record.error else None,
            job_snapshot=record.job_snapshot,
        )


class QueueStatisticsResponse(BaseModel):
    total_queued: int
    by_type: dict[str, int]
    by_priority: dict[int, int]
    oldest_job: JobSchema | None = None
    newest_job: JobSchema | None = None
    status_counts: dict[str, int] = Field(default_factory=dict)

    @classmethod
    def from_domain(
        cls, stats: QueueStatistics, status_counts: dict[str, int] | None = None
    ) -> "QueueStatisticsResponse":
        return cls(
            total_queued=stats.total_queued,
            by_type=stats.by_type,
            by_priority=stats.by_priority,
            oldest_job=JobSchema.from_domain(stats.oldest_job) if stats.oldest_job else None,
            newest_job=JobSchema.from_domain(stats.newest_job) if stats.newest_job else None,
            status_counts=status_counts or {},
        )


class RestartFailedResponse(BaseModel):
    restarted: int


class ClearQueueResponse(BaseModel):
    removed: int
