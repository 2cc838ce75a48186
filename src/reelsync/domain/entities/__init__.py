"""Domain entities."""

from reelsync.domain.entities.schedule import Cadence, TriggerRunSummary
from reelsync.domain.entities.sync_job import (
    RECOGNIZED_OPTIONS,
    Job,
    JobError,
    JobRequest,
    JobStatus,
    JobStatusRecord,
    JobType,
    QueueStatistics,
    SyncOptions,
    SyncResult,
    TargetKind,
    TargetRef,
    utc_now,
)

__all__ = [
    "RECOGNIZED_OPTIONS",
    "Cadence",
    "Job",
    "JobError",
    "JobRequest",
    "JobStatus",
    "JobStatusRecord",
    "JobType",
    "QueueStatistics",
    "SyncOptions",
    "SyncResult",
    "TargetKind",
    "TargetRef",
    "TriggerRunSummary",
    "utc_now",
]
