"""API request/response schemas."""

from reelsync.api.schemas.sync import (
    ClearQueueResponse,
    EnqueueJobRequest,
    EnqueueJobResponse,
    JobErrorSchema,
    JobSchema,
    JobStatusResponse,
    QueueStatisticsResponse,
    RestartFailedResponse,
    SyncOptionsSchema,
    TargetRefSchema,
)

__all__ = [
    "ClearQueueResponse",
    "EnqueueJobRequest",
    "EnqueueJobResponse",
    "JobErrorSchema",
    "JobSchema",
    "JobStatusResponse",
    "QueueStatisticsResponse",
    "RestartFailedResponse",
    "SyncOptionsSchema",
    "TargetRefSchema",
]
