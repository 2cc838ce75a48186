"""Worker system - queue, status store, scheduler and queue worker."""

from reelsync.application.workers.job_status_store import (
    JobStatusStore,
    create_job_status_store,
)
from reelsync.application.workers.persistent_job_queue import (
    PersistentJobQueue,
    create_persistent_job_queue,
)
from reelsync.application.workers.sync_queue_worker import (
    MAX_BATCH,
    SyncQueueWorker,
    create_sync_queue_worker,
)
from reelsync.application.workers.sync_scheduler import (
    RegisteredTrigger,
    SyncScheduler,
)

__all__ = [
    "MAX_BATCH",
    "JobStatusStore",
    "PersistentJobQueue",
    "RegisteredTrigger",
    "SyncQueueWorker",
    "SyncScheduler",
    "create_job_status_store",
    "create_persistent_job_queue",
    "create_sync_queue_worker",
]
