# Hey future me - this is the OPERATOR surface of the sync engine over HTTP.
#
# Nothing here runs on a schedule. It's for the admin (or a host CLI hitting the
# API) to poke the engine:
# - queue a job by hand, look at the queue, clear it (destructive!)
# - look at job status records, restart everything that failed
# - see trigger state, fire a trigger now, run maintenance now
#
# Domain errors are turned into HTTP codes by api/exception_handlers.py
# (404 unknown job/trigger, 409 invalid transition, 422 bad job, 503 config).
"""Sync engine operator API endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, Query, status

from reelsync.api.dependencies import get_sync_engine, get_sync_operations
from reelsync.api.schemas.sync import (
    ClearQueueResponse,
    EnqueueJobRequest,
    EnqueueJobResponse,
    JobSchema,
    JobStatusResponse,
    QueueStatisticsResponse,
    RestartFailedResponse,
)
from reelsync.application.engine import SyncEngine
from reelsync.application.services.sync_operations import SyncOperations
from reelsync.domain.entities import JobStatus

router = APIRouter(prefix="/sync", tags=["Sync"])


@router.post(
    "/jobs",
    response_model=EnqueueJobResponse,
    status_code=status.HTTP_201_CREATED,
)
async def enqueue_job(
    body: EnqueueJobRequest,
    operations: SyncOperations = Depends(get_sync_operations),
) -> EnqueueJobResponse:
    """Queue one sync job."""
    job_id = await operations.enqueue(
        job_type=body.job_type,
        target=body.target.to_domain() if body.target else None,
        options=body.options.to_domain(),
        priority=body.priority,
    )
    return EnqueueJobResponse(job_id=job_id)


@router.get("/jobs", response_model=list[JobStatusResponse])
async def list_jobs(
    job_status: JobStatus = Query(alias="status"),
    limit: int = Query(default=100, ge=1, le=1000),
    operations: SyncOperations = Depends(get_sync_operations),
) -> list[JobStatusResponse]:
    """Status records in one state, least recently updated first."""
    records = await operations.list_jobs(job_status, limit)
    return [JobStatusResponse.from_domain(r) for r in records]


# Must be registered before /jobs/{job_id} or "restart-failed" is read as a job id
@router.post("/jobs/restart-failed", response_model=RestartFailedResponse)
async def restart_failed_jobs(
    operations: SyncOperations = Depends(get_sync_operations),
) -> RestartFailedResponse:
    """Re-enqueue a fresh copy of every failed job."""
    return RestartFailedResponse(restarted=await operations.restart_failed_jobs())


@router.get("/jobs/{job_id}", response_model=JobStatusResponse)
async def get_job_status(
    job_id: str,
    operations: SyncOperations = Depends(get_sync_operations),
) -> JobStatusResponse:
    record = await operations.job_status(job_id)
    return JobStatusResponse.from_domain(record)


@router.get("/queue", response_model=list[JobSchema])
async def peek_queue(
    limit: int = Query(default=50, ge=1, le=500),
    engine: SyncEngine = Depends(get_sync_engine),
) -> list[JobSchema]:
    """Pending jobs in dispatch order (nothing is removed)."""
    jobs = await engine.queue.peek(limit)
    return [JobSchema.from_domain(job) for job in jobs]


@router.get("/queue/stats", response_model=QueueStatisticsResponse)
async def queue_statistics(
    operations: SyncOperations = Depends(get_sync_operations),
) -> QueueStatisticsResponse:
    stats = await operations.queue_statistics()
    counts = await operations.status_counts()
    return QueueStatisticsResponse.from_domain(stats, counts)


@router.delete("/queue", response_model=ClearQueueResponse)
async def clear_queue(
    operations: SyncOperations = Depends(get_sync_operations),
) -> ClearQueueResponse:
    """Drop every pending job. Irreversible."""
    return ClearQueueResponse(removed=await operations.clear_queue())


@router.get("/triggers")
async def list_triggers(
    engine: SyncEngine = Depends(get_sync_engine),
) -> list[dict[str, Any]]:
    """Registered triggers with last run and next due time."""
    return await engine.scheduler.get_trigger_status()


@router.post("/triggers/{name}/run")
async def run_trigger(
    name: str,
    engine: SyncEngine = Depends(get_sync_engine),
) -> dict[str, Any]:
    """Fire a trigger now, ignoring its cadence."""
    summary = await engine.scheduler.fire(name)
    return summary.to_dict()


@router.post("/maintenance/run")
async def run_maintenance(
    engine: SyncEngine = Depends(get_sync_engine),
) -> dict[str, Any]:
    report = await engine.maintenance.run()
    return report.to_dict()


@router.get("/status")
async def engine_status(
    engine: SyncEngine = Depends(get_sync_engine),
) -> dict[str, Any]:
    """Worker, scheduler and rate limiter state."""
    return engine.get_status()
