"""Sync job entities: Job, its status record, and the value objects around them."""

import traceback
import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any, ClassVar

from reelsync.domain.exceptions import InvalidTransition, ValidationException


class JobType(str, Enum):
    """Kind of sync work a Job represents."""

    SYNC = "sync"
    IMAGE_SYNC = "image_sync"
    BULK_SYNC = "bulk_sync"
    CLEANUP = "cleanup"
    UPDATE_POPULARITY = "update_popularity"


# Hey future me, this is the WHOLE lifecycle. Queued -> Processing -> Completed|Failed.
# Terminal states never move again - a restart creates a brand-new Job with a new id.
# The transition table lives on the enum so the store and tests share one source of truth.
class JobStatus(str, Enum):
    """Lifecycle state of a Job."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Completed or Failed."""
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    def can_transition_to(self, new_status: "JobStatus") -> bool:
        """Check the monotonic transition rule."""
        return new_status in _ALLOWED_TRANSITIONS[self]


_ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.QUEUED: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


class TargetKind(str, Enum):
    """Kind of local content entity a job synchronizes."""

    MOVIE = "movie"
    TV = "tv"
    DRAMA = "drama"
    PERSON = "person"


@dataclass(frozen=True)
class TargetRef:
    """Opaque reference to the local entity to sync."""

    kind: TargetKind
    entity_id: str

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind.value, "entity_id": self.entity_id}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TargetRef":
        try:
            return cls(kind=TargetKind(data["kind"]), entity_id=str(data["entity_id"]))
        except (KeyError, ValueError) as e:
            raise ValidationException(f"Invalid target reference: {data!r}") from e

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.entity_id}"


# Hey future me - SyncOptions is NOT a free-form dict on purpose!
# Every flag defaults to None which means "not specified for this job". Which flags
# may be set depends on the job type (see RECOGNIZED_OPTIONS below). The executor
# decides what None means for itself; the engine only carries the flags around.
@dataclass(frozen=True)
class SyncOptions:
    """Named option flags carried by a Job."""

    sync_images: bool | None = None
    sync_videos: bool | None = None
    sync_credits: bool | None = None
    update_popularity_only: bool | None = None

    def specified(self) -> frozenset[str]:
        """Names of the flags that were explicitly set."""
        return frozenset(f.name for f in fields(self) if getattr(self, f.name) is not None)

    def to_dict(self) -> dict[str, bool]:
        return {name: getattr(self, name) for name in sorted(self.specified())}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "SyncOptions":
        data = data or {}
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValidationException(f"Unknown sync options: {sorted(unknown)}")
        return cls(**{key: bool(value) for key, value in data.items()})


RECOGNIZED_OPTIONS: dict[JobType, frozenset[str]] = {
    JobType.SYNC: frozenset({"sync_images", "sync_videos", "sync_credits"}),
    JobType.IMAGE_SYNC: frozenset({"sync_images", "sync_videos"}),
    JobType.BULK_SYNC: frozenset({"sync_images", "sync_videos", "sync_credits"}),
    JobType.UPDATE_POPULARITY: frozenset({"update_popularity_only"}),
    JobType.CLEANUP: frozenset(),
}


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


@dataclass(frozen=True)
class Job:
    """A unit of sync work.

    Immutable once created. Lower priority value runs first; equal priorities run
    in enqueue order. Retries never reuse a Job - see restarted().
    """

    id: str
    job_type: JobType
    target: TargetRef | None
    options: SyncOptions = field(default_factory=SyncOptions)
    priority: int = 10
    created_at: datetime = field(default_factory=utc_now)

    DEFAULT_PRIORITY: ClassVar[int] = 10

    def __post_init__(self) -> None:
        """Validate target presence and the option schema for this job type."""
        if self.job_type != JobType.CLEANUP and self.target is None:
            raise ValidationException(f"{self.job_type.value} job requires a target")
        not_allowed = self.options.specified() - RECOGNIZED_OPTIONS[self.job_type]
        if not_allowed:
            raise ValidationException(
                f"Options {sorted(not_allowed)} are not recognized for "
                f"{self.job_type.value} jobs"
            )

    @classmethod
    def create(
        cls,
        job_type: JobType,
        target: TargetRef | None,
        options: SyncOptions | None = None,
        priority: int | None = None,
    ) -> "Job":
        """Create a new job with a fresh id and creation time."""
        return cls(
            id=str(uuid.uuid4()),
            job_type=job_type,
            target=target,
            options=options or SyncOptions(),
            priority=cls.DEFAULT_PRIORITY if priority is None else priority,
            created_at=utc_now(),
        )

    def restarted(self) -> "Job":
        """Copy of this job with a new id and creation time (used for restarts)."""
        return replace(self, id=str(uuid.uuid4()), created_at=utc_now())

    def to_snapshot(self) -> dict[str, Any]:
        """Full JSON-serializable payload, stored with the status record."""
        return {
            "id": self.id,
            "job_type": self.job_type.value,
            "target": self.target.to_dict() if self.target else None,
            "options": self.options.to_dict(),
            "priority": self.priority,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_snapshot(cls, snapshot: dict[str, Any]) -> "Job":
        """Rebuild a Job from to_snapshot() output."""
        try:
            created_at = datetime.fromisoformat(snapshot["created_at"])
            if created_at.tzinfo is None:
                created_at = created_at.replace(tzinfo=UTC)
            return cls(
                id=snapshot["id"],
                job_type=JobType(snapshot["job_type"]),
                target=TargetRef.from_dict(snapshot["target"])
                if snapshot.get("target")
                else None,
                options=SyncOptions.from_dict(snapshot.get("options")),
                priority=int(snapshot.get("priority", cls.DEFAULT_PRIORITY)),
                created_at=created_at,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationException(f"Corrupt job snapshot: {e}") from e


@dataclass(frozen=True)
class JobRequest:
    """What a trigger asks to enqueue: (target, type, options, priority)."""

    target: TargetRef | None
    job_type: JobType
    options: SyncOptions = field(default_factory=SyncOptions)
    priority: int = Job.DEFAULT_PRIORITY

    def to_job(self) -> Job:
        return Job.create(self.job_type, self.target, self.options, self.priority)


@dataclass(frozen=True)
class JobError:
    """Structured failure recorded on a Failed job."""

    message: str
    trace: str | None = None
    error_type: str | None = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> "JobError":
        trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return cls(
            message=str(exc) or type(exc).__name__,
            trace=trace,
            error_type=type(exc).__name__,
        )

    def to_dict(self) -> dict[str, str | None]:
        return {"message": self.message, "trace": self.trace, "error_type": self.error_type}


@dataclass
class JobStatusRecord:
    """Audit record of one job's lifecycle, keyed by job id."""

    job_id: str
    status: JobStatus
    job_snapshot: dict[str, Any]
    queued_at: datetime
    updated_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    failed_at: datetime | None = None
    execution_time: float | None = None  # seconds
    error: JobError | None = None

    @property
    def job(self) -> Job:
        return Job.from_snapshot(self.job_snapshot)

    def check_transition(self, new_status: JobStatus) -> None:
        """Raise InvalidTransition unless current -> new_status is allowed."""
        if not self.status.can_transition_to(new_status):
            raise InvalidTransition(self.job_id, self.status, new_status)


@dataclass(frozen=True)
class SyncResult:
    """Outcome reported by a SyncExecutor."""

    success: bool
    error: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, **details: Any) -> "SyncResult":
        return cls(success=True, details=details)

    @classmethod
    def failed(cls, error: str, **details: Any) -> "SyncResult":
        return cls(success=False, error=error, details=details)


@dataclass
class QueueStatistics:
    """Snapshot of what is waiting in the queue."""

    total_queued: int = 0
    by_type: dict[str, int] = field(default_factory=dict)
    by_priority: dict[int, int] = field(default_factory=dict)
    oldest_job: Job | None = None
    newest_job: Job | None = None
