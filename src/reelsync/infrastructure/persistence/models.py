"""SQLAlchemy ORM models for the sync engine."""

from datetime import UTC, datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import JSON, Float, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


# Hey future me - SQLite doesn't preserve timezone info! UTC datetimes come back naive.
# ALWAYS run DB datetimes through this before comparing with datetime.now(UTC), otherwise
# you get "can't compare offset-naive and offset-aware datetimes".
def ensure_utc_aware(dt: datetime) -> datetime:
    """Ensure datetime is UTC-aware, assuming naive datetimes are UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Yo, this is the QUEUE. One row = one pending job, deleted the moment a worker
# takes it. `seq` is an autoincrement so FIFO tie-breaking still works when two
# jobs share the same created_at (same trigger fire, same millisecond).
class QueuedJobModel(Base):
    """Pending sync job waiting for a worker."""

    __tablename__ = "sync_job_queue"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True)
    job_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    target_kind: Mapped[str | None] = mapped_column(String(16), nullable=True)
    target_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    options: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    # Lower = runs first
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        Index("ix_sync_job_queue_order", "priority", "created_at", "seq"),
    )


# Listen up, status rows OUTLIVE the queue rows. They're the audit trail the operator
# looks at, and job_snapshot is what "restart failed jobs" rebuilds the job from.
# Only maintenance deletes them (terminal + older than the retention window).
class JobStatusModel(Base):
    """Lifecycle record for one job id."""

    __tablename__ = "sync_job_status"

    job_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    job_type: Mapped[str] = mapped_column(String(32), nullable=False)
    job_snapshot: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    queued_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=utc_now
    )
    started_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    failed_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    execution_time: Mapped[float | None] = mapped_column(Float, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_trace: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        # Retention purge + stuck-processing sweep
        Index("ix_sync_job_status_status_updated", "status", "updated_at"),
    )


class TriggerRunModel(Base):
    """One scheduler trigger fire (found/enqueued counts).

    The newest row per trigger_name is also the persisted "last fired" time.
    """

    __tablename__ = "sync_trigger_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    trigger_name: Mapped[str] = mapped_column(String(64), nullable=False)
    started_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=utc_now
    )
    finished_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    found: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    enqueued: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_sync_trigger_runs_name_started", "trigger_name", "started_at"),
    )
