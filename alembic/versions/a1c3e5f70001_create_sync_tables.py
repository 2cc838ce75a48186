"""create sync engine tables

Revision ID: a1c3e5f70001
Revises:
Create Date: 2026-10-19 09:00:00.000000

Hey future me - the THREE tables the sync engine lives on:

- sync_job_queue: pending jobs only. A worker DELETEs rows as it takes them,
  so this table is usually small. seq is the FIFO tie-break for equal
  (priority, created_at).
- sync_job_status: one row per job id, kept after the job leaves the queue.
  job_snapshot is what "restart failed jobs" rebuilds the job from.
  Maintenance deletes terminal rows older than the retention window.
- sync_trigger_runs: one row per trigger fire. Newest row per trigger is the
  persisted "last fired" time the scheduler uses for cadences.
"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "a1c3e5f70001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create sync_job_queue, sync_job_status and sync_trigger_runs."""
    op.create_table(
        "sync_job_queue",
        sa.Column("seq", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("job_id", sa.String(36), nullable=False, unique=True),
        sa.Column("job_type", sa.String(32), nullable=False),
        sa.Column("target_kind", sa.String(16), nullable=True),
        sa.Column("target_id", sa.String(64), nullable=True),
        sa.Column("options", sa.JSON(), nullable=False),
        # Lower = runs first
        sa.Column("priority", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_sync_job_queue_job_type", "sync_job_queue", ["job_type"])
    op.create_index(
        "ix_sync_job_queue_order",
        "sync_job_queue",
        ["priority", "created_at", "seq"],
    )

    op.create_table(
        "sync_job_status",
        sa.Column("job_id", sa.String(36), primary_key=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("job_type", sa.String(32), nullable=False),
        sa.Column("job_snapshot", sa.JSON(), nullable=False),
        sa.Column("queued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("failed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("execution_time", sa.Float(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("error_trace", sa.Text(), nullable=True),
        sa.Column("error_type", sa.String(100), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_sync_job_status_status", "sync_job_status", ["status"])
    # Retention purge + stuck-processing sweep
    op.create_index(
        "ix_sync_job_status_status_updated",
        "sync_job_status",
        ["status", "updated_at"],
    )

    op.create_table(
        "sync_trigger_runs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("trigger_name", sa.String(64), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("found", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("enqueued", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error", sa.Text(), nullable=True),
    )
    op.create_index(
        "ix_sync_trigger_runs_name_started",
        "sync_trigger_runs",
        ["trigger_name", "started_at"],
    )


def downgrade() -> None:
    """Drop all sync engine tables."""
    op.drop_index("ix_sync_trigger_runs_name_started", table_name="sync_trigger_runs")
    op.drop_table("sync_trigger_runs")
    op.drop_index("ix_sync_job_status_status_updated", table_name="sync_job_status")
    op.drop_index("ix_sync_job_status_status", table_name="sync_job_status")
    op.drop_table("sync_job_status")
    op.drop_index("ix_sync_job_queue_order", table_name="sync_job_queue")
    op.drop_index("ix_sync_job_queue_job_type", table_name="sync_job_queue")
    op.drop_table("sync_job_queue")
