"""Maintenance runner - daily housekeeping for the sync engine.

Hey future me - this is BEST-EFFORT housekeeping! Every step runs in its own
try/except: a broken cache backend must not stop the status purge, a failed
VACUUM must not hide the orphan count. Failures are logged at WARNING with the
traceback and collected in the report, never raised.

Order matters a little: purge first, compact last, so VACUUM reclaims the space
the deletes just freed.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from reelsync.application.workers.job_status_store import JobStatusStore
from reelsync.domain.ports import ICache, ISyncedRecordStore
from reelsync.infrastructure.persistence.database import Database
from reelsync.infrastructure.persistence.models import utc_now
from reelsync.infrastructure.persistence.repositories import TriggerRunRepository

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 30


@dataclass
class MaintenanceReport:
    """What one maintenance run did."""

    started_at: datetime
    finished_at: datetime | None = None
    cache_entries_purged: int = 0
    status_records_deleted: int = 0
    trigger_runs_deleted: int = 0
    orphans_removed: int = 0
    storage_optimized: bool = False
    errors: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "cache_entries_purged": self.cache_entries_purged,
            "status_records_deleted": self.status_records_deleted,
            "trigger_runs_deleted": self.trigger_runs_deleted,
            "orphans_removed": self.orphans_removed,
            "storage_optimized": self.storage_optimized,
            "errors": list(self.errors),
        }


class MaintenanceRunner:
    """Cache purge, status retention, orphan cleanup and storage compaction."""

    def __init__(
        self,
        database: Database,
        status_store: JobStatusStore,
        cache: ICache | None = None,
        record_store: ISyncedRecordStore | None = None,
        retention_days: int = DEFAULT_RETENTION_DAYS,
    ) -> None:
        """Initialize maintenance runner.

        Args:
            database: Engine database (trigger history + compaction)
            status_store: Job status records to apply retention to
            cache: API response cache; step skipped if None
            record_store: Host's synced records; orphan/optimize steps skipped if None
            retention_days: Terminal status records older than this are deleted
        """
        self._database = database
        self._status_store = status_store
        self._cache = cache
        self._record_store = record_store
        self._retention = timedelta(days=retention_days)
        self._last_report: MaintenanceReport | None = None

    @property
    def last_report(self) -> MaintenanceReport | None:
        return self._last_report

    async def run(self) -> MaintenanceReport:
        """Run all housekeeping steps in sequence. Never raises for a failing step."""
        report = MaintenanceReport(started_at=utc_now())
        logger.info("🧹 Maintenance run started")

        # (a) cache expiry
        if self._cache is not None:
            try:
                report.cache_entries_purged = await self._cache.purge_expired()
            except Exception as e:
                self._step_failed(report, "cache_purge", e)

        # (b) status retention
        try:
            report.status_records_deleted = await self._status_store.delete_older_than(
                self._retention
            )
        except Exception as e:
            self._step_failed(report, "status_retention", e)

        # (b') trigger-run history, same window
        try:
            report.trigger_runs_deleted = await self._prune_trigger_runs()
        except Exception as e:
            self._step_failed(report, "trigger_history", e)

        # (c) orphans
        if self._record_store is not None:
            try:
                report.orphans_removed = await self._record_store.delete_orphans()
            except Exception as e:
                self._step_failed(report, "orphan_cleanup", e)

        # (d) compaction
        try:
            if self._record_store is not None:
                await self._record_store.optimize()
            await self._database.optimize()
            report.storage_optimized = True
        except Exception as e:
            self._step_failed(report, "storage_compaction", e)

        report.finished_at = utc_now()
        self._last_report = report

        logger.info(
            f"🧹 Maintenance run finished: {report.cache_entries_purged} cache entries, "
            f"{report.status_records_deleted} status records, "
            f"{report.trigger_runs_deleted} trigger runs, "
            f"{report.orphans_removed} orphans removed"
            + (f" ({len(report.errors)} steps failed)" if report.errors else "")
        )
        return report

    async def _prune_trigger_runs(self) -> int:
        cutoff = utc_now() - self._retention
        async with self._database.session_scope() as session:
            return await TriggerRunRepository(session).delete_before(cutoff)

    def _step_failed(
        self, report: MaintenanceReport, step: str, error: Exception
    ) -> None:
        logger.warning(f"Maintenance step '{step}' failed: {error}", exc_info=True)
        report.errors.append(f"{step}: {error}")
