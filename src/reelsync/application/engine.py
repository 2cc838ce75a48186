"""SyncEngine - composition root of the background sync engine.

Hey future me - this is the ONLY place that wires the pieces together. No
module-level singletons: tests build their own SyncEngine (or the pieces
directly) against an in-memory database and fake ports.

    SyncScheduler --enqueue--> PersistentJobQueue --dequeue--> SyncQueueWorker
         |                            |                          |      |
    IContentSource              JobStatusStore <--transitions----+   RateLimiter
                                                                 |      |
                                        MaintenanceRunner <-cleanup-+ ISyncExecutor
"""

import logging
from typing import Any

from reelsync.application.cache.base_cache import BaseCache, InMemoryCache
from reelsync.application.services.maintenance_service import MaintenanceRunner
from reelsync.application.services.sync_operations import SyncOperations
from reelsync.application.services.sync_triggers import register_default_triggers
from reelsync.application.workers.job_status_store import JobStatusStore
from reelsync.application.workers.persistent_job_queue import PersistentJobQueue
from reelsync.application.workers.sync_queue_worker import (
    SyncQueueWorker,
    create_sync_queue_worker,
)
from reelsync.application.workers.sync_scheduler import SyncScheduler
from reelsync.config import Settings
from reelsync.domain.exceptions import ConfigurationError
from reelsync.domain.ports import ICache, IContentSource, ISyncedRecordStore, ISyncExecutor
from reelsync.infrastructure.integrations.webhook_executor import WebhookSyncExecutor
from reelsync.infrastructure.persistence.database import Database
from reelsync.infrastructure.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class SyncEngine:
    """Owns the queue, status store, limiter, scheduler, worker and maintenance."""

    def __init__(
        self,
        settings: Settings,
        database: Database,
        executor: ISyncExecutor | None = None,
        content_source: IContentSource | None = None,
        cache: ICache | None = None,
        record_store: ISyncedRecordStore | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        """Build the dependency graph.

        Args:
            settings: Application settings
            database: Engine database
            executor: Job executor; falls back to WebhookSyncExecutor if
                sync.executor_webhook_url is set, else no worker is built
            content_source: Host content queries; without it no triggers run
            cache: Sync result cache (default: InMemoryCache); handed to the
                webhook executor when it is a BaseCache
            record_store: Host synced records for orphan cleanup/compaction
            rate_limiter: Shared limiter (default: built from settings)
        """
        self.settings = settings
        self.database = database
        sync = settings.sync
        session_factory = database.get_session_factory()

        self.rate_limiter = rate_limiter or RateLimiter(sync.requests_per_second)
        self.queue = PersistentJobQueue(session_factory)
        self.status_store = JobStatusStore(session_factory)
        self.cache = cache or InMemoryCache()
        self.content_source = content_source
        self.maintenance = MaintenanceRunner(
            database=database,
            status_store=self.status_store,
            cache=self.cache,
            record_store=record_store,
            retention_days=sync.status_retention_days,
        )
        self.operations = SyncOperations(self.queue, self.status_store)
        self.scheduler = SyncScheduler(session_factory, self.queue)

        self._owned_executor: WebhookSyncExecutor | None = None
        if executor is None and sync.executor_webhook_url:
            self._owned_executor = WebhookSyncExecutor(
                sync.executor_webhook_url,
                timeout=sync.executor_timeout_seconds,
                cache=self.cache if isinstance(self.cache, BaseCache) else None,
                cache_ttl_seconds=sync.webhook_cache_ttl_seconds,
            )
            executor = self._owned_executor
        self.executor = executor

        self.worker: SyncQueueWorker | None = None
        if executor is not None:
            self.worker = create_sync_queue_worker(
                queue=self.queue,
                status_store=self.status_store,
                executor=executor,
                rate_limiter=self.rate_limiter,
                settings=sync,
                maintenance=self.maintenance,
            )

    def configure_triggers(self) -> list[str]:
        """(Re)register the default triggers from current settings.

        Raises:
            ConfigurationError: Sync settings are invalid
        """
        self.scheduler.clear_triggers()
        if self.content_source is None:
            logger.warning("No content source configured, sync triggers disabled")
            return []
        return register_default_triggers(
            self.scheduler, self.content_source, self.settings.sync
        )

    async def start(self) -> None:
        """Register triggers and start the worker and scheduler loops."""
        try:
            self.configure_triggers()
        except ConfigurationError as e:
            logger.error(f"Sync scheduler not started: {e}")

        if self.worker is not None:
            await self.worker.start()
        else:
            logger.warning("No sync executor configured, queue worker not started")

        await self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()
        if self.worker is not None:
            await self.worker.stop()
        if self._owned_executor is not None:
            await self._owned_executor.close()

    def get_status(self) -> dict[str, Any]:
        return {
            "auto_sync_enabled": self.settings.sync.auto_sync_enabled,
            "rate_limiter": self.rate_limiter.get_statistics(),
            "cache": self.cache.get_stats() if isinstance(self.cache, BaseCache) else None,
            "scheduler": self.scheduler.get_status(),
            "worker": self.worker.get_status() if self.worker else None,
            "last_maintenance": self.maintenance.last_report.to_dict()
            if self.maintenance.last_report
            else None,
        }
