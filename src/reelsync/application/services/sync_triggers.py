"""Concrete sync triggers and their default registration.

Hey future me - these are the five things that put jobs into the queue on a timer:

| trigger           | cadence      | job type          | priority | options                          |
|-------------------|--------------|-------------------|----------|----------------------------------|
| recent_activity   | hourly       | sync              | 5        | no images/videos                 |
| image_backfill    | 30 minutes   | image_sync        | 10       | images only (off if sync_images) |
| staleness_sweep   | twice daily  | bulk_sync         | 15       | images/videos from settings      |
| popularity_refresh| weekly       | update_popularity | 20       | update_popularity_only           |
| cleanup           | daily        | cleanup           | 50       | (no target)                      |

Lower priority value runs first, so fresh edits beat the big weekly refresh.
Everything is OFF unless sync.auto_sync_enabled is true.
"""

import logging
from datetime import timedelta

from pydantic import ValidationError

from reelsync.application.workers.sync_scheduler import SyncScheduler
from reelsync.config import SyncSettings
from reelsync.domain.entities import (
    Cadence,
    JobRequest,
    JobType,
    SyncOptions,
    TargetRef,
)
from reelsync.domain.exceptions import ConfigurationError
from reelsync.domain.ports import IContentSource

logger = logging.getLogger(__name__)

RECENT_ACTIVITY_PRIORITY = 5
IMAGE_BACKFILL_PRIORITY = 10
STALENESS_PRIORITY = 15
POPULARITY_PRIORITY = 20
CLEANUP_PRIORITY = 50


class SyncTriggers:
    """Trigger functions over an IContentSource."""

    def __init__(self, content_source: IContentSource, settings: SyncSettings) -> None:
        self._source = content_source
        self._settings = settings

    async def recent_activity(self) -> list[JobRequest]:
        """Entities edited in the last window: quick data sync, no media."""
        targets = await self._source.find_recently_modified(
            timedelta(minutes=self._settings.recent_window_minutes),
            self._settings.recent_batch_size,
        )
        options = SyncOptions(
            sync_images=False,
            sync_videos=False,
            sync_credits=self._settings.sync_credits,
        )
        return self._requests(targets, JobType.SYNC, options, RECENT_ACTIVITY_PRIORITY)

    async def image_backfill(self) -> list[JobRequest]:
        """Entities without a primary image. Does nothing if image sync is off."""
        if not self._settings.sync_images:
            logger.debug("Image backfill skipped, sync_images is disabled")
            return []

        targets = await self._source.find_missing_images(self._settings.image_batch_size)
        options = SyncOptions(sync_images=True, sync_videos=False)
        return self._requests(
            targets, JobType.IMAGE_SYNC, options, IMAGE_BACKFILL_PRIORITY
        )

    async def staleness_sweep(self) -> list[JobRequest]:
        """Entities not synced for stale_after_days: full refresh."""
        targets = await self._source.find_stale(
            timedelta(days=self._settings.stale_after_days),
            self._settings.stale_batch_size,
        )
        options = SyncOptions(
            sync_images=self._settings.sync_images,
            sync_videos=self._settings.sync_videos,
            sync_credits=True,
        )
        return self._requests(targets, JobType.BULK_SYNC, options, STALENESS_PRIORITY)

    async def popularity_refresh(self) -> list[JobRequest]:
        targets = await self._source.top_by_popularity(
            self._settings.popularity_batch_size
        )
        options = SyncOptions(update_popularity_only=True)
        return self._requests(
            targets, JobType.UPDATE_POPULARITY, options, POPULARITY_PRIORITY
        )

    async def cleanup(self) -> list[JobRequest]:
        return [
            JobRequest(target=None, job_type=JobType.CLEANUP, priority=CLEANUP_PRIORITY)
        ]

    def _requests(
        self,
        targets: list[TargetRef],
        job_type: JobType,
        options: SyncOptions,
        priority: int,
    ) -> list[JobRequest]:
        return [
            JobRequest(target=target, job_type=job_type, options=options, priority=priority)
            for target in targets
        ]


def validate_sync_settings(settings: SyncSettings) -> SyncSettings:
    """Re-validate settings that may have been built or mutated without validation.

    Raises:
        ConfigurationError: Any value missing or out of range
    """
    try:
        return SyncSettings.model_validate(settings.model_dump())
    except ValidationError as e:
        raise ConfigurationError(f"Invalid sync configuration: {e}") from e


def register_default_triggers(
    scheduler: SyncScheduler,
    content_source: IContentSource,
    settings: SyncSettings,
) -> list[str]:
    """Register the five standard triggers on the scheduler.

    Registers nothing when auto sync is disabled.

    Returns:
        Names of the registered triggers

    Raises:
        ConfigurationError: Settings are invalid; nothing is registered
    """
    settings = validate_sync_settings(settings)

    if not settings.auto_sync_enabled:
        logger.info("Auto sync is disabled, no sync triggers registered")
        return []

    triggers = SyncTriggers(content_source, settings)
    plan = [
        ("recent_activity", Cadence.HOURLY, triggers.recent_activity, settings.recent_batch_size),
        ("image_backfill", Cadence.EVERY_30_MINUTES, triggers.image_backfill, settings.image_batch_size),
        ("staleness_sweep", Cadence.TWICE_DAILY, triggers.staleness_sweep, settings.stale_batch_size),
        ("popularity_refresh", Cadence.WEEKLY, triggers.popularity_refresh, settings.popularity_batch_size),
        ("cleanup", Cadence.DAILY, triggers.cleanup, 1),
    ]
    for name, cadence, trigger_fn, batch_size in plan:
        scheduler.register_trigger(name, cadence, trigger_fn, batch_size)

    return [name for name, *_ in plan]
