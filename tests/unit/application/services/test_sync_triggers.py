"""Tests for the concrete sync triggers and their registration."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from reelsync.application.services.sync_triggers import (
    CLEANUP_PRIORITY,
    RECENT_ACTIVITY_PRIORITY,
    SyncTriggers,
    register_default_triggers,
    validate_sync_settings,
)
from reelsync.config import SyncSettings
from reelsync.domain.entities import Cadence, JobType, SyncOptions, TargetKind, TargetRef
from reelsync.domain.exceptions import ConfigurationError

TARGETS = [
    TargetRef(kind=TargetKind.MOVIE, entity_id="603"),
    TargetRef(kind=TargetKind.TV, entity_id="1399"),
]


@pytest.fixture
def content_source() -> MagicMock:
    source = MagicMock()
    source.find_recently_modified = AsyncMock(return_value=TARGETS)
    source.find_missing_images = AsyncMock(return_value=TARGETS[:1])
    source.find_stale = AsyncMock(return_value=TARGETS)
    source.top_by_popularity = AsyncMock(return_value=TARGETS)
    return source


class TestTriggerFunctions:
    async def test_recent_activity_is_quick_sync(self, content_source: MagicMock) -> None:
        settings = SyncSettings(recent_window_minutes=60, recent_batch_size=25)
        requests = await SyncTriggers(content_source, settings).recent_activity()

        content_source.find_recently_modified.assert_awaited_once_with(
            timedelta(minutes=60), 25
        )
        assert [r.target for r in requests] == TARGETS
        assert all(r.job_type == JobType.SYNC for r in requests)
        assert all(r.priority == RECENT_ACTIVITY_PRIORITY for r in requests)
        assert requests[0].options == SyncOptions(
            sync_images=False, sync_videos=False, sync_credits=True
        )

    async def test_image_backfill(self, content_source: MagicMock) -> None:
        requests = await SyncTriggers(content_source, SyncSettings()).image_backfill()

        assert len(requests) == 1
        assert requests[0].job_type == JobType.IMAGE_SYNC
        assert requests[0].options == SyncOptions(sync_images=True, sync_videos=False)

    async def test_image_backfill_off_when_images_disabled(
        self, content_source: MagicMock
    ) -> None:
        settings = SyncSettings(sync_images=False)
        assert await SyncTriggers(content_source, settings).image_backfill() == []
        content_source.find_missing_images.assert_not_awaited()

    async def test_staleness_sweep_uses_media_settings(
        self, content_source: MagicMock
    ) -> None:
        settings = SyncSettings(sync_videos=False, stale_after_days=7)
        requests = await SyncTriggers(content_source, settings).staleness_sweep()

        content_source.find_stale.assert_awaited_once_with(timedelta(days=7), 50)
        assert requests[0].job_type == JobType.BULK_SYNC
        assert requests[0].options == SyncOptions(
            sync_images=True, sync_videos=False, sync_credits=True
        )

    async def test_popularity_refresh(self, content_source: MagicMock) -> None:
        requests = await SyncTriggers(content_source, SyncSettings()).popularity_refresh()

        assert requests[0].job_type == JobType.UPDATE_POPULARITY
        assert requests[0].options == SyncOptions(update_popularity_only=True)
        # Every request must produce a valid job for its type
        assert all(r.to_job() for r in requests)

    async def test_cleanup_has_no_target(self, content_source: MagicMock) -> None:
        (request,) = await SyncTriggers(content_source, SyncSettings()).cleanup()
        assert request.target is None
        assert request.job_type == JobType.CLEANUP
        assert request.priority == CLEANUP_PRIORITY


class TestRegistration:
    def test_disabled_registers_nothing(self, content_source: MagicMock) -> None:
        scheduler = MagicMock()
        names = register_default_triggers(
            scheduler, content_source, SyncSettings(auto_sync_enabled=False)
        )
        assert names == []
        scheduler.register_trigger.assert_not_called()

    def test_enabled_registers_five_triggers(self, content_source: MagicMock) -> None:
        scheduler = MagicMock()
        names = register_default_triggers(
            scheduler, content_source, SyncSettings(auto_sync_enabled=True)
        )

        assert names == [
            "recent_activity",
            "image_backfill",
            "staleness_sweep",
            "popularity_refresh",
            "cleanup",
        ]
        cadences = {
            call.args[0]: call.args[1] for call in scheduler.register_trigger.call_args_list
        }
        assert cadences["recent_activity"] == Cadence.HOURLY
        assert cadences["cleanup"] == Cadence.DAILY
        assert cadences["popularity_refresh"] == Cadence.WEEKLY

    def test_invalid_settings_raise_configuration_error(
        self, content_source: MagicMock
    ) -> None:
        settings = SyncSettings(auto_sync_enabled=True)
        # Assignment skips validation, so a broken value can sneak in
        settings.requests_per_second = 9
        scheduler = MagicMock()

        with pytest.raises(ConfigurationError):
            register_default_triggers(scheduler, content_source, settings)
        scheduler.register_trigger.assert_not_called()

    def test_validate_sync_settings_accepts_valid(self) -> None:
        assert validate_sync_settings(SyncSettings()).requests_per_second == 4
