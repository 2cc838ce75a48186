"""Ports (interfaces) for the collaborators the sync engine consumes.

Hey future me - the engine NEVER talks to the CMS content tables or the metadata
API directly. The host application plugs in implementations of these:

- IContentSource: "which entities need a sync?" (read-only queries)
- ISyncExecutor: "sync this one job" (external fetch + local upsert)
- ICache: API response cache, purged by maintenance
- ISyncedRecordStore: the locally synced rows, for orphan cleanup and compaction

This follows the Hexagonal Architecture pattern for dependency inversion.
"""

from abc import ABC, abstractmethod
from datetime import timedelta

from reelsync.domain.entities import Job, SyncResult, TargetRef


class IContentSource(ABC):
    """Read-side queries over the host's content storage."""

    @abstractmethod
    async def find_recently_modified(
        self, window: timedelta, limit: int
    ) -> list[TargetRef]:
        """Entities modified within `window`, newest first."""
        ...

    @abstractmethod
    async def find_missing_images(self, limit: int) -> list[TargetRef]:
        """Entities with an external id but no primary image."""
        ...

    @abstractmethod
    async def find_stale(self, window: timedelta, limit: int) -> list[TargetRef]:
        """Entities not synced within `window` (or never synced), oldest first."""
        ...

    @abstractmethod
    async def top_by_popularity(self, n: int) -> list[TargetRef]:
        """Top `n` entities by last known popularity score."""
        ...


class ISyncExecutor(ABC):
    """Performs the external fetch and local upsert for one job.

    Implementations must be idempotent - the scheduler does not deduplicate,
    so the same target can be synced several times in a row.
    Return SyncResult.failed(...) for a handled failure, or raise
    (TransientExternalError for network/API trouble).
    """

    @abstractmethod
    async def execute(self, job: Job) -> SyncResult:
        ...


class ICache(ABC):
    """Cache with TTL'd entries."""

    @abstractmethod
    async def purge_expired(self) -> int:
        """Delete entries past their TTL, return how many were removed."""
        ...


class ISyncedRecordStore(ABC):
    """Locally stored synced records (movie/tv/person detail rows)."""

    @abstractmethod
    async def delete_orphans(self) -> int:
        """Remove synced rows whose owning content entity no longer exists."""
        ...

    @abstractmethod
    async def optimize(self) -> None:
        """Vacuum/optimize the synced-record storage."""
        ...


__all__ = ["ICache", "IContentSource", "ISyncExecutor", "ISyncedRecordStore"]
