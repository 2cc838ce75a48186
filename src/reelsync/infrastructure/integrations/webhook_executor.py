"""Sync executor that hands each job to the host application over HTTP."""

import json
import logging
from typing import Any

import httpx

from reelsync.application.cache.base_cache import BaseCache
from reelsync.domain.entities import Job, SyncResult, TargetKind
from reelsync.domain.exceptions import TransientExternalError
from reelsync.domain.ports import ISyncExecutor

logger = logging.getLogger(__name__)


class WebhookSyncExecutor(ISyncExecutor):
    """POSTs the job snapshot to a host endpoint that does the fetch + upsert.

    Hey future me - the host endpoint owns the metadata API call and the DB upsert,
    we only carry the job over. Response contract:

        2xx  {"success": true, ...details}      -> SyncResult.ok(details)
        2xx  {"success": false, "error": "..."} -> SyncResult.failed(error)
        2xx  empty body                          -> SyncResult.ok()
        429 / 5xx / network error                -> raise TransientExternalError
        other 4xx                                -> SyncResult.failed (our request is bad,
                                                    a restart won't fix it by itself)

    With a cache, a successful result is kept for cache_ttl_seconds under the job's
    (type, target, options) key. Overlapping triggers enqueue duplicate jobs for the
    same title, the duplicate then completes from the cache without a webhook call.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        supported_kinds: frozenset[TargetKind] | None = None,
        client: httpx.AsyncClient | None = None,
        cache: BaseCache[str, dict[str, Any]] | None = None,
        cache_ttl_seconds: int = 3600,
    ) -> None:
        """Initialize webhook executor.

        Args:
            url: Host endpoint receiving jobs
            timeout: Request timeout in seconds
            supported_kinds: Target kinds the host can sync (default: all)
            client: Pre-built client (tests inject one with a MockTransport)
            cache: Result cache for successful jobs (None or ttl 0 disables it)
            cache_ttl_seconds: How long a successful result is reused
        """
        self._url = url
        self._timeout = timeout
        self._supported_kinds = supported_kinds or frozenset(TargetKind)
        self._client = client
        self._cache = cache if cache_ttl_seconds > 0 else None
        self._cache_ttl_seconds = cache_ttl_seconds

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def execute(self, job: Job) -> SyncResult:
        if job.target is not None and job.target.kind not in self._supported_kinds:
            return SyncResult.failed(
                f"Unsupported target kind '{job.target.kind.value}'"
            )

        cache_key = self._cache_key(job)
        if cache_key is not None and self._cache is not None:
            cached = await self._cache.get(cache_key)
            if cached is not None:
                logger.debug(f"Job {job.id} served from cache ({cache_key})")
                return SyncResult.ok(**{**cached, "cached": True})

        result = await self._post(job)

        if result.success and cache_key is not None and self._cache is not None:
            await self._cache.set(
                cache_key, dict(result.details), ttl_seconds=self._cache_ttl_seconds
            )
        return result

    @staticmethod
    def _cache_key(job: Job) -> str | None:
        """Key like sync:movie:603:{"sync_images": true}, None for jobs without a target."""
        if job.target is None:
            return None
        options = json.dumps(job.options.to_dict(), sort_keys=True)
        return f"{job.job_type.value}:{job.target.kind.value}:{job.target.entity_id}:{options}"

    async def _post(self, job: Job) -> SyncResult:
        client = await self._get_client()
        try:
            response = await client.post(self._url, json={"job": job.to_snapshot()})
        except httpx.TransportError as e:
            raise TransientExternalError(
                f"Sync webhook unreachable: {type(e).__name__}: {e}"
            ) from e

        if response.status_code == 429 or response.status_code >= 500:
            raise TransientExternalError(
                f"Sync webhook returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        if response.status_code >= 400:
            logger.debug(
                f"Sync webhook rejected job {job.id}: HTTP {response.status_code}"
            )
            return SyncResult.failed(
                f"Sync webhook rejected job: HTTP {response.status_code} "
                f"{response.text[:200]}",
                status_code=response.status_code,
            )

        return self._parse_body(response)

    def _parse_body(self, response: httpx.Response) -> SyncResult:
        if not response.content:
            return SyncResult.ok()
        try:
            data: Any = response.json()
        except ValueError:
            return SyncResult.ok(raw=response.text[:200])

        if not isinstance(data, dict):
            return SyncResult.ok(result=data)

        details = {k: v for k, v in data.items() if k not in ("success", "error")}
        if data.get("success", True):
            return SyncResult.ok(**details)
        return SyncResult.failed(str(data.get("error") or "Sync failed"), **details)
