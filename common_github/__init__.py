# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""GitHub releases client for gh-latest-releases.

The client bundles everything one fetch needs:
- FetchPolicy (TTL, timeout, retries, backoff)
- ReleaseCacheStore over an injected key/value store
- a fetcher (BoundedFetcher, or any object with `async fetch(url, timeout_s)`)
- injected clock + sleep (deterministic TTL/backoff in tests)
- per-client REST and cache statistics

Usage:
    async with GitHubReleasesClient(store=JsonFileStore(cache_file=path)) as client:
        release = await client.get_latest_release("twbs/bootstrap")
"""

# Standard library imports
import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

# Local imports
from cache.cache_base import KeyValueStore
from cache.cache_release import ReleaseCacheStore
from common import FetchPolicy, now_ms
from common_types import ReleasePayload, ResourceKey
from .exceptions import FetchError, FetchTimeoutError, FetchConnectionError, DecodeError
from .fetcher import BoundedFetcher, RateLimitInfo
from .api.base_cached import CacheLookupResult
from .api.latest_release_cached import LatestReleaseCached, get_latest_release_cached, lookup_latest_release_cached


class Fetcher(Protocol):
    async def fetch(self, url: str, timeout_s: float) -> ReleasePayload: ...


class GitHubAPIStats:
    """REST call + cache statistics for one client instance."""

    def __init__(self):
        self.reset()

    def reset(self):
        """Reset all statistics (useful for testing)."""
        # REST call stats
        self.rest_calls_total = 0
        self.rest_calls_by_label = {}  # Dict[str, int] - count by resource label
        self.rest_success_total = 0
        self.rest_time_total_s = 0.0

        # Error stats
        self.rest_errors_total = 0
        self.rest_errors_by_status = {}  # Dict[int, int]
        self.rest_errors_by_kind = {}  # Dict[str, int] - timeout / connection / decode / http
        self.rest_last_error = {}  # Dict[str, Any] - {status, url, body}

        # Retry stats
        self.retries_total = 0
        self.backoff_total_s = 0.0

        # Cache stats (by cache name; misses carry a ".missing" / ".expired" suffix)
        self.cache_hits = {}  # Dict[str, int]
        self.cache_misses = {}  # Dict[str, int]
        self.cache_writes = {}  # Dict[str, int]
        self.cache_write_failures = {}  # Dict[str, int]
        self.stale_fallbacks = {}  # Dict[str, int]

    @staticmethod
    def _bump(d: Dict[Any, int], key: Any) -> None:
        d[key] = int(d.get(key, 0) or 0) + 1

    def cache_hit(self, name: str) -> None:
        self._bump(self.cache_hits, name)

    def cache_miss(self, name: str) -> None:
        self._bump(self.cache_misses, name)

    def cache_write(self, name: str) -> None:
        self._bump(self.cache_writes, name)

    def cache_write_failed(self, name: str) -> None:
        self._bump(self.cache_write_failures, name)

    def stale_fallback(self, name: str) -> None:
        self._bump(self.stale_fallbacks, name)

    def backoff(self, delay_s: float) -> None:
        self.retries_total += 1
        self.backoff_total_s += float(delay_s)

    def record_rest_call(self, label: str) -> None:
        self.rest_calls_total += 1
        self._bump(self.rest_calls_by_label, label)

    def record_rest_error(self, err: FetchError) -> None:
        self.rest_errors_total += 1
        if err.status_code is not None:
            self._bump(self.rest_errors_by_status, int(err.status_code))
            kind = "http"
        elif isinstance(err, FetchTimeoutError):
            kind = "timeout"
        elif isinstance(err, FetchConnectionError):
            kind = "connection"
        elif isinstance(err, DecodeError):
            kind = "decode"
        else:
            kind = "other"
        self._bump(self.rest_errors_by_kind, kind)
        # Keep last error small (stats output should not explode).
        self.rest_last_error = {
            "status": err.status_code,
            "url": err.url,
            "body": (err.body or "")[:300],
        }

    def summary(self) -> Dict[str, Any]:
        return {
            "rest": {
                "calls_total": self.rest_calls_total,
                "calls_by_label": dict(self.rest_calls_by_label),
                "success_total": self.rest_success_total,
                "errors_total": self.rest_errors_total,
                "errors_by_status": dict(sorted(self.rest_errors_by_status.items())),
                "errors_by_kind": dict(sorted(self.rest_errors_by_kind.items())),
                "last_error": dict(self.rest_last_error),
                "time_total_s": round(self.rest_time_total_s, 3),
                "retries_total": self.retries_total,
                "backoff_total_s": round(self.backoff_total_s, 3),
            },
            "cache": {
                "hits": dict(self.cache_hits),
                "misses": dict(self.cache_misses),
                "writes": dict(self.cache_writes),
                "write_failures": dict(self.cache_write_failures),
                "stale_fallbacks": dict(self.stale_fallbacks),
            },
        }


class GitHubReleasesClient:
    """Latest-release client with TTL cache, bounded retries and stale fallback.

    Example:
        client = GitHubReleasesClient(store=MemoryStore())
        release = await client.get_latest_release("jquery/jquery")
    """

    def __init__(
        self,
        *,
        store: KeyValueStore,
        policy: Optional[FetchPolicy] = None,
        fetcher: Optional[Fetcher] = None,
        clock_ms: Callable[[], int] = now_ms,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.policy = policy or FetchPolicy()
        self.clock_ms = clock_ms
        self.sleep = sleep
        self.cache = ReleaseCacheStore(store, prefix=self.policy.cache_prefix, clock_ms=clock_ms)
        self._owns_fetcher = fetcher is None
        self.fetcher: Fetcher = fetcher if fetcher is not None else BoundedFetcher()
        self.stats = GitHubAPIStats()

    async def __aenter__(self) -> "GitHubReleasesClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_fetcher and isinstance(self.fetcher, BoundedFetcher):
            await self.fetcher.close()

    async def rest_get_json(self, url: str, *, label: str) -> ReleasePayload:
        """One network GET through the fetcher, with per-run counters."""
        self.stats.record_rest_call(label)
        t0 = time.monotonic()
        try:
            data = await self.fetcher.fetch(url, self.policy.request_timeout_s)
        except FetchError as e:
            self.stats.record_rest_error(e)
            raise
        finally:
            self.stats.rest_time_total_s += max(0.0, time.monotonic() - t0)
        self.stats.rest_success_total += 1
        return data

    async def get_latest_release(self, repo: ResourceKey) -> ReleasePayload:
        """Latest release payload for "owner/name" (fresh cache, live fetch, or stale cache)."""
        return await get_latest_release_cached(self, repo=repo)

    async def lookup_latest_release(self, repo: ResourceKey) -> CacheLookupResult:
        """Like get_latest_release(), but also reports where the payload came from."""
        return await lookup_latest_release_cached(self, repo=repo)

    def get_core_rate_limit_info(self) -> Optional[RateLimitInfo]:
        """Quota from the most recent response headers (None before any response)."""
        return getattr(self.fetcher, "rate_limit_info", None)

    def latest_release_api_call_format(self) -> str:
        """One-line description of the latest-release API call + cache key (for -v output)."""
        return LatestReleaseCached(self).api_call_format()
