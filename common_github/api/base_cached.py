"""Base class for cached GitHub API resources.

Goal: make each cached resource readable + debuggable by enforcing a small interface:
- cache key + API URL format
- TTL policy
- one shared fetch flow (fresh cache -> live fetch with retries -> stale cache -> error)
- consistent cache + API statistics reporting
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional, TYPE_CHECKING

from common_types import CacheEntry, LookupSource, ReleasePayload
from ..exceptions import FetchError, RateLimitError

if TYPE_CHECKING:  # pragma: no cover
    from .. import GitHubReleasesClient

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheLookupResult:
    """What CachedResourceBase.lookup() returns: the payload and where it came from."""

    payload: ReleasePayload
    source: LookupSource
    # network attempts made (0 for a fresh cache hit)
    attempts: int = 0


class CachedResourceBase(ABC):
    """Base class for a cached resource backed by the client's ReleaseCacheStore.

    Subclasses define:
    - cache key format
    - the API URL to GET
    - (optionally) the TTL policy
    """

    def __init__(self, api: "GitHubReleasesClient"):
        self.api: GitHubReleasesClient = api

    @property
    @abstractmethod
    def cache_name(self) -> str:
        """Short name used for stats keys (e.g. 'latest_release')."""

    @abstractmethod
    def api_call_format(self) -> str:
        """Human-readable description of the API call this resource performs."""

    @abstractmethod
    def cache_key(self, **kwargs: Any) -> str:
        """Return a stable cache key for this resource."""

    @abstractmethod
    def api_url(self, **kwargs: Any) -> str:
        """Return the absolute URL to GET on a cache miss."""

    def is_cache_entry_fresh(self, *, entry: CacheEntry, now_ms: int) -> bool:
        """TTL policy: fresh while age <= policy TTL."""
        return entry.age_ms(now_ms) <= self.api.policy.cache_ttl_ms

    async def get(self, **kwargs: Any) -> ReleasePayload:
        return (await self.lookup(**kwargs)).payload

    async def lookup(self, **kwargs: Any) -> CacheLookupResult:
        """Shared flow: fresh cache -> live fetch (retry/backoff) -> write-through -> stale cache -> raise."""
        key = self.cache_key(**kwargs)
        policy = self.api.policy

        entry = self.api.cache.read(key)
        if entry is not None:
            if self.is_cache_entry_fresh(entry=entry, now_ms=self.api.clock_ms()):
                self.api.stats.cache_hit(self.cache_name)
                _logger.debug("%s %s: fresh cache hit", self.cache_name, key)
                return CacheLookupResult(payload=entry.payload, source=LookupSource.CACHE)
            self.api.stats.cache_miss(f"{self.cache_name}.expired")
        else:
            self.api.stats.cache_miss(f"{self.cache_name}.missing")

        url = self.api_url(**kwargs)
        last_err: Optional[FetchError] = None
        attempts = 0
        for attempt in range(policy.max_attempts):
            attempts += 1
            try:
                payload = await self.api.rest_get_json(url, label=self.cache_name)
            except RateLimitError as e:
                # 403/429 ends the attempt loop.
                last_err = e
                _logger.warning("%s %s: %s; not retrying", self.cache_name, key, e)
                break
            except FetchError as e:
                last_err = e
                if attempt < policy.max_attempts - 1:
                    delay_s = policy.backoff_delay_s(attempt)
                    _logger.warning(
                        "%s %s: attempt %d/%d failed (%s); retrying in %.1fs",
                        self.cache_name, key, attempts, policy.max_attempts, e, delay_s,
                    )
                    self.api.stats.backoff(delay_s)
                    await self.api.sleep(delay_s)
                else:
                    _logger.warning(
                        "%s %s: attempt %d/%d failed (%s)",
                        self.cache_name, key, attempts, policy.max_attempts, e,
                    )
                continue

            if self.api.cache.write(key, payload):
                self.api.stats.cache_write(self.cache_name)
            else:
                self.api.stats.cache_write_failed(self.cache_name)
            return CacheLookupResult(payload=payload, source=LookupSource.NETWORK, attempts=attempts)

        # Stale-but-present beats failure, whatever its age (also after a first-attempt rate limit).
        stale = self.api.cache.read_stale(key)
        if stale is not None:
            self.api.stats.stale_fallback(self.cache_name)
            _logger.warning("%s %s: live fetch failed; using stale cached data", self.cache_name, key)
            return CacheLookupResult(payload=stale, source=LookupSource.STALE, attempts=attempts)

        if last_err is not None:
            raise last_err
        raise FetchError("Unknown error fetching release data", url=url)
