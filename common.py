"""
gh-latest-releases package.

Shared constants and utilities for the latest-release fetch/cache scripts.
"""

import math
import os
import time
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any


#
# Fetch/cache policy constants (single source of truth)
#
# These are intentionally defined at module level so call sites don't duplicate
# literals (6h / 9s / 400ms / etc) across scripts.
#
GITHUB_API: str = "https://api.github.com"
# ^ REST API base. Releases are read from `{GITHUB_API}/repos/{owner}/{name}/releases/latest`.
GITHUB_WEB: str = "https://github.com"
# ^ Web base used to build source archive links: `{GITHUB_WEB}/{owner}/{name}/archive/{tag}.zip`.
CACHE_PREFIX: str = "gh_latest:"
# ^ Key prefix inside the key/value store. Example key: "gh_latest:twbs/bootstrap".
DEFAULT_CACHE_TTL_S: float = 6 * 3600
# ^ A cached release younger than this is served without touching the network.
#   Older entries are still kept: they are the stale fallback when GitHub is down or rate limiting us.
DEFAULT_REQUEST_TIMEOUT_S: float = 9.0
# ^ Hard wall-clock deadline for one HTTP request (connect + headers + body).
DEFAULT_MAX_RETRIES: int = 2
# ^ Retries after the first attempt. 2 means at most 3 requests per resource per run.
DEFAULT_BACKOFF_BASE_S: float = 0.4
DEFAULT_BACKOFF_INCREMENT_S: float = 0.5
# ^ Delay before retry i (0-based) is base + i * increment: 0.4s, 0.9s, ...
#   Rate-limit responses (403/429) never back off; they stop the retry loop.

CACHE_FILE_DEFAULT: str = "latest_releases.json"


@dataclass(frozen=True)
class FetchPolicy:
    """Tunable knobs for the fetch/retry/cache pipeline."""

    api_base: str = GITHUB_API
    web_base: str = GITHUB_WEB
    cache_prefix: str = CACHE_PREFIX
    cache_ttl_s: float = DEFAULT_CACHE_TTL_S
    request_timeout_s: float = DEFAULT_REQUEST_TIMEOUT_S
    max_retries: int = DEFAULT_MAX_RETRIES
    backoff_base_s: float = DEFAULT_BACKOFF_BASE_S
    backoff_increment_s: float = DEFAULT_BACKOFF_INCREMENT_S

    def __post_init__(self) -> None:
        for name in ("api_base", "web_base", "cache_prefix"):
            if not isinstance(getattr(self, name), str):
                raise ValueError(f"{name} must be a string (got {getattr(self, name)!r})")
        for name in ("cache_ttl_s", "request_timeout_s", "backoff_base_s", "backoff_increment_s"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{name} must be a number (got {value!r})")
            try:
                value = float(value)
            except OverflowError:
                value = math.inf
            if not math.isfinite(value):
                raise ValueError(f"{name} must be finite (got {getattr(self, name)!r})")
            object.__setattr__(self, name, value)
        if isinstance(self.max_retries, bool) or not isinstance(self.max_retries, int):
            raise ValueError(f"max_retries must be an integer (got {self.max_retries!r})")

        if self.cache_ttl_s < 0:
            raise ValueError(f"cache_ttl_s must be >= 0 (got {self.cache_ttl_s!r})")
        if self.request_timeout_s <= 0:
            raise ValueError(f"request_timeout_s must be > 0 (got {self.request_timeout_s!r})")
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0 (got {self.max_retries!r})")
        if self.backoff_base_s < 0 or self.backoff_increment_s < 0:
            raise ValueError("backoff_base_s and backoff_increment_s must be >= 0")

    @property
    def max_attempts(self) -> int:
        return 1 + self.max_retries

    @property
    def cache_ttl_ms(self) -> int:
        return int(self.cache_ttl_s * 1000)

    def backoff_delay_s(self, attempt_index: int) -> float:
        """Delay to wait after failed attempt `attempt_index` (0-based). Non-decreasing."""
        return self.backoff_base_s + max(0, int(attempt_index)) * self.backoff_increment_s

    def with_overrides(self, **overrides: Any) -> "FetchPolicy":
        """Return a copy with the non-None overrides applied (unknown keys raise TypeError)."""
        return replace(self, **{k: v for (k, v) in overrides.items() if v is not None})


def now_ms() -> int:
    """Wall clock in epoch milliseconds (the unit stored in cache entries)."""
    return int(time.time() * 1000)


# ======================================================================================
# Cache location policy
#
# The persistent release cache lives under:
#   - $GH_LATEST_RELEASES_CACHE_DIR  (explicit override), else
#   - ~/.cache/gh-latest-releases    (default)
#
# Only the CLI layer resolves this; library code always receives an explicit store.
# ======================================================================================

def latest_releases_cache_dir() -> Path:
    """Return the cache directory for gh-latest-releases.

    Resolution order:
    - GH_LATEST_RELEASES_CACHE_DIR (explicit override)
    - ~/.cache/gh-latest-releases
    """
    override = os.environ.get("GH_LATEST_RELEASES_CACHE_DIR")
    if override:
        return Path(override).expanduser()

    return Path.home() / ".cache" / "gh-latest-releases"


def resolve_cache_path(cache_file: str) -> Path:
    """Resolve a cache file path into the global cache directory.

    - Absolute paths are used as-is.
    - Relative paths are rooted under `latest_releases_cache_dir()`.
    """
    p = Path(cache_file).expanduser()
    if p.is_absolute():
        return p
    return latest_releases_cache_dir() / p
