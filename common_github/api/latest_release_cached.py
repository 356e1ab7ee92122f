# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Latest release cached API (REST).

Resource:
  GET /repos/{owner}/{repo}/releases/latest

Example API Response (fields we read):
  {
    "tag_name": "v5.3.3",
    "name": "v5.3.3",
    "assets": [
      {"name": "bootstrap-5.3.3-dist.zip",
       "browser_download_url": "https://github.com/twbs/bootstrap/releases/download/v5.3.3/bootstrap-5.3.3-dist.zip"}
    ]
  }

Cached Fields:
  - the whole decoded response object (normalization happens after the cache)

Cache:
  Client's ReleaseCacheStore. Fresh for policy.cache_ttl_s (default 6h); older
  entries are only used as a stale fallback when every live attempt fails.
"""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from common_types import ReleasePayload, ResourceKey
from .base_cached import CachedResourceBase, CacheLookupResult

if TYPE_CHECKING:  # pragma: no cover
    from .. import GitHubReleasesClient


CACHE_NAME = "latest_release"
API_CALL_FORMAT = "REST GET /repos/{owner}/{repo}/releases/latest (cache key {owner}/{repo}, fresh for policy.cache_ttl_s)"


def _normalize_repo(repo: ResourceKey) -> str:
    r = str(repo or "").strip().strip("/")
    owner, sep, name = r.partition("/")
    if not sep or not owner or not name or "/" in name:
        raise ValueError(f"expected 'owner/name', got {repo!r}")
    return r


class LatestReleaseCached(CachedResourceBase):
    @property
    def cache_name(self) -> str:
        return CACHE_NAME

    def api_call_format(self) -> str:
        return API_CALL_FORMAT

    def cache_key(self, **kwargs: Any) -> str:
        return _normalize_repo(kwargs["repo"])

    def api_url(self, **kwargs: Any) -> str:
        repo = _normalize_repo(kwargs["repo"])
        return f"{self.api.policy.api_base.rstrip('/')}/repos/{repo}/releases/latest"


async def lookup_latest_release_cached(api: "GitHubReleasesClient", *, repo: ResourceKey) -> CacheLookupResult:
    return await LatestReleaseCached(api).lookup(repo=repo)


async def get_latest_release_cached(api: "GitHubReleasesClient", *, repo: ResourceKey) -> ReleasePayload:
    return await LatestReleaseCached(api).get(repo=repo)
