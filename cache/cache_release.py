#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Latest-release cache

Maps a repository key ("owner/name") to the last successfully fetched
`/releases/latest` payload plus the time it was fetched.

Stored value (one string per key in the key/value store):
    {"ts": <epoch milliseconds>, "data": <raw release JSON object>}

Store key format:
    "<prefix><owner>/<name>"   e.g. "gh_latest:twbs/bootstrap"

Freshness (TTL) is NOT decided here: `read()` returns the raw entry with its
timestamp and the caller applies the TTL. `read_stale()` is the last-resort
path that ignores age entirely.

Nothing in this module raises for storage problems:
- missing / malformed / structurally invalid entries read as None
- rejected writes (disk full, permissions) are logged at debug level and dropped
"""

from __future__ import annotations

import json
import logging
import math
from typing import Any, Callable, Dict, Optional

from cache.cache_base import KeyValueStore
from common import CACHE_PREFIX, now_ms as _wall_clock_ms
from common_types import CacheEntry, ReleasePayload, ResourceKey

_logger = logging.getLogger(__name__)


class ReleaseCacheStore:
    """TTL-agnostic `{ts, data}` layer over a KeyValueStore."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        prefix: str = CACHE_PREFIX,
        clock_ms: Callable[[], int] = _wall_clock_ms,
    ):
        self.store = store
        self.prefix = str(prefix)
        self._clock_ms = clock_ms

    def store_key(self, key: ResourceKey) -> str:
        return f"{self.prefix}{key}"

    def _load_raw(self, key: ResourceKey) -> Optional[Dict[str, Any]]:
        try:
            raw = self.store.get_item(self.store_key(key))
        except OSError as e:
            _logger.debug("cache read failed for %s: %s", key, e)
            return None
        if not raw:
            return None
        try:
            obj = json.loads(raw)
        except ValueError:
            _logger.debug("cache entry for %s is not valid JSON; treating as miss", key)
            return None
        if not isinstance(obj, dict):
            return None
        return obj

    @staticmethod
    def _payload_of(obj: Dict[str, Any]) -> Optional[ReleasePayload]:
        data = obj.get("data")
        return data if isinstance(data, dict) else None

    @staticmethod
    def _timestamp_of(obj: Dict[str, Any]) -> Optional[int]:
        ts = obj.get("ts")
        # bool is an int subclass; a literal true/false is not a timestamp
        if isinstance(ts, bool) or not isinstance(ts, (int, float)):
            return None
        # json.loads accepts Infinity / NaN / 1e999
        if isinstance(ts, float) and not math.isfinite(ts):
            return None
        if ts <= 0:
            return None
        return int(ts)

    def read(self, key: ResourceKey) -> Optional[CacheEntry]:
        """Return the cached entry (any age) or None if missing/unusable."""
        obj = self._load_raw(key)
        if obj is None:
            return None
        ts = self._timestamp_of(obj)
        payload = self._payload_of(obj)
        if ts is None or payload is None:
            _logger.debug("cache entry for %s is missing ts/data; treating as miss", key)
            return None
        return CacheEntry(timestamp_ms=ts, payload=payload)

    def read_stale(self, key: ResourceKey) -> Optional[ReleasePayload]:
        """Return whatever payload is stored for key, ignoring age and timestamp."""
        obj = self._load_raw(key)
        if obj is None:
            return None
        return self._payload_of(obj)

    def write(self, key: ResourceKey, payload: ReleasePayload) -> bool:
        """Best-effort write-through. Returns False (never raises) when the store rejects it."""
        try:
            value = json.dumps({"ts": int(self._clock_ms()), "data": payload}, separators=(",", ":"))
            self.store.set_item(self.store_key(key), value)
        except (OSError, TypeError, ValueError) as e:
            _logger.debug("cache write failed for %s (ignored): %s", key, e)
            return False
        return True
