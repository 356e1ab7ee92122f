#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Synchronous key -> string stores backing the release cache.

Two implementations of the same tiny interface (`get_item` / `set_item`):
- JsonFileStore: one JSON file on disk with locking and merge-on-write
- MemoryStore:   a dict (tests, --no-cache runs)

Values are opaque strings; callers own serialization. `set_item` may raise
OSError when the underlying storage rejects the write.
"""

from __future__ import annotations

import json
import os
import time
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional, Protocol, Tuple

try:
    import fcntl  # type: ignore
except ImportError:  # pragma: no cover - best-effort on non-POSIX
    fcntl = None  # type: ignore


class KeyValueStore(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...


@dataclass
class BaseCacheStats:
    """Basic store statistics tracked automatically by every store."""
    hit: int = 0
    miss: int = 0
    write: int = 0


class MemoryStore:
    """Dict-backed store. Nothing survives the process."""

    def __init__(self, items: Optional[Dict[str, str]] = None):
        self._mu = Lock()
        self._items: Dict[str, str] = dict(items or {})
        self.stats = BaseCacheStats()

    def get_item(self, key: str) -> Optional[str]:
        with self._mu:
            value = self._items.get(key)
            if value is not None:
                self.stats.hit += 1
            else:
                self.stats.miss += 1
            return value

    def set_item(self, key: str, value: str) -> None:
        with self._mu:
            self._items[key] = str(value)
            self.stats.write += 1

    def keys(self) -> Tuple[str, ...]:
        with self._mu:
            return tuple(self._items)


class JsonFileStore:
    """Thread-safe disk-backed store with inter-process locking.

    Provides:
    - Thread-safe in-memory view with Lock
    - Disk persistence with inter-process locking (fcntl, best-effort)
    - Lazy loading (load on first access)
    - Merge on write (concurrent writers of other keys are not clobbered)
    - Atomic writes (tmp file + rename)

    File format:
        {"version": 1, "items": {"<key>": "<string value>", ...}}
    """

    def __init__(self, *, cache_file: Path, schema_version: int = 1):
        self._mu = Lock()
        self._cache_file = Path(cache_file)
        self._schema_version = schema_version
        self._items: Dict[str, str] = {}
        self._loaded = False
        self._initial_disk_count: Optional[int] = None
        self.stats = BaseCacheStats()

    @property
    def cache_file(self) -> Path:
        return self._cache_file

    def _lock_file_path(self) -> Path:
        """Path to lock file (next to cache file)."""
        return self._cache_file.with_name(f".{self._cache_file.name}.lock")

    def _acquire_disk_lock(self, *, timeout_s: float = 10.0) -> Optional[Any]:
        """Best-effort inter-process lock for the cache file.

        Returns file handle on success, None on failure/timeout.
        """
        if fcntl is None:
            return None

        lock_path = self._lock_file_path()
        try:
            lock_path.parent.mkdir(parents=True, exist_ok=True)
            fh = open(lock_path, "w")
        except OSError:
            return None

        start = time.monotonic()
        while time.monotonic() - start < float(timeout_s):
            try:
                fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                return fh
            except OSError:
                time.sleep(0.1)

        fh.close()
        return None

    def _release_disk_lock(self, lock_fh: Optional[Any]) -> None:
        """Release inter-process lock."""
        if lock_fh is None:
            return

        try:
            if fcntl is not None:
                fcntl.flock(lock_fh.fileno(), fcntl.LOCK_UN)
        except OSError:
            pass
        finally:
            lock_fh.close()

    def _read_disk_items(self) -> Dict[str, str]:
        """Read items from disk. Unreadable or malformed files read as empty."""
        if not self._cache_file.exists():
            return {}
        try:
            raw = json.loads(self._cache_file.read_text() or "{}")
        except (OSError, ValueError):
            return {}

        items = raw.get("items") if isinstance(raw, dict) else None
        if not isinstance(items, dict):
            return {}
        # Values must be strings; anything else is dropped on load.
        return {str(k): v for (k, v) in items.items() if isinstance(v, str)}

    def _load_once(self) -> None:
        """Load cache from disk (once per instance)."""
        if self._loaded:
            return
        self._loaded = True
        self._items = self._read_disk_items()
        self._initial_disk_count = len(self._items)

    def _persist_item(self, key: str, value: str) -> None:
        """Write one item to disk, merging with whatever other writers stored meanwhile."""
        self._cache_file.parent.mkdir(parents=True, exist_ok=True)

        lock_fh = self._acquire_disk_lock(timeout_s=10.0)
        try:
            # Merge: disk first, then our new item wins
            merged_items = {**self._read_disk_items(), key: value}
            merged = {
                "version": self._schema_version,
                "items": merged_items,
            }

            tmp = Path(f"{self._cache_file}.tmp.{os.getpid()}")
            try:
                tmp.write_text(json.dumps(merged, separators=(",", ":")))
                os.replace(str(tmp), str(self._cache_file))
            finally:
                if tmp.exists():
                    tmp.unlink()

            # Update in-memory view to match what we wrote
            self._items = merged_items
        finally:
            self._release_disk_lock(lock_fh)

    def get_item(self, key: str) -> Optional[str]:
        with self._mu:
            self._load_once()
            value = self._items.get(key)
            if value is not None:
                self.stats.hit += 1
            else:
                self.stats.miss += 1
            return value

    def set_item(self, key: str, value: str) -> None:
        """Store a value and persist immediately. Raises OSError if the disk write fails."""
        with self._mu:
            self._load_once()
            self._persist_item(str(key), str(value))
            self.stats.write += 1

    def get_cache_sizes(self) -> Tuple[int, int]:
        """Return (mem_count, disk_count) for cache entries.

        disk_count is the initial count before this run's modifications.
        """
        with self._mu:
            self._load_once()
            mem_count = len(self._items)
            disk_count = self._initial_disk_count if self._initial_disk_count is not None else 0
            return (mem_count, disk_count)
