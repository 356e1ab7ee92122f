#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Common shared enums/types used by the cache, the GitHub client, the normalizer
and the pipeline driver.

This module MUST NOT import `common.py`, `cache/*` or `common_github/*` to avoid cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

# "owner/name" for a GitHub repository. Also the cache key namespace.
ResourceKey = str

# Raw decoded JSON object returned by GET /repos/{owner}/{name}/releases/latest.
ReleasePayload = Dict[str, Any]


class VersionField(str, Enum):
    """Release payload fields a version string may be read from."""

    TAG = "tag_name"
    NAME = "name"


class ValueKind(str, Enum):
    """Normalized values the pipeline can route to a presentation target."""

    VERSION = "version"
    TAG = "tag"
    ASSET_URL = "asset_url"
    SOURCE_ARCHIVE_URL = "source_archive_url"


class LookupSource(str, Enum):
    """Where a release payload came from."""

    CACHE = "cache"
    NETWORK = "network"
    STALE = "stale"


@dataclass(frozen=True)
class CacheEntry:
    """A cached release payload plus its creation time (epoch milliseconds)."""

    timestamp_ms: int
    payload: ReleasePayload

    def age_ms(self, now_ms: int) -> int:
        return int(now_ms) - int(self.timestamp_ms)


@dataclass(frozen=True)
class NormalizationRule:
    """How to pick a version string out of a release payload."""

    preferred_field: VersionField = VersionField.TAG
    strip_leading_marker: bool = True

    def __post_init__(self) -> None:
        # "tag_name" / "name" strings are coerced; anything else raises ValueError
        object.__setattr__(self, "preferred_field", VersionField(self.preferred_field))


@dataclass(frozen=True)
class SinkBinding:
    """Route one normalized value to a presentation target.

    attribute=None writes text content; otherwise the named attribute (e.g. "href").
    """

    kind: ValueKind
    target: str
    attribute: Optional[str] = None


@dataclass(frozen=True)
class ResourceSpec:
    key: ResourceKey
    rule: NormalizationRule = field(default_factory=NormalizationRule)
    sinks: Tuple[SinkBinding, ...] = ()
    # Optional visible indicator written to VERSION text targets when the resource fails.
    fallback_text: Optional[str] = None

    @property
    def owner(self) -> str:
        return self.key.split("/", 1)[0]

    @property
    def name(self) -> str:
        return self.key.split("/", 1)[-1]
