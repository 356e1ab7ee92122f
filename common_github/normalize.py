# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Normalize `/releases/latest` payloads into display values.

Upstream projects are not consistent about where the version lives:
- Bootstrap:        tag_name "v5.3.3", name "v5.3.3"
- jQuery:           tag_name "3.7.1", name often null
- modern-normalize: tag_name "v2.0.0"
- Splide:           name "v4.1.4"

None of these functions raise on odd payloads; "no usable value" is None.
"""

from __future__ import annotations

import re
import urllib.parse
from typing import Any, Dict, Optional

from common import GITHUB_WEB
from common_types import NormalizationRule, ReleasePayload, ResourceKey, ValueKind, VersionField

_LEADING_MARKER_RE = re.compile(r"^v", re.IGNORECASE)

# Fixed fallback order after the preferred field.
_FALLBACK_FIELDS = (VersionField.TAG, VersionField.NAME)


def _usable_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def extract_version(payload: Any, rule: NormalizationRule) -> Optional[str]:
    """Version string from the preferred field, else tag_name, else name."""
    if not isinstance(payload, dict):
        return None

    raw: Optional[str] = None
    for fld in (rule.preferred_field, *_FALLBACK_FIELDS):
        raw = _usable_str(payload.get(fld.value))
        if raw is not None:
            break
    if raw is None:
        return None

    version = raw.strip()
    if rule.strip_leading_marker:
        version = _LEADING_MARKER_RE.sub("", version, count=1)
    return version or None


def extract_tag(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    tag = _usable_str(payload.get(VersionField.TAG.value))
    return tag.strip() if tag is not None else None


def extract_primary_asset_url(payload: Any) -> Optional[str]:
    """browser_download_url of the first asset. Only the first asset is considered."""
    if not isinstance(payload, dict):
        return None
    assets = payload.get("assets")
    if not isinstance(assets, list) or not assets:
        return None
    first = assets[0]
    if not isinstance(first, dict):
        return None
    url = first.get("browser_download_url")
    return url if isinstance(url, str) and url else None


def source_archive_url(key: ResourceKey, payload: Any, *, web_base: str = GITHUB_WEB) -> Optional[str]:
    """Source zip for the release tag, e.g. https://github.com/twbs/bootstrap/archive/v5.3.3.zip"""
    tag = extract_tag(payload)
    if not tag:
        return None
    return f"{web_base.rstrip('/')}/{key}/archive/{urllib.parse.quote(tag, safe='')}.zip"


def normalize_release(
    key: ResourceKey,
    payload: ReleasePayload,
    rule: NormalizationRule,
    *,
    web_base: str = GITHUB_WEB,
) -> Dict[ValueKind, Optional[str]]:
    """All value kinds for one payload (None where the payload has nothing usable)."""
    return {
        ValueKind.VERSION: extract_version(payload, rule),
        ValueKind.TAG: extract_tag(payload),
        ValueKind.ASSET_URL: extract_primary_asset_url(payload),
        ValueKind.SOURCE_ARCHIVE_URL: source_archive_url(key, payload, web_base=web_base),
    }
