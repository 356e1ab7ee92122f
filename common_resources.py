# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Resource configuration: which repositories to watch and where their values go.

Built-in defaults mirror the landing page this tool was written for. A YAML
file can replace them (and override FetchPolicy knobs):

    policy:
      cache_ttl_s: 21600
      max_retries: 2
    resources:
      - repo: twbs/bootstrap
        prefer: name              # name | tag_name
        strip_leading_v: true
        fallback_text: "-"        # optional; written to version targets on failure
        sinks:
          - {kind: version, target: ".bv"}
          - {kind: asset_url, target: ".bdu-dist", attr: href}
          - {kind: source_archive_url, target: ".bdu-src", attr: href}
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Tuple

import yaml

from common import FetchPolicy
from common_types import NormalizationRule, ResourceSpec, SinkBinding, ValueKind, VersionField


class ResourceConfigError(ValueError):
    pass


DEFAULT_RESOURCES: Tuple[ResourceSpec, ...] = (
    ResourceSpec(
        key="twbs/bootstrap",
        rule=NormalizationRule(preferred_field=VersionField.NAME, strip_leading_marker=True),
        sinks=(
            SinkBinding(ValueKind.VERSION, ".bv"),
            SinkBinding(ValueKind.ASSET_URL, ".bdu-dist", "href"),
            SinkBinding(ValueKind.SOURCE_ARCHIVE_URL, ".bdu-src", "href"),
        ),
    ),
    ResourceSpec(
        key="jquery/jquery",
        rule=NormalizationRule(preferred_field=VersionField.TAG, strip_leading_marker=False),
        sinks=(SinkBinding(ValueKind.VERSION, ".jv"),),
    ),
    ResourceSpec(
        key="sindresorhus/modern-normalize",
        rule=NormalizationRule(preferred_field=VersionField.TAG, strip_leading_marker=True),
        sinks=(SinkBinding(ValueKind.VERSION, ".nv"),),
    ),
    ResourceSpec(
        key="Splidejs/splide",
        rule=NormalizationRule(preferred_field=VersionField.NAME, strip_leading_marker=True),
        sinks=(SinkBinding(ValueKind.VERSION, ".sv"),),
    ),
)

_PREFER_ALIASES = {
    "tag": VersionField.TAG,
    "tag_name": VersionField.TAG,
    "name": VersionField.NAME,
}

_POLICY_KEYS = {f.name for f in fields(FetchPolicy)}


@dataclass(frozen=True)
class ResourceConfig:
    resources: Tuple[ResourceSpec, ...]
    policy_overrides: Dict[str, Any] = field(default_factory=dict)

    def apply_policy(self, policy: FetchPolicy) -> FetchPolicy:
        try:
            return policy.with_overrides(**self.policy_overrides)
        except (TypeError, ValueError) as e:
            raise ResourceConfigError(f"invalid policy: {e}") from e


def _parse_sink(raw: Any, where: str) -> SinkBinding:
    if not isinstance(raw, dict):
        raise ResourceConfigError(f"{where}: sink must be a mapping, got {type(raw).__name__}")
    try:
        kind = ValueKind(str(raw.get("kind", "")).strip())
    except ValueError:
        valid = ", ".join(k.value for k in ValueKind)
        raise ResourceConfigError(f"{where}: unknown sink kind {raw.get('kind')!r} (expected one of: {valid})") from None
    target = raw.get("target")
    if not isinstance(target, str) or not target.strip():
        raise ResourceConfigError(f"{where}: sink target must be a non-empty string")
    attr = raw.get("attr")
    if attr is not None and (not isinstance(attr, str) or not attr.strip()):
        raise ResourceConfigError(f"{where}: sink attr must be a non-empty string when given")
    return SinkBinding(kind=kind, target=target.strip(), attribute=attr.strip() if attr else None)


def _parse_resource(raw: Any, where: str) -> ResourceSpec:
    if not isinstance(raw, dict):
        raise ResourceConfigError(f"{where}: resource must be a mapping, got {type(raw).__name__}")

    repo = raw.get("repo")
    if not isinstance(repo, str) or repo.strip().strip("/").count("/") != 1:
        raise ResourceConfigError(f"{where}: repo must look like 'owner/name' (got {repo!r})")
    repo = repo.strip().strip("/")

    prefer_raw = str(raw.get("prefer", "tag_name")).strip().lower()
    if prefer_raw not in _PREFER_ALIASES:
        raise ResourceConfigError(f"{where}: prefer must be 'tag_name' or 'name' (got {raw.get('prefer')!r})")
    strip_v = raw.get("strip_leading_v", True)
    if not isinstance(strip_v, bool):
        raise ResourceConfigError(f"{where}: strip_leading_v must be true/false")

    sinks_raw = raw.get("sinks") or []
    if not isinstance(sinks_raw, list):
        raise ResourceConfigError(f"{where}: sinks must be a list")
    sinks = tuple(_parse_sink(s, f"{where}.sinks[{i}]") for (i, s) in enumerate(sinks_raw))

    fallback = raw.get("fallback_text")
    if fallback is not None and not isinstance(fallback, str):
        raise ResourceConfigError(f"{where}: fallback_text must be a string")

    return ResourceSpec(
        key=repo,
        rule=NormalizationRule(preferred_field=_PREFER_ALIASES[prefer_raw], strip_leading_marker=strip_v),
        sinks=sinks,
        fallback_text=fallback,
    )


def parse_resource_config(data: Any, *, source: str = "<config>") -> ResourceConfig:
    """Validate an already-decoded YAML/JSON document."""
    if not isinstance(data, dict):
        raise ResourceConfigError(f"{source}: top level must be a mapping")

    policy_raw = data.get("policy") or {}
    if not isinstance(policy_raw, dict):
        raise ResourceConfigError(f"{source}: policy must be a mapping")
    unknown = sorted(set(policy_raw) - _POLICY_KEYS)
    if unknown:
        raise ResourceConfigError(f"{source}: unknown policy keys: {', '.join(map(str, unknown))}")

    resources_raw = data.get("resources")
    if not isinstance(resources_raw, list) or not resources_raw:
        raise ResourceConfigError(f"{source}: resources must be a non-empty list")
    resources: List[ResourceSpec] = [
        _parse_resource(r, f"{source}: resources[{i}]") for (i, r) in enumerate(resources_raw)
    ]
    keys = [r.key for r in resources]
    dupes = sorted({k for k in keys if keys.count(k) > 1})
    if dupes:
        raise ResourceConfigError(f"{source}: duplicate repos: {', '.join(dupes)}")

    return ResourceConfig(resources=tuple(resources), policy_overrides=dict(policy_raw))


def load_resource_config(path: Path) -> ResourceConfig:
    path = Path(path)
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ResourceConfigError(f"{path}: cannot read config: {e}") from e
    except yaml.YAMLError as e:
        raise ResourceConfigError(f"{path}: invalid YAML: {e}") from e
    return parse_resource_config(data, source=str(path))
