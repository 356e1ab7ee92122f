#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Resource pipeline driver.

For every configured repository:
    lookup (cache / network / stale) -> normalize -> write sink bindings

Each resource is isolated: whatever goes wrong for one repository (fetch
failure, nothing usable in the payload, a sink raising) is logged and recorded
in its ResourceOutcome, and the remaining repositories still run.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from common_github import GitHubReleasesClient
from common_github.normalize import normalize_release
from common_sinks import PresentationSink
from common_types import LookupSource, ResourceKey, ResourceSpec, SinkBinding, ValueKind

_logger = logging.getLogger(__name__)


@dataclass
class ResourceOutcome:
    key: ResourceKey
    ok: bool = False
    source: Optional[LookupSource] = None
    attempts: int = 0
    values: Dict[ValueKind, Optional[str]] = field(default_factory=dict)
    # bindings that received a value
    written: int = 0
    error: Optional[BaseException] = None

    @property
    def version(self) -> Optional[str]:
        return self.values.get(ValueKind.VERSION)

    def error_text(self) -> str:
        if self.error is None:
            return ""
        return f"{type(self.error).__name__}: {self.error}"


def _write_binding(sink: PresentationSink, binding: SinkBinding, value: Optional[str]) -> bool:
    if value is None:
        return False
    if binding.attribute is None:
        sink.set_text(binding.target, value)
    else:
        sink.set_attribute(binding.target, binding.attribute, value)
    return True


def _write_fallback(sink: PresentationSink, spec: ResourceSpec) -> None:
    if spec.fallback_text is None:
        return
    for binding in spec.sinks:
        if binding.kind == ValueKind.VERSION and binding.attribute is None:
            try:
                sink.set_text(binding.target, spec.fallback_text)
            except Exception as e:  # sink errors stay inside this resource
                _logger.warning("%s: fallback write to %s failed: %s", spec.key, binding.target, e)


async def run_resource(
    spec: ResourceSpec,
    client: GitHubReleasesClient,
    sink: PresentationSink,
) -> ResourceOutcome:
    """Run one resource end to end. Never raises (except cancellation)."""
    outcome = ResourceOutcome(key=spec.key)
    try:
        result = await client.lookup_latest_release(spec.key)
        outcome.source = result.source
        outcome.attempts = result.attempts
        outcome.values = normalize_release(spec.key, result.payload, spec.rule, web_base=client.policy.web_base)
        if outcome.version is None:
            _logger.info("%s: release payload has no usable version string", spec.key)
        for binding in spec.sinks:
            if _write_binding(sink, binding, outcome.values.get(binding.kind)):
                outcome.written += 1
        outcome.ok = True
    except Exception as e:  # per-resource isolation boundary
        outcome.error = e
        _logger.warning("%s: %s", spec.key, outcome.error_text())
        _logger.debug("%s: failure details", spec.key, exc_info=True)
        _write_fallback(sink, spec)
    return outcome


async def run_pipeline(
    resources: Iterable[ResourceSpec],
    client: GitHubReleasesClient,
    sink: PresentationSink,
    *,
    concurrent: bool = False,
) -> List[ResourceOutcome]:
    """Run all resources. Outcomes are returned in input order.

    Sequential by default (one resource's attempts finish before the next
    starts). concurrent=True interleaves them on the event loop; resources
    share nothing but the cache store, and each only touches its own key.
    """
    specs = list(resources)
    if concurrent:
        return list(await asyncio.gather(*(run_resource(s, client, sink) for s in specs)))

    outcomes: List[ResourceOutcome] = []
    for spec in specs:
        outcomes.append(await run_resource(spec, client, sink))
    return outcomes
