#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Show the latest GitHub release of each configured repository.

Values are cached under ~/.cache/gh-latest-releases (6h TTL by default) so
repeated runs do not burn the anonymous API quota; when GitHub fails or rate
limits us, the last cached release is shown instead.

Usage:
    ./show_latest_releases.py
    ./show_latest_releases.py --config releases.yaml --output site/_data/releases.json
    ./show_latest_releases.py --no-cache --max-retries 0 -v
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from cache.cache_base import JsonFileStore, KeyValueStore, MemoryStore
from common import CACHE_FILE_DEFAULT, FetchPolicy, resolve_cache_path
from common_github import GitHubReleasesClient
from common_resources import DEFAULT_RESOURCES, ResourceConfig, ResourceConfigError, load_resource_config
from common_sinks import JsonFileSink, MemorySink
from release_pipeline import ResourceOutcome, run_pipeline

_logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Show the latest GitHub release of each configured repository"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML resource config (default: built-in Bootstrap/jQuery/modern-normalize/Splide list)",
    )
    parser.add_argument(
        "--cache-file",
        default=CACHE_FILE_DEFAULT,
        help=f"Cache file; relative paths live under the cache dir (default: {CACHE_FILE_DEFAULT})",
    )
    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Use an in-memory cache only (nothing read from or written to disk)",
    )
    parser.add_argument("--ttl-s", type=float, default=None, help="Cache TTL in seconds (default: 21600)")
    parser.add_argument("--timeout-s", type=float, default=None, help="Per-request timeout in seconds (default: 9)")
    parser.add_argument("--max-retries", type=int, default=None, help="Retries after the first attempt (default: 2)")
    parser.add_argument(
        "--concurrent",
        action="store_true",
        help="Fetch all repositories concurrently instead of one after another",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write target values to this JSON file (default: print a table)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    return parser


def _print_outcomes(outcomes: List[ResourceOutcome]) -> None:
    width = max([len(o.key) for o in outcomes] + [10])
    for o in outcomes:
        if o.ok:
            version = o.version or "(no version)"
            source = o.source.value if o.source is not None else "?"
            print(f"{o.key:<{width}}  {version:<16} [{source}]")
        else:
            print(f"{o.key:<{width}}  {'-':<16} [failed] {o.error_text()}")


async def _run(
    config: ResourceConfig,
    policy: FetchPolicy,
    store: KeyValueStore,
    sink: MemorySink,
    *,
    concurrent: bool,
) -> List[ResourceOutcome]:
    async with GitHubReleasesClient(store=store, policy=policy) as client:
        _logger.debug("%s", client.latest_release_api_call_format())
        outcomes = await run_pipeline(config.resources, client, sink, concurrent=concurrent)
        _logger.debug("stats: %s", json.dumps(client.stats.summary(), sort_keys=True))
        rate = client.get_core_rate_limit_info()
        if rate is not None:
            _logger.info(
                "GitHub core quota: %d/%d remaining (resets %s)",
                rate.remaining, rate.limit, rate.reset_local(),
            )
    return outcomes


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    # Setup logging
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    try:
        config = load_resource_config(args.config) if args.config else ResourceConfig(resources=DEFAULT_RESOURCES)
        policy = config.apply_policy(FetchPolicy()).with_overrides(
            cache_ttl_s=args.ttl_s,
            request_timeout_s=args.timeout_s,
            max_retries=args.max_retries,
        )
    except (ResourceConfigError, ValueError) as e:
        _logger.error("%s", e)
        return 2

    if args.no_cache:
        store: KeyValueStore = MemoryStore()
    else:
        cache_file = resolve_cache_path(args.cache_file)
        _logger.debug("cache file: %s", cache_file)
        store = JsonFileStore(cache_file=cache_file)

    sink = JsonFileSink(args.output) if args.output else MemorySink()
    outcomes = asyncio.run(_run(config, policy, store, sink, concurrent=args.concurrent))

    if isinstance(sink, JsonFileSink):
        try:
            path = sink.flush()
        except OSError as e:
            _logger.error("Cannot write %s: %s", sink.path, e)
            return 1
        _logger.info("Wrote %d text and %d attribute values to %s", len(sink.texts), len(sink.attributes), path)
    else:
        _print_outcomes(outcomes)

    failed = [o.key for o in outcomes if not o.ok]
    if failed:
        _logger.warning("%d of %d repositories failed: %s", len(failed), len(outcomes), ", ".join(failed))
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
