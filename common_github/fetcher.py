# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Bounded HTTP fetcher for GitHub REST JSON resources.

One call == one GET request:
- hard wall-clock deadline (aiohttp ClientTimeout total), request cancelled on expiry
- non-2xx -> HttpStatusError / RateLimitError carrying status + best-effort body
- 2xx     -> body decoded as a JSON object, else DecodeError
- connection problems -> FetchConnectionError

The response is always released (async with), on success, error and timeout.
asyncio.CancelledError is never caught here so callers can cancel a run.

Rate limit headers (X-RateLimit-*) are remembered from every response so the
CLI can report remaining quota without spending an extra /rate_limit call.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

import aiohttp

from common_types import ReleasePayload
from .exceptions import DecodeError, FetchConnectionError, FetchTimeoutError, http_status_error

_logger = logging.getLogger(__name__)

DEFAULT_HEADERS: Dict[str, str] = {
    "Accept": "application/vnd.github+json",
    "User-Agent": "gh-latest-releases",
}

# Keep error bodies small in exceptions and logs.
MAX_ERROR_BODY_CHARS = 2000


@dataclass(frozen=True)
class RateLimitInfo:
    """Core REST quota as reported by the last response headers."""

    remaining: int
    limit: int
    reset_epoch: Optional[int] = None

    def seconds_until_reset(self, now: Optional[float] = None) -> Optional[int]:
        if self.reset_epoch is None:
            return None
        return int(self.reset_epoch) - int(now if now is not None else time.time())

    def reset_local(self) -> str:
        if self.reset_epoch is None:
            return "unknown"
        return datetime.fromtimestamp(int(self.reset_epoch)).astimezone().strftime("%Y-%m-%d %H:%M:%S %Z")


def rate_limit_info_from_headers(headers: Mapping[str, str]) -> Optional[RateLimitInfo]:
    """Parse X-RateLimit-{Remaining,Limit,Reset}. Returns None unless remaining+limit parse."""
    try:
        remaining_hdr = headers.get("X-RateLimit-Remaining")
        limit_hdr = headers.get("X-RateLimit-Limit")
        reset_hdr = headers.get("X-RateLimit-Reset")
        if remaining_hdr is None or limit_hdr is None:
            return None
        return RateLimitInfo(
            remaining=int(remaining_hdr),
            limit=int(limit_hdr),
            reset_epoch=int(reset_hdr) if reset_hdr is not None else None,
        )
    except (ValueError, TypeError):
        return None


class BoundedFetcher:
    """GET a JSON object with a deadline. Owns (or borrows) one aiohttp.ClientSession."""

    def __init__(
        self,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        headers: Optional[Mapping[str, str]] = None,
    ):
        self.headers: Dict[str, str] = dict(DEFAULT_HEADERS)
        if headers:
            self.headers.update(headers)
        self._session = session
        self._owns_session = session is None
        self.rate_limit_info: Optional[RateLimitInfo] = None

    async def __aenter__(self) -> "BoundedFetcher":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        # Created lazily: a ClientSession must be built inside a running event loop.
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    @staticmethod
    async def _read_body_best_effort(resp: aiohttp.ClientResponse) -> str:
        try:
            text = await resp.text(errors="replace")
        except (aiohttp.ClientError, asyncio.TimeoutError, UnicodeDecodeError):
            return ""
        return text[:MAX_ERROR_BODY_CHARS]

    def _remember_rate_limit(self, headers: Mapping[str, str]) -> None:
        info = rate_limit_info_from_headers(headers)
        if info is not None:
            self.rate_limit_info = info

    async def fetch(self, url: str, timeout_s: float) -> ReleasePayload:
        """Issue exactly one GET and return the decoded JSON object."""
        session = self._get_session()
        timeout = aiohttp.ClientTimeout(total=float(timeout_s))
        _logger.debug("GH REST GET %s (timeout=%ss)", url, timeout_s)

        try:
            async with session.get(url, headers=self.headers, timeout=timeout) as resp:
                self._remember_rate_limit(resp.headers)
                if not (200 <= resp.status < 300):
                    body = await self._read_body_best_effort(resp)
                    reset_hint = ""
                    if self.rate_limit_info is not None and self.rate_limit_info.remaining <= 0:
                        reset_hint = self.rate_limit_info.reset_local()
                    raise http_status_error(
                        url=url,
                        status_code=resp.status,
                        reason=str(resp.reason or ""),
                        body=body,
                        reset_hint=reset_hint,
                    )
                raw = await resp.read()
        except asyncio.TimeoutError as e:
            raise FetchTimeoutError(url=url, timeout_s=timeout_s) from e
        except aiohttp.ClientError as e:
            raise FetchConnectionError(f"GitHub API request failed: {e}", url=url) from e

        try:
            data: Any = json.loads(raw)
        except ValueError as e:
            raise DecodeError(f"GitHub API returned invalid JSON: {e}", url=url) from e
        if not isinstance(data, dict):
            raise DecodeError(f"GitHub API returned {type(data).__name__}, expected a JSON object", url=url)
        return data
