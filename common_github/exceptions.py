# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""GitHub fetch error types.

These are intentionally lightweight so the retry loop can dispatch on the
error class (rate limited vs. anything else) without creating import cycles.

    FetchError
    ├── FetchTimeoutError      deadline exceeded (no status)
    ├── FetchConnectionError   DNS / refused / reset (no status)
    ├── DecodeError            2xx body is not a JSON object
    └── HttpStatusError        non-2xx (status_code, body)
        └── RateLimitError     403 / 429: stop retrying
"""

from __future__ import annotations

from typing import Optional

RATE_LIMIT_STATUS_CODES = (403, 429)


class FetchError(Exception):
    def __init__(self, message: str, *, url: str = "", status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.message = str(message)
        self.url = str(url or "")
        self.status_code = int(status_code) if status_code is not None else None
        self.body = body


class FetchTimeoutError(FetchError):
    def __init__(self, *, url: str, timeout_s: float):
        super().__init__(f"GitHub API request timed out after {float(timeout_s):g}s: {url}", url=url)
        self.timeout_s = float(timeout_s)


class FetchConnectionError(FetchError):
    pass


class DecodeError(FetchError):
    pass


class HttpStatusError(FetchError):
    def __init__(self, *, url: str, status_code: int, reason: str = "", body: str = ""):
        msg = f"GitHub API error {int(status_code)} {reason}".rstrip()
        super().__init__(msg, url=url, status_code=status_code, body=body)


class RateLimitError(HttpStatusError):
    """403 Forbidden or 429 Too Many Requests. Retrying only burns quota."""

    def __init__(self, *, url: str, status_code: int, reason: str = "", body: str = "", reset_hint: str = ""):
        super().__init__(url=url, status_code=status_code, reason=reason, body=body)
        if reset_hint:
            self.message = f"{self.message} (rate limit resets {reset_hint})"
            self.args = (self.message,)


def http_status_error(*, url: str, status_code: int, reason: str = "", body: str = "", reset_hint: str = "") -> HttpStatusError:
    """Build the right HttpStatusError subclass for a non-2xx status."""
    if int(status_code) in RATE_LIMIT_STATUS_CODES:
        return RateLimitError(url=url, status_code=status_code, reason=reason, body=body, reset_hint=reset_hint)
    return HttpStatusError(url=url, status_code=status_code, reason=reason, body=body)
