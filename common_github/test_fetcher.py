"""
Pytest tests for common_github/fetcher.py against a real local aiohttp server.

Run from the repo root:
    pytest common_github/test_fetcher.py -v
"""

import asyncio
import socket

import aiohttp
import pytest
from aiohttp import test_utils, web

from common_github.exceptions import (
    DecodeError,
    FetchConnectionError,
    FetchTimeoutError,
    HttpStatusError,
    RateLimitError,
)
from common_github.fetcher import BoundedFetcher, RateLimitInfo, rate_limit_info_from_headers

RELEASE = {
    "tag_name": "v5.3.3",
    "name": "v5.3.3",
    "assets": [{"browser_download_url": "https://x/dist.zip"}],
}


def _serve(handler, scenario):
    """Start a one-route server, run `scenario(fetcher, url)`, always shut everything down."""

    async def _main():
        app = web.Application()
        app.router.add_get("/repos/o/r/releases/latest", handler)
        server = test_utils.TestServer(app)
        await server.start_server()
        try:
            async with BoundedFetcher() as fetcher:
                return await scenario(fetcher, str(server.make_url("/repos/o/r/releases/latest")))
        finally:
            await server.close()

    return asyncio.run(_main())


def _fetch(handler, timeout_s=5.0):
    async def scenario(fetcher, url):
        return await fetcher.fetch(url, timeout_s)
    return _serve(handler, scenario)


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


# ============================================================================
# Success path
# ============================================================================

def test_fetch_returns_decoded_object_and_sends_github_headers():
    seen = {}

    async def handler(request):
        seen["accept"] = request.headers.get("Accept")
        seen["auth"] = request.headers.get("Authorization")
        seen["method"] = request.method
        return web.json_response(
            RELEASE,
            headers={"X-RateLimit-Remaining": "57", "X-RateLimit-Limit": "60", "X-RateLimit-Reset": "1700000000"},
        )

    async def scenario(fetcher, url):
        data = await fetcher.fetch(url, 5.0)
        return data, fetcher.rate_limit_info

    data, rate = _serve(handler, scenario)

    assert data == RELEASE
    assert seen == {"accept": "application/vnd.github+json", "auth": None, "method": "GET"}
    assert rate == RateLimitInfo(remaining=57, limit=60, reset_epoch=1700000000)


def test_each_fetch_is_exactly_one_request():
    hits = []

    async def handler(request):
        hits.append(1)
        return web.json_response(RELEASE)

    async def scenario(fetcher, url):
        await fetcher.fetch(url, 5.0)
        await fetcher.fetch(url, 5.0)

    _serve(handler, scenario)
    assert len(hits) == 2


# ============================================================================
# Error classification
# ============================================================================

def test_non_2xx_carries_status_and_body():
    async def handler(request):
        return web.Response(status=404, text='{"message": "Not Found"}')

    with pytest.raises(HttpStatusError) as ei:
        _fetch(handler)

    assert not isinstance(ei.value, RateLimitError)
    assert ei.value.status_code == 404
    assert "Not Found" in ei.value.body
    assert "404" in str(ei.value)


def test_5xx_with_empty_body():
    async def handler(request):
        return web.Response(status=502)

    with pytest.raises(HttpStatusError) as ei:
        _fetch(handler)
    assert ei.value.status_code == 502
    assert ei.value.body == ""


@pytest.mark.parametrize("status", [403, 429])
def test_rate_limit_statuses_raise_rate_limit_error(status):
    async def handler(request):
        return web.Response(
            status=status,
            text='{"message": "API rate limit exceeded"}',
            headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Limit": "60", "X-RateLimit-Reset": "1700000000"},
        )

    with pytest.raises(RateLimitError) as ei:
        _fetch(handler)

    assert ei.value.status_code == status
    assert "rate limit exceeded" in ei.value.body
    assert "rate limit resets" in str(ei.value)


def test_invalid_json_is_decode_error():
    async def handler(request):
        return web.Response(status=200, text="<html>definitely not json</html>")

    with pytest.raises(DecodeError):
        _fetch(handler)


def test_json_that_is_not_an_object_is_decode_error():
    async def handler(request):
        return web.json_response([RELEASE])

    with pytest.raises(DecodeError) as ei:
        _fetch(handler)
    assert "list" in str(ei.value)


def test_timeout_is_classified_without_status():
    async def handler(request):
        await asyncio.sleep(1.0)
        return web.json_response(RELEASE)

    with pytest.raises(FetchTimeoutError) as ei:
        _fetch(handler, timeout_s=0.1)

    assert ei.value.status_code is None
    assert ei.value.timeout_s == pytest.approx(0.1)


def test_refused_connection_is_connection_error():
    async def _main():
        async with BoundedFetcher() as fetcher:
            await fetcher.fetch(f"http://127.0.0.1:{_free_port()}/repos/o/r/releases/latest", 2.0)

    with pytest.raises(FetchConnectionError) as ei:
        asyncio.run(_main())
    assert ei.value.status_code is None


# ============================================================================
# Session lifecycle + header parsing
# ============================================================================

def test_owned_session_is_closed_and_borrowed_session_is_not():
    async def _main():
        owned = BoundedFetcher()
        session = owned._get_session()
        await owned.close()

        borrowed_session = aiohttp.ClientSession()
        try:
            borrowed = BoundedFetcher(session=borrowed_session)
            await borrowed.close()
            return session.closed, borrowed_session.closed
        finally:
            await borrowed_session.close()

    owned_closed, borrowed_closed = asyncio.run(_main())
    assert owned_closed is True
    assert borrowed_closed is False


@pytest.mark.parametrize(
    "headers, expected",
    [
        ({}, None),
        ({"X-RateLimit-Remaining": "1"}, None),
        ({"X-RateLimit-Remaining": "x", "X-RateLimit-Limit": "60"}, None),
        ({"X-RateLimit-Remaining": "0", "X-RateLimit-Limit": "60"}, RateLimitInfo(remaining=0, limit=60)),
    ],
)
def test_rate_limit_info_from_headers(headers, expected):
    assert rate_limit_info_from_headers(headers) == expected


def test_seconds_until_reset():
    info = RateLimitInfo(remaining=0, limit=60, reset_epoch=1_000_100)
    assert info.seconds_until_reset(now=1_000_000) == 100
    assert RateLimitInfo(remaining=1, limit=60).reset_local() == "unknown"
