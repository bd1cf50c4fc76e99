import asyncio
import json
import threading
import time

import httpx
import pytest

from ytscribe.errors import DownloadFailed, FetchTimeoutError, HttpStatusError
from ytscribe.fetcher import Fetcher, run_blocking


def make_fetcher(handler, timeout=5.0) -> Fetcher:
    return Fetcher(httpx.AsyncClient(transport=httpx.MockTransport(handler)), default_timeout=timeout)


async def test_fetch_returns_body_and_sends_headers():
    seen = {}

    def handler(request):
        seen['ua'] = request.headers.get('user-agent')
        return httpx.Response(200, content=b"payload")

    fetcher = make_fetcher(handler)

    assert await fetcher.fetch("https://example.com/x", headers={"User-Agent": "test-agent"}) == b"payload"
    assert seen['ua'] == "test-agent"


@pytest.mark.parametrize("status, blocked", [(404, False), (500, False), (403, True), (429, True)])
async def test_http_errors_carry_status(status, blocked):
    fetcher = make_fetcher(lambda request: httpx.Response(status))

    with pytest.raises(HttpStatusError) as excinfo:
        await fetcher.fetch("https://example.com/x")
    assert excinfo.value.status_code == status
    assert excinfo.value.blocked is blocked


async def test_deadline_raises_timeout_error():
    async def slow(request):
        await asyncio.sleep(2)
        return httpx.Response(200)

    fetcher = make_fetcher(slow)

    with pytest.raises(FetchTimeoutError):
        await fetcher.fetch("https://example.com/slow", timeout=0.05)


async def test_transport_error_is_download_failure():
    def broken(request):
        raise httpx.ConnectError("connection refused", request=request)

    fetcher = make_fetcher(broken)

    with pytest.raises(DownloadFailed) as excinfo:
        await fetcher.fetch("https://example.com/x")
    assert not isinstance(excinfo.value, FetchTimeoutError)


async def test_fetch_json_and_text():
    fetcher = make_fetcher(lambda request: httpx.Response(200, json={"ok": True}))

    assert await fetcher.fetch_json("https://example.com/api") == {"ok": True}
    assert json.loads(await fetcher.fetch_text("https://example.com/api")) == {"ok": True}


async def test_download_streams_to_file(tmp_path):
    fetcher = make_fetcher(lambda request: httpx.Response(200, content=b"x" * 200_000))
    dest = tmp_path / "audio.webm"

    written = await fetcher.download("https://cdn.example.com/audio?sig=secret", dest)

    assert written == 200_000
    assert dest.stat().st_size == 200_000


async def test_run_blocking_returns_result():
    assert await run_blocking(sum, [1, 2, 3], timeout=5) == 6


async def test_run_blocking_signals_and_waits_for_abandoned_worker():
    cancelled = threading.Event()
    observed = []

    def slow():
        time.sleep(0.3)
        observed.append(cancelled.is_set())

    with pytest.raises(asyncio.TimeoutError):
        await run_blocking(slow, timeout=0.05, cancelled=cancelled)

    assert observed == [True]
