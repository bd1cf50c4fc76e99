import asyncio
import os

import httpx
import pytest

from ytscribe.binary import YtDlpBinary, release_asset_name
from ytscribe.errors import HttpStatusError
from ytscribe.fetcher import Fetcher


def counting_fetcher(status=200):
    calls = []

    async def handler(request):
        calls.append(request.url)
        await asyncio.sleep(0.01)
        return httpx.Response(status, content=b"#!/bin/sh\necho yt-dlp\n")

    return Fetcher(httpx.AsyncClient(transport=httpx.MockTransport(handler))), calls


async def test_existing_binary_is_used_without_download(tmp_path):
    fetcher, calls = counting_fetcher()
    path = tmp_path / "yt-dlp"
    path.write_text("#!/bin/sh\n")

    assert await YtDlpBinary(fetcher, path=path).ensure() == path
    assert calls == []


async def test_concurrent_callers_download_once(tmp_path):
    fetcher, calls = counting_fetcher()
    path = tmp_path / "bin" / "yt-dlp"
    binary = YtDlpBinary(fetcher, path=path)

    results = await asyncio.gather(*(binary.ensure() for _ in range(5)))

    assert results == [path] * 5
    assert len(calls) == 1
    assert str(calls[0]).endswith(release_asset_name())
    assert os.access(path, os.X_OK)
    assert sorted(p.name for p in path.parent.iterdir()) == ["yt-dlp"]


async def test_failed_download_leaves_nothing_behind(tmp_path):
    fetcher, calls = counting_fetcher(status=404)
    path = tmp_path / "bin" / "yt-dlp"

    with pytest.raises(HttpStatusError):
        await YtDlpBinary(fetcher, path=path).ensure()

    assert not path.exists()
    assert list(path.parent.iterdir()) == []
