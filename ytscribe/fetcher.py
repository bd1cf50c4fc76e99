"""HTTP fetching with hard per-call deadlines."""

import asyncio
import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Optional

import httpx

from ytscribe.errors import DownloadFailed, FetchTimeoutError, HttpStatusError, ParseError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1 << 16


class Fetcher:
    """
    Thin wrapper over a shared httpx.AsyncClient.

    Every call runs under asyncio.wait_for, so the deadline covers the whole
    request (connect, headers and body), not a single socket read. On expiry
    the request is cancelled and FetchTimeoutError is raised.
    """

    def __init__(self, client: httpx.AsyncClient, default_timeout: float = 15.0):
        self.client = client
        self.default_timeout = default_timeout

    async def fetch(self, url: str, headers: Optional[dict] = None, timeout: Optional[float] = None) -> bytes:
        """Return the response body, or raise FetchTimeoutError / HttpStatusError / DownloadFailed."""
        deadline = timeout or self.default_timeout

        async def _get() -> bytes:
            response = await self.client.get(url, headers=headers, follow_redirects=True)
            _raise_for_status(response, url)
            return response.content

        return await self._bounded(_get(), url, deadline)

    async def fetch_text(self, url: str, headers: Optional[dict] = None, timeout: Optional[float] = None) -> str:
        body = await self.fetch(url, headers=headers, timeout=timeout)
        return body.decode('utf-8', errors='replace')

    async def fetch_json(self, url: str, headers: Optional[dict] = None, timeout: Optional[float] = None) -> Any:
        body = await self.fetch(url, headers=headers, timeout=timeout)
        try:
            return json.loads(body)
        except ValueError as e:
            raise ParseError(f"Invalid JSON from {url}: {e}") from e

    async def download(
        self,
        url: str,
        dest: Path,
        headers: Optional[dict] = None,
        timeout: Optional[float] = None,
    ) -> int:
        """Stream the body of `url` into `dest`. Returns the number of bytes written."""
        deadline = timeout or self.default_timeout

        async def _stream() -> int:
            written = 0
            async with self.client.stream('GET', url, headers=headers, follow_redirects=True) as response:
                _raise_for_status(response, url)
                with open(dest, 'wb') as f:
                    async for chunk in response.aiter_bytes(CHUNK_SIZE):
                        f.write(chunk)
                        written += len(chunk)
            return written

        return await self._bounded(_stream(), url, deadline)

    async def _bounded(self, coro, url: str, deadline: float):
        try:
            return await asyncio.wait_for(coro, timeout=deadline)
        except asyncio.TimeoutError as e:
            logger.warning("⚠ Request to %s timed out after %.1fs", _short(url), deadline)
            raise FetchTimeoutError(f"Timed out after {deadline:.1f}s fetching {_short(url)}") from e
        except httpx.TimeoutException as e:
            raise FetchTimeoutError(f"Timed out fetching {_short(url)}: {e}") from e
        except httpx.HTTPError as e:
            raise DownloadFailed(f"Network error fetching {_short(url)}: {e}") from e


def _raise_for_status(response: httpx.Response, url: str) -> None:
    if response.status_code >= 400:
        raise HttpStatusError(f"HTTP {response.status_code} from {_short(url)}", response.status_code)


def _short(url: str) -> str:
    """Drop the query string so signed URLs don't end up in logs."""
    return url.split('?', 1)[0]


async def run_blocking(
    func: Callable[..., Any],
    *args,
    timeout: float,
    cancelled: Optional[threading.Event] = None,
) -> Any:
    """
    Run a blocking call in a worker thread under a deadline.

    On timeout or cancellation `cancelled` is set and the worker is awaited
    before returning, so the thread never outlives the attempt that started it.
    Raises asyncio.TimeoutError when the deadline passes.
    """
    worker = asyncio.ensure_future(asyncio.to_thread(func, *args))
    try:
        return await asyncio.wait_for(asyncio.shield(worker), timeout=timeout)
    finally:
        if not worker.done():
            if cancelled is not None:
                cancelled.set()
            await asyncio.wait({worker})
            if not worker.cancelled() and worker.exception() is not None:
                logger.debug("Abandoned worker finished with %r", worker.exception())
