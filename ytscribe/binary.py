"""Locate, or download once, the standalone yt-dlp executable."""

import asyncio
import logging
import os
import platform
import stat
import sys
import uuid
from pathlib import Path
from typing import Optional

from ytscribe.config import Config
from ytscribe.fetcher import Fetcher

logger = logging.getLogger(__name__)

RELEASE_BASE_URL = "https://github.com/yt-dlp/yt-dlp/releases/latest/download/"


def local_binary_name() -> str:
    return "yt-dlp.exe" if sys.platform == "win32" else "yt-dlp"


def release_asset_name() -> str:
    """Self-contained release asset for the current platform."""
    if sys.platform == "win32":
        return "yt-dlp.exe"
    if sys.platform == "darwin":
        return "yt-dlp_macos"
    if sys.platform.startswith("linux"):
        return "yt-dlp_linux_aarch64" if platform.machine() in ("aarch64", "arm64") else "yt-dlp_linux"
    # Zipapp, needs python3 on PATH
    return "yt-dlp"


def _make_executable(path: Path) -> None:
    if sys.platform != "win32":
        mode = path.stat().st_mode
        path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


class YtDlpBinary:
    """
    Lazily provisioned yt-dlp executable.

    ensure() is single-flight: concurrent first callers wait on one lock and
    re-check after acquiring it, so the file is downloaded and chmod'ed once.
    The download lands in a unique temporary sibling and is renamed into
    place atomically, so other processes never see a partial file.
    """

    def __init__(self, fetcher: Fetcher, path: Optional[Path] = None, timeout: Optional[float] = None):
        self.fetcher = fetcher
        if path is None:
            path = Path(Config.YTDLP_PATH) if Config.YTDLP_PATH else Config.BIN_DIR / local_binary_name()
        self.path = Path(path)
        self.timeout = timeout or Config.AUDIO_TIMEOUT
        self._lock = asyncio.Lock()
        self._resolved: Optional[Path] = None

    @property
    def release_url(self) -> str:
        return RELEASE_BASE_URL + release_asset_name()

    async def ensure(self) -> Path:
        if self._resolved is not None:
            return self._resolved

        async with self._lock:
            if self._resolved is not None:
                return self._resolved

            if self.path.exists():
                logger.info("Using yt-dlp binary at: %s", self.path)
            else:
                await self._download()
            _make_executable(self.path)
            self._resolved = self.path
            return self._resolved

    async def _download(self) -> None:
        logger.info("yt-dlp not found. Downloading to: %s", self.path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        partial = self.path.with_name(f".{self.path.name}.{uuid.uuid4().hex}.part")
        try:
            await self.fetcher.download(self.release_url, partial, timeout=self.timeout)
            _make_executable(partial)
            os.replace(partial, self.path)
        finally:
            if partial.exists():
                partial.unlink()
        logger.info("✓ yt-dlp download complete")
