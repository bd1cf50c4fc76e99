"""Audio through Piped mirror instances, used when YouTube blocks direct access."""

import logging
import re
from pathlib import Path
from typing import Any, Optional

from ytscribe.config import Config
from ytscribe.downloader import guess_extension
from ytscribe.errors import DownloadFailed, NoAudioAvailable, StrategyError
from ytscribe.fetcher import Fetcher
from ytscribe.models import AudioFile, VideoRef

logger = logging.getLogger(__name__)

_NUMBER = re.compile(r'\d+(?:\.\d+)?')


def parse_bitrate(value: Any) -> float:
    """Numeric bitrates pass through; strings like "64 kbps" yield their leading number."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = _NUMBER.search(value)
        if match:
            return float(match.group())
    return 0.0


def pick_best_stream(streams: list[dict]) -> dict:
    """Entry with the highest parsed bitrate (falls back to the "quality" label)."""
    if not streams:
        raise NoAudioAvailable("Mirror returned no audio streams")

    def _rate(stream: dict) -> float:
        value = stream.get('bitrate')
        return parse_bitrate(value if value is not None else stream.get('quality'))

    return max(streams, key=_rate)


class PipedAudioSource:
    """Variant C: ask each mirror for stream metadata, in order, until one delivers audio."""

    name = "piped-mirror"

    def __init__(
        self,
        fetcher: Fetcher,
        instances: Optional[list[str]] = None,
        mirror_timeout: Optional[float] = None,
        audio_timeout: Optional[float] = None,
    ):
        self.fetcher = fetcher
        self.instances = list(instances) if instances is not None else list(Config.PIPED_INSTANCES)
        self.mirror_timeout = mirror_timeout or Config.MIRROR_TIMEOUT
        self.audio_timeout = audio_timeout or Config.AUDIO_TIMEOUT

    async def _from_instance(self, base: str, video: VideoRef, workdir: Path) -> AudioFile:
        headers = {'User-Agent': Config.YTDL_UA, 'Accept': 'application/json'}
        data = await self.fetcher.fetch_json(
            f"{base.rstrip('/')}/streams/{video.id}", headers=headers, timeout=self.mirror_timeout
        )
        if not isinstance(data, dict):
            raise DownloadFailed("unexpected response shape")
        if data.get('error'):
            raise NoAudioAvailable(str(data.get('message') or data['error']))

        streams = [s for s in data.get('audioStreams') or [] if s.get('url')]
        stream = pick_best_stream(streams)
        extension = guess_extension(stream.get('container'), stream.get('mimeType'))
        logger.info("Mirror %s offers %s (%s)", base, stream.get('quality') or stream.get('bitrate'), extension)

        path = workdir / f"audio.{extension}"
        await self.fetcher.download(stream['url'], path, headers=headers, timeout=self.audio_timeout)
        return AudioFile(path=path, extension=extension, source=self.name)

    async def fetch_audio(self, video: VideoRef, workdir: Path) -> AudioFile:
        if not self.instances:
            raise NoAudioAvailable("No mirror instances configured")

        failures: list[StrategyError] = []
        for base in self.instances:
            try:
                return await self._from_instance(base, video, workdir)
            except StrategyError as e:
                logger.warning("⚠ Mirror %s failed: %s", base, e.message)
                e.message = f"{base}: {e.message}"
                failures.append(e)

        summary = "; ".join(e.message for e in failures)
        blocked = any(e.blocked for e in failures)
        if all(isinstance(e, NoAudioAvailable) for e in failures):
            raise NoAudioAvailable(f"No mirror had audio ({summary})", blocked=blocked)
        raise DownloadFailed(f"All mirrors failed ({summary})", blocked=blocked)
