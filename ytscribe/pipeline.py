"""
Fallback orchestration across transcript acquisition strategies.

Strategies run strictly one after another, each at most once per request:
captions first (cheap), then audio download + transcription (expensive).
Recoverable StrategyErrors are recorded and the next strategy is tried;
configuration and transcription failures end the request immediately.
"""

import logging
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from openai import AsyncOpenAI

from ytscribe.binary import YtDlpBinary
from ytscribe.captions import LibraryCaptionSource, PageScrapeCaptionSource
from ytscribe.config import Config
from ytscribe.downloader import YtDlpAudioSource, YtDlpBinaryAudioSource
from ytscribe.errors import AcquisitionExhausted, CaptionsUnavailable, StrategyError
from ytscribe.fetcher import Fetcher
from ytscribe.mirrors import PipedAudioSource
from ytscribe.models import AcquisitionAttempt, AudioFile, TranscriptResult, VideoRef
from ytscribe.transcriber import Transcriber

logger = logging.getLogger(__name__)


@dataclass
class AcquisitionRequest:
    language: Optional[str] = None
    output_kind: str = 'text'


class CaptionSource(Protocol):
    name: str

    async def acquire(self, video: VideoRef, language: Optional[str] = None) -> TranscriptResult: ...


class AudioSource(Protocol):
    name: str

    async def fetch_audio(self, video: VideoRef, workdir: Path) -> AudioFile: ...


class Strategy(Protocol):
    name: str

    async def acquire(self, video: VideoRef, request: AcquisitionRequest) -> TranscriptResult: ...


class CaptionStrategy:
    def __init__(self, source: CaptionSource):
        self.source = source
        self.name = source.name

    async def acquire(self, video: VideoRef, request: AcquisitionRequest) -> TranscriptResult:
        result = await self.source.acquire(video, request.language)
        if not result.segments:
            raise CaptionsUnavailable("Caption track is empty")
        return result


class AudioStrategy:
    """Download audio into a private temporary directory, then transcribe it."""

    def __init__(self, source: AudioSource, transcriber: Transcriber):
        self.source = source
        self.transcriber = transcriber
        self.name = source.name

    async def acquire(self, video: VideoRef, request: AcquisitionRequest) -> TranscriptResult:
        # No point downloading audio nobody can transcribe.
        self.transcriber.ensure_configured()

        # Removed on success, failure and cancellation alike.
        with tempfile.TemporaryDirectory(prefix=f"yta-{video.id}-", ignore_cleanup_errors=True) as tmp:
            audio = await self.source.fetch_audio(video, Path(tmp))
            logger.info(
                "✓ Audio downloaded via %s: %s (%.1f MB)",
                self.name, audio.path.name, audio.path.stat().st_size / (1024 * 1024),
            )
            segments, language = await self.transcriber.transcribe(audio, request.language, request.output_kind)

        return TranscriptResult(video=video, segments=segments, language=language or request.language)


def exhaustion_hint(attempts: list[AcquisitionAttempt], cookie_configured: Optional[bool] = None) -> str:
    """Tell operators whether to refresh credentials or accept that nothing exists."""
    if cookie_configured is None:
        cookie_configured = bool(Config.YTDL_COOKIE or Config.YOUTUBE_COOKIES_TXT)
    if any(a.blocked for a in attempts):
        if cookie_configured:
            return (
                "YouTube is blocking requests. Your cookies may be stale or missing required keys "
                "(CONSENT, VISITOR_INFO1_LIVE, PREF, YSC). Refresh them and restart."
            )
        return (
            "YouTube is blocking requests. Provide YTDL_COOKIE or YOUTUBE_COOKIES_TXT "
            "with fresh youtube.com cookies to get past bot checks."
        )
    return "No captions or downloadable audio appear to exist for this video."


class TranscriptPipeline:
    """Ordered list of strategies tried in a single pass."""

    def __init__(self, strategies: list[Strategy]):
        self.strategies = list(strategies)

    @property
    def strategy_names(self) -> list[str]:
        return [s.name for s in self.strategies]

    @classmethod
    def from_config(
        cls,
        fetcher: Fetcher,
        transcriber: Optional[Transcriber] = None,
        openai_client: Optional[AsyncOpenAI] = None,
    ) -> "TranscriptPipeline":
        """Default line-up: library captions, scraped captions, yt-dlp per client, yt-dlp binary, Piped."""
        if transcriber is None:
            transcriber = Transcriber(client=openai_client)

        strategies: list[Strategy] = [
            CaptionStrategy(LibraryCaptionSource()),
            CaptionStrategy(PageScrapeCaptionSource(fetcher)),
        ]
        for profile in Config.YTDL_CLIENTS:
            strategies.append(AudioStrategy(YtDlpAudioSource(profile), transcriber))
        strategies.append(AudioStrategy(YtDlpBinaryAudioSource(YtDlpBinary(fetcher)), transcriber))
        strategies.append(AudioStrategy(PipedAudioSource(fetcher), transcriber))
        return cls(strategies)

    async def run(
        self,
        video: VideoRef,
        language: Optional[str] = None,
        output_kind: str = 'text',
    ) -> TranscriptResult:
        """
        Try each strategy in order and return the first success.

        Raises:
            AcquisitionExhausted: every strategy failed; carries one attempt per strategy
            ConfigurationError, TranscriptionFailed: fatal, raised as soon as they occur
        """
        request = AcquisitionRequest(language=language or None, output_kind=output_kind)
        attempts: list[AcquisitionAttempt] = []

        for strategy in self.strategies:
            started = time.monotonic()
            logger.info("Trying %s for %s...", strategy.name, video.id)
            try:
                result = await strategy.acquire(video, request)
            except StrategyError as e:
                attempts.append(AcquisitionAttempt(
                    strategy=strategy.name,
                    succeeded=False,
                    error_message=e.message,
                    error_type=type(e).__name__,
                    blocked=e.blocked,
                ))
                logger.warning("⚠ %s failed (%s): %s", strategy.name, type(e).__name__, e.message)
                continue

            attempts.append(AcquisitionAttempt(strategy=strategy.name, succeeded=True))
            result.source = strategy.name
            result.attempts = attempts
            logger.info(
                "✓ %s succeeded for %s in %.1fs (%d segments)",
                strategy.name, video.id, time.monotonic() - started, len(result.segments),
            )
            return result

        logger.error("All %d strategies failed for %s", len(attempts), video.id)
        raise AcquisitionExhausted(attempts, hint=exhaustion_hint(attempts))
