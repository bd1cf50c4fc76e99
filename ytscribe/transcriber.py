"""OpenAI Whisper API integration for transcription."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from openai import AsyncOpenAI
from openai import APIConnectionError, APIError, APITimeoutError, AuthenticationError, PermissionDeniedError

from ytscribe.config import Config
from ytscribe.errors import ConfigurationError, InsufficientContent, TranscriptionFailed
from ytscribe.models import AudioFile, Segment

logger = logging.getLogger(__name__)

OUTPUT_KINDS = ('text', 'srt')

# OpenAI rejects uploads above 25 MB
MAX_UPLOAD_BYTES = 25 * 1024 * 1024


def _compress_audio(audio_path: Path, max_size_bytes: int) -> Path:
    """
    Re-encode audio as low-bitrate AAC so it fits within the upload limit.

    Requires ffmpeg on PATH (pydub shells out to it).
    """
    from pydub import AudioSegment

    original_size = audio_path.stat().st_size
    audio = AudioSegment.from_file(str(audio_path))
    duration_seconds = max(len(audio) / 1000.0, 1.0)
    compressed_path = audio_path.parent / f"{audio_path.stem}_compressed.m4a"

    # Target bitrate with a 20 kbps safety margin, never below 24 kbps (speech floor)
    target_bitrate_kbps = int((max_size_bytes * 8) / (duration_seconds * 1000)) - 20
    target_bitrate_kbps = max(24, min(target_bitrate_kbps, 48))

    for margin in (0, 20):
        bitrate = max(24, target_bitrate_kbps - margin)
        logger.info("Compressing %s to %d kbps...", audio_path.name, bitrate)
        audio.export(str(compressed_path), format="ipod", bitrate=f"{bitrate}k", codec="aac")
        if compressed_path.stat().st_size <= max_size_bytes:
            break

    final_size = compressed_path.stat().st_size
    if final_size > max_size_bytes:
        compressed_path.unlink()
        raise TranscriptionFailed(
            f"Audio still {final_size / (1024 * 1024):.1f} MB after compression "
            f"(limit: {max_size_bytes / (1024 * 1024):.0f} MB)",
            hint="The video is too long to transcribe in a single upload.",
        )

    logger.info(
        "✓ Compressed: %.1f MB -> %.1f MB",
        original_size / (1024 * 1024), final_size / (1024 * 1024),
    )
    return compressed_path


def _response_to_dict(response) -> dict:
    """Normalize the SDK response object into a plain dict."""
    if hasattr(response, 'model_dump'):
        return response.model_dump()
    if isinstance(response, dict):
        return response
    return {
        'text': getattr(response, 'text', ''),
        'language': getattr(response, 'language', None),
        'duration': getattr(response, 'duration', None),
        'segments': getattr(response, 'segments', None) or [],
    }


def _segments_from_verbose(response_dict: dict) -> list[Segment]:
    segments = []
    for seg in response_dict.get('segments') or []:
        if not isinstance(seg, dict):
            seg = _response_to_dict(seg)
        start = float(seg.get('start') or 0)
        end = float(seg.get('end') or start)
        segments.append(Segment.from_seconds((seg.get('text') or '').strip(), start, max(0.0, end - start)))

    # If no segments but we have text, create a single segment
    if not segments and response_dict.get('text'):
        duration = float(response_dict.get('duration') or 0)
        segments.append(Segment.from_seconds(response_dict['text'].strip(), 0.0, duration))
    return segments


class Transcriber:
    """
    Speech-to-text through the OpenAI audio API.

    The AsyncOpenAI client is created once and reused for the lifetime of the
    process. SDK retries are disabled: a request makes a single call.
    """

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        min_chars: Optional[int] = None,
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
    ):
        self.api_key = api_key if api_key is not None else Config.OPENAI_API_KEY
        self.model = model or Config.MODEL
        self.timeout = timeout or Config.TRANSCRIBE_TIMEOUT
        self.min_chars = min_chars if min_chars is not None else Config.MIN_TRANSCRIPT_CHARS
        self.max_upload_bytes = max_upload_bytes
        self._client = client

    def ensure_configured(self) -> None:
        if self._client is None and not self.api_key:
            raise ConfigurationError(
                "OPENAI_API_KEY is missing",
                hint="Set OPENAI_API_KEY so audio can be transcribed when no captions exist.",
            )

    @property
    def client(self) -> AsyncOpenAI:
        self.ensure_configured()
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()

    async def _fit_upload_limit(self, path: Path) -> Path:
        size = path.stat().st_size
        if size <= self.max_upload_bytes:
            return path

        logger.warning(
            "⚠ Audio is %.1f MB, over the %.0f MB upload limit",
            size / (1024 * 1024), self.max_upload_bytes / (1024 * 1024),
        )
        try:
            return await asyncio.to_thread(_compress_audio, path, self.max_upload_bytes)
        except TranscriptionFailed:
            raise
        except Exception as e:
            raise TranscriptionFailed(
                f"Could not compress oversized audio: {e}",
                hint="Install ffmpeg so large downloads can be re-encoded before upload.",
            ) from e

    async def transcribe(
        self,
        audio: AudioFile,
        language: Optional[str] = None,
        output_kind: str = 'text',
    ) -> tuple[list[Segment], Optional[str]]:
        """
        Transcribe an audio file.

        Args:
            audio: Downloaded audio file
            language: Optional ISO-639-1 hint; None lets the service auto-detect
            output_kind: "text" for one plain block, "srt" for timed segments

        Returns:
            Tuple of (segments, detected_language)
        """
        if output_kind not in OUTPUT_KINDS:
            raise ValueError(f"Unknown output kind: {output_kind}")

        client = self.client
        request_params = {
            'model': self.model,
            'response_format': 'verbose_json' if output_kind == 'srt' else 'text',
        }
        if language:
            request_params['language'] = language

        upload_path = await self._fit_upload_limit(audio.path)
        size_mb = upload_path.stat().st_size / (1024 * 1024)
        logger.info("Transcribing %s (%.1f MB) with %s...", upload_path.name, size_mb, self.model)

        try:
            with open(upload_path, 'rb') as audio_file:
                response = await client.audio.transcriptions.create(file=audio_file, **request_params)
        except (AuthenticationError, PermissionDeniedError) as e:
            raise ConfigurationError(
                f"Transcription service rejected the credential: {e}",
                hint="Check OPENAI_API_KEY; the key is missing, revoked or lacks audio access.",
            ) from e
        except APITimeoutError as e:
            raise TranscriptionFailed(f"Transcription timed out after {self.timeout:.0f}s") from e
        except APIConnectionError as e:
            raise TranscriptionFailed(f"Connection error during transcription: {e}") from e
        except APIError as e:
            error_msg = str(e)
            if "quota" in error_msg.lower() or "billing" in error_msg.lower():
                raise TranscriptionFailed(
                    f"OpenAI API quota/billing error: {error_msg}",
                    hint="Please check your OpenAI account.",
                ) from e
            raise TranscriptionFailed(f"OpenAI API error: {error_msg}") from e

        if output_kind == 'srt':
            response_dict = _response_to_dict(response)
            segments = _segments_from_verbose(response_dict)
            detected_language = response_dict.get('language') or language
        else:
            text = response if isinstance(response, str) else _response_to_dict(response).get('text', '')
            segments = [Segment(text=text.strip())]
            detected_language = language

        total = " ".join(s.text for s in segments).strip()
        if len(total) < self.min_chars:
            raise InsufficientContent(
                f"Transcription returned only {len(total)} characters",
                hint="The audio may be silent, music-only or cut short.",
            )

        logger.info("✓ Transcription complete: %d segments", len(segments))
        return segments, detected_language
