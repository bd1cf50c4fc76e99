"""YouTube audio downloaders using yt-dlp (Python library and standalone binary)."""

import asyncio
import logging
import re
import threading
from pathlib import Path
from typing import Optional

import yt_dlp

from ytscribe.binary import YtDlpBinary
from ytscribe.config import Config
from ytscribe.errors import DownloadFailed, FetchTimeoutError, NoAudioAvailable
from ytscribe.fetcher import run_blocking
from ytscribe.models import AudioFile, VideoRef

logger = logging.getLogger(__name__)

# Formats accepted by the transcription service
AUDIO_EXTENSIONS = {'flac', 'm4a', 'mp3', 'mp4', 'mpeg', 'mpga', 'oga', 'ogg', 'wav', 'webm'}

_BLOCK_MARKERS = re.compile(
    r'\b(?:403|429|forbidden|too many requests|sign in to confirm|bot)\b', re.IGNORECASE
)


def looks_blocked(message: str) -> bool:
    """True when an error message points at bot detection rather than missing media."""
    return bool(_BLOCK_MARKERS.search(message or ''))


def guess_extension(container: Optional[str] = None, mime_type: Optional[str] = None) -> str:
    """
    Infer the file extension for an audio rendition.

    Precedence: explicit container, then MIME type inference, then "webm".
    """
    container = (container or '').strip().lower()
    if container:
        return container
    mime = (mime_type or '').lower()
    if 'webm' in mime or 'opus' in mime:
        return 'webm'
    if 'mp4' in mime or 'm4a' in mime or 'aac' in mime:
        return 'm4a'
    if 'mpeg' in mime:
        return 'mp3'
    if 'ogg' in mime:
        return 'ogg'
    return 'webm'


def select_best_audio_format(formats: list[dict]) -> dict:
    """Pick the audio-only format with the highest bitrate (abr, else tbr)."""
    audio_only = [
        f for f in formats or []
        if f.get('vcodec') == 'none' and f.get('acodec') not in (None, 'none')
    ]
    if not audio_only:
        raise NoAudioAvailable("No audio-only formats offered")
    return max(audio_only, key=lambda f: f.get('abr') or f.get('tbr') or 0)


def pick_largest_audio_file(directory: Path) -> Path:
    """
    Largest file with a recognized audio extension.

    Size stands in for quality when the extension alone can't tell bitrates apart.
    """
    candidates = [
        path for path in directory.iterdir()
        if path.is_file() and path.suffix.lstrip('.').lower() in AUDIO_EXTENSIONS
    ]
    if not candidates:
        raise NoAudioAvailable("Download produced no supported audio file")
    return max(candidates, key=lambda path: path.stat().st_size)


class YtDlpAudioSource:
    """
    Variant A: resolve and download audio with the yt-dlp library.

    One instance per player client profile (android, web, ios...), since
    YouTube applies different restrictions to each of them.
    """

    def __init__(self, profile: str = 'android', timeout: Optional[float] = None):
        self.profile = profile
        self.name = f"ytdlp-lib[{profile}]"
        self.timeout = timeout or Config.AUDIO_TIMEOUT

    def _options(self, video: VideoRef, workdir: Path, cancelled: Optional[threading.Event] = None) -> dict:
        def abort_when_cancelled(progress):
            if cancelled is not None and cancelled.is_set():
                raise yt_dlp.utils.DownloadCancelled()

        ydl_opts = {
            'quiet': True,
            'no_warnings': True,
            'noplaylist': True,
            'outtmpl': str(workdir / 'audio.%(ext)s'),
            'socket_timeout': min(self.timeout, 30),
            'retries': 1,
            'fragment_retries': 1,
            'writethumbnail': False,
            'writeautomaticsub': False,
            'extractor_args': {'youtube': {'player_client': [self.profile]}},
            'http_headers': Config.platform_headers(video.id),
            'progress_hooks': [abort_when_cancelled],
        }
        cookies_path = Config.YOUTUBE_COOKIES_TXT
        if cookies_path and Path(cookies_path).exists():
            ydl_opts['cookiefile'] = cookies_path
        return ydl_opts

    def _download_blocking(
        self,
        video: VideoRef,
        workdir: Path,
        cancelled: Optional[threading.Event] = None,
    ) -> AudioFile:
        ydl_opts = self._options(video, workdir, cancelled)
        try:
            with yt_dlp.YoutubeDL(ydl_opts) as ydl:
                info = ydl.extract_info(video.watch_url, download=False, process=False)

            # Metadata extraction has no progress hook, so check between the two steps.
            if cancelled is not None and cancelled.is_set():
                raise DownloadFailed(f"yt-dlp ({self.profile}) cancelled before download")

            chosen = select_best_audio_format((info or {}).get('formats'))
            logger.info(
                "Selected format %s (%s, %s kbps) via %s client",
                chosen.get('format_id'), chosen.get('ext'), chosen.get('abr') or chosen.get('tbr'), self.profile,
            )

            with yt_dlp.YoutubeDL({**ydl_opts, 'format': str(chosen['format_id'])}) as ydl:
                result = ydl.process_ie_result(info, download=True)

            downloads = (result or {}).get('requested_downloads') or []
            filepath = downloads[0].get('filepath') if downloads else None
            path = Path(filepath) if filepath and Path(filepath).exists() else pick_largest_audio_file(workdir)
        except yt_dlp.utils.YoutubeDLError as e:
            message = str(e)
            raise DownloadFailed(f"yt-dlp ({self.profile}) failed: {message}", blocked=looks_blocked(message)) from e
        except KeyError as e:
            raise DownloadFailed(f"yt-dlp ({self.profile}) returned incomplete format data: missing {e}") from e
        except OSError as e:
            raise DownloadFailed(f"yt-dlp ({self.profile}) could not write audio: {e}") from e

        return AudioFile(path=path, extension=guess_extension(chosen.get('ext')), source=self.name)

    async def fetch_audio(self, video: VideoRef, workdir: Path) -> AudioFile:
        cancelled = threading.Event()
        try:
            return await run_blocking(
                self._download_blocking, video, workdir, cancelled, timeout=self.timeout, cancelled=cancelled,
            )
        except asyncio.TimeoutError as e:
            raise FetchTimeoutError(f"yt-dlp ({self.profile}) timed out after {self.timeout:.1f}s") from e


class YtDlpBinaryAudioSource:
    """Variant B: run the standalone yt-dlp executable as a subprocess."""

    name = "ytdlp-binary"

    def __init__(self, binary: YtDlpBinary, timeout: Optional[float] = None):
        self.binary = binary
        self.timeout = timeout or Config.AUDIO_TIMEOUT

    def _arguments(self, video: VideoRef, workdir: Path) -> list[str]:
        args = [
            '-f', 'bestaudio/best',
            '--no-warnings',
            '--no-check-certificate',
            '--no-playlist',
            '-o', str(workdir / 'audio.%(ext)s'),
        ]
        cookies_path = Config.YOUTUBE_COOKIES_TXT
        if cookies_path and Path(cookies_path).exists():
            args += ['--cookies', cookies_path]
        return args + [video.watch_url]

    async def fetch_audio(self, video: VideoRef, workdir: Path) -> AudioFile:
        try:
            executable = await self.binary.ensure()
            process = await asyncio.create_subprocess_exec(
                str(executable), *self._arguments(video, workdir),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise DownloadFailed(f"yt-dlp binary could not be started: {e}") from e

        try:
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise FetchTimeoutError(f"yt-dlp binary timed out after {self.timeout:.1f}s") from e
        finally:
            if process.returncode is None:
                process.kill()
                await process.wait()

        if process.returncode != 0:
            message = stderr.decode('utf-8', errors='replace').strip().splitlines()
            last_line = message[-1] if message else f"exit code {process.returncode}"
            raise DownloadFailed(f"yt-dlp binary failed: {last_line}", blocked=looks_blocked(last_line))

        path = pick_largest_audio_file(workdir)
        return AudioFile(path=path, extension=path.suffix.lstrip('.').lower(), source=self.name)
