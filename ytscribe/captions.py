"""Caption strategies: youtube-transcript-api first, then watch-page scraping."""

import asyncio
import json
import logging
import re
from typing import Optional

import requests
from youtube_transcript_api import YouTubeTranscriptApi
from youtube_transcript_api._errors import CouldNotRetrieveTranscript, RequestBlocked

from ytscribe.config import Config
from ytscribe.errors import CaptionsUnavailable, DownloadFailed, FetchTimeoutError, ParseError
from ytscribe.fetcher import Fetcher, run_blocking
from ytscribe.models import Segment, TranscriptResult, VideoRef

logger = logging.getLogger(__name__)

_PLAYER_RESPONSE = re.compile(r'ytInitialPlayerResponse\s*=\s*\{')
_TEXT_ELEMENT = re.compile(r'<text\b([^>]*?)(?:/>|>(.*?)</text>)', re.DOTALL)
_ATTRIBUTE = re.compile(r'([\w:-]+)="([^"]*)"')

# Only the five standard entities, &amp; first so double-escaped text resolves.
_ENTITIES = [
    ('&amp;', '&'),
    ('&lt;', '<'),
    ('&gt;', '>'),
    ('&#39;', "'"),
    ('&quot;', '"'),
]


def _language_preferences(language: Optional[str]) -> list[str]:
    if language and language != 'en':
        return [language, 'en']
    return ['en']


class _TimeoutSession(requests.Session):
    """Session whose requests default to a per-call timeout."""

    def __init__(self, timeout: float):
        super().__init__()
        self.timeout = timeout

    def request(self, *args, **kwargs):
        kwargs.setdefault('timeout', self.timeout)
        return super().request(*args, **kwargs)


class LibraryCaptionSource:
    """Variant A: captions through youtube-transcript-api."""

    name = "captions-library"

    def __init__(self, timeout: Optional[float] = None, session: Optional[requests.Session] = None):
        self.timeout = timeout or Config.CAPTIONS_TIMEOUT
        self.session = session

    def _build_api(self, video: VideoRef) -> YouTubeTranscriptApi:
        session = self.session
        if session is None:
            session = _TimeoutSession(self.timeout)
            session.headers.update(Config.platform_headers(video.id))
        return YouTubeTranscriptApi(http_client=session)

    def _fetch_blocking(self, video: VideoRef, language: Optional[str]) -> TranscriptResult:
        try:
            fetched = self._build_api(video).fetch(video.id, languages=_language_preferences(language))
        except RequestBlocked as e:
            raise CaptionsUnavailable(
                f"Caption request blocked for {video.id}: {type(e).__name__}",
                blocked=True,
            ) from e
        except CouldNotRetrieveTranscript as e:
            raise CaptionsUnavailable(f"No captions for {video.id}: {type(e).__name__}") from e
        except requests.RequestException as e:
            raise DownloadFailed(f"Caption request failed for {video.id}: {e}") from e

        segments = [Segment.from_seconds(s.text, s.start, s.duration) for s in fetched]
        return TranscriptResult(video=video, segments=segments, language=fetched.language_code)

    async def acquire(self, video: VideoRef, language: Optional[str] = None) -> TranscriptResult:
        try:
            return await run_blocking(self._fetch_blocking, video, language, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise FetchTimeoutError(f"Caption library timed out after {self.timeout:.1f}s") from e


class PageScrapeCaptionSource:
    """Variant B: read the caption track list embedded in the watch page."""

    name = "captions-scrape"

    def __init__(self, fetcher: Fetcher, timeout: Optional[float] = None):
        self.fetcher = fetcher
        self.timeout = timeout or Config.CAPTIONS_TIMEOUT

    async def acquire(self, video: VideoRef, language: Optional[str] = None) -> TranscriptResult:
        headers = Config.platform_headers(video.id)
        html = await self.fetcher.fetch_text(video.watch_url, headers=headers, timeout=self.timeout)

        tracks = extract_caption_tracks(extract_player_response(html))
        track = pick_caption_track(tracks, language)
        logger.info("Using caption track %s (%d available)", track.get('languageCode'), len(tracks))

        xml_text = await self.fetcher.fetch_text(_track_url(track), headers=headers, timeout=self.timeout)
        segments = parse_caption_xml(xml_text)
        return TranscriptResult(video=video, segments=segments, language=track.get('languageCode'))


def extract_player_response(html: str) -> dict:
    """Decode the ytInitialPlayerResponse object embedded in a watch page."""
    match = _PLAYER_RESPONSE.search(html or '')
    if not match:
        raise ParseError("Could not find ytInitialPlayerResponse in watch page")
    try:
        data, _ = json.JSONDecoder().raw_decode(html, match.end() - 1)
    except ValueError as e:
        raise ParseError(f"ytInitialPlayerResponse is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ParseError("ytInitialPlayerResponse is not an object")
    return data


def extract_caption_tracks(player_response: dict) -> list[dict]:
    tracks = (
        (player_response.get('captions') or {})
        .get('playerCaptionsTracklistRenderer', {})
        .get('captionTracks')
    )
    if not tracks:
        playability = (player_response.get('playabilityStatus') or {}).get('status', '')
        # LOGIN_REQUIRED / UNPLAYABLE pages carry no tracks because of a bot check.
        raise ParseError(
            "No caption tracks found in player response",
            blocked=playability in ('LOGIN_REQUIRED', 'UNPLAYABLE'),
        )
    return tracks


def pick_caption_track(tracks: list[dict], language: Optional[str]) -> dict:
    """Track whose languageCode matches the hint, else the first one."""
    if language:
        for track in tracks:
            if track.get('languageCode') == language:
                return track
    return tracks[0]


def _track_url(track: dict) -> str:
    url = track.get('baseUrl') or ''
    if not url:
        raise ParseError("Caption track has no baseUrl")
    if url.startswith('//'):
        url = 'https:' + url
    elif url.startswith('/'):
        url = 'https://www.youtube.com' + url
    # Force the classic <text start dur> format.
    return re.sub(r'&fmt=[^&]*', '', url)


def unescape_caption_text(text: str) -> str:
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return text


def parse_caption_xml(xml_text: str) -> list[Segment]:
    """
    Parse timed-text XML into segments.

    Each <text start="" dur="">content</text> element becomes one segment.
    Elements without a start attribute are skipped; an XML document with no
    usable element at all raises ParseError.
    """
    segments = []
    for match in _TEXT_ELEMENT.finditer(xml_text or ''):
        attrs = dict(_ATTRIBUTE.findall(match.group(1)))
        if 'start' not in attrs:
            continue
        try:
            start = float(attrs['start'])
            duration = float(attrs.get('dur', 0) or 0)
        except ValueError:
            continue
        text = unescape_caption_text(match.group(2) or '')
        segments.append(Segment.from_seconds(text, start, duration))

    if not segments:
        raise ParseError("No caption text found in timed-text XML")
    return segments
