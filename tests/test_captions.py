import json
import time
from types import SimpleNamespace

import httpx
import pytest
import requests
from youtube_transcript_api._errors import RequestBlocked, TranscriptsDisabled

from ytscribe.captions import (
    LibraryCaptionSource,
    PageScrapeCaptionSource,
    _TimeoutSession,
    extract_caption_tracks,
    extract_player_response,
    parse_caption_xml,
    pick_caption_track,
)
from ytscribe.errors import CaptionsUnavailable, FetchTimeoutError, ParseError
from ytscribe.fetcher import Fetcher
from ytscribe.models import VideoRef

VIDEO = VideoRef("dQw4w9WgXcQ")

TRACKS = [
    {"baseUrl": "https://www.youtube.com/api/timedtext?v=dQw4w9WgXcQ&lang=en&fmt=srv3", "languageCode": "en"},
    {"baseUrl": "https://www.youtube.com/api/timedtext?v=dQw4w9WgXcQ&lang=de", "languageCode": "de"},
]

CAPTION_XML = (
    '<?xml version="1.0" encoding="utf-8" ?><transcript>'
    '<text start="0.5" dur="1.25">Tom &amp; Jerry &#39;n&#39; friends</text>'
    '<text dur="2" start="65">&lt;b&gt; &quot;hi&quot;</text>'
    '</transcript>'
)


def watch_page(player_response: dict) -> str:
    return (
        "<html><script>var ytInitialPlayerResponse = "
        + json.dumps(player_response)
        + ";var meta = {\"x\": 1};</script></html>"
    )


def test_extract_player_response():
    player = {"captions": {"playerCaptionsTracklistRenderer": {"captionTracks": TRACKS}}, "note": "a};b"}

    assert extract_player_response(watch_page(player)) == player


def test_missing_player_response_is_parse_error():
    with pytest.raises(ParseError):
        extract_player_response("<html>consent wall</html>")


def test_missing_tracks_is_parse_error():
    with pytest.raises(ParseError) as excinfo:
        extract_caption_tracks({"playabilityStatus": {"status": "OK"}})
    assert excinfo.value.blocked is False


def test_login_required_page_is_flagged_blocked():
    with pytest.raises(ParseError) as excinfo:
        extract_caption_tracks({"playabilityStatus": {"status": "LOGIN_REQUIRED"}})
    assert excinfo.value.blocked is True


def test_pick_caption_track_prefers_language_then_first():
    assert pick_caption_track(TRACKS, "de")["languageCode"] == "de"
    assert pick_caption_track(TRACKS, "fr")["languageCode"] == "en"
    assert pick_caption_track(TRACKS, None)["languageCode"] == "en"


def test_parse_caption_xml():
    segs = parse_caption_xml(CAPTION_XML)

    assert [s.text for s in segs] == ["Tom & Jerry 'n' friends", '<b> "hi"']
    assert (segs[0].start_ms, segs[0].duration_ms) == (500, 1250)
    assert (segs[1].start_ms, segs[1].duration_ms) == (65000, 2000)


def test_parse_caption_xml_without_text_elements():
    with pytest.raises(ParseError):
        parse_caption_xml('<?xml version="1.0" ?><transcript></transcript>')


async def test_page_scrape_source_end_to_end():
    requests_seen = []

    def handler(request):
        requests_seen.append(request.url)
        if request.url.path == "/watch":
            player = {"captions": {"playerCaptionsTracklistRenderer": {"captionTracks": TRACKS}}}
            return httpx.Response(200, text=watch_page(player))
        if request.url.path == "/api/timedtext":
            return httpx.Response(200, text=CAPTION_XML)
        return httpx.Response(404)

    source = PageScrapeCaptionSource(Fetcher(httpx.AsyncClient(transport=httpx.MockTransport(handler))))

    result = await source.acquire(VIDEO, "en")

    assert result.language == "en"
    assert len(result.segments) == 2
    assert requests_seen[0].params["v"] == VIDEO.id
    assert "fmt" not in requests_seen[1].params


async def test_page_scrape_source_without_captions():
    def handler(request):
        return httpx.Response(200, text=watch_page({"playabilityStatus": {"status": "OK"}}))

    source = PageScrapeCaptionSource(Fetcher(httpx.AsyncClient(transport=httpx.MockTransport(handler))))

    with pytest.raises(ParseError):
        await source.acquire(VIDEO, "en")


class FakeTranscriptApi:
    def __init__(self, fetched=None, error=None):
        self.fetched = fetched
        self.error = error
        self.calls = []

    def fetch(self, video_id, languages=("en",)):
        self.calls.append((video_id, list(languages)))
        if self.error:
            raise self.error
        return self.fetched


class FakeFetched(list):
    language_code = "de"


async def test_library_source_maps_snippets(monkeypatch):
    fetched = FakeFetched([
        SimpleNamespace(text="Hallo", start=0.0, duration=1.5),
        SimpleNamespace(text="Welt", start=1.5, duration=2.0),
    ])
    api = FakeTranscriptApi(fetched=fetched)
    source = LibraryCaptionSource(timeout=5)
    monkeypatch.setattr(source, "_build_api", lambda video: api)

    result = await source.acquire(VIDEO, "de")

    assert api.calls == [(VIDEO.id, ["de", "en"])]
    assert result.language == "de"
    assert [(s.text, s.start_ms, s.duration_ms) for s in result.segments] == [
        ("Hallo", 0, 1500),
        ("Welt", 1500, 2000),
    ]


async def test_library_source_disabled_captions(monkeypatch):
    source = LibraryCaptionSource(timeout=5)
    monkeypatch.setattr(source, "_build_api", lambda video: FakeTranscriptApi(error=TranscriptsDisabled(VIDEO.id)))

    with pytest.raises(CaptionsUnavailable) as excinfo:
        await source.acquire(VIDEO)
    assert excinfo.value.blocked is False


async def test_library_source_blocked(monkeypatch):
    source = LibraryCaptionSource(timeout=5)
    monkeypatch.setattr(source, "_build_api", lambda video: FakeTranscriptApi(error=RequestBlocked(VIDEO.id)))

    with pytest.raises(CaptionsUnavailable) as excinfo:
        await source.acquire(VIDEO)
    assert excinfo.value.blocked is True


class SlowTranscriptApi(FakeTranscriptApi):
    def __init__(self, delay):
        super().__init__(fetched=FakeFetched())
        self.delay = delay
        self.finished = False

    def fetch(self, video_id, languages=("en",)):
        time.sleep(self.delay)
        self.finished = True
        return super().fetch(video_id, languages)


async def test_library_source_timeout_waits_for_worker(monkeypatch):
    api = SlowTranscriptApi(delay=0.3)
    source = LibraryCaptionSource(timeout=0.05)
    monkeypatch.setattr(source, "_build_api", lambda video: api)

    with pytest.raises(FetchTimeoutError):
        await source.acquire(VIDEO)
    assert api.finished is True


def test_caption_session_applies_default_timeout(monkeypatch):
    seen = []
    monkeypatch.setattr(requests.Session, "request", lambda self, method, url, **kwargs: seen.append(kwargs))
    session = _TimeoutSession(7)

    session.get("https://www.youtube.com/watch?v=dQw4w9WgXcQ")
    session.get("https://www.youtube.com/api/timedtext", timeout=2)

    assert [kwargs["timeout"] for kwargs in seen] == [7, 2]
