import pytest

from ytscribe.errors import InvalidInput
from ytscribe.urls import extract_video_id, normalize_url, parse_video_ref

VIDEO_ID = "dQw4w9WgXcQ"


@pytest.mark.parametrize("url", [
    f"https://www.youtube.com/watch?v={VIDEO_ID}",
    f"https://www.youtube.com/watch?v={VIDEO_ID}&t=42s",
    f"https://www.youtube.com/watch?feature=share&v={VIDEO_ID}&list=PL123",
    f"https://youtu.be/{VIDEO_ID}",
    f"https://youtu.be/{VIDEO_ID}?feature=share",
    f"https://www.youtube.com/shorts/{VIDEO_ID}",
    f"https://m.youtube.com/shorts/{VIDEO_ID}?si=abc",
    f"youtube.com/watch?v={VIDEO_ID}",
])
def test_all_url_shapes_yield_the_same_id(url):
    assert extract_video_id(url) == VIDEO_ID
    assert normalize_url(url) == f"https://www.youtube.com/watch?v={VIDEO_ID}"


def test_share_link_is_normalized():
    url = "https://youtu.be/dQw4w9WgXcQ?feature=share"

    assert normalize_url(url) == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
    assert extract_video_id(url) == "dQw4w9WgXcQ"


def test_parse_video_ref_builds_watch_url():
    ref = parse_video_ref(f"https://youtu.be/{VIDEO_ID}")

    assert ref.id == VIDEO_ID
    assert ref.watch_url == f"https://www.youtube.com/watch?v={VIDEO_ID}"


@pytest.mark.parametrize("url", [
    "",
    "not a url",
    "https://example.com/watch",
    "https://youtu.be/",
    "https://www.youtube.com/watch?v=",
    "https://www.youtube.com/watch?v=tooShort",
    "https://vimeo.com/123456789",
    f"https://example.com/?v={VIDEO_ID}",
    f"https://www.youtube.com/results?search_query=x&v={VIDEO_ID}",
])
def test_malformed_input_is_rejected(url):
    with pytest.raises(InvalidInput) as excinfo:
        extract_video_id(url)
    assert excinfo.value.hint
