"""YouTube URL recognition and normalization."""

import re

from ytscribe.errors import InvalidInput
from ytscribe.models import VideoRef

# Order matters: an explicit v= parameter wins over the path forms.
_URL_PATTERNS = [
    re.compile(r'youtube\.com/watch\?(?:[^#\s]*?&)?v=([^&?#\s]+)'),
    re.compile(r'youtu\.be/([^&?#/\s]+)'),
    re.compile(r'youtube\.com/shorts/([^&?#/\s]+)'),
]

_VIDEO_ID = re.compile(r'^[A-Za-z0-9_-]{11}$')


def extract_video_id(url: str) -> str:
    """Extract video ID from watch, youtu.be and shorts URLs."""
    if url:
        for pattern in _URL_PATTERNS:
            match = pattern.search(url)
            if match and _VIDEO_ID.match(match.group(1)):
                return match.group(1)

    raise InvalidInput(
        f"Could not extract video ID from URL: {url!r}",
        hint="Use a youtube.com/watch?v=, youtu.be/ or youtube.com/shorts/ link.",
    )


def normalize_url(url: str) -> str:
    """Rewrite any supported URL shape to the canonical watch URL."""
    return VideoRef(extract_video_id(url)).watch_url


def parse_video_ref(url: str) -> VideoRef:
    return VideoRef(extract_video_id(url))
