"""Writer for JSON format."""

import json
from pathlib import Path
from ytscribe.models import TranscriptResult
from ytscribe.writers.srt_writer import to_srt
from ytscribe.writers.txt_writer import to_text


def render(result: TranscriptResult, output_format: str) -> str:
    """Render a result as "srt" or plain text."""
    return to_srt(result.segments) if output_format == 'srt' else to_text(result.segments)


def to_json(result: TranscriptResult, output_format: str) -> dict:
    """Wrapped response body: {source, videoId, format, text}."""
    return {
        'source': result.source,
        'videoId': result.video.id,
        'format': 'srt' if output_format == 'srt' else 'txt',
        'text': render(result, output_format),
    }


def write_json(result: TranscriptResult, output_path: Path) -> None:
    """Write the full result (segments and attempts included) to a JSON file."""
    data = {
        'video_id': result.video.id,
        'url': result.video.watch_url,
        'source': result.source,
        'language': result.language,
        'segments': [
            {
                'start_ms': segment.start_ms,
                'duration_ms': segment.duration_ms,
                'text': segment.text
            }
            for segment in result.segments
        ],
        'attempts': [attempt.to_dict() for attempt in result.attempts],
    }

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
