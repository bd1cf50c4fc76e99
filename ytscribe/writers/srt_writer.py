"""Writer for SRT subtitle format."""

from pathlib import Path
from ytscribe.models import Segment


def format_timestamp(milliseconds: int) -> str:
    """Format milliseconds as SRT timestamp: HH:MM:SS,mmm."""
    milliseconds = max(0, int(milliseconds))
    hours = milliseconds // 3_600_000
    minutes = (milliseconds % 3_600_000) // 60_000
    secs = (milliseconds % 60_000) // 1000
    millis = milliseconds % 1000
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def to_srt(segments: list[Segment]) -> str:
    """Numbered SRT blocks separated by blank lines."""
    blocks = []
    for index, segment in enumerate(segments, start=1):
        start_time = format_timestamp(segment.start_ms)
        end_time = format_timestamp(segment.end_ms)
        blocks.append(f"{index}\n{start_time} --> {end_time}\n{segment.text}\n")
    return "\n".join(blocks)


def write_srt(segments: list[Segment], output_path: Path) -> None:
    """Write segments to SRT subtitle file."""
    with open(output_path, 'w', encoding='utf-8') as f:
        f.write(to_srt(segments))
