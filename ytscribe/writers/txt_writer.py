"""Writer for plain TXT format."""

from pathlib import Path
from ytscribe.models import Segment


def to_text(segments: list[Segment]) -> str:
    """Segment texts joined by single spaces, in source order."""
    return " ".join(segment.text for segment in segments)


def write_txt(segments: list[Segment], output_path: Path) -> None:
    with open(output_path, 'w', encoding='utf-8') as f:
        f.write(to_text(segments))
