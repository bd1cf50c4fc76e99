"""Data models for transcripts and segments."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class VideoRef:
    """Canonical reference to one YouTube video."""
    id: str

    @property
    def watch_url(self) -> str:
        return f"https://www.youtube.com/watch?v={self.id}"


@dataclass
class Segment:
    """A single segment of text with timing information in milliseconds."""
    text: str
    start_ms: int = 0
    duration_ms: int = 0

    def __post_init__(self):
        """Clamp negative timings to zero."""
        self.start_ms = max(0, int(self.start_ms))
        self.duration_ms = max(0, int(self.duration_ms))

    @property
    def end_ms(self) -> int:
        return self.start_ms + self.duration_ms

    @classmethod
    def from_seconds(cls, text: str, start: float, duration: float) -> "Segment":
        return cls(text=text, start_ms=round(float(start) * 1000), duration_ms=round(float(duration) * 1000))


@dataclass
class AcquisitionAttempt:
    """Outcome of one fallback step, kept for diagnostics."""
    strategy: str
    succeeded: bool
    error_message: Optional[str] = None
    error_type: Optional[str] = None
    blocked: bool = False

    def to_dict(self) -> dict:
        return {
            'strategy': self.strategy,
            'succeeded': self.succeeded,
            'error': self.error_message,
            'error_type': self.error_type,
            'blocked': self.blocked,
        }


@dataclass
class TranscriptResult:
    """Transcript for one request, tagged with the strategy that produced it."""
    video: VideoRef
    segments: list[Segment] = field(default_factory=list)
    source: Optional[str] = None
    language: Optional[str] = None
    attempts: list[AcquisitionAttempt] = field(default_factory=list)


@dataclass
class AudioFile:
    """Downloaded audio inside a per-request temporary directory."""
    path: Path
    extension: str
    source: str
