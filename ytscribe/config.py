"""Configuration management and environment variable loading."""

import logging
import os
import sys
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

from ytscribe.errors import ConfigurationError

# Load environment variables from .env file (don't override existing env vars)
load_dotenv(override=False)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36"
)

DEFAULT_PIPED_INSTANCES = (
    "https://pipedapi.kavin.rocks,"
    "https://pipedapi.adminforge.de,"
    "https://pipedapi.tokhmi.xyz"
)


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Config:
    """Application configuration."""

    # Speech-to-text service
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    MODEL: str = os.getenv("MODEL", "whisper-1")
    MIN_TRANSCRIPT_CHARS: int = int(os.getenv("MIN_TRANSCRIPT_CHARS", "5"))

    # Empty string means auto-detect
    DEFAULT_LANG: str = os.getenv("DEFAULT_LANG", "")

    # Video platform identity (helps with bot checks)
    YTDL_UA: str = os.getenv("YTDL_UA", DEFAULT_USER_AGENT)
    YTDL_COOKIE: str = os.getenv("YTDL_COOKIE", "")
    YTDL_ID_TOKEN: str = os.getenv("YTDL_ID_TOKEN", "")
    YTDL_CLIENTS: list[str] = _split_csv(os.getenv("YTDL_CLIENTS", "android,web").lower())

    # Set to path of cookies.txt file exported from browser
    YOUTUBE_COOKIES_TXT: str = os.getenv("YOUTUBE_COOKIES_TXT", "")

    # External yt-dlp executable (auto-downloaded into BIN_DIR if missing)
    YTDLP_PATH: str = os.getenv("YTDLP_PATH", "")
    BIN_DIR: Path = Path(os.getenv("BIN_DIR", "./bin")).resolve()

    # Mirror/proxy services, tried in order
    PIPED_INSTANCES: list[str] = _split_csv(os.getenv("PIPED_INSTANCES", DEFAULT_PIPED_INSTANCES))

    # Per-call deadlines in seconds
    CAPTIONS_TIMEOUT: float = float(os.getenv("CAPTIONS_TIMEOUT", "15"))
    MIRROR_TIMEOUT: float = float(os.getenv("MIRROR_TIMEOUT", "8"))
    AUDIO_TIMEOUT: float = float(os.getenv("AUDIO_TIMEOUT", "180"))
    TRANSCRIBE_TIMEOUT: float = float(os.getenv("TRANSCRIBE_TIMEOUT", "600"))

    OUT_DIR: Path = Path(os.getenv("OUT_DIR", "./out")).resolve()
    API_BASE: str = os.getenv("API_BASE", "http://localhost:3001")
    PORT: int = int(os.getenv("PORT", "3001"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    @classmethod
    def validate(cls) -> None:
        """Validate that required configuration is present."""
        if not cls.OPENAI_API_KEY:
            raise ConfigurationError(
                "OPENAI_API_KEY is required. Please set it in your .env file or environment variables.",
                hint="The operator must configure the transcription credential.",
            )

    @classmethod
    def platform_headers(cls, video_id: str = "") -> dict[str, str]:
        """Browser-like headers (plus cookie/identity token when set) for the video platform."""
        headers = {
            "User-Agent": cls.YTDL_UA,
            "Accept-Language": "en-US,en;q=0.9",
            "Origin": "https://www.youtube.com",
            "Referer": f"https://www.youtube.com/watch?v={video_id}" if video_id else "https://www.youtube.com/",
        }
        if cls.YTDL_COOKIE:
            headers["Cookie"] = cls.YTDL_COOKIE
        if cls.YTDL_ID_TOKEN:
            headers["X-Youtube-Identity-Token"] = cls.YTDL_ID_TOKEN
        return headers


def configure_logging(level: Optional[str] = None) -> None:
    """Attach a single console handler to the package logger."""
    logger = logging.getLogger("ytscribe")
    logger.setLevel(level or Config.LOG_LEVEL)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
        logger.addHandler(handler)
