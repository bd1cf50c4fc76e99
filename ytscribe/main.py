"""Interactive main entry point for YouTube transcription."""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import httpx

from ytscribe.config import Config, configure_logging
from ytscribe.errors import AcquisitionExhausted, TranscriptError
from ytscribe.fetcher import Fetcher
from ytscribe.models import TranscriptResult
from ytscribe.pipeline import TranscriptPipeline
from ytscribe.transcriber import Transcriber
from ytscribe.urls import parse_video_ref
from ytscribe.writers.json_writer import write_json
from ytscribe.writers.srt_writer import write_srt
from ytscribe.writers.txt_writer import write_txt


def write_outputs(result: TranscriptResult, output_dir: Path) -> list[Path]:
    """Write transcript.txt / transcript.srt / transcript.json for one video."""
    output_dir.mkdir(parents=True, exist_ok=True)
    paths = [
        output_dir / "transcript.txt",
        output_dir / "transcript.srt",
        output_dir / "transcript.json",
    ]
    write_txt(result.segments, paths[0])
    write_srt(result.segments, paths[1])
    write_json(result, paths[2])
    return paths


async def process_video(
    url: str,
    language: Optional[str] = None,
    timed: bool = True,
    pipeline: Optional[TranscriptPipeline] = None,
    out_dir: Optional[Path] = None,
) -> tuple[Path, TranscriptResult]:
    """
    Process a single video: acquire the transcript and write outputs.

    Args:
        url: YouTube video URL
        language: Language hint (None for auto-detect)
        timed: Ask for timed segments when audio has to be transcribed
        pipeline: Pre-built pipeline; a default one is created otherwise
        out_dir: Base output directory (defaults to Config.OUT_DIR)

    Returns:
        Tuple of (output_dir, result)
    """
    video = parse_video_ref(url)
    output_dir = (out_dir or Config.OUT_DIR) / video.id
    output_kind = 'srt' if timed else 'text'

    if pipeline is not None:
        result = await pipeline.run(video, language=language, output_kind=output_kind)
    else:
        async with httpx.AsyncClient(headers={"User-Agent": Config.YTDL_UA}) as client:
            transcriber = Transcriber()
            try:
                default_pipeline = TranscriptPipeline.from_config(Fetcher(client), transcriber=transcriber)
                result = await default_pipeline.run(video, language=language, output_kind=output_kind)
            finally:
                await transcriber.close()

    print("Writing transcript files...")
    write_outputs(result, output_dir)
    print(f"✓ Transcript from {result.source}: {len(result.segments)} segments")
    return output_dir, result


def main():
    """Interactive main function."""
    configure_logging()
    print("=" * 60)
    print("YouTube Transcript Fetcher")
    print("=" * 60)
    print()

    if not Config.OPENAI_API_KEY:
        print("⚠ OPENAI_API_KEY is not set: only videos with captions can be processed.")
        print("See .env.example for reference.")

    Config.OUT_DIR.mkdir(parents=True, exist_ok=True)

    while True:
        print()
        print("-" * 60)
        url = input("Please paste the URL of the YouTube video you wish to transcribe: ").strip()

        if not url:
            print("No URL provided. Exiting...")
            break

        language = input(f"Language code (blank for {Config.DEFAULT_LANG or 'auto'}): ").strip() or Config.DEFAULT_LANG

        print()
        print("Processing video...")
        print()

        try:
            output_dir, _ = asyncio.run(process_video(url, language=language or None))
            print()
            print("=" * 60)
            print("✓ Transcription complete!")
            print(f"Files saved to: {output_dir}")
            print("=" * 60)
        except AcquisitionExhausted as e:
            print()
            print("=" * 60)
            print(f"✗ {e.message}", file=sys.stderr)
            print(f"Hint: {e.hint}")
            print("=" * 60)
        except TranscriptError as e:
            print()
            print("=" * 60)
            print(f"✗ Failed to process video: {e.message}", file=sys.stderr)
            if e.hint:
                print(f"Hint: {e.hint}")
            print("=" * 60)

        print()
        another = input("Would you like to transcribe another video? (y/n): ").strip().lower()
        if another not in ('y', 'yes'):
            break

    print()
    print("Thank you for using YouTube Transcript Fetcher!")


if __name__ == "__main__":
    main()
