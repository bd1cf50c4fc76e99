from ytscribe.models import Segment, TranscriptResult, VideoRef
from ytscribe.writers.json_writer import render, to_json, write_json
from ytscribe.writers.srt_writer import format_timestamp, to_srt, write_srt
from ytscribe.writers.txt_writer import to_text, write_txt


def test_to_text_joins_in_order():
    segs = [Segment("first"), Segment("second"), Segment("third")]

    assert to_text(segs) == "first second third"


def test_to_text_empty():
    assert to_text([]) == ""


def test_format_timestamp_pads_fields():
    assert format_timestamp(0) == "00:00:00,000"
    assert format_timestamp(65000) == "00:01:05,000"
    assert format_timestamp(3_723_004) == "01:02:03,004"


def test_srt_start_and_end_times():
    srt = to_srt([Segment("hello", start_ms=65000, duration_ms=2500)])

    assert "00:01:05,000 --> 00:01:07,500" in srt


def test_srt_blocks():
    segs = [
        Segment("one", start_ms=0, duration_ms=1500),
        Segment("two", start_ms=1500, duration_ms=500),
    ]

    assert to_srt(segs) == (
        "1\n00:00:00,000 --> 00:00:01,500\none\n"
        "\n"
        "2\n00:00:01,500 --> 00:00:02,000\ntwo\n"
    )


def test_negative_timings_are_clamped():
    seg = Segment("x", start_ms=-10, duration_ms=-5)

    assert (seg.start_ms, seg.duration_ms) == (0, 0)


def test_json_wrapper():
    result = TranscriptResult(
        video=VideoRef("dQw4w9WgXcQ"),
        segments=[Segment("a", 0, 1000), Segment("b", 1000, 1000)],
        source="captions-scrape",
    )

    assert to_json(result, "txt") == {
        "source": "captions-scrape",
        "videoId": "dQw4w9WgXcQ",
        "format": "txt",
        "text": "a b",
    }
    assert render(result, "srt").startswith("1\n00:00:00,000 --> 00:00:01,000\na\n")


def test_file_writers(tmp_path):
    result = TranscriptResult(video=VideoRef("dQw4w9WgXcQ"), segments=[Segment("hi", 0, 1000)], source="x")

    write_txt(result.segments, tmp_path / "t.txt")
    write_srt(result.segments, tmp_path / "t.srt")
    write_json(result, tmp_path / "t.json")

    assert (tmp_path / "t.txt").read_text(encoding="utf-8") == "hi"
    assert (tmp_path / "t.srt").read_text(encoding="utf-8").startswith("1\n")
    assert '"video_id": "dQw4w9WgXcQ"' in (tmp_path / "t.json").read_text(encoding="utf-8")
