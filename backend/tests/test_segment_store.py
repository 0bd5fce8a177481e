"""Tests for the segment store and record format."""
import pytest
from pathlib import Path

from scriptcut.pipeline.segment_store import (
    EmptyInputError,
    format_timestamp,
    parse_records,
    parse_timestamp,
    read_segments,
    require_segments,
    serialize_segments,
    source_name_for_transcript,
    write_segments,
)
from scriptcut.pipeline.segments import QualityVector, Segment


SCORED_RECORDS = """1
00:00:01,000 --> 00:00:03,500
interview.mp4
Relevance: 80.0
Sentiment: 60.0
Novelty: 40.0
Energy: 50.0
Focus: 75.0
Clarity: 80.0
Emotion: 70.0
FlubScore: 100.0
CompositeScore: 83.0
So we started the project

2
00:01:02,250 --> 00:01:05,000
broll.mp4
Relevance: 10.5
Sentiment: 20.0
Novelty: 30.0
Energy: 40.0
and then it grew
"""

TRANSCRIPT = """1
00:00:00,000 --> 00:00:02,000
Hello there

2
00:00:02,500 --> 00:00:04,000
General Kenobi
"""


# =============================================================================
# Timestamp Tests
# =============================================================================

class TestTimestamps:
    """Tests for timestamp parsing and formatting."""

    def test_parse_timestamp_comma_millis(self):
        assert parse_timestamp("00:01:02,500") == pytest.approx(62.5)

    def test_parse_timestamp_hours(self):
        assert parse_timestamp("01:00:00,000") == pytest.approx(3600.0)

    def test_parse_timestamp_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_timestamp("not a time")

    def test_format_timestamp(self):
        assert format_timestamp(62.5) == "00:01:02,500"
        assert format_timestamp(3723.004) == "01:02:03,004"

    def test_format_timestamp_clamps_negative(self):
        assert format_timestamp(-1.0) == "00:00:00,000"


# =============================================================================
# Parsing Tests
# =============================================================================

class TestParsing:
    """Tests for tolerant record parsing."""

    def test_parses_scored_records(self):
        segments = parse_records(SCORED_RECORDS.splitlines())

        assert len(segments) == 2
        first = segments[0]
        assert first.source_file == "interview.mp4"
        assert first.start == pytest.approx(1.0)
        assert first.end == pytest.approx(3.5)
        assert first.text == "So we started the project"
        assert first.quality.relevance == 80.0
        assert first.quality.flub_score == 100.0
        assert first.quality.composite_score == 83.0

    def test_missing_optional_scores_default_to_zero(self):
        segments = parse_records(SCORED_RECORDS.splitlines())

        second = segments[1]
        assert second.quality.relevance == 10.5
        assert second.quality.energy == 40.0
        assert second.quality.focus == 0.0
        assert second.quality.composite_score == 0.0

    def test_plain_transcript_uses_default_source(self):
        segments = parse_records(TRANSCRIPT.splitlines(), default_source="talk.mp4")

        assert [s.text for s in segments] == ["Hello there", "General Kenobi"]
        assert all(s.source_file == "talk.mp4" for s in segments)
        assert all(s.quality is None for s in segments)

    def test_non_numeric_index_line_is_skipped(self):
        lines = ["WEBVTT-ish header", ""] + TRANSCRIPT.splitlines()
        segments = parse_records(lines, default_source="talk.mp4")

        assert len(segments) == 2

    def test_malformed_block_is_skipped(self):
        content = (
            "1\n"
            "garbage --> 00:00:01,000\n"
            "broken record\n"
            "\n"
            "2\n"
            "00:00:05,000 --> 00:00:06,000\n"
            "still parsed\n"
        )
        segments = parse_records(content.splitlines(), default_source="x.mp4")

        assert len(segments) == 1
        assert segments[0].text == "still parsed"

    def test_block_with_inverted_times_is_skipped(self):
        content = "1\n00:00:05,000 --> 00:00:01,000\nbackwards\n"
        assert parse_records(content.splitlines()) == []

    def test_unparsable_score_value_defaults_to_zero(self):
        content = (
            "1\n"
            "00:00:00,000 --> 00:00:01,000\n"
            "a.mp4\n"
            "Relevance: high\n"
            "Sentiment: 12\n"
            "some text\n"
        )
        segment = parse_records(content.splitlines())[0]

        assert segment.quality.relevance == 0.0
        assert segment.quality.sentiment == 12.0

    def test_record_without_score_lines_keeps_source(self):
        content = "1\n00:00:00,000 --> 00:00:01,000\nb-roll.MOV\njust the text\n"
        segment = parse_records(content.splitlines(), default_source="other.mp4")[0]

        assert segment.source_file == "b-roll.MOV"
        assert segment.text == "just the text"
        assert segment.quality == QualityVector()

    def test_label_like_text_after_required_scores(self):
        content = (
            "1\n"
            "00:00:00,000 --> 00:00:01,000\n"
            "a.mp4\n"
            "Relevance: 80\n"
            "Sentiment: 50\n"
            "Novelty: 50\n"
            "Energy: 50\n"
            "Focus: we ship on Friday\n"
        )
        segment = parse_records(content.splitlines())[0]

        assert segment.text == "Focus: we ship on Friday"
        assert segment.quality.focus == 0.0

    def test_multiline_text_is_joined(self):
        content = "1\n00:00:00,000 --> 00:00:01,000\nfirst line\nsecond line\n"
        segment = parse_records(content.splitlines(), default_source="a.mp4")[0]

        assert segment.text == "first line\nsecond line"


# =============================================================================
# File IO Tests
# =============================================================================

class TestFileIO:
    """Tests for reading and writing record files."""

    def test_source_name_for_transcript(self):
        assert source_name_for_transcript(Path("cam1_transcription.srt")) == "cam1.mp4"
        assert source_name_for_transcript(Path("cam2_audio_transcription.srt")) == "cam2.mp4"
        assert source_name_for_transcript(Path("other.srt")) == "other.mp4"

    def test_read_transcript_infers_source(self, tmp_path):
        path = tmp_path / "cam1_transcription.srt"
        path.write_text(TRANSCRIPT, encoding="utf-8")

        segments = read_segments(path)

        assert all(s.source_file == "cam1.mp4" for s in segments)

    def test_read_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_segments(tmp_path / "missing.srt")

    def test_require_segments_rejects_empty_file(self, tmp_path):
        path = tmp_path / "empty.srt"
        path.write_text("\n\n", encoding="utf-8")

        with pytest.raises(EmptyInputError):
            require_segments(path)

    def test_written_records_read_back_identically(self, tmp_path):
        segments = [
            Segment(
                "a.mp4", 1.25, 3.0, "first take",
                quality=QualityVector(relevance=81.5, sentiment=33.333333333333336, novelty=40.0,
                                      energy=12.5, focus=75.0, clarity=80.0, emotion=70.0,
                                      flub_score=87.5, composite_score=79.1),
            ),
            Segment(
                "b.mp4", 10.0, 12.5, "second line\ncontinues here",
                quality=QualityVector(relevance=1.0),
            ),
        ]
        path = write_segments(tmp_path / "out.srt", segments)

        assert read_segments(path) == segments

    @pytest.mark.parametrize("text", [
        "Focus: we ship on Friday",
        "Energy: 90 percent, easily",
        "Relevance: 12\nand a second line",
    ])
    def test_label_like_text_survives_round_trip(self, text):
        segments = [
            Segment("a.mp4", 0.0, 1.0, text, quality=QualityVector(relevance=80.0)),
            Segment("b.mp4", 2.0, 3.0, "plain line"),
        ]

        parsed = parse_records(serialize_segments(segments).splitlines())

        assert [s.text for s in parsed] == [text, "plain line"]
        assert parsed[0].quality == QualityVector(relevance=80.0)

    def test_write_numbers_records_from_one(self, make_segment):
        segments = [make_segment(f"line {i}", start=i, end=i + 1) for i in range(3)]
        content = serialize_segments(segments)

        blocks = content.strip().split("\n\n")
        assert [b.splitlines()[0] for b in blocks] == ["1", "2", "3"]

    def test_unscored_segment_is_written_with_zero_scores(self, make_segment):
        content = serialize_segments([make_segment("hello")])

        assert "Relevance: 0.0" in content
        assert "CompositeScore: 0.0" in content

    def test_write_is_full_overwrite(self, tmp_path, make_segment):
        path = tmp_path / "out.srt"
        write_segments(path, [make_segment(f"line {i}", start=i, end=i + 1) for i in range(3)])
        write_segments(path, [make_segment("only one")])

        segments = read_segments(path)
        assert [s.text for s in segments] == ["only one"]
        assert list(tmp_path.glob("*.tmp")) == []
