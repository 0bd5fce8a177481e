"""Segment store.

Parses and writes the intermediate record format shared by every stage:

    <1-based index>
    <hh:mm:ss,mmm> --> <hh:mm:ss,mmm>
    <source file name>
    Relevance: <float>
    Sentiment: <float>
    Novelty: <float>
    Energy: <float>
    Focus / Clarity / Emotion / FlubScore / CompositeScore: <float>  (optional)
    <text, one or more lines>

Missing score lines read as 0; a block whose first body line is a media file
name is a record even when every score line is missing. Text that happens to
start with a score label is kept as text once that label was already read.

Plain transcripts (index, timestamp, text) are read by the same parser; their
segments come back unscored and attributed to the caller-supplied source.
"""
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .segments import QualityVector, Segment, ZERO_QUALITY

logger = logging.getLogger(__name__)

# Record label -> QualityVector field
SCORE_FIELDS = {
    "Relevance": "relevance",
    "Sentiment": "sentiment",
    "Novelty": "novelty",
    "Energy": "energy",
    "Focus": "focus",
    "Clarity": "clarity",
    "Emotion": "emotion",
    "FlubScore": "flub_score",
    "CompositeScore": "composite_score",
}

REQUIRED_FIELDS = frozenset({"relevance", "sentiment", "novelty", "energy"})

SCORE_LINE_RE = re.compile(r"^(%s):\s*(.*)$" % "|".join(SCORE_FIELDS))
# Bare media file name, as written on a record's source line
SOURCE_LINE_RE = re.compile(r"^\S+\.(mp4|mov|m4v|mkv|avi|webm|mxf|wav|mp3|m4a)$", re.IGNORECASE)
TIMESTAMP_RE = re.compile(r"^(\d+):(\d{1,2}):(\d{1,2}(?:\.\d+)?)$")
TIME_SEPARATOR = " --> "

TRANSCRIPT_SUFFIXES = ("_audio_transcription.srt", "_transcription.srt")


class EmptyInputError(ValueError):
    """Raised when an input file holds no usable segments."""


def parse_timestamp(value: str) -> float:
    """Parse ``hh:mm:ss,mmm`` into seconds."""
    # Comma is the millisecond separator in the record format
    match = TIMESTAMP_RE.match(value.strip().replace(",", "."))
    if not match:
        raise ValueError(f"Invalid timestamp: {value!r}")
    hours, minutes, seconds = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def format_timestamp(seconds: float) -> str:
    """Format seconds as ``hh:mm:ss,mmm``."""
    total_ms = int(round(max(0.0, seconds) * 1000))
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    secs, ms = divmod(rest, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{ms:03d}"


def _format_score(value: float) -> str:
    # repr() round-trips floats exactly
    return repr(float(value))


def _is_number(raw: str) -> bool:
    try:
        float(raw.strip())
    except ValueError:
        return False
    return True


def _parse_score_value(label: str, raw: str) -> float:
    try:
        return float(raw.strip())
    except ValueError:
        logger.debug(f"Unparsable {label} value {raw!r}, defaulting to 0")
        return 0.0


def _parse_block(block: Sequence[str], default_source: str) -> Segment:
    """Parse one record (everything after the index line)."""
    if not block:
        raise ValueError("missing timestamp line")

    times = block[0].split(TIME_SEPARATOR.strip())
    if len(times) != 2:
        raise ValueError(f"invalid time range {block[0]!r}")
    start = parse_timestamp(times[0])
    end = parse_timestamp(times[1])

    body = list(block[1:])
    quality: Optional[QualityVector] = None
    source = default_source

    # A record carries its source line followed by score lines
    is_record = len(body) >= 2 and (
        SCORE_LINE_RE.match(body[1].strip()) or SOURCE_LINE_RE.match(body[0].strip())
    )
    if is_record:
        source = body[0].strip()
        values = {}
        k = 1
        while k < len(body):
            match = SCORE_LINE_RE.match(body[k].strip())
            if not match:
                break
            label, raw = match.groups()
            field_name = SCORE_FIELDS[label]
            # Repeated label, or a non-numeric one once the required scores are in: text begins
            if field_name in values:
                break
            if REQUIRED_FIELDS <= values.keys() and not _is_number(raw):
                break
            values[field_name] = _parse_score_value(label, raw)
            k += 1
        quality = QualityVector(**values)
        body = body[k:]

    text = "\n".join(line.strip() for line in body).strip()
    if not text:
        raise ValueError("empty text")

    return Segment(
        source_file=source,
        start=start,
        end=end,
        text=text,
        quality=quality,
    )


def parse_records(
    lines: Iterable[str],
    default_source: str = "",
    origin: str = "<memory>",
) -> List[Segment]:
    """
    Parse record lines into segments.

    Blank lines are skipped and a non-numeric index line advances the parser
    by one line. A malformed block is logged and skipped; parsing continues.
    """
    lines = list(lines)
    segments: List[Segment] = []
    skipped = 0
    i = 0

    while i < len(lines):
        line = lines[i].strip()
        if not line:
            i += 1
            continue

        if not line.isdigit():
            i += 1
            continue

        j = i + 1
        block = []
        while j < len(lines) and lines[j].strip():
            block.append(lines[j])
            j += 1

        try:
            segments.append(_parse_block(block, default_source))
        except ValueError as e:
            skipped += 1
            logger.warning(f"Skipping malformed segment #{line} in {origin}: {e}")

        i = j

    if skipped:
        logger.info(f"Parsed {len(segments)} segments from {origin} ({skipped} skipped)")
    return segments


def source_name_for_transcript(path: Path) -> str:
    """Map a transcript file name back to the recording it came from."""
    name = path.name
    for suffix in TRANSCRIPT_SUFFIXES:
        if name.endswith(suffix):
            return name[: -len(suffix)] + ".mp4"
    return f"{path.stem}.mp4"


def read_segments(path: Path, default_source: Optional[str] = None) -> List[Segment]:
    """Read all segments from a record or transcript file."""
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Segment file not found: {path}")

    if default_source is None:
        default_source = source_name_for_transcript(path)

    content = path.read_text(encoding="utf-8-sig")
    return parse_records(content.splitlines(), default_source, origin=str(path))


def require_segments(path: Path, default_source: Optional[str] = None) -> List[Segment]:
    """Read segments, treating an empty result as an input error."""
    segments = read_segments(path, default_source)
    if not segments:
        raise EmptyInputError(f"No segments found in {path}")
    return segments


def format_record(segment: Segment, number: int) -> str:
    """Render one segment as a numbered record (without trailing blank line)."""
    quality = segment.quality or ZERO_QUALITY
    values = quality.to_dict()

    lines = [
        str(number),
        f"{format_timestamp(segment.start)}{TIME_SEPARATOR}{format_timestamp(segment.end)}",
        segment.source_file,
    ]
    for label, field_name in SCORE_FIELDS.items():
        lines.append(f"{label}: {_format_score(values[field_name])}")

    # Blank lines inside text would end the record early
    lines.extend(line for line in segment.text.splitlines() if line.strip())
    return "\n".join(lines)


def serialize_segments(segments: Sequence[Segment]) -> str:
    """Render segments numbered contiguously from 1."""
    return "".join(
        format_record(segment, number) + "\n\n"
        for number, segment in enumerate(segments, start=1)
    )


def write_segments(path: Path, segments: Sequence[Segment]) -> Path:
    """
    Write segments as a full-file overwrite.

    Content goes to a temp file in the target directory first and is then
    moved into place, so readers never see a partial file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    content = serialize_segments(segments)

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    logger.info(f"Wrote {len(segments)} segments to {path}")
    return path
