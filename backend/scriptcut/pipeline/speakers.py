"""Speaker-analysis sidecar.

Speaker and shot labels come from ``<project>.speakers.json``, produced by
the upstream speaker analysis. Segments are matched by exact text.
"""
import logging
from pathlib import Path
from typing import Dict, List, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .segments import Segment, UNKNOWN_SPEAKER

logger = logging.getLogger(__name__)

# Shot types in the order the analysis tool numbers them
SHOT_TYPES = ["CU", "MS", "OTS_CU", "WS", "INSERT", "UNK"]


class SpeakerSegment(BaseModel):
    """Speaker/shot labels for one transcript segment."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    segment_id: str = Field("", alias="SegmentId")
    file_name: str = Field("", alias="FileName")
    text: str = Field("", alias="Text")
    speaker_id: str = Field(UNKNOWN_SPEAKER, alias="SpeakerId")
    speaker_conf: float = Field(0.0, alias="SpeakerConf")
    shot_label: str = Field(UNKNOWN_SPEAKER, alias="ShotLabel")
    shot_conf: float = Field(0.0, alias="ShotConf")

    @field_validator("shot_label", mode="before")
    @classmethod
    def _shot_label_name(cls, value: Union[int, str, None]) -> str:
        # Enum values may be serialized by index
        if value is None:
            return UNKNOWN_SPEAKER
        if isinstance(value, int):
            return SHOT_TYPES[value] if 0 <= value < len(SHOT_TYPES) else UNKNOWN_SPEAKER
        return str(value)

    @field_validator("speaker_id", mode="before")
    @classmethod
    def _speaker_id_default(cls, value) -> str:
        return str(value) if value else UNKNOWN_SPEAKER


class SpeakerMetadata(BaseModel):
    """Contents of a speaker-analysis sidecar file."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    project_name: str = Field("", alias="ProjectName")
    segments: List[SpeakerSegment] = Field(default_factory=list, alias="Segments")

    def lookup(self) -> Dict[str, SpeakerSegment]:
        """Index by text; the first occurrence of a text wins."""
        index: Dict[str, SpeakerSegment] = {}
        for seg in self.segments:
            index.setdefault(seg.text.strip(), seg)
        return index

    def speaker_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for seg in self.segments:
            counts[seg.speaker_id] = counts.get(seg.speaker_id, 0) + 1
        return counts


def speakers_path(render_dir: Path, project_name: str) -> Path:
    return Path(render_dir) / f"{project_name}.speakers.json"


def load_speaker_metadata(path: Path) -> SpeakerMetadata:
    """
    Load a speaker sidecar.

    Raises FileNotFoundError if missing and ValueError if it cannot be parsed.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Speaker analysis metadata not found: {path}")

    try:
        return SpeakerMetadata.model_validate_json(path.read_text(encoding="utf-8-sig"))
    except ValidationError as e:
        raise ValueError(f"Invalid speaker analysis metadata in {path}: {e}") from e


def attach_speakers(segments: Sequence[Segment], metadata: SpeakerMetadata) -> List[Segment]:
    """Copy speaker and shot labels onto segments by exact text match."""
    index = metadata.lookup()
    labelled = []
    unmatched = 0

    for segment in segments:
        meta = index.get(segment.text.strip())
        if meta is None:
            unmatched += 1
            labelled.append(segment.with_speaker(UNKNOWN_SPEAKER, UNKNOWN_SPEAKER))
        else:
            labelled.append(segment.with_speaker(meta.speaker_id, meta.shot_label))

    if unmatched:
        logger.warning(f"{unmatched}/{len(segments)} segments have no speaker metadata, labelled {UNKNOWN_SPEAKER}")
    return labelled
