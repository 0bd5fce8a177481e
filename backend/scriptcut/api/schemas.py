"""Pydantic schemas for API requests and responses."""
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field


# =============================================================================
# System Schemas
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    scorer_base_url: str
    scorer_model: str
    message: Optional[str] = None


# =============================================================================
# Pipeline Schemas
# =============================================================================

class RankingWeightsRequest(BaseModel):
    """Per-dimension ranking weights."""
    relevance: float = Field(100.0, ge=0)
    sentiment: float = Field(25.0, ge=0)
    novelty: float = Field(25.0, ge=0)
    energy: float = Field(25.0, ge=0)
    focus: float = Field(0.0, ge=0)
    clarity: float = Field(0.0, ge=0)
    emotion: float = Field(0.0, ge=0)
    flub_score: float = Field(0.0, ge=0)
    composite_score: float = Field(0.0, ge=0)


class PipelineRunRequest(BaseModel):
    """Request to run a pipeline mode for one project."""
    project_name: str = Field(..., min_length=1, description="Project name used for intermediate file names")
    render_dir: str = Field(..., description="Directory holding the project's intermediate files")
    transcripts_dir: Optional[str] = Field(None, description="Directory of raw *.srt transcripts")
    mode: Optional[Literal["highlight", "dialogue", "story"]] = Field(
        None, description="Pipeline mode (defaults to the configured mode)"
    )
    topic: str = Field("", description="Topic prompt / story subject")
    duration_budget_seconds: Optional[float] = Field(None, gt=0, description="Duration budget in seconds")
    novelty_lambda: Optional[float] = Field(None, ge=0, le=1, description="1.0 = relevance only, 0.0 = novelty only")
    dialogue_lambda: Optional[float] = Field(None, ge=0, le=1, description="Base score vs reply score tradeoff")
    base_window_seconds: Optional[float] = Field(None, ge=0, description="Base temporal expansion window")
    ranking_weights: Optional[RankingWeightsRequest] = None
    write_debug_json: bool = Field(True, description="Write per-stage debug JSON")


class StageResultResponse(BaseModel):
    """Outcome of one pipeline stage."""
    stage: str
    success: bool
    message: str
    output_path: Optional[str] = None
    segment_count: int = 0


class PipelineRunResponse(BaseModel):
    """Outcome of a pipeline run."""
    success: bool
    mode: str
    stages: List[StageResultResponse]
    output_path: Optional[str] = None
    scorer_stats: Dict[str, float] = Field(default_factory=dict)


class SegmentResponse(BaseModel):
    """One segment from an intermediate file."""
    source_file: str
    start: float
    end: float
    duration: float
    text: str
    speaker_id: str
    shot_label: str
    quality: Optional[Dict[str, float]] = None
