"""API routes."""
import logging
from dataclasses import replace
from pathlib import Path
from typing import AsyncIterator, List

from fastapi import APIRouter, Depends, HTTPException, Query

from scriptcut.config import settings
from scriptcut.pipeline.config import DEFAULT_PIPELINE_CONFIG, PipelineConfig
from scriptcut.pipeline.runner import PipelineRunner
from scriptcut.pipeline.scorer import ChatCompletionsScorer, ScorerPool
from scriptcut.pipeline.segment_store import read_segments
from scriptcut.pipeline.segments import RankingWeights
from scriptcut.api.schemas import (
    HealthResponse,
    PipelineRunRequest,
    PipelineRunResponse,
    SegmentResponse,
    StageResultResponse,
)

router = APIRouter()
logger = logging.getLogger(__name__)


async def get_scorer_pool() -> AsyncIterator[ScorerPool]:
    """Scorer pool for one request, built from settings."""
    scorer = ChatCompletionsScorer.from_settings(settings)
    try:
        yield ScorerPool(
            scorer,
            max_concurrency=settings.scorer_max_concurrency,
            timeout_seconds=settings.scorer_timeout_seconds,
        )
    finally:
        await scorer.aclose()


def build_pipeline_config(data: PipelineRunRequest) -> PipelineConfig:
    """Apply request overrides on top of the default configuration."""
    overrides = {"topic": data.topic, "write_debug_json": data.write_debug_json}
    if data.duration_budget_seconds is not None:
        overrides["duration_budget_seconds"] = data.duration_budget_seconds
    if data.novelty_lambda is not None:
        overrides["novelty_lambda"] = data.novelty_lambda
    if data.dialogue_lambda is not None:
        overrides["dialogue_lambda"] = data.dialogue_lambda
    if data.base_window_seconds is not None:
        overrides["base_window_seconds"] = data.base_window_seconds
    if data.ranking_weights is not None:
        overrides["ranking_weights"] = RankingWeights(**data.ranking_weights.model_dump())
    return replace(DEFAULT_PIPELINE_CONFIG, **overrides)


# =============================================================================
# Health & System
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Report API health and the configured scoring oracle."""
    return HealthResponse(
        status="healthy",
        scorer_base_url=settings.scorer_base_url,
        scorer_model=settings.scorer_model,
    )


# =============================================================================
# Pipeline
# =============================================================================

@router.post("/pipeline/run", response_model=PipelineRunResponse)
async def run_pipeline(
    data: PipelineRunRequest,
    pool: ScorerPool = Depends(get_scorer_pool)
):
    """Run a pipeline mode on a render directory."""
    render_dir = Path(data.render_dir)
    if not render_dir.is_dir():
        raise HTTPException(status_code=404, detail=f"Render directory not found: {render_dir}")

    mode = data.mode or settings.pipeline_mode
    runner = PipelineRunner(
        render_dir,
        data.project_name,
        pool,
        config=build_pipeline_config(data),
        transcripts_dir=Path(data.transcripts_dir) if data.transcripts_dir else None,
    )
    results = await runner.run(mode)

    last = results[-1]
    if not last.success:
        logger.warning(f"Pipeline {mode} failed for {data.project_name}: {last.message}")

    return PipelineRunResponse(
        success=last.success,
        mode=mode,
        stages=[StageResultResponse(**r.to_dict()) for r in results],
        output_path=str(last.output_path) if last.success and last.output_path else None,
        scorer_stats=pool.stats(),
    )


@router.get("/pipeline/segments", response_model=List[SegmentResponse])
async def get_segments(path: str = Query(..., description="Path to a record or transcript file")):
    """Parse an intermediate file and return its segments."""
    try:
        segments = read_segments(Path(path))
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return [SegmentResponse(**segment.to_dict()) for segment in segments]
