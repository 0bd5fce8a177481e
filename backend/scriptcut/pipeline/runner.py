"""Pipeline Runner.

Orchestrates the stages over the intermediate files of one project:

    <transcripts>/*.srt  -> per-transcript take files in the render directory
    take files           -> <project>.ranked.srt
    .ranked              -> .ordered   (Ranker)
    .ordered             -> .novelty   (Novelty Reranker)
    .novelty             -> .expanded  (Temporal Expander)
    .expanded            -> .trim      (Duration Trimmer)
    .trim                -> .dialogue  (Dialogue Sequencer, needs <project>.speakers.json)
    .trim or transcripts -> .story     (Story Sequencer)

Every public operation returns a ``StageResult``; missing or empty inputs
and cancellation are reported as failures, never raised.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from .config import PipelineConfig, DEFAULT_PIPELINE_CONFIG
from .debug_artifacts import debug_path, write_debug_json
from .dialogue import DialogueSequencer
from .quality import QualityScorer
from .ranking import novelty_rerank, rank_segments, weighted_score
from .scorer import PipelineCancelled, ScorerPool
from .segment_store import EmptyInputError, read_segments, require_segments, write_segments
from .segments import Segment
from .speakers import attach_speakers, load_speaker_metadata, speakers_path
from .story import StorySequencer
from .takes import dedupe_takes
from .timing import expand_segments, trim_to_budget

logger = logging.getLogger(__name__)

PIPELINE_MODES = ("highlight", "dialogue", "story")

ProgressCallback = Callable[[float, str], Awaitable[None]]


@dataclass
class StageResult:
    """Success/failure signal for one pipeline operation."""
    stage: str
    success: bool
    message: str
    output_path: Optional[Path] = None
    segment_count: int = 0

    def to_dict(self) -> dict:
        return {
            "stage": self.stage,
            "success": self.success,
            "message": self.message,
            "output_path": str(self.output_path) if self.output_path else None,
            "segment_count": self.segment_count,
        }


class PipelineRunner:
    """
    Runs pipeline stages for one project in a render directory.

    All collaborators are passed in; the runner holds no global state.
    """

    def __init__(
        self,
        render_dir: Path,
        project_name: str,
        pool: ScorerPool,
        config: Optional[PipelineConfig] = None,
        transcripts_dir: Optional[Path] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.render_dir = Path(render_dir)
        self.project_name = project_name
        self.pool = pool
        self.config = config or DEFAULT_PIPELINE_CONFIG
        self.transcripts_dir = Path(transcripts_dir) if transcripts_dir else None
        self.progress_callback = progress_callback
        self.quality_scorer = QualityScorer(pool, self.config)
        self.dialogue_sequencer = DialogueSequencer(pool, self.config)
        self.story_sequencer = StorySequencer(pool, self.config)

    # ------------------------------------------------------------------
    # Paths and helpers
    # ------------------------------------------------------------------

    def stage_path(self, stage: str) -> Path:
        return self.render_dir / f"{self.project_name}.{stage}.srt"

    def take_files(self) -> List[Path]:
        """Per-transcript take files: every ``*.srt`` not in the project chain."""
        if not self.render_dir.is_dir():
            return []
        prefix = f"{self.project_name}."
        return sorted(
            p for p in self.render_dir.glob("*.srt")
            if p.is_file() and not p.name.startswith(prefix)
        )

    def transcript_files(self) -> List[Path]:
        if self.transcripts_dir is None:
            raise FileNotFoundError("No transcripts directory configured")
        if not self.transcripts_dir.is_dir():
            raise FileNotFoundError(f"Transcripts directory not found: {self.transcripts_dir}")
        files = sorted(p for p in self.transcripts_dir.glob("*.srt") if p.is_file())
        if not files:
            raise FileNotFoundError(f"No transcripts found in {self.transcripts_dir}")
        return files

    async def report_progress(self, pct: float, msg: str):
        if self.progress_callback:
            await self.progress_callback(pct, msg)
        logger.info(f"[{pct:.0f}%] {msg}")

    def _write_debug(
        self,
        stage: str,
        inputs: Sequence[Segment],
        outputs: Sequence[Segment],
        decisions: Optional[list] = None,
        extra: Optional[dict] = None,
    ):
        if not self.config.write_debug_json:
            return
        extra = dict(extra or {})
        extra["scorer"] = self.pool.stats()
        write_debug_json(
            debug_path(self.render_dir, self.project_name, stage),
            stage, self.config, inputs, outputs, decisions, extra,
        )

    async def _run_stage(
        self,
        stage: str,
        operation: Callable[[], Awaitable[Tuple[Path, int]]],
    ) -> StageResult:
        try:
            output_path, count = await operation()
        except (FileNotFoundError, EmptyInputError) as e:
            logger.error(f"Stage '{stage}' failed: {e}")
            return StageResult(stage, False, str(e))
        except PipelineCancelled as e:
            logger.warning(f"Stage '{stage}' cancelled")
            return StageResult(stage, False, str(e))
        except ValueError as e:
            # Invalid speaker metadata
            logger.error(f"Stage '{stage}' failed: {e}")
            return StageResult(stage, False, str(e))

        return StageResult(stage, True, f"Wrote {count} segments", output_path, count)

    async def _transform_file(
        self,
        stage: str,
        source_stage: str,
        transform: Callable[[List[Segment]], Tuple[List[Segment], Optional[list]]],
    ) -> StageResult:
        """Read one chain file, apply a pure transform, write the next one."""
        async def operation():
            segments = require_segments(self.stage_path(source_stage))
            output, decisions = transform(segments)
            path = write_segments(self.stage_path(stage), output)
            self._write_debug(stage, segments, output, decisions)
            return path, len(output)

        return await self._run_stage(stage, operation)

    # ------------------------------------------------------------------
    # Take layer
    # ------------------------------------------------------------------

    async def process_transcripts(self) -> StageResult:
        """
        Score and deduplicate every transcript into a take file.

        A failing transcript is logged and skipped; the result reports how
        many failed.
        """
        try:
            transcripts = self.transcript_files()
        except FileNotFoundError as e:
            logger.error(f"Stage 'takes' failed: {e}")
            return StageResult("takes", False, str(e))

        written = 0
        total_segments = 0
        failed: List[str] = []

        for i, transcript in enumerate(transcripts):
            await self.report_progress(
                5 + 30 * i / len(transcripts),
                f"Scoring {transcript.name} ({i + 1}/{len(transcripts)})",
            )
            try:
                segments = require_segments(transcript)
                scored = await self.quality_scorer.score_segments(
                    segments, self.config.topic, self.config.composite_weights
                )
                canonical, clusters = dedupe_takes(scored, self.config)
                write_segments(self.render_dir / transcript.name, canonical)
            except (FileNotFoundError, ValueError) as e:
                # ValueError covers EmptyInputError and undecodable bytes
                logger.error(f"Failed to process transcript {transcript.name}: {e}")
                failed.append(transcript.name)
                continue
            except PipelineCancelled as e:
                logger.warning("Take processing cancelled")
                return StageResult("takes", False, str(e))

            written += 1
            total_segments += len(canonical)
            self._write_debug(
                f"takes.{transcript.stem}",
                scored,
                canonical,
                [c.to_dict() for c in clusters],
                {"quality_fallbacks": self.quality_scorer.fallbacks},
            )

        if written == 0:
            return StageResult("takes", False, f"No transcripts could be processed ({len(failed)} failed)")

        message = f"Processed {written}/{len(transcripts)} transcripts"
        if failed:
            message += f" ({len(failed)} failed: {', '.join(failed)})"
        return StageResult("takes", True, message, self.render_dir, total_segments)

    async def merge_takes(self) -> StageResult:
        """Concatenate every take file into ``<project>.ranked.srt``."""
        async def operation():
            files = self.take_files()
            if not files:
                raise FileNotFoundError(f"No take files found in {self.render_dir}")
            merged: List[Segment] = []
            for path in files:
                merged.extend(read_segments(path))
            if not merged:
                raise EmptyInputError(f"Take files in {self.render_dir} hold no segments")
            path = write_segments(self.stage_path("ranked"), merged)
            return path, len(merged)

        return await self._run_stage("ranked", operation)

    # ------------------------------------------------------------------
    # Highlight stages
    # ------------------------------------------------------------------

    async def rank(self) -> StageResult:
        weights = self.config.ranking_weights

        def transform(segments):
            ranked = rank_segments(segments, weights)
            decisions = [
                {"position": i, "text": s.text, "weighted_score": weighted_score(s.scores, weights)}
                for i, s in enumerate(ranked)
            ]
            return ranked, decisions

        return await self._transform_file("ordered", "ranked", transform)

    async def rerank_novelty(self) -> StageResult:
        lam = self.config.novelty_lambda
        return await self._transform_file(
            "novelty", "ordered", lambda segments: (novelty_rerank(segments, lam), None)
        )

    async def expand(self) -> StageResult:
        window = self.config.base_window_seconds
        return await self._transform_file(
            "expanded", "novelty", lambda segments: (expand_segments(segments, window), None)
        )

    async def trim(self, budget_seconds: Optional[float] = None) -> StageResult:
        if budget_seconds is None:
            budget_seconds = self.config.duration_budget_seconds

        def transform(segments):
            selected, decisions = trim_to_budget(segments, budget_seconds)
            return selected, [d.to_dict() for d in decisions]

        return await self._transform_file("trim", "expanded", transform)

    async def run_highlight(self) -> List[StageResult]:
        """Takes (if transcripts are configured) through trim; stops at the first failure."""
        results: List[StageResult] = []
        steps = []
        if self.transcripts_dir is not None:
            steps.append((5, "Scoring transcripts...", self.process_transcripts))
        if self.transcripts_dir is not None or self.take_files():
            steps.append((40, "Merging takes...", self.merge_takes))
        steps.extend([
            (50, "Ranking segments...", self.rank),
            (60, "Reranking for novelty...", self.rerank_novelty),
            (70, "Expanding segment windows...", self.expand),
            (80, "Trimming to duration budget...", self.trim),
        ])

        for pct, msg, step in steps:
            await self.report_progress(pct, msg)
            result = await step()
            results.append(result)
            if not result.success:
                break
        return results

    # ------------------------------------------------------------------
    # Terminal sequencing passes
    # ------------------------------------------------------------------

    async def sequence_dialogue(self) -> StageResult:
        async def operation():
            segments = require_segments(self.stage_path("trim"))
            metadata = load_speaker_metadata(speakers_path(self.render_dir, self.project_name))
            labelled = attach_speakers(segments, metadata)
            logger.info(f"Speaker counts: {metadata.speaker_counts()}")

            ordered = await self.dialogue_sequencer.sequence(labelled, self.config.dialogue_lambda)
            path = write_segments(self.stage_path("dialogue"), ordered)
            self._write_debug(
                "dialogue", labelled, ordered,
                [step.to_dict() for step in self.dialogue_sequencer.steps],
                {"cached_reply_scores": len(self.dialogue_sequencer.reply_cache)},
            )
            return path, len(ordered)

        return await self._run_stage("dialogue", operation)

    async def _story_candidates_from_transcripts(self) -> List[Segment]:
        """Relevance-sorted, budget-trimmed segments from the raw transcripts."""
        segments: List[Segment] = []
        for transcript in self.transcript_files():
            segments.extend(read_segments(transcript))
        if not segments:
            raise EmptyInputError(f"No segments found in {self.transcripts_dir}")

        results = await self.pool.gather(
            self.pool.relevance(s.text, self.config.topic) for s in segments
        )
        scores = [r.score if r.ok else 0.0 for r in results]
        ranked = [
            segment for _, segment in sorted(
                zip(scores, segments), key=lambda pair: pair[0], reverse=True
            )
        ]
        selected, _ = trim_to_budget(ranked, self.config.duration_budget_seconds)
        logger.info(f"Story candidates: {len(segments)} transcript segments -> {len(selected)} within budget")
        return selected

    async def sequence_story(self) -> StageResult:
        async def operation():
            trim_path = self.stage_path("trim")
            if trim_path.is_file():
                segments = require_segments(trim_path)
            else:
                logger.info(f"{trim_path.name} not found, building story from raw transcripts")
                segments = await self._story_candidates_from_transcripts()
                if not segments:
                    raise EmptyInputError("No transcript segments fit the duration budget")

            ordered = await self.story_sequencer.sequence(segments, self.config.topic)
            path = write_segments(self.stage_path("story"), ordered)
            self._write_debug(
                "story", segments, ordered,
                extra={"fallbacks": self.story_sequencer.fallbacks},
            )
            return path, len(ordered)

        return await self._run_stage("story", operation)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(self, mode: str = "highlight") -> List[StageResult]:
        """
        Run a pipeline mode.

        ``highlight`` runs through trim. ``dialogue`` runs the highlight
        stages when transcripts are configured, then sequences the trim
        file. ``story`` sequences an existing trim file, or builds one from
        the raw transcripts.
        """
        if mode not in PIPELINE_MODES:
            raise ValueError(f"Unknown pipeline mode: {mode!r} (expected one of {PIPELINE_MODES})")

        logger.info(f"Running {mode} pipeline for project '{self.project_name}' in {self.render_dir}")
        await self.report_progress(0, f"Starting {mode} pipeline...")

        results: List[StageResult] = []
        if mode == "highlight" or (mode == "dialogue" and self.transcripts_dir is not None):
            results.extend(await self.run_highlight())
            if not results[-1].success:
                return results

        if mode == "dialogue":
            await self.report_progress(85, "Sequencing dialogue...")
            results.append(await self.sequence_dialogue())
        elif mode == "story":
            await self.report_progress(85, "Sequencing story...")
            results.append(await self.sequence_story())

        status = "complete" if results[-1].success else "failed"
        await self.report_progress(100, f"{mode.capitalize()} pipeline {status}")
        return results
