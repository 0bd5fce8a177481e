#!/usr/bin/env python3
"""
CLI tool to run a pipeline mode on a render directory.

Usage:
    python scripts/run_pipeline_cli.py <render_dir> --project <name> [--mode highlight|dialogue|story]

Example:
    python scripts/run_pipeline_cli.py ~/Renders/interview --project interview \\
        --transcripts ~/Renders/interview/transcripts --topic "how the project started"
"""
import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from scriptcut.config import settings
from scriptcut.pipeline.config import DEFAULT_PIPELINE_CONFIG, PipelineConfig
from scriptcut.pipeline.runner import PIPELINE_MODES, PipelineRunner
from scriptcut.pipeline.scorer import ChatCompletionsScorer, ScorerPool


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def run_pipeline(
    render_dir: Path,
    project_name: str,
    mode: str,
    transcripts_dir: Path = None,
    config: PipelineConfig = None,
) -> bool:
    """
    Run one pipeline mode and print a stage summary.

    Returns True when the final stage succeeded.
    """
    if not render_dir.is_dir():
        raise FileNotFoundError(f"Render directory not found: {render_dir}")

    scorer = ChatCompletionsScorer.from_settings(settings)
    pool = ScorerPool(
        scorer,
        max_concurrency=settings.scorer_max_concurrency,
        timeout_seconds=settings.scorer_timeout_seconds,
    )

    async def progress_callback(pct, msg):
        logger.debug(f"[{pct:.0f}%] {msg}")

    try:
        runner = PipelineRunner(
            render_dir,
            project_name,
            pool,
            config=config,
            transcripts_dir=transcripts_dir,
            progress_callback=progress_callback,
        )
        results = await runner.run(mode)
    finally:
        await scorer.aclose()

    for result in results:
        status = "ok" if result.success else "FAILED"
        logger.info(f"  {result.stage:<10} {status:<6} {result.message}")

    logger.info(f"Scorer stats: {json.dumps(pool.stats())}")
    return results[-1].success


def main():
    parser = argparse.ArgumentParser(
        description="Run the ScriptCut segment pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Highlight reel from raw transcripts
    python scripts/run_pipeline_cli.py ./render --project demo --transcripts ./render/transcripts

    # Dialogue ordering of an existing trim file (needs demo.speakers.json)
    python scripts/run_pipeline_cli.py ./render --project demo --mode dialogue

    # Story ordering with a 90 second budget
    python scripts/run_pipeline_cli.py ./render --project demo --mode story --topic "our launch" --budget 90
        """
    )

    parser.add_argument(
        "render_dir",
        type=Path,
        help="Directory holding the project's intermediate files"
    )

    parser.add_argument(
        "--project", "-p",
        required=True,
        help="Project name used for intermediate file names"
    )

    parser.add_argument(
        "--mode", "-m",
        choices=PIPELINE_MODES,
        default=settings.pipeline_mode,
        help="Pipeline mode (default: %(default)s)"
    )

    parser.add_argument(
        "--transcripts", "-t",
        type=Path,
        default=None,
        help="Directory of raw *.srt transcripts"
    )

    parser.add_argument(
        "--topic",
        default="",
        help="Topic prompt / story subject"
    )

    parser.add_argument(
        "--budget", "-b",
        type=float,
        default=None,
        help=f"Duration budget in seconds (default: {DEFAULT_PIPELINE_CONFIG.duration_budget_seconds:.0f})"
    )

    parser.add_argument(
        "--no-debug",
        action="store_true",
        help="Skip per-stage debug JSON"
    )

    args = parser.parse_args()

    overrides = {"topic": args.topic, "write_debug_json": not args.no_debug}
    if args.budget is not None:
        if args.budget <= 0:
            parser.error("--budget must be positive")
        overrides["duration_budget_seconds"] = args.budget
    config = replace(DEFAULT_PIPELINE_CONFIG, **overrides)

    # Run
    try:
        ok = asyncio.run(run_pipeline(
            render_dir=args.render_dir,
            project_name=args.project,
            mode=args.mode,
            transcripts_dir=args.transcripts,
            config=config,
        ))
    except FileNotFoundError as e:
        logger.error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(130)
    except Exception as e:
        logger.exception(f"Error: {e}")
        sys.exit(1)

    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
