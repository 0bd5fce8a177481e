"""Debug artifact generation.

Writes one JSON file per stage explaining what the stage decided.
"""
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .config import PipelineConfig
from .segments import Segment

logger = logging.getLogger(__name__)


def debug_path(render_dir: Path, project_name: str, stage: str) -> Path:
    return Path(render_dir) / "debug" / f"{project_name}.{stage}.json"


def write_debug_json(
    output_path: Path,
    stage: str,
    config: PipelineConfig,
    input_segments: Sequence[Segment],
    output_segments: Sequence[Segment],
    decisions: Optional[List[Dict[str, Any]]] = None,
    extra: Optional[Dict[str, Any]] = None,
):
    """
    Write the debug JSON for one stage.
    """
    debug_data = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "stage": stage,

        # Configuration
        "config": config.to_dict(),

        # Segments in and out
        "input_segments": [s.to_dict() for s in input_segments],
        "output_segments": [s.to_dict() for s in output_segments],

        # Per-segment or per-step decisions
        "decisions": decisions or [],

        # Statistics
        "statistics": {
            "input_count": len(input_segments),
            "output_count": len(output_segments),
            "input_duration": sum(s.duration for s in input_segments),
            "output_duration": sum(s.duration for s in output_segments),
        },
    }
    if extra:
        debug_data.update(extra)

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(debug_data, f, indent=2)

    logger.info(f"Wrote debug JSON to {output_path}")
