# Segment selection and sequencing pipeline
"""
Script Pipeline: Segment Selection and Sequencing

Turns a pool of time-stamped speech segments from several recordings into a
single deduplicated, duration-bounded, ordered script.

Pipeline stages:
1. Segment Store: Parse/write the intermediate record format
2. Quality Scoring: Oracle-scored quality vector plus local flub score
3. Take Deduplication: Cluster near-identical takes, keep the best one
4. Ranking: Weighted multi-dimension sort
5. Novelty Reranking: Greedy relevance vs. novelty tradeoff
6. Temporal Expansion + Duration Trimming: Widen windows, fit the budget
7. Dialogue / Story Sequencing: Alternative terminal reordering passes

All oracle calls go through a bounded ``ScorerPool``; oracle failures fall
back to neutral scores instead of aborting a stage.
"""

__version__ = "1.0.0"

from .runner import PipelineRunner, StageResult, PIPELINE_MODES

__all__ = ["PipelineRunner", "StageResult", "PIPELINE_MODES", "__version__"]
