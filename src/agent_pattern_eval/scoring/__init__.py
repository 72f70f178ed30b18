"""
Scoring sub-package

Provides metric aggregation, text heuristics and LLM Judge scoring logic.
"""

from agent_pattern_eval.domain.value_objects import ScoringResult
from agent_pattern_eval.scoring.aggregator import aggregate, build_result, weighted_score
from agent_pattern_eval.scoring.scorer import score_metric
from agent_pattern_eval.scoring.text_heuristics import (
    remove_markdown,
    normalize_text,
    word_count,
    sentences,
    length_ratio,
    keyword_coverage,
    significant_words,
    count_chars,
)
from agent_pattern_eval.scoring.llm_judge import LLMJudgeError, LLMJudgeScorer

__all__ = [
    # value objects (re-exported from domain)
    "ScoringResult",
    # aggregation
    "aggregate",
    "build_result",
    "weighted_score",
    # dispatcher
    "score_metric",
    # text heuristics
    "remove_markdown",
    "normalize_text",
    "word_count",
    "sentences",
    "length_ratio",
    "keyword_coverage",
    "significant_words",
    "count_chars",
    # llm judge
    "LLMJudgeError",
    "LLMJudgeScorer",
]
