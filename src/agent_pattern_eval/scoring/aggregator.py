"""
Metric aggregation

Turns a set of per-metric scores into one overall score and a pass/fail
verdict. Every EvaluationResult is built through this module so its overall
score can never drift from its metric scores.
"""

from __future__ import annotations

import math
from typing import Iterable, Mapping

from agent_pattern_eval.domain.entities import EvaluationResult
from agent_pattern_eval.domain.enums import AgentPattern
from agent_pattern_eval.domain.value_objects import AggregateScore, MetricScore


def aggregate(scores: Iterable[MetricScore], passing_threshold: float) -> AggregateScore:
    """
    Weighted mean of metric scores

    overall = sum(score * weight) / sum(weight), weight defaulting to 1.0.
    Terms are summed in a canonical order with math.fsum, so the result does
    not depend on the order of ``scores`` and equals the arithmetic mean
    exactly when all weights are equal.

    Args:
        scores: Metric scores
        passing_threshold: Minimum overall score for a pass

    Returns:
        AggregateScore. An empty set (or zero total weight) yields 0.0 / not passed.
    """
    pairs = sorted((s.score, s.effective_weight) for s in scores)
    if not pairs:
        return AggregateScore(overall_score=0.0, passed=False)

    weights = [w for _, w in pairs]
    if len(set(weights)) == 1:
        if weights[0] == 0:
            return AggregateScore(overall_score=0.0, passed=False)
        overall = math.fsum(s for s, _ in pairs) / len(pairs)
    else:
        total_weight = math.fsum(weights)
        if total_weight <= 0:
            return AggregateScore(overall_score=0.0, passed=False)
        overall = math.fsum(s * w for s, w in pairs) / total_weight

    overall = _clamp(overall)
    return AggregateScore(overall_score=overall, passed=overall >= passing_threshold)


def weighted_score(score_map: Mapping[str, float], weights: Mapping[str, float]) -> float:
    """
    Weighted mean over the dimensions present in both mappings

    Dimensions without a weight are ignored; returns 0.0 when nothing overlaps.
    """
    shared = sorted(k for k in weights if k in score_map)
    total_weight = math.fsum(weights[k] for k in shared)
    if total_weight <= 0:
        return 0.0
    return _clamp(math.fsum(score_map[k] * weights[k] for k in shared) / total_weight)


def build_result(
    test_case_id: str,
    pattern: AgentPattern,
    scores: Iterable[MetricScore],
    passing_threshold: float,
    *,
    timestamp: str,
    execution_time_ms: int = 0,
    feedback: str = "",
    error: str | None = None,
    judge_model: str | None = None,
    input_tokens: int = 0,
    output_tokens: int = 0,
    api_calls: int = 0,
) -> EvaluationResult:
    """
    Create an EvaluationResult whose overall score and verdict come from aggregate()

    Args:
        test_case_id: ID of the evaluated test case
        pattern: Agent pattern
        scores: Metric scores in reporting order
        passing_threshold: Minimum overall score for a pass
        timestamp: ISO-8601 timestamp
        execution_time_ms: Wall time spent evaluating
        feedback: Human-readable feedback
        error: Error text when the evaluation itself failed

    Returns:
        EvaluationResult
    """
    scores = tuple(scores)
    verdict = aggregate(scores, passing_threshold)
    return EvaluationResult(
        test_case_id=test_case_id,
        pattern=pattern,
        scores=scores,
        overall_score=verdict.overall_score,
        passed=verdict.passed and error is None,
        timestamp=timestamp,
        execution_time_ms=execution_time_ms,
        feedback=feedback,
        error=error,
        judge_model=judge_model,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        api_calls=api_calls,
    )


def _clamp(value: float) -> float:
    """Clamp score to the range 0.0-1.0"""
    return max(0.0, min(1.0, value))
