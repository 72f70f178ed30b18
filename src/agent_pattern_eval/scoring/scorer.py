"""
Scoring dispatch function

Routes one metric to its heuristic scorer or to the LLM judge, depending on
the scoring mode of the evaluation config.
"""

from __future__ import annotations

import logging
from typing import Callable

from agent_pattern_eval.domain.enums import ScoringMode
from agent_pattern_eval.domain.errors import InputValidationError
from agent_pattern_eval.domain.value_objects import EvaluationMetric, JudgeCallOptions, ModelResponse, ScoringResult
from agent_pattern_eval.scoring.llm_judge import LLMJudgeError, LLMJudgeScorer

logger = logging.getLogger(__name__)


def score_metric(
    metric: EvaluationMetric,
    mode: ScoringMode,
    *,
    heuristic: Callable[[], ScoringResult] | None = None,
    prompt: str | None = None,
    judge: LLMJudgeScorer | None = None,
    options: JudgeCallOptions | None = None,
) -> tuple[ScoringResult, ModelResponse | None]:
    """
    Calculate the score of one metric

    Args:
        metric: Metric definition (score range and binary flag are honoured)
        mode: HEURISTIC or JUDGE
        heuristic: Rule-based scorer for the metric, if the evaluator has one
        prompt: Judge prompt (required in JUDGE mode)
        judge: LLMJudgeScorer (required in JUDGE mode)
        options: Temperature and retries for the judge call

    Returns:
        (ScoringResult on the 0-1 scale, judge ModelResponse or None)

    Raises:
        InputValidationError: When the mode cannot be served with the given inputs
        JudgeInvocationError: When the judge call itself fails
    """
    if mode == ScoringMode.JUDGE:
        if judge is None:
            raise InputValidationError("judge scoring mode requires a judge client")
        if not prompt:
            raise InputValidationError(f"no judge prompt available for metric {metric.name}")
        try:
            raw, response = judge.evaluate(prompt, metric.score_range, options=options)
        except LLMJudgeError as e:
            if heuristic is None:
                logger.warning("LLM judge output unparsable for '%s' and no heuristic exists: %s", metric.name, e)
                return ScoringResult(score=0.0, reason=f"LLM judge failed, no fallback available: {e}"), None
            logger.warning("LLM judge failed for '%s', falling back to heuristic: %s", metric.name, e)
            fallback = _binary(metric, heuristic())
            return ScoringResult(
                score=fallback.score,
                reason=f"LLM judge failed, used heuristic fallback. {fallback.reason or ''}".strip(),
            ), None
        return ScoringResult(score=metric.normalize(raw.score), reason=raw.reason), response

    if heuristic is None:
        raise InputValidationError(f"no heuristic scorer for metric {metric.name}")
    return _binary(metric, heuristic()), None


def _binary(metric: EvaluationMetric, result: ScoringResult) -> ScoringResult:
    """Collapse a 0-1 heuristic score to pass/fail for binary-check metrics"""
    if not metric.binary_check:
        return result
    return ScoringResult(score=1.0 if result.score >= 0.5 else 0.0, reason=result.reason)
