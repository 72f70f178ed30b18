"""
Tests for the metric scoring dispatcher (scorer.py)

Verifies:
- Heuristic mode runs the heuristic and honours binary checks
- Judge mode normalizes the judge's score range
- Unparsable judge output falls back to the heuristic
- Judge call failures propagate as JudgeInvocationError
"""

import pytest
from unittest.mock import MagicMock

from agent_pattern_eval.domain.enums import ScoringMode
from agent_pattern_eval.domain.errors import InputValidationError, JudgeInvocationError
from agent_pattern_eval.domain.value_objects import EvaluationMetric, JudgeCallOptions, ModelResponse, ScoringResult
from agent_pattern_eval.scoring.llm_judge import LLMJudgeError, LLMJudgeScorer
from agent_pattern_eval.scoring.scorer import score_metric


def _judge(result=None, error=None):
    judge = MagicMock()
    if error is not None:
        judge.evaluate.side_effect = error
    else:
        judge.evaluate.return_value = (
            result,
            ModelResponse(output="{}", latency_ms=10, model_name="mock", input_tokens=3, output_tokens=2),
        )
    return judge


class TestHeuristicMode:
    """Heuristic scoring"""

    def test_runs_heuristic(self):
        result, response = score_metric(
            EvaluationMetric(name="accuracy"),
            ScoringMode.HEURISTIC,
            heuristic=lambda: ScoringResult(0.4, "partial"),
        )
        assert result == ScoringResult(0.4, "partial")
        assert response is None

    def test_binary_check_collapses_score(self):
        metric = EvaluationMetric(name="accuracy", binary_check=True)
        high, _ = score_metric(metric, ScoringMode.HEURISTIC, heuristic=lambda: ScoringResult(0.5))
        low, _ = score_metric(metric, ScoringMode.HEURISTIC, heuristic=lambda: ScoringResult(0.49))
        assert high.score == 1.0
        assert low.score == 0.0

    def test_missing_heuristic_raises(self):
        with pytest.raises(InputValidationError, match="no heuristic"):
            score_metric(EvaluationMetric(name="tone"), ScoringMode.HEURISTIC)


class TestJudgeMode:
    """LLM judge scoring"""

    def test_normalizes_score_range(self):
        metric = EvaluationMetric(name="accuracy", score_range=(0.0, 10.0))
        judge = _judge(ScoringResult(7.5, "good"))

        result, response = score_metric(metric, ScoringMode.JUDGE, prompt="p", judge=judge)

        assert result.score == pytest.approx(0.75)
        assert result.reason == "good"
        assert response.input_tokens == 3
        judge.evaluate.assert_called_once_with("p", (0.0, 10.0), options=None)

    def test_parse_failure_falls_back_to_heuristic(self):
        judge = _judge(error=LLMJudgeError("garbage"))
        result, response = score_metric(
            EvaluationMetric(name="accuracy"),
            ScoringMode.JUDGE,
            heuristic=lambda: ScoringResult(0.6, "rule based"),
            prompt="p",
            judge=judge,
        )
        assert result.score == pytest.approx(0.6)
        assert "heuristic fallback" in result.reason
        assert response is None

    def test_nan_judge_score_falls_back_to_heuristic(self):
        client = MagicMock()
        client.model_name = "mock"
        client.generate.return_value = ModelResponse(output='{"score": NaN}', latency_ms=1, model_name="mock")
        result, response = score_metric(
            EvaluationMetric(name="accuracy"), ScoringMode.JUDGE,
            heuristic=lambda: ScoringResult(0.3, "rule based"), prompt="p", judge=LLMJudgeScorer(client),
        )
        assert result.score == pytest.approx(0.3)
        assert "heuristic fallback" in result.reason
        assert response is None

    def test_options_are_forwarded(self):
        judge = _judge(ScoringResult(1.0, "ok"))
        options = JudgeCallOptions(temperature=0.2, max_retries=0)
        score_metric(EvaluationMetric(name="accuracy"), ScoringMode.JUDGE, prompt="p", judge=judge, options=options)
        judge.evaluate.assert_called_once_with("p", (0.0, 1.0), options=options)

    def test_parse_failure_without_heuristic_scores_zero(self):
        result, _ = score_metric(
            EvaluationMetric(name="tone"), ScoringMode.JUDGE,
            prompt="p", judge=_judge(error=LLMJudgeError("garbage")),
        )
        assert result.score == 0.0
        assert "no fallback" in result.reason

    def test_invocation_error_propagates(self):
        judge = _judge(error=JudgeInvocationError("timeout"))
        with pytest.raises(JudgeInvocationError):
            score_metric(
                EvaluationMetric(name="accuracy"), ScoringMode.JUDGE,
                heuristic=lambda: ScoringResult(1.0), prompt="p", judge=judge,
            )

    def test_judge_mode_requires_judge(self):
        with pytest.raises(InputValidationError, match="requires a judge"):
            score_metric(EvaluationMetric(name="accuracy"), ScoringMode.JUDGE, prompt="p")

    def test_judge_mode_requires_prompt(self):
        with pytest.raises(InputValidationError, match="no judge prompt"):
            score_metric(EvaluationMetric(name="accuracy"), ScoringMode.JUDGE, judge=_judge(ScoringResult(1.0)))
