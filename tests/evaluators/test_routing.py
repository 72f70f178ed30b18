"""
Tests for the routing pattern evaluator

Covers the department heuristics, the always-on metrics, degradation of
malformed responses and deterministic test case generation.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from agent_pattern_eval.domain.entities import TestCase
from agent_pattern_eval.domain.enums import AgentPattern, Complexity
from agent_pattern_eval.domain.errors import InputValidationError, JudgeInvocationError
from agent_pattern_eval.domain.value_objects import EvaluationConfig, ModelResponse, ScoringResult
from agent_pattern_eval.evaluators.routing import RoutingEvaluator, is_ambiguous_query
from agent_pattern_eval.infrastructure.judge_clients.base import JudgeClient, RetryMixin, call_temperature
from agent_pattern_eval.scoring.llm_judge import LLMJudgeScorer

FIXED_NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def evaluator():
    return RoutingEvaluator(clock=lambda: FIXED_NOW, id_generator=lambda: "abc123def")


def _case(query, expected_department="billing"):
    return TestCase(
        id="routing-1-x",
        pattern=AgentPattern.ROUTING,
        input={"query": query},
        metadata={"expected_department": expected_department},
    )


def _config(*metrics, **kwargs):
    metrics = metrics or ("classification_accuracy", "routing_appropriateness", "response_relevance")
    return EvaluationConfig(pattern=AgentPattern.ROUTING, metrics=list(metrics), **kwargs)


BILLING_QUERY = "I was charged twice for my subscription this month"

GOOD_RESPONSE = {
    "classification": "billing",
    "confidence": 0.9,
    "routedTo": "billing",
    "response": (
        "You were charged twice for your subscription this month. I have reviewed your account "
        "and can see the duplicate transaction. A refund will be issued to your payment method "
        "within five business days."
    ),
    "reasoning": "The customer reports a duplicate subscription charge.",
}


# =============================================================================
# evaluate_response
# =============================================================================


class TestEvaluateResponse:
    def test_correct_routing_passes(self, evaluator):
        result = evaluator.evaluate_response(_case(BILLING_QUERY), GOOD_RESPONSE, _config())

        assert [s.metric for s in result.scores] == [
            "classification_accuracy",
            "routing_appropriateness",
            "response_relevance",
            "confidence_alignment",
            "fallback_handling",
        ]
        scores = result.score_map()
        assert scores["classification_accuracy"] == pytest.approx(1.0)
        assert scores["routing_appropriateness"] == pytest.approx(1.0)
        assert scores["response_relevance"] == pytest.approx(1.0)
        assert scores["confidence_alignment"] == pytest.approx(1.0)
        assert scores["fallback_handling"] == pytest.approx(0.7)
        assert result.overall_score == pytest.approx(5.29 / 5.5)
        assert result.passed is True
        assert result.feedback.startswith("Excellent routing performance")
        assert result.timestamp == FIXED_NOW.isoformat()
        assert result.judge_model is None

    def test_wrong_department(self, evaluator):
        response = dict(GOOD_RESPONSE, routedTo="technical")
        result = evaluator.evaluate_response(_case(BILLING_QUERY), response, _config())

        assert result.score_map()["classification_accuracy"] == pytest.approx(0.3)
        assert "Routed to technical but expected billing." in result.feedback

    def test_acceptable_alternative(self, evaluator):
        response = dict(GOOD_RESPONSE, routedTo="general", confidence=0.4)
        result = evaluator.evaluate_response(_case(BILLING_QUERY), response, _config())

        assert result.score_map()["classification_accuracy"] == pytest.approx(0.7)
        assert "Low confidence score" in result.feedback

    def test_missing_field_degrades_metric(self, evaluator):
        response = {"routedTo": "billing", "response": "We will refund you."}
        result = evaluator.evaluate_response(_case(BILLING_QUERY), response, _config())

        accuracy = result.scores[0]
        assert accuracy.score == 0.0
        assert "malformed" in accuracy.rationale
        assert result.passed is False

    def test_non_mapping_response_scores_zero(self, evaluator):
        result = evaluator.evaluate_response(_case(BILLING_QUERY), "billing", _config())

        assert len(result.scores) == 5
        assert all(s.score == 0.0 for s in result.scores)
        assert all("not a structured object" in s.rationale for s in result.scores)
        assert result.overall_score == 0.0
        assert result.passed is False

    def test_metric_without_heuristic_is_skipped(self, evaluator):
        result = evaluator.evaluate_response(_case(BILLING_QUERY), GOOD_RESPONSE, _config("classification_accuracy", "tone"))
        assert [s.metric for s in result.scores] == [
            "classification_accuracy", "confidence_alignment", "fallback_handling",
        ]

    def test_config_weight_overrides_default(self, evaluator):
        config = EvaluationConfig(
            pattern="routing",
            metrics=[{"name": "classification_accuracy", "weight": 3.0}],
        )
        result = evaluator.evaluate_response(_case(BILLING_QUERY), GOOD_RESPONSE, config)
        assert result.scores[0].weight == 3.0
        assert result.scores[1].weight == 0.8

    def test_wrong_config_pattern(self, evaluator):
        config = EvaluationConfig(pattern="parallel-processing", metrics=["accuracy"])
        with pytest.raises(InputValidationError, match="config pattern"):
            evaluator.evaluate_response(_case(BILLING_QUERY), GOOD_RESPONSE, config)

    def test_missing_config(self, evaluator):
        with pytest.raises(InputValidationError):
            evaluator.evaluate_response(_case(BILLING_QUERY), GOOD_RESPONSE, None)


class _FlakyJudgeClient(RetryMixin, JudgeClient):
    """Judge client whose every call fails with a retryable error"""

    model_name = "gpt-4o"

    def __init__(self):
        self.max_retries = 3
        self.attempts = 0
        self.temperatures = []

    def generate(self, prompt, options=None):
        def _call():
            self.attempts += 1
            self.temperatures.append(call_temperature(0.0, options))
            raise ConnectionError("judge unavailable")
        return self._with_retry(_call, retryable_exceptions=(ConnectionError,), options=options)


class TestJudgeMode:
    def test_every_metric_is_judged(self):
        judge = MagicMock()
        judge.model_name = "gpt-4o"
        judge.evaluate.return_value = (
            ScoringResult(0.9, "judged"),
            ModelResponse(output="{}", latency_ms=5, model_name="gpt-4o", input_tokens=10, output_tokens=3),
        )
        evaluator = RoutingEvaluator(judge=judge, clock=lambda: FIXED_NOW)

        config = _config(scoring_mode="judge", judge_model="gpt-4o", temperature=0.4, max_retries=1)
        result = evaluator.evaluate_response(_case(BILLING_QUERY), GOOD_RESPONSE, config)

        assert judge.evaluate.call_count == 5
        assert result.api_calls == 5
        assert result.input_tokens == 50
        assert result.output_tokens == 15
        assert result.judge_model == "gpt-4o"
        assert all(s.score == pytest.approx(0.9) for s in result.scores)
        options = judge.evaluate.call_args.kwargs["options"]
        assert (options.temperature, options.max_retries) == (0.4, 1)

    def test_judge_must_match_configured_model(self):
        judge = MagicMock()
        judge.model_name = "claude-3-5-sonnet-20241022"
        evaluator = RoutingEvaluator(judge=judge, clock=lambda: FIXED_NOW)

        with pytest.raises(InputValidationError, match="config judge_model is gpt-4o"):
            evaluator.evaluate_response(
                _case(BILLING_QUERY), GOOD_RESPONSE, _config(scoring_mode="judge", judge_model="gpt-4o"),
            )
        judge.evaluate.assert_not_called()

    def test_zero_retries_makes_a_single_judge_attempt(self):
        client = _FlakyJudgeClient()
        evaluator = RoutingEvaluator(judge=LLMJudgeScorer(client, model_name="gpt-4o"), clock=lambda: FIXED_NOW)
        config = _config(scoring_mode="judge", judge_model="gpt-4o", max_retries=0, temperature=0.9)

        with pytest.raises(JudgeInvocationError, match="judge unavailable"):
            evaluator.evaluate_response(_case(BILLING_QUERY), GOOD_RESPONSE, config)

        assert client.attempts == 1
        assert client.temperatures == [0.9]

    @patch("agent_pattern_eval.infrastructure.judge_clients.base.time.sleep")
    def test_config_retries_bound_judge_attempts(self, mock_sleep):
        client = _FlakyJudgeClient()
        evaluator = RoutingEvaluator(judge=LLMJudgeScorer(client, model_name="gpt-4o"), clock=lambda: FIXED_NOW)
        config = _config(scoring_mode="judge", judge_model="gpt-4o", max_retries=2)

        with pytest.raises(JudgeInvocationError):
            evaluator.evaluate_response(_case(BILLING_QUERY), GOOD_RESPONSE, config)

        assert client.attempts == 3
        assert mock_sleep.call_count == 2

    def test_classification_prompt(self, evaluator):
        prompt = evaluator.evaluation_prompt("classification_accuracy", _case(BILLING_QUERY), GOOD_RESPONSE)
        assert f"Customer Query: {BILLING_QUERY}" in prompt
        assert "Expected Department: billing" in prompt
        assert "Reasoning: The customer reports" in prompt

    def test_unknown_metric_uses_generic_prompt(self, evaluator):
        prompt = evaluator.evaluation_prompt("tone", _case(BILLING_QUERY), GOOD_RESPONSE)
        assert "Evaluate the tone of this Routing agent response" in prompt


# =============================================================================
# heuristics
# =============================================================================


class TestFallbackHandling:
    def test_overconfident_on_ambiguous_query(self, evaluator):
        case = _case("I have a question about your product", "general")
        response = {"routedTo": "technical", "confidence": 0.95, "response": "Let me fix that."}
        assert evaluator.fallback_handling(case, response).score == pytest.approx(0.3)

    def test_general_with_clarification(self, evaluator):
        case = _case("I have a question about your product", "general")
        response = {"routedTo": "general", "confidence": 0.5, "response": "Could you clarify what you need?"}
        assert evaluator.fallback_handling(case, response).score == pytest.approx(1.0)


def test_is_ambiguous_query():
    assert is_ambiguous_query("I have a question about your product")
    assert is_ambiguous_query("Hello there")
    assert not is_ambiguous_query("How do I fix the billing error")
    assert not is_ambiguous_query("My invoice total looks wrong")


# =============================================================================
# generate_test_cases
# =============================================================================


class TestGenerateTestCases:
    def test_count_and_cycling(self, evaluator):
        cases = evaluator.generate_test_cases(8)
        assert len(cases) == 8
        assert cases[6].metadata.category == cases[0].metadata.category == "technical_clear"
        assert cases[0].metadata.expected_department == "technical"
        assert all(c.pattern == AgentPattern.ROUTING for c in cases)

    def test_deterministic_ids(self, evaluator):
        case = evaluator.generate_test_cases(1)[0]
        assert case.id == "routing-1767225600000-abc123def"
        assert case.metadata.created_at == FIXED_NOW.isoformat()

    def test_complexity_selects_scenarios(self, evaluator):
        assert len(evaluator.generate_test_cases(4, Complexity.SIMPLE)) == 4
        simple = {c.metadata.category for c in evaluator.generate_test_cases(10, "simple")}
        assert simple == {"technical_clear", "billing_clear", "complaint_clear", "general_ambiguous"}
        complex_cases = evaluator.generate_test_cases(8, Complexity.COMPLEX)
        assert complex_cases[-1].metadata.category == "urgent_ambiguous"
        assert all(c.metadata.complexity == Complexity.COMPLEX for c in complex_cases)

    def test_zero_count(self, evaluator):
        assert evaluator.generate_test_cases(0) == []

    def test_negative_count(self, evaluator):
        with pytest.raises(InputValidationError):
            evaluator.generate_test_cases(-1)
