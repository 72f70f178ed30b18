"""Tests for domain entities"""

import pytest

from agent_pattern_eval.domain.entities import (
    CalibrationResult,
    EvaluationResult,
    GoldSample,
    HumanScore,
    TestCase,
    TestCaseMetadata,
)
from agent_pattern_eval.domain.enums import AgentPattern, Complexity
from agent_pattern_eval.domain.errors import InputValidationError
from agent_pattern_eval.domain.value_objects import MetricScore


def _human(evaluator_id, overall, **extra):
    return HumanScore(
        evaluator_id=evaluator_id,
        timestamp="2026-01-01T00:00:00+00:00",
        scores={"overall": overall, **extra},
    )


class TestTestCaseMetadata:
    def test_unknown_keys_go_to_extensions(self):
        metadata = TestCaseMetadata.from_dict({"difficulty": "hard", "max_steps": 4})
        assert metadata.difficulty == "hard"
        assert metadata.extensions == {"max_steps": 4}

    def test_complexity_coerced(self):
        assert TestCaseMetadata.from_dict({"complexity": "complex"}).complexity == Complexity.COMPLEX

    def test_invalid_difficulty(self):
        with pytest.raises(InputValidationError, match="difficulty"):
            TestCaseMetadata(difficulty="extreme")

    def test_invalid_complexity(self):
        with pytest.raises(InputValidationError, match="complexity"):
            TestCaseMetadata(complexity="trivial")

    def test_tags_must_be_sequence(self):
        with pytest.raises(InputValidationError):
            TestCaseMetadata(tags="routing")

    def test_to_dict_omits_empty_fields(self):
        out = TestCaseMetadata(category="billing", tags=["a"]).to_dict()
        assert out == {"complexity": "moderate", "category": "billing", "tags": ["a"]}


class TestTestCase:
    def test_from_dict_round_trip(self):
        data = {
            "id": "routing-1-abc",
            "pattern": "routing",
            "input": {"query": "Where is my refund?"},
            "expected_output": {"department": "billing"},
            "expected_behavior": ["route to billing"],
            "metadata": {"expected_department": "billing", "channel": "email"},
            "priority": 2,
        }
        case = TestCase.from_dict(data)
        assert case.pattern == AgentPattern.ROUTING
        assert case.metadata.expected_department == "billing"
        assert case.metadata.extensions == {"channel": "email"}
        assert TestCase.from_dict(case.to_dict()) == case

    def test_dict_metadata_is_converted(self):
        case = TestCase(id="t", pattern="routing", input={}, metadata={"category": "x"})
        assert isinstance(case.metadata, TestCaseMetadata)

    def test_empty_id_rejected(self):
        with pytest.raises(InputValidationError, match="id"):
            TestCase(id="", pattern="routing", input={})

    def test_non_mapping_input_rejected(self):
        with pytest.raises(InputValidationError, match="input must be a mapping"):
            TestCase(id="t", pattern="routing", input="query")

    def test_unknown_pattern_rejected(self):
        with pytest.raises(InputValidationError, match="pattern"):
            TestCase(id="t", pattern="swarm", input={})


class TestEvaluationResult:
    def _result(self, **overrides):
        kwargs = dict(
            test_case_id="routing-1-abc",
            pattern=AgentPattern.ROUTING,
            scores=(MetricScore("accuracy", 1.0, "correct", weight=2.0), MetricScore("tone", 0.5, "flat")),
            overall_score=0.8333,
            passed=True,
            timestamp="2026-01-01T00:00:00+00:00",
        )
        kwargs.update(overrides)
        return EvaluationResult(**kwargs)

    def test_defaults(self):
        result = self._result()
        assert result.input_tokens == 0
        assert result.api_calls == 0
        assert result.error is None

    def test_score_map(self):
        assert self._result().score_map() == {"accuracy": 1.0, "tone": 0.5}

    def test_dict_round_trip(self):
        result = self._result(judge_model="gpt-4o", input_tokens=10, output_tokens=4, api_calls=2)
        restored = EvaluationResult.from_dict(result.to_dict())
        assert restored == result
        assert result.to_dict()["pattern"] == "routing"

    def test_overall_out_of_range(self):
        with pytest.raises(InputValidationError):
            self._result(overall_score=1.2)

    def test_negative_execution_time(self):
        with pytest.raises(InputValidationError):
            self._result(execution_time_ms=-1)


class TestMetricScore:
    def test_score_out_of_range(self):
        with pytest.raises(InputValidationError, match="within"):
            MetricScore("accuracy", 1.5, "")

    def test_negative_weight(self):
        with pytest.raises(InputValidationError, match="weight"):
            MetricScore("accuracy", 0.5, "", weight=-1.0)


class TestGoldSample:
    def _sample(self, **overrides):
        kwargs = dict(
            id="gold-1",
            pattern="routing",
            version="1.0.0",
            created_at="2026-01-01T00:00:00+00:00",
            input={"content": "Where is my refund?"},
            human_scores=[_human("r1", 0.8), _human("r2", 0.6)],
        )
        kwargs.update(overrides)
        return GoldSample(**kwargs)

    def test_mean_human_score(self):
        assert self._sample().mean_human_score() == pytest.approx(0.7)

    def test_mean_without_scores_raises(self):
        with pytest.raises(InputValidationError, match="no human scores"):
            self._sample(human_scores=[]).mean_human_score()

    def test_invalid_complexity(self):
        with pytest.raises(InputValidationError, match="complexity"):
            self._sample(complexity="extreme")

    def test_human_scores_become_tuple(self):
        assert isinstance(self._sample().human_scores, tuple)


class TestHumanScore:
    def test_overall_required(self):
        with pytest.raises(InputValidationError, match="overall"):
            HumanScore(evaluator_id="r1", timestamp="ts", scores={"accuracy": 0.5})

    def test_score_range_checked(self):
        with pytest.raises(InputValidationError):
            _human("r1", 0.5, accuracy=1.5)

    def test_overall_property(self):
        assert _human("r1", 0.4).overall == 0.4


class TestCalibrationResult:
    def test_dict_round_trip(self):
        result = CalibrationResult(
            timestamp="2026-01-01T00:00:00+00:00",
            pattern=AgentPattern.ROUTING,
            weights={"accuracy": 0.6, "relevance": 0.4},
            spearman_correlation=0.82,
            krippendorff_alpha=0.74,
            confidence_interval=(0.7, 0.9),
            validation_metrics={"mse": 0.01, "mae": 0.08, "bias": -0.02},
            sample_count=40,
            version="1.0.0",
        )
        data = result.to_dict()
        assert data["confidence_interval"] == {"lower": 0.7, "upper": 0.9}
        assert CalibrationResult.from_dict(data) == result
