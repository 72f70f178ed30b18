"""
評価パイプラインのテスト

EvaluationPipeline が記録済みレスポンスを正しい評価器に渡すこと、
タイムアウト、キャンセル、設定の既定値をテストする。
"""

import threading
import time
from unittest.mock import MagicMock

import pytest

from agent_pattern_eval.domain.batch import TestSuite
from agent_pattern_eval.domain.entities import TestCase
from agent_pattern_eval.domain.enums import AgentPattern, ScoringMode
from agent_pattern_eval.domain.errors import (
    BatchAbortedError,
    EvaluationError,
    EvaluationTimeoutError,
    UnknownPatternError,
)
from agent_pattern_eval.domain.value_objects import EvaluationConfig
from agent_pattern_eval.evaluators.registry import EvaluatorRegistry, default_registry
from agent_pattern_eval.evaluators.routing import RoutingEvaluator
from agent_pattern_eval.orchestration.work_queue import WorkItem
from agent_pattern_eval.use_cases.evaluation import EvaluationPipeline, default_config, evaluate_with_timeout

CASE = TestCase(
    id="routing-1-x",
    pattern=AgentPattern.ROUTING,
    input={"query": "I was charged twice for my subscription this month"},
    metadata={"expected_department": "billing"},
)

RESPONSE = {
    "classification": "billing",
    "confidence": 0.9,
    "routedTo": "billing",
    "response": "You were charged twice for your subscription this month. A refund is on its way.",
    "reasoning": "Duplicate subscription charge.",
}


def _item(responses=None, test_case=CASE):
    suite = TestSuite(
        suite_id="routing-suite",
        pattern=test_case.pattern,
        test_cases=[test_case],
        responses={CASE.id: RESPONSE} if responses is None else responses,
    )
    return WorkItem(pattern=test_case.pattern, test_case=test_case, suite=suite, submission_index=0)


@pytest.fixture
def pipeline():
    return EvaluationPipeline(default_registry())


class TestDefaultConfig:
    def test_lists_configurable_metrics_only(self):
        config = default_config(RoutingEvaluator())
        assert config.pattern == AgentPattern.ROUTING
        assert config.metric_names() == [
            "classification_accuracy", "routing_appropriateness", "response_relevance",
        ]
        assert config.scoring_mode == ScoringMode.HEURISTIC

    def test_overrides(self):
        config = default_config(RoutingEvaluator(), ScoringMode.JUDGE, timeout_ms=5000)
        assert config.scoring_mode == ScoringMode.JUDGE
        assert config.timeout_ms == 5000


class TestEvaluationPipeline:
    def test_evaluates_recorded_response(self, pipeline):
        result = pipeline(_item(), threading.Event())

        expected = RoutingEvaluator().evaluate_response(CASE, RESPONSE, pipeline.config_for(AgentPattern.ROUTING))
        assert result.test_case_id == CASE.id
        assert result.overall_score == pytest.approx(expected.overall_score)
        assert result.passed is expected.passed

    def test_uses_configured_config(self):
        config = EvaluationConfig(pattern="routing", metrics=["classification_accuracy"], passing_threshold=1.0)
        pipeline = EvaluationPipeline(default_registry(), configs={"routing": config})
        assert pipeline.config_for(AgentPattern.ROUTING) is config

    def test_cancelled_token(self, pipeline):
        token = threading.Event()
        token.set()
        with pytest.raises(BatchAbortedError):
            pipeline(_item(), token)

    def test_missing_response(self, pipeline):
        with pytest.raises(EvaluationError, match="No recorded response"):
            pipeline(_item(responses={}), threading.Event())

    def test_unregistered_pattern(self):
        pipeline = EvaluationPipeline(EvaluatorRegistry())
        with pytest.raises(UnknownPatternError):
            pipeline(_item(), threading.Event())


class TestEvaluateWithTimeout:
    def test_timeout(self):
        release = threading.Event()
        evaluator = MagicMock()
        evaluator.evaluate_response.side_effect = lambda *args: release.wait(5)
        config = EvaluationConfig(pattern="routing", metrics=["classification_accuracy"], timeout_ms=50)

        started = time.monotonic()
        with pytest.raises(EvaluationTimeoutError, match="exceeded 50ms"):
            evaluate_with_timeout(evaluator, CASE, RESPONSE, config)
        release.set()
        assert time.monotonic() - started < 2

    def test_returns_result(self):
        evaluator = MagicMock()
        evaluator.evaluate_response.return_value = "result"
        config = EvaluationConfig(pattern="routing", metrics=["classification_accuracy"])
        assert evaluate_with_timeout(evaluator, CASE, RESPONSE, config) == "result"
        evaluator.evaluate_response.assert_called_once_with(CASE, RESPONSE, config)
