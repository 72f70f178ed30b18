"""
Evaluation Execution

Evaluates single recorded responses and provides the item runner the batch
orchestrator calls for every work item.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Any, Mapping

from agent_pattern_eval.domain.constants import DEFAULT_JUDGE_MODEL
from agent_pattern_eval.domain.entities import EvaluationResult, TestCase
from agent_pattern_eval.domain.enums import AgentPattern, JudgeModel, ScoringMode
from agent_pattern_eval.domain.errors import BatchAbortedError, EvaluationError, EvaluationTimeoutError
from agent_pattern_eval.domain.value_objects import EvaluationConfig, EvaluationMetric, coerce_enum
from agent_pattern_eval.evaluators.base import PatternEvaluator
from agent_pattern_eval.evaluators.registry import EvaluatorRegistry
from agent_pattern_eval.orchestration.work_queue import WorkItem

logger = logging.getLogger(__name__)


def default_config(
    evaluator: PatternEvaluator,
    scoring_mode: ScoringMode = ScoringMode.HEURISTIC,
    judge_model: JudgeModel = DEFAULT_JUDGE_MODEL,
    **overrides: Any,
) -> EvaluationConfig:
    """
    Config asking for every configurable metric of an evaluator

    Always-on metrics are not listed; the evaluator adds them itself.
    """
    metrics = [
        EvaluationMetric(name=spec.name, weight=spec.weight)
        for spec in evaluator.metrics.values()
        if not spec.always_on
    ]
    return EvaluationConfig(
        pattern=evaluator.pattern,
        metrics=metrics,
        judge_model=judge_model,
        scoring_mode=scoring_mode,
        **overrides,
    )


def evaluate_with_timeout(
    evaluator: PatternEvaluator,
    test_case: TestCase,
    response: Any,
    config: EvaluationConfig,
) -> EvaluationResult:
    """
    Run evaluate_response with config.timeout_ms as the deadline

    Raises:
        EvaluationTimeoutError: The deadline passed first; the evaluation
            thread is abandoned, not interrupted
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="evaluate")
    try:
        future = executor.submit(evaluator.evaluate_response, test_case, response, config)
        try:
            return future.result(timeout=config.timeout_ms / 1000)
        except FutureTimeoutError:
            raise EvaluationTimeoutError(
                f"Evaluation of {test_case.id} exceeded {config.timeout_ms}ms"
            ) from None
    finally:
        executor.shutdown(wait=False)


class EvaluationPipeline:
    """
    Evaluates one work item: looks up the recorded response, picks the
    evaluator for the item's pattern and scores under that pattern's config.

    Instances are callables with the ItemRunner signature and are safe to
    share between batch workers.

    Args:
        registry: Evaluators by pattern
        configs: Per-pattern EvaluationConfig; missing patterns use default_config
        scoring_mode: Scoring mode of the default configs
        judge_model: Judge model named in the default configs
    """

    def __init__(
        self,
        registry: EvaluatorRegistry,
        configs: Mapping[AgentPattern | str, EvaluationConfig] | None = None,
        scoring_mode: ScoringMode = ScoringMode.HEURISTIC,
        judge_model: JudgeModel = DEFAULT_JUDGE_MODEL,
    ):
        self.registry = registry
        self._configs = {
            coerce_enum(AgentPattern, p, "pattern"): c for p, c in (configs or {}).items()
        }
        self._scoring_mode = scoring_mode
        self._judge_model = judge_model
        self._lock = threading.Lock()

    def config_for(self, pattern: AgentPattern) -> EvaluationConfig:
        with self._lock:
            if pattern not in self._configs:
                self._configs[pattern] = default_config(
                    self.registry.get(pattern), self._scoring_mode, self._judge_model,
                )
            return self._configs[pattern]

    def __call__(self, item: WorkItem, cancel_token: threading.Event) -> EvaluationResult:
        """
        Raises:
            BatchAbortedError: The token was set before work started
            EvaluationError: No recorded response for the test case
            UnknownPatternError: No evaluator for the item's pattern
            EvaluationTimeoutError: The evaluation exceeded its deadline
            JudgeInvocationError: The judge call failed
        """
        if cancel_token.is_set():
            raise BatchAbortedError(f"Batch stopped before {item.test_case.id} started")

        test_case = item.test_case
        if test_case.id not in item.suite.responses:
            raise EvaluationError(f"No recorded response for {test_case.id} in suite {item.suite.suite_id}")
        response = item.suite.responses[test_case.id]

        evaluator = self.registry.get(item.pattern)
        config = self.config_for(item.pattern)
        result = evaluate_with_timeout(evaluator, test_case, response, config)
        logger.debug("Evaluated %s: %.3f (%s)", test_case.id, result.overall_score,
                     "passed" if result.passed else "not passed")
        return result
