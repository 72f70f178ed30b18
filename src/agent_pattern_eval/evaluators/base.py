"""
Pattern evaluator capability set and shared helpers

Every agent pattern has one concrete evaluator class. The classes do not
inherit from each other; the behavior they share lives in the plain functions
below, which each evaluator calls.
"""

from __future__ import annotations

import json
import logging
import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Mapping, Protocol, Sequence

from agent_pattern_eval.domain.entities import EvaluationResult, TestCase, TestCaseMetadata
from agent_pattern_eval.domain.enums import AgentPattern, Complexity, ScoringMode
from agent_pattern_eval.domain.errors import InputValidationError
from agent_pattern_eval.domain.value_objects import (
    EvaluationConfig,
    EvaluationMetric,
    MetricScore,
    ScoringResult,
    coerce_enum,
)
from agent_pattern_eval.scoring.aggregator import build_result
from agent_pattern_eval.scoring.llm_judge import LLMJudgeScorer
from agent_pattern_eval.scoring.scorer import score_metric

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
IdGenerator = Callable[[], str]

# Scorer signature: (test_case, response) -> ScoringResult
HeuristicScorer = Callable[[TestCase, Mapping[str, Any]], ScoringResult]

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"

# Errors a heuristic raises when a response field is missing or has the wrong shape
_SHAPE_ERRORS = (KeyError, TypeError, ValueError, AttributeError, IndexError, ZeroDivisionError)


class PatternEvaluator(Protocol):
    """Capabilities every pattern evaluator provides"""

    pattern: AgentPattern

    def generate_test_cases(self, count: int, complexity: Complexity = Complexity.MODERATE) -> list[TestCase]:
        ...

    def evaluate_response(self, test_case: TestCase, response: Any, config: EvaluationConfig) -> EvaluationResult:
        ...

    def evaluation_prompt(self, metric: str, test_case: TestCase, response: Any) -> str:
        ...

    def validate_metrics(self, scores: Sequence[MetricScore]) -> bool:
        ...


@dataclass(frozen=True)
class MetricSpec:
    """A metric an evaluator knows how to score heuristically"""
    name: str
    weight: float
    scorer: HeuristicScorer
    always_on: bool = False


@dataclass
class MetricRun:
    """Metric scores of one response plus the judge usage spent producing them"""
    scores: list[MetricScore] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0
    api_calls: int = 0


def random_token(length: int = 9) -> str:
    """Random base36 token used as the unique part of a test case id"""
    return "".join(secrets.choice(_BASE36) for _ in range(length))


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def new_test_case(
    pattern: AgentPattern,
    input: dict[str, Any],
    expected_behavior: Sequence[str],
    *,
    clock: Clock,
    id_generator: IdGenerator,
    complexity: Complexity,
    **metadata: Any,
) -> TestCase:
    """
    Build a test case with id "{pattern}-{millis}-{token}"

    Args:
        pattern: Owning pattern
        input: Scenario input
        expected_behavior: Behaviors the agent should exhibit
        clock: Source of the creation time
        id_generator: Source of the unique token
        complexity: Requested complexity
        **metadata: Known metadata fields or pattern-specific extensions
    """
    now = clock()
    millis = int(now.timestamp() * 1000)
    return TestCase(
        id=f"{pattern.value}-{millis}-{id_generator()}",
        pattern=pattern,
        input=input,
        expected_behavior=tuple(expected_behavior),
        metadata=TestCaseMetadata.from_dict({
            "created_at": now.isoformat(),
            "complexity": complexity,
            **metadata,
        }),
    )


def cycle_scenarios(
    pattern: AgentPattern,
    scenarios: Sequence[Mapping[str, Any]],
    count: int,
    complexity: Complexity | str,
    *,
    clock: Clock,
    id_generator: IdGenerator,
    metadata_keys: Sequence[str] = (),
) -> list[TestCase]:
    """
    Generate count test cases by cycling through a scenario library

    Each scenario is a mapping with "category", "input", "expected_behavior"
    and optionally the metadata fields named in metadata_keys.
    """
    if count < 0:
        raise InputValidationError(f"count must be non-negative, got {count}")
    complexity = coerce_enum(Complexity, complexity, "complexity")
    cases = []
    for i in range(count):
        scenario = scenarios[i % len(scenarios)]
        extra = {k: scenario[k] for k in metadata_keys if k in scenario}
        cases.append(new_test_case(
            pattern,
            dict(scenario["input"]),
            scenario["expected_behavior"],
            clock=clock,
            id_generator=id_generator,
            complexity=complexity,
            category=scenario["category"],
            **extra,
        ))
    return cases


def check_inputs(
    pattern: AgentPattern,
    test_case: TestCase,
    config: EvaluationConfig | None,
    judge: LLMJudgeScorer | None = None,
) -> None:
    """
    Reject configs and test cases that do not belong to this evaluator

    In JUDGE mode the judge must be the model the config names.
    """
    if config is None:
        raise InputValidationError("config must be an EvaluationConfig, got None")
    if config.pattern != pattern:
        raise InputValidationError(
            f"config pattern must be {pattern.value}, got {config.pattern.value}"
        )
    if not config.metrics:
        raise InputValidationError("config metrics must not be empty")
    if test_case.pattern != pattern:
        raise InputValidationError(
            f"test case pattern must be {pattern.value}, got {test_case.pattern.value}"
        )
    judged = config.scoring_mode == ScoringMode.JUDGE and judge is not None
    if judged and judge.model_name != config.judge_model.value:
        raise InputValidationError(
            f"config judge_model is {config.judge_model.value} but the judge is {judge.model_name}"
        )


def score_metrics(
    specs: Mapping[str, MetricSpec],
    test_case: TestCase,
    response: Any,
    config: EvaluationConfig,
    *,
    judge: LLMJudgeScorer | None,
    prompt_builder: Callable[[str, TestCase, Any], str],
) -> MetricRun:
    """
    Score the configured metrics followed by the always-on ones

    Configured metrics keep config order. A metric the evaluator has no
    heuristic for is judged in JUDGE mode and skipped otherwise. A response
    that is not a mapping, or lacks a field a heuristic needs, degrades that
    metric to 0.0 instead of failing the evaluation.
    """
    run = MetricRun()
    planned: list[tuple[EvaluationMetric, MetricSpec | None]] = []
    for metric in config.metrics:
        spec = specs.get(metric.name)
        if spec is None and config.scoring_mode != ScoringMode.JUDGE:
            logger.warning("No heuristic for metric '%s' (%s); skipped", metric.name, config.pattern.value)
            continue
        planned.append((metric, spec))
    for spec in specs.values():
        if spec.always_on and config.metric(spec.name) is None:
            planned.append((EvaluationMetric(name=spec.name), spec))

    mapping_ok = isinstance(response, Mapping)
    for metric, spec in planned:
        weight = metric.weight if metric.weight is not None else (spec.weight if spec else 1.0)
        if not mapping_ok:
            run.scores.append(MetricScore(
                metric=metric.name,
                score=0.0,
                weight=weight,
                rationale=f"Response is not a structured object (got {type(response).__name__}).",
            ))
            continue

        heuristic = None
        if spec is not None:
            heuristic = _guarded(spec, test_case, response)
        prompt = None
        if config.scoring_mode == ScoringMode.JUDGE:
            try:
                prompt = prompt_builder(metric.name, test_case, response)
            except _SHAPE_ERRORS as e:
                logger.warning("Cannot build judge prompt for '%s': %r", metric.name, e)
                run.scores.append(MetricScore(
                    metric=metric.name, score=0.0, weight=weight,
                    rationale=f"Response is missing data needed to judge {metric.name}: {e!r}",
                ))
                continue

        result, judge_response = score_metric(
            metric, config.scoring_mode, heuristic=heuristic, prompt=prompt, judge=judge,
            options=config.judge_options(),
        )
        if judge_response is not None:
            run.api_calls += 1
            run.input_tokens += judge_response.input_tokens
            run.output_tokens += judge_response.output_tokens
        run.scores.append(MetricScore(
            metric=metric.name,
            score=clamp(result.score),
            weight=weight,
            rationale=result.reason or f"{metric.name} scored {result.score:.2f}.",
        ))
    return run


def _guarded(spec: MetricSpec, test_case: TestCase, response: Mapping[str, Any]) -> Callable[[], ScoringResult]:
    def run() -> ScoringResult:
        try:
            result = spec.scorer(test_case, response)
        except _SHAPE_ERRORS as e:
            logger.warning("Malformed response for metric '%s': %r", spec.name, e)
            return ScoringResult(
                score=0.0,
                reason=f"Response is missing or has malformed fields for {spec.name}: {e!r}",
            )
        return ScoringResult(score=clamp(result.score), reason=result.reason)
    return run


def evaluate_with(
    pattern: AgentPattern,
    specs: Mapping[str, MetricSpec],
    test_case: TestCase,
    response: Any,
    config: EvaluationConfig,
    *,
    judge: LLMJudgeScorer | None,
    clock: Clock,
    prompt_builder: Callable[[str, TestCase, Any], str],
    feedback_builder: Callable[[Sequence[MetricScore], Mapping[str, Any], TestCase], str],
) -> EvaluationResult:
    """
    Full evaluate_response flow shared by the pattern evaluators

    Validates inputs, scores metrics, builds feedback and aggregates the
    result through the MetricAggregator.
    """
    check_inputs(pattern, test_case, config, judge)
    start = time.perf_counter()
    run = score_metrics(specs, test_case, response, config, judge=judge, prompt_builder=prompt_builder)
    safe_response = response if isinstance(response, Mapping) else {}
    try:
        feedback = feedback_builder(run.scores, safe_response, test_case)
    except _SHAPE_ERRORS as e:
        logger.warning("Could not build feedback for %s: %r", test_case.id, e)
        feedback = feedback_tier(run.scores, (0.85, "Strong response."), (0.7, "Acceptable response."),
                                 "Response needs improvement.")
    elapsed_ms = int((time.perf_counter() - start) * 1000)
    judged = config.scoring_mode == ScoringMode.JUDGE and judge is not None
    return build_result(
        test_case.id,
        pattern,
        run.scores,
        config.threshold(),
        timestamp=clock().isoformat(),
        execution_time_ms=elapsed_ms,
        feedback=feedback,
        judge_model=config.judge_model.value if judged else None,
        input_tokens=run.input_tokens,
        output_tokens=run.output_tokens,
        api_calls=run.api_calls,
    )


def validate_metric_scores(scores: Sequence[MetricScore]) -> bool:
    """Every score within [0, 1] with a non-empty rationale"""
    return all(0.0 <= s.score <= 1.0 and bool(s.rationale) for s in scores)


def mean_score(scores: Sequence[MetricScore]) -> float:
    if not scores:
        return 0.0
    return sum(s.score for s in scores) / len(scores)


def feedback_tier(
    scores: Sequence[MetricScore],
    excellent: tuple[float, str],
    good: tuple[float, str],
    poor: str,
) -> str:
    """Headline feedback picked by the unweighted mean metric score"""
    avg = mean_score(scores)
    if avg >= excellent[0]:
        return excellent[1]
    if avg >= good[0]:
        return good[1]
    return poor


def low_score_notes(scores: Sequence[MetricScore], below: float = 0.6) -> list[str]:
    """"metric: rationale" for every metric scoring under the given bound"""
    return [f"{s.metric}: {s.rationale}" for s in scores if s.score < below]


def find_score(scores: Sequence[MetricScore], metric: str) -> MetricScore | None:
    for s in scores:
        if s.metric == metric:
            return s
    return None


def generic_prompt(metric: str, test_case: TestCase, response: Any) -> str:
    """Rubric prompt for metrics without a dedicated template"""
    return (
        f"Evaluate the {metric.replace('_', ' ')} of this {test_case.pattern.display_name} agent response:\n\n"
        f"Input:\n{_dump(test_case.input)}\n\n"
        f"Response:\n{_dump(response)}\n\n"
        "Evaluation Criteria:\n"
        f"1. How well the response satisfies {metric.replace('_', ' ')}\n"
        "2. Consistency with the input and expected behavior\n"
        "3. Completeness\n"
        "4. Correctness\n"
        "5. Clarity\n\n"
        "Provide a score from 0-1 and detailed rationale."
    )


def _dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, indent=2, default=str)
