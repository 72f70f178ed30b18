"""
Evaluator registry

Maps an AgentPattern to the evaluator instance that handles it, so callers
dispatch by pattern identifier without importing every evaluator class.
"""

from __future__ import annotations

from typing import Iterator

from agent_pattern_eval.domain.entities import utc_now
from agent_pattern_eval.domain.enums import AgentPattern
from agent_pattern_eval.domain.errors import UnknownPatternError
from agent_pattern_eval.domain.value_objects import coerce_enum
from agent_pattern_eval.evaluators.base import Clock, IdGenerator, PatternEvaluator, random_token
from agent_pattern_eval.evaluators.evaluator_optimizer import EvaluatorOptimizerEvaluator
from agent_pattern_eval.evaluators.multi_step_tool_usage import MultiStepToolUsageEvaluator
from agent_pattern_eval.evaluators.orchestrator_worker import OrchestratorWorkerEvaluator
from agent_pattern_eval.evaluators.parallel_processing import ParallelProcessingEvaluator
from agent_pattern_eval.evaluators.routing import RoutingEvaluator
from agent_pattern_eval.evaluators.sequential_processing import SequentialProcessingEvaluator
from agent_pattern_eval.scoring.llm_judge import LLMJudgeScorer

EVALUATOR_CLASSES = (
    SequentialProcessingEvaluator,
    RoutingEvaluator,
    ParallelProcessingEvaluator,
    OrchestratorWorkerEvaluator,
    EvaluatorOptimizerEvaluator,
    MultiStepToolUsageEvaluator,
)


class EvaluatorRegistry:
    """Pattern -> evaluator lookup"""

    def __init__(self) -> None:
        self._evaluators: dict[AgentPattern, PatternEvaluator] = {}

    def register(self, evaluator: PatternEvaluator) -> None:
        """Register an evaluator under its pattern, replacing any previous one"""
        self._evaluators[evaluator.pattern] = evaluator

    def get(self, pattern: AgentPattern | str) -> PatternEvaluator:
        try:
            key = coerce_enum(AgentPattern, pattern, "pattern")
        except ValueError:
            raise UnknownPatternError(f"No evaluator registered for pattern: {pattern}")
        if key not in self._evaluators:
            raise UnknownPatternError(f"No evaluator registered for pattern: {key.value}")
        return self._evaluators[key]

    def patterns(self) -> list[AgentPattern]:
        return list(self._evaluators)

    def __contains__(self, pattern: object) -> bool:
        try:
            return coerce_enum(AgentPattern, pattern, "pattern") in self._evaluators
        except ValueError:
            return False

    def __iter__(self) -> Iterator[PatternEvaluator]:
        return iter(self._evaluators.values())

    def __len__(self) -> int:
        return len(self._evaluators)


def default_registry(
    clock: Clock | None = None,
    id_generator: IdGenerator | None = None,
    judge: LLMJudgeScorer | None = None,
) -> EvaluatorRegistry:
    """Registry holding one evaluator for each of the six patterns"""
    registry = EvaluatorRegistry()
    for cls in EVALUATOR_CLASSES:
        registry.register(cls(
            judge=judge,
            clock=clock or utc_now,
            id_generator=id_generator or random_token,
        ))
    return registry
