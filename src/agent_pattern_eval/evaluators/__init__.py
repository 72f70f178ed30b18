"""
Evaluators sub-package

One evaluator per agent pattern plus the registry that dispatches to them.
"""

from agent_pattern_eval.evaluators.base import MetricSpec, PatternEvaluator, random_token
from agent_pattern_eval.evaluators.evaluator_optimizer import EvaluatorOptimizerEvaluator
from agent_pattern_eval.evaluators.multi_step_tool_usage import MultiStepToolUsageEvaluator
from agent_pattern_eval.evaluators.orchestrator_worker import OrchestratorWorkerEvaluator
from agent_pattern_eval.evaluators.parallel_processing import ParallelProcessingEvaluator
from agent_pattern_eval.evaluators.routing import RoutingEvaluator
from agent_pattern_eval.evaluators.sequential_processing import SequentialProcessingEvaluator
from agent_pattern_eval.evaluators.registry import EvaluatorRegistry, default_registry

__all__ = [
    # capability set
    "MetricSpec",
    "PatternEvaluator",
    "random_token",
    # pattern evaluators
    "EvaluatorOptimizerEvaluator",
    "MultiStepToolUsageEvaluator",
    "OrchestratorWorkerEvaluator",
    "ParallelProcessingEvaluator",
    "RoutingEvaluator",
    "SequentialProcessingEvaluator",
    # registry
    "EvaluatorRegistry",
    "default_registry",
]
