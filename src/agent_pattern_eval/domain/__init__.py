"""
Domain Layer

Defines enums, errors, constants, entities, and value objects that form the
core of the evaluation engine. Has no dependencies on external libraries.
"""

from agent_pattern_eval.domain.batch import (
    BatchConfig,
    BatchError,
    BatchJob,
    BatchPerformance,
    BatchProgress,
    BatchResults,
    BatchSummary,
    NotificationConfig,
    PatternBatchResult,
    ResourceLimits,
    TestSuite,
    UsageTally,
)
from agent_pattern_eval.domain.constants import (
    DEFAULT_CALIBRATION_WEIGHTS,
    DEFAULT_JUDGE_MODEL,
    DEFAULT_PASSING_THRESHOLDS,
)
from agent_pattern_eval.domain.entities import (
    CalibrationResult,
    EvaluationResult,
    GoldSample,
    HumanScore,
    TestCase,
    TestCaseMetadata,
)
from agent_pattern_eval.domain.enums import (
    AgentPattern,
    BatchEvent,
    BatchJobStatus,
    Complexity,
    ErrorHandlingStrategy,
    ErrorSeverity,
    JudgeModel,
    NotificationChannel,
    PrioritizationStrategy,
    ScoringMode,
)
from agent_pattern_eval.domain.errors import (
    BatchAbortedError,
    CalibrationError,
    EvaluationError,
    EvaluationTimeoutError,
    InputValidationError,
    JudgeInvocationError,
    ResourceLimitExceededError,
    UnknownPatternError,
)
from agent_pattern_eval.domain.value_objects import (
    AggregateScore,
    EvaluationConfig,
    EvaluationMetric,
    JudgeCallOptions,
    MetricScore,
    ModelResponse,
    ResourceUsage,
    ScoringResult,
)

__all__ = [
    # batch
    "BatchConfig",
    "BatchError",
    "BatchJob",
    "BatchPerformance",
    "BatchProgress",
    "BatchResults",
    "BatchSummary",
    "NotificationConfig",
    "PatternBatchResult",
    "ResourceLimits",
    "TestSuite",
    "UsageTally",
    # constants
    "DEFAULT_CALIBRATION_WEIGHTS",
    "DEFAULT_JUDGE_MODEL",
    "DEFAULT_PASSING_THRESHOLDS",
    # entities
    "CalibrationResult",
    "EvaluationResult",
    "GoldSample",
    "HumanScore",
    "TestCase",
    "TestCaseMetadata",
    # enums
    "AgentPattern",
    "BatchEvent",
    "BatchJobStatus",
    "Complexity",
    "ErrorHandlingStrategy",
    "ErrorSeverity",
    "JudgeModel",
    "NotificationChannel",
    "PrioritizationStrategy",
    "ScoringMode",
    # errors
    "BatchAbortedError",
    "CalibrationError",
    "EvaluationError",
    "EvaluationTimeoutError",
    "InputValidationError",
    "JudgeInvocationError",
    "ResourceLimitExceededError",
    "UnknownPatternError",
    # value objects
    "AggregateScore",
    "EvaluationConfig",
    "EvaluationMetric",
    "JudgeCallOptions",
    "MetricScore",
    "ModelResponse",
    "ResourceUsage",
    "ScoringResult",
]
