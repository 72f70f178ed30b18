"""
Domain Entities

Defines the primary data structures used in the evaluation process:
test cases, evaluation results, and the gold samples used for calibration.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any

from agent_pattern_eval.domain.enums import AgentPattern, Complexity
from agent_pattern_eval.domain.errors import InputValidationError
from agent_pattern_eval.domain.value_objects import MetricScore, coerce_enum

_DIFFICULTIES = ("easy", "medium", "hard")
_GOLD_COMPLEXITIES = ("low", "medium", "high")


@dataclass(frozen=True)
class TestCaseMetadata:
    """
    Structured test case metadata

    Known fields are validated strictly. Pattern-specific keys that have no
    dedicated field are carried through untouched in ``extensions``.
    """
    created_at: str | None = None
    complexity: Complexity = Complexity.MODERATE
    difficulty: str | None = None
    category: str | None = None
    tags: tuple[str, ...] = ()
    expected_department: str | None = None
    expected_answer: float | str | None = None
    expected_task_count: int | None = None
    expected_issues: tuple[str, ...] = ()
    extensions: dict[str, Any] = field(default_factory=dict)

    __test__ = False

    def __post_init__(self):
        object.__setattr__(self, "complexity", coerce_enum(Complexity, self.complexity, "complexity"))
        if self.difficulty is not None and self.difficulty not in _DIFFICULTIES:
            raise InputValidationError(f"difficulty must be one of {list(_DIFFICULTIES)}, got {self.difficulty!r}")
        if self.expected_task_count is not None and self.expected_task_count < 0:
            raise InputValidationError("expected_task_count must be non-negative")
        if isinstance(self.tags, str) or isinstance(self.expected_issues, str):
            raise InputValidationError("tags and expected_issues must be sequences of strings")
        object.__setattr__(self, "tags", tuple(self.tags))
        object.__setattr__(self, "expected_issues", tuple(self.expected_issues))

    @classmethod
    def from_dict(cls, data: dict | None) -> "TestCaseMetadata":
        """Build from a free-form mapping; unknown keys go to extensions"""
        data = dict(data or {})
        known = {f.name for f in fields(cls)} - {"extensions"}
        kwargs = {k: data.pop(k) for k in list(data) if k in known}
        extensions = dict(data.pop("extensions", {}) or {})
        extensions.update(data)
        return cls(**kwargs, extensions=extensions)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"complexity": self.complexity.value}
        for name in ("created_at", "difficulty", "category", "expected_department",
                     "expected_answer", "expected_task_count"):
            value = getattr(self, name)
            if value is not None:
                out[name] = value
        if self.tags:
            out["tags"] = list(self.tags)
        if self.expected_issues:
            out["expected_issues"] = list(self.expected_issues)
        if self.extensions:
            out["extensions"] = dict(self.extensions)
        return out


@dataclass(frozen=True)
class TestCase:
    """A single scenario presented to an agent pattern"""
    id: str
    pattern: AgentPattern
    input: dict[str, Any]
    expected_output: Any = None
    expected_behavior: tuple[str, ...] = ()
    metadata: TestCaseMetadata = field(default_factory=TestCaseMetadata)
    priority: int = 0

    __test__ = False

    def __post_init__(self):
        if not self.id:
            raise InputValidationError("id must be a non-empty string")
        object.__setattr__(self, "pattern", coerce_enum(AgentPattern, self.pattern, "pattern"))
        if not isinstance(self.input, dict):
            raise InputValidationError(f"input must be a mapping, got {type(self.input).__name__}")
        if isinstance(self.metadata, dict):
            object.__setattr__(self, "metadata", TestCaseMetadata.from_dict(self.metadata))
        object.__setattr__(self, "expected_behavior", tuple(self.expected_behavior))

    def to_dict(self) -> dict[str, Any]:
        out = {
            "id": self.id,
            "pattern": self.pattern.value,
            "input": self.input,
            "expected_behavior": list(self.expected_behavior),
            "metadata": self.metadata.to_dict(),
            "priority": self.priority,
        }
        if self.expected_output is not None:
            out["expected_output"] = self.expected_output
        return out

    @classmethod
    def from_dict(cls, data: dict) -> "TestCase":
        return cls(
            id=data["id"],
            pattern=data["pattern"],
            input=data["input"],
            expected_output=data.get("expected_output"),
            expected_behavior=tuple(data.get("expected_behavior", ())),
            metadata=TestCaseMetadata.from_dict(data.get("metadata")),
            priority=int(data.get("priority", 0)),
        )


@dataclass(frozen=True)
class EvaluationResult:
    """
    Result of evaluating one response to one test case

    overall_score and passed are always derived from scores by the
    aggregator; use scoring.aggregator.build_result to create one.
    """
    test_case_id: str
    pattern: AgentPattern
    scores: tuple[MetricScore, ...]
    overall_score: float
    passed: bool
    timestamp: str
    execution_time_ms: int = 0
    feedback: str = ""
    error: str | None = None
    judge_model: str | None = None
    input_tokens: int = 0
    output_tokens: int = 0
    api_calls: int = 0

    def __post_init__(self):
        if not 0.0 <= self.overall_score <= 1.0:
            raise InputValidationError("overall_score must be within [0, 1]")
        if self.execution_time_ms < 0:
            raise InputValidationError("execution_time_ms must be non-negative")
        if self.input_tokens < 0 or self.output_tokens < 0:
            raise InputValidationError("token counts must be non-negative")

    def score_map(self) -> dict[str, float]:
        return {s.metric: s.score for s in self.scores}

    def to_dict(self) -> dict[str, Any]:
        return {
            "test_case_id": self.test_case_id,
            "pattern": self.pattern.value,
            "scores": [
                {
                    "metric": s.metric,
                    "score": s.score,
                    "weight": s.weight,
                    "rationale": s.rationale,
                    "details": s.details,
                }
                for s in self.scores
            ],
            "overall_score": self.overall_score,
            "passed": self.passed,
            "timestamp": self.timestamp,
            "execution_time_ms": self.execution_time_ms,
            "feedback": self.feedback,
            "error": self.error,
            "judge_model": self.judge_model,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "api_calls": self.api_calls,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EvaluationResult":
        scores = tuple(
            MetricScore(
                metric=s["metric"],
                score=float(s["score"]),
                rationale=s.get("rationale", ""),
                weight=s.get("weight"),
                details=s.get("details"),
            )
            for s in data.get("scores", [])
        )
        return cls(
            test_case_id=data["test_case_id"],
            pattern=coerce_enum(AgentPattern, data["pattern"], "pattern"),
            scores=scores,
            overall_score=float(data["overall_score"]),
            passed=bool(data["passed"]),
            timestamp=data["timestamp"],
            execution_time_ms=int(data.get("execution_time_ms", 0)),
            feedback=data.get("feedback", ""),
            error=data.get("error"),
            judge_model=data.get("judge_model"),
            input_tokens=int(data.get("input_tokens", 0)),
            output_tokens=int(data.get("output_tokens", 0)),
            api_calls=int(data.get("api_calls", 0)),
        )


@dataclass(frozen=True)
class HumanScore:
    """One human evaluator's rating of a gold sample"""
    evaluator_id: str
    timestamp: str
    scores: dict[str, float]  # dimension -> score, includes "overall"
    comments: str | None = None
    time_spent_seconds: float = 0.0

    def __post_init__(self):
        if "overall" not in self.scores:
            raise InputValidationError(f"scores must include 'overall' (evaluator {self.evaluator_id})")
        for dimension, value in self.scores.items():
            if not 0.0 <= value <= 1.0:
                raise InputValidationError(f"score for {dimension} must be within [0, 1], got {value}")
        if self.time_spent_seconds < 0:
            raise InputValidationError("time_spent_seconds must be non-negative")

    @property
    def overall(self) -> float:
        return self.scores["overall"]


@dataclass(frozen=True)
class GoldSample:
    """Reference input/output pair carrying independent human ratings"""
    id: str
    pattern: AgentPattern
    version: str
    created_at: str
    input: dict[str, Any]  # {"content": ..., "context": {...}}
    expected_output: dict[str, Any] | None = None
    human_scores: tuple[HumanScore, ...] = ()
    complexity: str = "medium"
    edge_case: bool = False
    tags: tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "pattern", coerce_enum(AgentPattern, self.pattern, "pattern"))
        if self.complexity not in _GOLD_COMPLEXITIES:
            raise InputValidationError(f"complexity must be one of {list(_GOLD_COMPLEXITIES)}, got {self.complexity!r}")
        object.__setattr__(self, "human_scores", tuple(self.human_scores))
        object.__setattr__(self, "tags", tuple(self.tags))

    def mean_human_score(self) -> float:
        """Mean of the human raters' overall scores"""
        if not self.human_scores:
            raise InputValidationError(f"gold sample {self.id} has no human scores")
        return sum(h.overall for h in self.human_scores) / len(self.human_scores)


@dataclass(frozen=True)
class CalibrationResult:
    """Outcome of one calibration run"""
    timestamp: str
    pattern: AgentPattern
    weights: dict[str, float]
    spearman_correlation: float
    krippendorff_alpha: float
    confidence_interval: tuple[float, float]
    validation_metrics: dict[str, float]  # mse, mae, bias
    sample_count: int = 0
    version: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "pattern": self.pattern.value,
            "version": self.version,
            "weights": dict(self.weights),
            "spearman_correlation": self.spearman_correlation,
            "krippendorff_alpha": self.krippendorff_alpha,
            "confidence_interval": {
                "lower": self.confidence_interval[0],
                "upper": self.confidence_interval[1],
            },
            "validation_metrics": dict(self.validation_metrics),
            "sample_count": self.sample_count,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CalibrationResult":
        interval = data.get("confidence_interval") or {}
        return cls(
            timestamp=data["timestamp"],
            pattern=coerce_enum(AgentPattern, data["pattern"], "pattern"),
            weights={k: float(v) for k, v in data["weights"].items()},
            spearman_correlation=float(data.get("spearman_correlation", 0.0)),
            krippendorff_alpha=float(data.get("krippendorff_alpha", 0.0)),
            confidence_interval=(float(interval.get("lower", 0.0)), float(interval.get("upper", 0.0))),
            validation_metrics=dict(data.get("validation_metrics") or {}),
            sample_count=int(data.get("sample_count", 0)),
            version=data.get("version"),
        )


def utc_now() -> datetime:
    """Default clock"""
    return datetime.now(timezone.utc)
