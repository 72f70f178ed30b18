"""
Domain Value Objects

Defines immutable data structures representing metric scores, metric
definitions, evaluation configuration, and judge responses.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from agent_pattern_eval.domain.constants import (
    DEFAULT_JUDGE_MODEL,
    DEFAULT_MAX_RETRIES,
    DEFAULT_PASSING_THRESHOLDS,
    DEFAULT_TEMPERATURE,
    DEFAULT_TIMEOUT_MS,
    FALLBACK_PASSING_THRESHOLD,
)
from agent_pattern_eval.domain.enums import AgentPattern, JudgeModel, ScoringMode
from agent_pattern_eval.domain.errors import InputValidationError


def coerce_enum(enum_cls, value, field_name: str):
    """Convert a raw value to an enum member, raising InputValidationError"""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = [m.value for m in enum_cls]
        raise InputValidationError(f"{field_name} must be one of {allowed}, got {value!r}")


@dataclass(frozen=True)
class ScoringResult:
    """Scoring result (score + reason)"""

    score: float
    reason: str | None = None


@dataclass(frozen=True)
class ModelResponse:
    """Judge model response"""
    output: str
    latency_ms: int
    model_name: str
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass(frozen=True)
class JudgeCallOptions:
    """Per-call judge settings; None keeps the client's own setting"""
    temperature: float | None = None
    max_retries: int | None = None  # retries after the first attempt


@dataclass(frozen=True)
class MetricScore:
    """Score for a single metric"""
    metric: str
    score: float
    rationale: str
    weight: float | None = None  # None means 1.0
    details: dict[str, Any] | None = None

    def __post_init__(self):
        if not self.metric:
            raise InputValidationError("metric must be a non-empty name")
        if not 0.0 <= self.score <= 1.0:
            raise InputValidationError(f"score must be within [0, 1], got {self.score} for {self.metric}")
        if self.weight is not None and self.weight < 0:
            raise InputValidationError(f"weight must be non-negative, got {self.weight} for {self.metric}")

    @property
    def effective_weight(self) -> float:
        return 1.0 if self.weight is None else self.weight


@dataclass(frozen=True)
class EvaluationMetric:
    """Definition of a metric that an EvaluationConfig asks for"""
    name: str
    description: str = ""
    score_range: tuple[float, float] = (0.0, 1.0)
    weight: float | None = None
    binary_check: bool = False

    def __post_init__(self):
        if not self.name:
            raise InputValidationError("name must be a non-empty metric name")
        low, high = self.score_range
        if low >= high:
            raise InputValidationError(f"score_range must satisfy min < max, got {self.score_range}")
        if self.weight is not None and self.weight < 0:
            raise InputValidationError(f"weight must be non-negative, got {self.weight} for {self.name}")

    def normalize(self, raw: float) -> float:
        """Map a raw judge score from score_range onto [0, 1]"""
        low, high = self.score_range
        value = (raw - low) / (high - low)
        value = max(0.0, min(1.0, value))
        if self.binary_check:
            return 1.0 if value >= 0.5 else 0.0
        return value

    @classmethod
    def from_dict(cls, data: dict | str) -> "EvaluationMetric":
        if isinstance(data, str):
            return cls(name=data)
        score_range = data.get("score_range", (0.0, 1.0))
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            score_range=(float(score_range[0]), float(score_range[1])),
            weight=data.get("weight"),
            binary_check=bool(data.get("binary_check", False)),
        )


@dataclass
class EvaluationConfig:
    """Configuration for evaluating responses of one pattern"""
    pattern: AgentPattern
    metrics: list[EvaluationMetric]
    judge_model: JudgeModel = DEFAULT_JUDGE_MODEL
    passing_threshold: float | None = None
    temperature: float = DEFAULT_TEMPERATURE
    max_retries: int = DEFAULT_MAX_RETRIES
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    batch_size: int | None = None
    sample_size: int | None = None
    scoring_mode: ScoringMode = ScoringMode.HEURISTIC

    def __post_init__(self):
        self.pattern = coerce_enum(AgentPattern, self.pattern, "pattern")
        self.judge_model = coerce_enum(JudgeModel, self.judge_model, "judge_model")
        self.scoring_mode = coerce_enum(ScoringMode, self.scoring_mode, "scoring_mode")
        if not self.metrics:
            raise InputValidationError("metrics must contain at least one metric")
        self.metrics = [
            m if isinstance(m, EvaluationMetric) else EvaluationMetric.from_dict(m)
            for m in self.metrics
        ]
        names = [m.name for m in self.metrics]
        if len(set(names)) != len(names):
            raise InputValidationError(f"metrics must have unique names, got {names}")
        if self.passing_threshold is not None and not 0.0 <= self.passing_threshold <= 1.0:
            raise InputValidationError("passing_threshold must be within [0, 1]")
        if self.temperature < 0:
            raise InputValidationError("temperature must be non-negative")
        if self.max_retries < 0:
            raise InputValidationError("max_retries must be non-negative")
        if self.timeout_ms <= 0:
            raise InputValidationError("timeout_ms must be positive")
        if self.batch_size is not None and self.batch_size < 1:
            raise InputValidationError("batch_size must be at least 1")
        if self.sample_size is not None and self.sample_size < 1:
            raise InputValidationError("sample_size must be at least 1")

    def judge_options(self) -> JudgeCallOptions:
        return JudgeCallOptions(temperature=self.temperature, max_retries=self.max_retries)

    def metric_names(self) -> list[str]:
        return [m.name for m in self.metrics]

    def metric(self, name: str) -> EvaluationMetric | None:
        for m in self.metrics:
            if m.name == name:
                return m
        return None

    def threshold(self) -> float:
        """Explicit passing threshold, or the pattern default"""
        if self.passing_threshold is not None:
            return self.passing_threshold
        return DEFAULT_PASSING_THRESHOLDS.get(self.pattern, FALLBACK_PASSING_THRESHOLD)

    def with_weights(self, weights: dict[str, float]) -> "EvaluationConfig":
        """Return a copy whose metric weights are replaced where given"""
        metrics = [
            replace(m, weight=weights[m.name]) if m.name in weights else m
            for m in self.metrics
        ]
        return replace(self, metrics=metrics)

    @classmethod
    def from_dict(cls, data: dict) -> "EvaluationConfig":
        known = {
            "passing_threshold", "temperature", "max_retries", "timeout_ms",
            "batch_size", "sample_size", "scoring_mode", "judge_model",
        }
        kwargs = {k: v for k, v in data.items() if k in known}
        return cls(
            pattern=data["pattern"],
            metrics=[EvaluationMetric.from_dict(m) for m in data.get("metrics", [])],
            **kwargs,
        )


@dataclass(frozen=True)
class AggregateScore:
    """Overall score and verdict derived from a set of metric scores"""
    overall_score: float
    passed: bool


@dataclass(frozen=True)
class ResourceUsage:
    """Snapshot of the resources consumed by the running process"""
    memory_mb: float
    cpu_percent: float
    elapsed_seconds: float = 0.0
