"""
Batch Domain Types

Configuration, live progress, and final results of a batch evaluation job.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from agent_pattern_eval.domain.constants import DEFAULT_BATCH_MAX_RETRIES, DEFAULT_MAX_CONCURRENCY
from agent_pattern_eval.domain.entities import EvaluationResult, TestCase
from agent_pattern_eval.domain.enums import (
    AgentPattern,
    BatchJobStatus,
    ErrorHandlingStrategy,
    ErrorSeverity,
    NotificationChannel,
    PrioritizationStrategy,
)
from agent_pattern_eval.domain.errors import InputValidationError
from agent_pattern_eval.domain.value_objects import coerce_enum


@dataclass(frozen=True)
class NotificationConfig:
    """Which lifecycle events are announced, and where"""
    on_start: bool = False
    on_complete: bool = True
    on_error: bool = True
    channels: tuple[NotificationChannel, ...] = (NotificationChannel.LOG,)
    webhook_url: str | None = None
    email_recipients: tuple[str, ...] = ()
    slack_channel: str | None = None

    def __post_init__(self):
        object.__setattr__(self, "channels", tuple(
            coerce_enum(NotificationChannel, c, "channels") for c in self.channels
        ))
        object.__setattr__(self, "email_recipients", tuple(self.email_recipients))


@dataclass(frozen=True)
class ResourceLimits:
    """Per-job resource ceilings; None disables a limit"""
    max_memory_mb: float | None = None
    max_cpu_percent: float | None = None
    max_duration_minutes: float | None = None

    def __post_init__(self):
        for name in ("max_memory_mb", "max_cpu_percent", "max_duration_minutes"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise InputValidationError(f"{name} must be positive, got {value}")

    @property
    def is_unbounded(self) -> bool:
        return self.max_memory_mb is None and self.max_cpu_percent is None and self.max_duration_minutes is None


@dataclass(frozen=True)
class BatchConfig:
    """Execution policy of a batch job"""
    parallel: bool = True
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    prioritization: PrioritizationStrategy = PrioritizationStrategy.FIFO
    error_handling: ErrorHandlingStrategy = ErrorHandlingStrategy.CONTINUE
    max_retries: int = DEFAULT_BATCH_MAX_RETRIES
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    resource_limits: ResourceLimits = field(default_factory=ResourceLimits)
    progress_interval_seconds: float = 1.0

    def __post_init__(self):
        object.__setattr__(self, "prioritization",
                           coerce_enum(PrioritizationStrategy, self.prioritization, "prioritization"))
        object.__setattr__(self, "error_handling",
                           coerce_enum(ErrorHandlingStrategy, self.error_handling, "error_handling"))
        if self.max_concurrency < 1:
            raise InputValidationError(f"max_concurrency must be at least 1, got {self.max_concurrency}")
        if self.max_retries < 0:
            raise InputValidationError(f"max_retries must be non-negative, got {self.max_retries}")
        if self.progress_interval_seconds <= 0:
            raise InputValidationError("progress_interval_seconds must be positive")

    @property
    def workers(self) -> int:
        """Number of items allowed in flight at once"""
        return self.max_concurrency if self.parallel else 1

    @classmethod
    def from_dict(cls, data: dict) -> "BatchConfig":
        data = dict(data)
        if "notifications" in data:
            data["notifications"] = NotificationConfig(**data["notifications"])
        if "resource_limits" in data:
            data["resource_limits"] = ResourceLimits(**data["resource_limits"])
        return cls(**data)


@dataclass
class BatchProgress:
    """Live counters of a running job; mutated only by its orchestrator"""
    total_tests: int = 0
    completed_tests: int = 0
    failed_tests: int = 0
    skipped_tests: int = 0
    estimated_time_remaining_ms: int | None = None
    current_pattern: AgentPattern | None = None
    current_test: str | None = None

    @property
    def processed_tests(self) -> int:
        return self.completed_tests + self.failed_tests + self.skipped_tests

    @property
    def remaining_tests(self) -> int:
        return self.total_tests - self.processed_tests

    @property
    def percent_complete(self) -> float:
        if self.total_tests == 0:
            return 100.0
        return self.processed_tests / self.total_tests * 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_tests": self.total_tests,
            "completed_tests": self.completed_tests,
            "failed_tests": self.failed_tests,
            "skipped_tests": self.skipped_tests,
            "percent_complete": self.percent_complete,
            "estimated_time_remaining_ms": self.estimated_time_remaining_ms,
            "current_pattern": self.current_pattern.value if self.current_pattern else None,
            "current_test": self.current_test,
        }


@dataclass(frozen=True)
class BatchError:
    """One failure recorded during a batch run"""
    timestamp: str
    error: str
    error_type: str
    severity: ErrorSeverity = ErrorSeverity.ERROR
    pattern: AgentPattern | None = None
    test_id: str | None = None
    attempt: int = 1
    stack: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "pattern": self.pattern.value if self.pattern else None,
            "test_id": self.test_id,
            "error": self.error,
            "error_type": self.error_type,
            "severity": self.severity.value,
            "attempt": self.attempt,
            "stack": self.stack,
        }


@dataclass(frozen=True)
class BatchSummary:
    """Counts of a finished job"""
    total_tests: int = 0
    passed_tests: int = 0
    failed_tests: int = 0   # evaluated, verdict not passed
    error_tests: int = 0    # evaluation itself raised
    skipped_tests: int = 0
    success_rate: float = 0.0  # passed / total
    average_score: float = 0.0
    duration_ms: int = 0


@dataclass
class PatternBatchResult:
    """Aggregates of one pattern within a job"""
    pattern: AgentPattern
    tests_run: int = 0
    tests_passed: int = 0
    tests_failed: int = 0
    average_score: float = 0.0
    average_latency_ms: float = 0.0
    errors: list[str] = field(default_factory=list)


@dataclass
class UsageTally:
    """Total plus a per-pattern breakdown (insertion ordered)"""
    total: int = 0
    by_pattern: dict[AgentPattern, int] = field(default_factory=dict)

    def add(self, pattern: AgentPattern, amount: int) -> None:
        self.total += amount
        self.by_pattern[pattern] = self.by_pattern.get(pattern, 0) + amount

    def to_dict(self) -> dict[str, Any]:
        return {"total": self.total, "by_pattern": {p.value: n for p, n in self.by_pattern.items()}}


@dataclass
class BatchPerformance:
    start_time: str
    end_time: str
    total_duration_ms: int = 0
    average_test_duration_ms: float = 0.0
    tests_per_minute: float = 0.0
    token_usage: UsageTally = field(default_factory=UsageTally)
    api_calls: UsageTally = field(default_factory=UsageTally)


@dataclass
class BatchResults:
    """
    Final results of a batch job

    Assembled once, when the job reaches a terminal status. results is
    ordered by the queue sequence number of each item's last attempt.
    """
    results: list[EvaluationResult]
    summary: BatchSummary
    pattern_results: dict[AgentPattern, PatternBatchResult]
    errors: list[BatchError]
    performance: BatchPerformance

    def to_dict(self) -> dict[str, Any]:
        perf = self.performance
        return {
            "results": [r.to_dict() for r in self.results],
            "summary": {
                "total_tests": self.summary.total_tests,
                "passed_tests": self.summary.passed_tests,
                "failed_tests": self.summary.failed_tests,
                "error_tests": self.summary.error_tests,
                "skipped_tests": self.summary.skipped_tests,
                "success_rate": self.summary.success_rate,
                "average_score": self.summary.average_score,
                "duration_ms": self.summary.duration_ms,
            },
            "pattern_results": {
                p.value: {
                    "tests_run": r.tests_run,
                    "tests_passed": r.tests_passed,
                    "tests_failed": r.tests_failed,
                    "average_score": r.average_score,
                    "average_latency_ms": r.average_latency_ms,
                    "errors": list(r.errors),
                }
                for p, r in self.pattern_results.items()
            },
            "errors": [e.to_dict() for e in self.errors],
            "performance": {
                "start_time": perf.start_time,
                "end_time": perf.end_time,
                "total_duration_ms": perf.total_duration_ms,
                "average_test_duration_ms": perf.average_test_duration_ms,
                "tests_per_minute": perf.tests_per_minute,
                "token_usage": perf.token_usage.to_dict(),
                "api_calls": perf.api_calls.to_dict(),
            },
        }


@dataclass(frozen=True)
class TestSuite:
    """Test cases of one pattern together with the recorded agent responses"""
    suite_id: str
    pattern: AgentPattern
    test_cases: tuple[TestCase, ...] = ()
    responses: dict[str, Any] = field(default_factory=dict)  # test case id -> response

    __test__ = False

    def __post_init__(self):
        object.__setattr__(self, "pattern", coerce_enum(AgentPattern, self.pattern, "pattern"))
        object.__setattr__(self, "test_cases", tuple(self.test_cases))
        seen = set()
        for tc in self.test_cases:
            if tc.pattern != self.pattern:
                raise InputValidationError(
                    f"test case {tc.id} has pattern {tc.pattern.value}, suite {self.suite_id} is {self.pattern.value}"
                )
            if tc.id in seen:
                raise InputValidationError(f"duplicate test case id {tc.id} in suite {self.suite_id}")
            seen.add(tc.id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "suite_id": self.suite_id,
            "pattern": self.pattern.value,
            "test_cases": [tc.to_dict() for tc in self.test_cases],
            "responses": dict(self.responses),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TestSuite":
        return cls(
            suite_id=data["suite_id"],
            pattern=data["pattern"],
            test_cases=tuple(TestCase.from_dict(tc) for tc in data.get("test_cases", [])),
            responses=dict(data.get("responses") or {}),
        )


@dataclass
class BatchJob:
    """A batch evaluation job and its lifecycle state"""
    id: str
    name: str
    patterns: list[AgentPattern]
    test_suites: list[TestSuite]
    config: BatchConfig
    created_at: datetime
    status: BatchJobStatus = BatchJobStatus.PENDING
    progress: BatchProgress = field(default_factory=BatchProgress)
    results: BatchResults | None = None
    description: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    scheduled_for: datetime | None = None

    def snapshot(self) -> "BatchJob":
        """Copy safe to hand to readers while the job keeps running"""
        return replace(
            self,
            patterns=list(self.patterns),
            test_suites=list(self.test_suites),
            progress=replace(self.progress),
        )
