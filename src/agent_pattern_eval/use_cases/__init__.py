"""
Use Cases Layer

Evaluation pipeline, judge health checks, and result reporting.
"""

from agent_pattern_eval.use_cases.evaluation import (
    EvaluationPipeline,
    default_config,
    evaluate_with_timeout,
)
from agent_pattern_eval.use_cases.health_check import (
    HealthCheckResult,
    health_check_judge,
    run_judge_health_check,
)
from agent_pattern_eval.use_cases.reporting import (
    compare_to_baseline,
    load_results_json,
    metric_statistics,
    results_to_dataframe,
    save_batch_report,
    summarize_by_pattern,
    trend_direction,
)

__all__ = [
    # evaluation
    "EvaluationPipeline",
    "default_config",
    "evaluate_with_timeout",
    # health check
    "HealthCheckResult",
    "health_check_judge",
    "run_judge_health_check",
    # reporting
    "compare_to_baseline",
    "load_results_json",
    "metric_statistics",
    "results_to_dataframe",
    "save_batch_report",
    "summarize_by_pattern",
    "trend_direction",
]
