"""
Result Reporting

Tabulates evaluation results with pandas: raw rows, per-pattern summaries,
metric statistics and trends against a baseline, plus the CSV/JSON writers
the CLI uses.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Sequence

import pandas as pd

from agent_pattern_eval.domain.batch import BatchResults
from agent_pattern_eval.domain.constants import TREND_STABLE_BAND
from agent_pattern_eval.domain.entities import EvaluationResult

logger = logging.getLogger(__name__)

METRIC_PREFIX = "metric:"
PERCENTILES = (0.25, 0.5, 0.75, 0.9, 0.95, 0.99)

_RAW_COLUMNS = [
    "test_case_id", "pattern", "overall_score", "passed", "execution_time_ms",
    "judge_model", "input_tokens", "output_tokens", "api_calls", "error", "feedback", "timestamp",
]


def results_to_dataframe(results: Sequence[EvaluationResult]) -> pd.DataFrame:
    """
    One row per result; each metric score becomes a ``metric:<name>`` column

    Metrics a result did not score are NaN.
    """
    rows = []
    for r in results:
        row = {
            "test_case_id": r.test_case_id,
            "pattern": r.pattern.value,
            "overall_score": r.overall_score,
            "passed": r.passed,
            "execution_time_ms": r.execution_time_ms,
            "judge_model": r.judge_model,
            "input_tokens": r.input_tokens,
            "output_tokens": r.output_tokens,
            "api_calls": r.api_calls,
            "error": r.error,
            "feedback": r.feedback,
            "timestamp": r.timestamp,
        }
        for s in r.scores:
            row[f"{METRIC_PREFIX}{s.metric}"] = s.score
        rows.append(row)
    return pd.DataFrame(rows, columns=_RAW_COLUMNS + _metric_columns(rows))


def _metric_columns(rows: list[dict]) -> list[str]:
    return list(dict.fromkeys(k for row in rows for k in row if k.startswith(METRIC_PREFIX)))


def summarize_by_pattern(df: pd.DataFrame) -> pd.DataFrame:
    """
    Per-pattern counts and score aggregates

    Errored results count towards ``tests`` and ``errors`` but are left out
    of the score aggregates.
    """
    columns = ["pattern", "tests", "passed", "errors", "pass_rate",
               "average_score", "median_score", "average_execution_time_ms", "total_tokens"]
    if df.empty:
        return pd.DataFrame(columns=columns)

    rows = []
    for pattern, group in df.groupby("pattern", sort=False):
        errored = group["error"].notna()
        evaluated = group[~errored]
        passed = int(evaluated["passed"].sum())
        rows.append({
            "pattern": pattern,
            "tests": len(group),
            "passed": passed,
            "errors": int(errored.sum()),
            "pass_rate": passed / len(group),
            "average_score": evaluated["overall_score"].mean() if len(evaluated) else 0.0,
            "median_score": evaluated["overall_score"].median() if len(evaluated) else 0.0,
            "average_execution_time_ms": group["execution_time_ms"].mean(),
            "total_tokens": int((group["input_tokens"] + group["output_tokens"]).sum()),
        })
    return pd.DataFrame(rows, columns=columns)


def metric_statistics(df: pd.DataFrame) -> pd.DataFrame:
    """
    Distribution of every metric per pattern

    Columns: pattern, metric, count, mean, median, std, min, max, p25 .. p99.
    The overall score is reported as metric ``overall``.
    """
    pct_columns = [f"p{int(q * 100)}" for q in PERCENTILES]
    columns = ["pattern", "metric", "count", "mean", "median", "std", "min", "max"] + pct_columns
    if df.empty:
        return pd.DataFrame(columns=columns)

    metric_cols = ["overall_score"] + [c for c in df.columns if c.startswith(METRIC_PREFIX)]
    rows = []
    for pattern, group in df.groupby("pattern", sort=False):
        for col in metric_cols:
            values = group[col].dropna()
            if values.empty:
                continue
            quantiles = values.quantile(list(PERCENTILES))
            row = {
                "pattern": pattern,
                "metric": "overall" if col == "overall_score" else col[len(METRIC_PREFIX):],
                "count": int(values.count()),
                "mean": values.mean(),
                "median": values.median(),
                "std": values.std(ddof=0),
                "min": values.min(),
                "max": values.max(),
            }
            row.update({name: quantiles[q] for name, q in zip(pct_columns, PERCENTILES)})
            rows.append(row)
    return pd.DataFrame(rows, columns=columns)


def trend_direction(current: float, baseline: float, band: float = TREND_STABLE_BAND) -> str:
    """
    "improving", "stable" or "degrading"

    Stable when the relative change from baseline is within band.
    """
    if baseline == 0:
        if current == 0:
            return "stable"
        return "improving" if current > 0 else "degrading"
    change = (current - baseline) / abs(baseline)
    if abs(change) <= band:
        return "stable"
    return "improving" if change > 0 else "degrading"


def compare_to_baseline(
    current: pd.DataFrame,
    baseline: pd.DataFrame,
    band: float = TREND_STABLE_BAND,
) -> pd.DataFrame:
    """
    Mean of every (pattern, metric) now versus in a baseline run

    Both frames are metric_statistics() output. Pairs missing from the
    baseline are dropped.
    """
    columns = ["pattern", "metric", "current_mean", "baseline_mean", "change", "trend"]
    if current.empty or baseline.empty:
        return pd.DataFrame(columns=columns)
    merged = current[["pattern", "metric", "mean"]].merge(
        baseline[["pattern", "metric", "mean"]],
        on=["pattern", "metric"],
        suffixes=("_current", "_baseline"),
    )
    merged = merged.rename(columns={"mean_current": "current_mean", "mean_baseline": "baseline_mean"})
    merged["change"] = merged["current_mean"] - merged["baseline_mean"]
    merged["trend"] = [
        trend_direction(c, b, band) for c, b in zip(merged["current_mean"], merged["baseline_mean"])
    ]
    return merged[columns]


def save_batch_report(results: BatchResults, output_dir: str | Path, run_id: str) -> dict[str, Path]:
    """
    Write raw CSV, summary CSV, metric statistics CSV and the full results JSON

    Returns:
        Paths by kind: raw, summary, metrics, json
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    paths = {
        "raw": output_dir / f"raw_results_{run_id}.csv",
        "summary": output_dir / f"summary_{run_id}.csv",
        "metrics": output_dir / f"metrics_{run_id}.csv",
        "json": output_dir / f"results_{run_id}.json",
    }

    raw_df = results_to_dataframe(results.results)
    raw_df.to_csv(paths["raw"], index=False)
    summarize_by_pattern(raw_df).to_csv(paths["summary"], index=False)
    metric_statistics(raw_df).to_csv(paths["metrics"], index=False)
    with open(paths["json"], "w", encoding="utf-8") as f:
        json.dump(results.to_dict(), f, ensure_ascii=False, indent=2)

    logger.info("Report for run %s written to %s", run_id, output_dir)
    return paths


def load_results_json(file_path: str | Path) -> list[EvaluationResult]:
    """Read the evaluation results back from a results JSON file"""
    with open(file_path, "r", encoding="utf-8") as f:
        data = json.load(f)
    raw = data["results"] if isinstance(data, dict) else data
    return [EvaluationResult.from_dict(r) for r in raw]
