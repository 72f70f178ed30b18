"""
Tests for result reporting (pandas tabulation and report files)
"""

import json
import math

import pandas as pd
import pytest

from agent_pattern_eval.domain.batch import BatchPerformance, BatchResults, BatchSummary
from agent_pattern_eval.domain.enums import AgentPattern
from agent_pattern_eval.domain.value_objects import MetricScore
from agent_pattern_eval.scoring.aggregator import build_result
from agent_pattern_eval.use_cases.reporting import (
    compare_to_baseline,
    load_results_json,
    metric_statistics,
    results_to_dataframe,
    save_batch_report,
    summarize_by_pattern,
    trend_direction,
)

TS = "2026-01-01T00:00:00+00:00"


@pytest.fixture
def results():
    return [
        build_result("r1", AgentPattern.ROUTING,
                     [MetricScore("accuracy", 1.0, "ok"), MetricScore("relevance", 0.6, "ok")], 0.75,
                     timestamp=TS, input_tokens=10, output_tokens=5, api_calls=2, execution_time_ms=100),
        build_result("r2", AgentPattern.ROUTING, [MetricScore("accuracy", 0.4, "weak")], 0.75,
                     timestamp=TS, input_tokens=4, output_tokens=1, api_calls=1, execution_time_ms=300),
        build_result("r3", AgentPattern.ROUTING, [], 0.75, timestamp=TS, error="RuntimeError: boom"),
        build_result("p1", AgentPattern.PARALLEL_PROCESSING, [MetricScore("consistency", 0.9, "ok")], 0.75,
                     timestamp=TS, feedback="Strong aggregation"),
    ]


@pytest.fixture
def df(results):
    return results_to_dataframe(results)


class TestResultsToDataframe:
    def test_one_row_per_result(self, df):
        assert len(df) == 4
        assert list(df["test_case_id"]) == ["r1", "r2", "r3", "p1"]
        assert list(df["pattern"]) == ["routing", "routing", "routing", "parallel-processing"]

    def test_metric_columns(self, df):
        assert [c for c in df.columns if c.startswith("metric:")] == [
            "metric:accuracy", "metric:relevance", "metric:consistency",
        ]
        assert df.loc[0, "metric:relevance"] == pytest.approx(0.6)
        assert math.isnan(df.loc[1, "metric:relevance"])

    def test_empty(self):
        frame = results_to_dataframe([])
        assert frame.empty
        assert "overall_score" in frame.columns


class TestSummarizeByPattern:
    def test_counts_and_scores(self, df):
        summary = summarize_by_pattern(df).set_index("pattern")

        routing = summary.loc["routing"]
        assert routing["tests"] == 3
        assert routing["passed"] == 1
        assert routing["errors"] == 1
        assert routing["pass_rate"] == pytest.approx(1 / 3)
        # errored result left out of the score aggregates
        assert routing["average_score"] == pytest.approx(0.6)
        assert routing["median_score"] == pytest.approx(0.6)
        assert routing["total_tokens"] == 20

        parallel = summary.loc["parallel-processing"]
        assert parallel["tests"] == 1
        assert parallel["pass_rate"] == pytest.approx(1.0)

    def test_empty(self):
        assert summarize_by_pattern(results_to_dataframe([])).empty


class TestMetricStatistics:
    def test_per_pattern_metric_rows(self, df):
        stats = metric_statistics(df)
        routing = stats[stats["pattern"] == "routing"].set_index("metric")

        assert list(routing.index) == ["overall", "accuracy", "relevance"]
        accuracy = routing.loc["accuracy"]
        assert accuracy["count"] == 2
        assert accuracy["mean"] == pytest.approx(0.7)
        assert accuracy["std"] == pytest.approx(0.3)
        assert accuracy["min"] == pytest.approx(0.4)
        assert accuracy["max"] == pytest.approx(1.0)
        assert accuracy["p50"] == pytest.approx(0.7)

    def test_unscored_metrics_are_skipped(self, df):
        stats = metric_statistics(df)
        parallel = stats[stats["pattern"] == "parallel-processing"]
        assert list(parallel["metric"]) == ["overall", "consistency"]

    def test_percentile_columns(self, df):
        assert {"p25", "p50", "p75", "p90", "p95", "p99"} <= set(metric_statistics(df).columns)


class TestTrend:
    @pytest.mark.parametrize("current,baseline,expected", [
        (1.04, 1.0, "stable"),
        (0.97, 1.0, "stable"),
        (1.10, 1.0, "improving"),
        (0.90, 1.0, "degrading"),
        (0.0, 0.0, "stable"),
        (0.1, 0.0, "improving"),
    ])
    def test_trend_direction(self, current, baseline, expected):
        assert trend_direction(current, baseline) == expected

    def test_custom_band(self):
        assert trend_direction(1.1, 1.0, band=0.2) == "stable"

    def test_compare_to_baseline(self):
        current = pd.DataFrame({
            "pattern": ["routing", "routing", "parallel-processing"],
            "metric": ["overall", "accuracy", "overall"],
            "mean": [0.8, 0.5, 0.9],
        })
        baseline = pd.DataFrame({
            "pattern": ["routing", "routing"],
            "metric": ["overall", "accuracy"],
            "mean": [0.6, 0.51],
        })

        comparison = compare_to_baseline(current, baseline).set_index("metric")

        assert len(comparison) == 2
        assert comparison.loc["overall", "change"] == pytest.approx(0.2)
        assert comparison.loc["overall", "trend"] == "improving"
        assert comparison.loc["accuracy", "trend"] == "stable"

    def test_compare_with_empty_baseline(self, df):
        comparison = compare_to_baseline(metric_statistics(df), pd.DataFrame())
        assert comparison.empty
        assert list(comparison.columns) == ["pattern", "metric", "current_mean", "baseline_mean", "change", "trend"]


class TestReportFiles:
    def test_save_batch_report(self, tmp_path, results):
        batch = BatchResults(
            results=results,
            summary=BatchSummary(total_tests=4, passed_tests=2, failed_tests=1, error_tests=1, success_rate=0.5),
            pattern_results={},
            errors=[],
            performance=BatchPerformance(start_time=TS, end_time=TS),
        )

        paths = save_batch_report(batch, tmp_path / "reports", "run-1")

        assert set(paths) == {"raw", "summary", "metrics", "json"}
        assert all(p.exists() for p in paths.values())
        assert len(pd.read_csv(paths["raw"])) == 4
        assert set(pd.read_csv(paths["summary"])["pattern"]) == {"routing", "parallel-processing"}
        payload = json.loads(paths["json"].read_text(encoding="utf-8"))
        assert payload["summary"]["success_rate"] == 0.5
        assert load_results_json(paths["json"]) == results
