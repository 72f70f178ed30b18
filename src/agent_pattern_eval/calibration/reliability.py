"""
Reliability statistics

Agreement measures used to audit automated scoring: Krippendorff's alpha
(interval metric), Spearman rank correlation, pairwise inter-rater agreement,
Cohen's kappa, and bootstrap confidence intervals.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Sequence

import numpy as np
import pandas as pd

from agent_pattern_eval.domain.constants import (
    AGREEMENT_TOLERANCE,
    BOOTSTRAP_ITERATIONS,
    CONFIDENCE_LEVEL,
    KAPPA_CATEGORIES,
)
from agent_pattern_eval.domain.entities import EvaluationResult
from agent_pattern_eval.domain.errors import CalibrationError, InputValidationError

logger = logging.getLogger(__name__)

# One unit = the ratings several raters gave the same item
Units = Sequence[Sequence[float]]


@dataclass(frozen=True)
class ReliabilityReport:
    """Agreement of repeated evaluations of the same test cases"""
    krippendorff_alpha: float
    inter_rater_agreement: float
    confidence_interval: tuple[float, float]
    sample_size: int
    alpha_by_metric: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class ConsistencyReport:
    is_consistent: bool
    metrics: ReliabilityReport
    recommendations: list[str]


def krippendorff_alpha(units: Units) -> float:
    """
    Krippendorff's alpha with the interval (squared difference) metric

    Observed disagreement sums the squared differences of every ordered rater
    pair, each unit weighted by 1/(m_u - 1) for its m_u ratings, over the n
    pairable ratings. Expected disagreement is twice the sample variance of
    all ratings pooled. Units with fewer than two ratings are ignored.

    Returns:
        alpha (1.0 = perfect agreement); 0.0 when no unit has two ratings;
        1.0 when the pooled ratings have no variance at all
    """
    pairable = [np.asarray(u, dtype=float) for u in units if len(u) >= 2]
    if not pairable:
        return 0.0

    pooled = np.concatenate(pairable)
    weighted = 0.0
    for ratings in pairable:
        i, j = np.triu_indices(len(ratings), k=1)
        weighted += 2 * float(((ratings[i] - ratings[j]) ** 2).sum()) / (len(ratings) - 1)
    observed = weighted / len(pooled)

    expected = 2 * float(np.var(pooled, ddof=1))
    if expected == 0:
        return 1.0
    return 1 - observed / expected


def spearman_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """
    Spearman's rho with average ranks for ties

    Returns 0.0 when either side has no variance or fewer than two points.
    """
    if len(x) != len(y):
        raise InputValidationError(f"sequences must have the same length, got {len(x)} and {len(y)}")
    if len(x) < 2:
        return 0.0
    rx = pd.Series(x, dtype=float).rank(method="average").to_numpy()
    ry = pd.Series(y, dtype=float).rank(method="average").to_numpy()
    if rx.std() == 0 or ry.std() == 0:
        return 0.0
    return float(np.corrcoef(rx, ry)[0, 1])


def inter_rater_agreement(units: Units, tolerance: float = AGREEMENT_TOLERANCE) -> float:
    """Fraction of rater pairs whose scores differ by less than tolerance"""
    agreed = 0
    pairs = 0
    for unit in units:
        ratings = np.asarray(unit, dtype=float)
        if len(ratings) < 2:
            continue
        i, j = np.triu_indices(len(ratings), k=1)
        diffs = np.abs(ratings[i] - ratings[j])
        agreed += int((diffs < tolerance).sum())
        pairs += len(diffs)
    return agreed / pairs if pairs else 0.0


def cohen_kappa(
    rater1: Sequence[float],
    rater2: Sequence[float],
    categories: Sequence[float] = KAPPA_CATEGORIES,
) -> float:
    """
    Cohen's kappa after binning continuous scores

    A score falls into the highest category whose lower bound it reaches.
    """
    if len(rater1) != len(rater2):
        raise InputValidationError("rater score sequences must have the same length")
    if len(rater1) == 0:
        raise InputValidationError("rater score sequences must not be empty")

    bounds = np.asarray(categories, dtype=float)

    def categorize(scores: Sequence[float]) -> np.ndarray:
        return np.clip(np.searchsorted(bounds, np.asarray(scores, dtype=float), side="right") - 1, 0, None)

    c1 = categorize(rater1)
    c2 = categorize(rater2)
    n = len(c1)
    observed = float((c1 == c2).mean())
    k = len(bounds)
    p1 = np.bincount(c1, minlength=k) / n
    p2 = np.bincount(c2, minlength=k) / n
    expected = float((p1 * p2).sum())
    if expected == 1:
        return 1.0
    return (observed - expected) / (1 - expected)


def bootstrap_interval(
    x: Sequence[float],
    y: Sequence[float],
    statistic: Callable[[Sequence[float], Sequence[float]], float] = spearman_correlation,
    iterations: int = BOOTSTRAP_ITERATIONS,
    confidence: float = CONFIDENCE_LEVEL,
    seed: int | None = None,
) -> tuple[float, float]:
    """
    Percentile bootstrap interval of a paired statistic

    Pairs are resampled with replacement ``iterations`` times.
    """
    if len(x) != len(y):
        raise InputValidationError("sequences must have the same length")
    if len(x) == 0:
        return (0.0, 0.0)
    xs = np.asarray(x, dtype=float)
    ys = np.asarray(y, dtype=float)
    rng = np.random.default_rng(seed)
    indices = rng.integers(0, len(xs), size=(iterations, len(xs)))
    stats = np.sort([statistic(xs[idx], ys[idx]) for idx in indices])
    return _percentile_bounds(stats, confidence)


def _percentile_bounds(sorted_stats: np.ndarray, confidence: float) -> tuple[float, float]:
    n = len(sorted_stats)
    lower = int(np.floor((1 - confidence) / 2 * n))
    upper = min(int(np.floor((1 + confidence) / 2 * n)), n - 1)
    return (float(sorted_stats[lower]), float(sorted_stats[upper]))


def group_scores(results: Sequence[EvaluationResult]) -> dict[str, dict[str, list[float]]]:
    """test case id -> metric -> scores from every result for that test case"""
    grouped: dict[str, dict[str, list[float]]] = defaultdict(lambda: defaultdict(list))
    for result in results:
        for score in result.scores:
            grouped[result.test_case_id][score.metric].append(score.score)
    return grouped


def _alpha_by_metric(results: Sequence[EvaluationResult]) -> dict[str, float]:
    grouped = group_scores(results)
    metrics = list(dict.fromkeys(s.metric for r in results for s in r.scores))
    alphas = {}
    for metric in metrics:
        units = [by_metric[metric] for by_metric in grouped.values() if len(by_metric.get(metric, ())) > 1]
        alphas[metric] = min(1.0, max(0.0, krippendorff_alpha(units)))
    return alphas


def calculate_reliability(
    results: Sequence[EvaluationResult],
    iterations: int = BOOTSTRAP_ITERATIONS,
    confidence: float = CONFIDENCE_LEVEL,
    seed: int | None = None,
) -> ReliabilityReport:
    """
    Agreement of repeated judge runs over the same test cases

    Each result is one run; results sharing a test_case_id are treated as
    ratings of the same unit. Alpha is computed per metric, clamped to
    [0, 1] and averaged; the interval comes from resampling results.

    Raises:
        CalibrationError: Fewer than two results
    """
    if len(results) < 2:
        raise CalibrationError("At least 2 evaluation results required for reliability calculation")
    logger.info("Calculating reliability metrics for %d results", len(results))

    alphas = _alpha_by_metric(results)
    overall = sum(alphas.values()) / len(alphas) if alphas else 0.0
    units = [scores for by_metric in group_scores(results).values() for scores in by_metric.values()]
    agreement = inter_rater_agreement(units)

    rng = np.random.default_rng(seed)
    samples = []
    for _ in range(iterations):
        resampled = [results[i] for i in rng.integers(0, len(results), size=len(results))]
        by_metric = _alpha_by_metric(resampled)
        samples.append(sum(by_metric.values()) / len(by_metric) if by_metric else 0.0)
    interval = _percentile_bounds(np.sort(samples), confidence) if samples else (0.0, 1.0)

    logger.info("Reliability metrics calculated: alpha=%.3f, IRA=%.3f", overall, agreement)
    return ReliabilityReport(
        krippendorff_alpha=overall,
        inter_rater_agreement=agreement,
        confidence_interval=interval,
        sample_size=len(results),
        alpha_by_metric=alphas,
    )


def validate_evaluation_consistency(
    results: Sequence[EvaluationResult],
    threshold: float = 0.7,
    **kwargs,
) -> ConsistencyReport:
    """Check reliability against a threshold and suggest fixes"""
    report = calculate_reliability(results, **kwargs)
    alpha = report.krippendorff_alpha
    consistent = alpha >= threshold

    recommendations: list[str] = []
    if not consistent:
        if alpha < 0.4:
            recommendations += [
                "Low reliability detected. Consider:",
                "- Using a more deterministic judge model (lower temperature)",
                "- Providing clearer evaluation criteria",
                "- Adding more specific rubric steps",
            ]
        elif alpha < 0.7:
            recommendations += [
                "Moderate reliability. Consider:",
                "- Fine-tuning evaluation prompts",
                "- Adding binary checks for critical criteria",
                "- Increasing sample size for more stable estimates",
            ]
    if report.inter_rater_agreement < 0.8:
        recommendations += [
            "Low inter-rater agreement. Consider:",
            "- Standardizing score ranges across metrics",
            "- Using G-Eval methodology for more consistent scoring",
        ]
    return ConsistencyReport(is_consistent=consistent, metrics=report, recommendations=recommendations)
