"""
Reliability calibrator

Compares automated EvaluationResults against human-rated gold samples and
derives metric weights that make the weighted aggregate track human judgment.
"""

from __future__ import annotations

import logging
import math
from typing import Mapping, Sequence

import numpy as np

from agent_pattern_eval.calibration.reliability import (
    bootstrap_interval,
    krippendorff_alpha,
    spearman_correlation,
)
from agent_pattern_eval.domain.constants import (
    BOOTSTRAP_ITERATIONS,
    CONFIDENCE_LEVEL,
    DEFAULT_CALIBRATION_WEIGHTS,
    MIN_CALIBRATION_SAMPLES,
    MIN_HUMAN_SCORES_PER_SAMPLE,
    OPTIMAL_OUTPUT_LENGTH,
)
from agent_pattern_eval.domain.entities import CalibrationResult, EvaluationResult, GoldSample, utc_now
from agent_pattern_eval.domain.enums import AgentPattern
from agent_pattern_eval.domain.errors import CalibrationError, InputValidationError
from agent_pattern_eval.domain.value_objects import EvaluationConfig, MetricScore, coerce_enum
from agent_pattern_eval.evaluators.base import Clock
from agent_pattern_eval.scoring.aggregator import weighted_score

logger = logging.getLogger(__name__)


def project_to_simplex(v: np.ndarray) -> np.ndarray:
    """Euclidean projection onto {w : w >= 0, sum(w) = 1}"""
    n = len(v)
    u = np.sort(v)[::-1]
    css = np.cumsum(u)
    rho = np.nonzero(u * np.arange(1, n + 1) > (css - 1))[0][-1]
    theta = (css[rho] - 1) / (rho + 1.0)
    return np.maximum(v - theta, 0.0)


def fit_simplex_weights(
    features: np.ndarray,
    target: np.ndarray,
    max_iterations: int = 2000,
    tolerance: float = 1e-10,
) -> np.ndarray:
    """
    Non-negative weights summing to 1 that minimize mean squared error

    Projected gradient descent from uniform weights. With weights on the
    simplex, features @ w is exactly the weighted-mean aggregate.
    """
    n, m = features.shape
    w = np.full(m, 1.0 / m)
    lipschitz = 2.0 * float(np.linalg.eigvalsh(features.T @ features / n).max())
    if lipschitz <= 0:
        return w
    step = 1.0 / lipschitz
    for _ in range(max_iterations):
        gradient = 2.0 / n * features.T @ (features @ w - target)
        updated = project_to_simplex(w - step * gradient)
        if np.linalg.norm(updated - w) < tolerance:
            return updated
        w = updated
    return w


def length_normalize(score: float, text: str, optimal_length: int = OPTIMAL_OUTPUT_LENGTH) -> float:
    """
    Damp scores of outputs far from the optimal length

    80% of the score is kept; the other 20% is scaled by a log-normal
    penalty centred on optimal_length characters.
    """
    if not text:
        return score * 0.8
    penalty = math.exp(-(math.log(len(text) / optimal_length) ** 2) / 2)
    return score * (0.8 + 0.2 * penalty)


class ReliabilityCalibrator:
    """
    Calibrates metric weights of one pattern against gold samples

    Results are cached per pattern; get_calibration falls back to the
    default weights for patterns that were never calibrated.
    """

    def __init__(
        self,
        min_samples: int = MIN_CALIBRATION_SAMPLES,
        bootstrap_iterations: int = BOOTSTRAP_ITERATIONS,
        confidence_level: float = CONFIDENCE_LEVEL,
        optimal_length: int = OPTIMAL_OUTPUT_LENGTH,
        seed: int | None = None,
        clock: Clock = utc_now,
    ):
        self.min_samples = min_samples
        self.bootstrap_iterations = bootstrap_iterations
        self.confidence_level = confidence_level
        self.optimal_length = optimal_length
        self.seed = seed
        self._clock = clock
        self._cache: dict[AgentPattern, CalibrationResult] = {}

    def calibrate(
        self,
        pattern: AgentPattern | str,
        samples: Sequence[GoldSample],
        results: Sequence[EvaluationResult],
        version: str | None = None,
    ) -> CalibrationResult:
        """
        Run one calibration

        Args:
            pattern: Pattern to calibrate
            samples: Gold samples (other patterns and versions are ignored)
            results: Automated results; matched to samples by test_case_id == sample.id
            version: Gold dataset version to restrict to

        Returns:
            CalibrationResult, also cached for the pattern

        Raises:
            CalibrationError: Too few aligned samples, or no metric shared by all results
        """
        pattern = coerce_enum(AgentPattern, pattern, "pattern")
        logger.info("Starting calibration for pattern: %s", pattern.value)

        eligible = [
            s for s in samples
            if s.pattern == pattern
            and (version is None or s.version == version)
            and len(s.human_scores) >= MIN_HUMAN_SCORES_PER_SAMPLE
        ]
        by_id = {r.test_case_id: r for r in results if r.pattern == pattern}
        aligned = [(s, by_id[s.id]) for s in eligible if s.id in by_id]
        if len(aligned) < self.min_samples:
            raise CalibrationError(
                f"Insufficient samples for calibration. Need at least {self.min_samples}, found {len(aligned)}"
            )

        human = np.array([s.mean_human_score() for s, _ in aligned])
        automated = np.array([r.overall_score for _, r in aligned])

        correlation = spearman_correlation(human, automated)
        alpha = krippendorff_alpha([[h.overall for h in s.human_scores] for s, _ in aligned])

        score_maps = [r.score_map() for _, r in aligned]
        all_metrics = list(dict.fromkeys(m for sm in score_maps for m in sm))
        shared = [m for m in all_metrics if all(m in sm for sm in score_maps)]
        if not shared:
            raise CalibrationError(f"No metric is present in every aligned result for {pattern.value}")

        features = np.array([[sm[m] for m in shared] for sm in score_maps])
        fitted = fit_simplex_weights(features, human)
        weights = {m: 0.0 for m in all_metrics}
        weights.update({m: float(w) for m, w in zip(shared, fitted)})

        errors = features @ fitted - human
        interval = bootstrap_interval(
            human, automated,
            iterations=self.bootstrap_iterations,
            confidence=self.confidence_level,
            seed=self.seed,
        )

        result = CalibrationResult(
            timestamp=self._clock().isoformat(),
            pattern=pattern,
            weights=weights,
            spearman_correlation=correlation,
            krippendorff_alpha=alpha,
            confidence_interval=interval,
            validation_metrics={
                "mse": float(np.mean(errors ** 2)),
                "mae": float(np.mean(np.abs(errors))),
                "bias": float(np.mean(errors)),
            },
            sample_count=len(aligned),
            version=version,
        )
        self._cache[pattern] = result
        logger.info(
            "Calibration for %s: rho=%.3f alpha=%.3f mse=%.4f over %d samples",
            pattern.value, correlation, alpha, result.validation_metrics["mse"], len(aligned),
        )
        return result

    def get_calibration(self, pattern: AgentPattern | str) -> CalibrationResult:
        """Cached calibration, or one carrying the default weights"""
        pattern = coerce_enum(AgentPattern, pattern, "pattern")
        cached = self._cache.get(pattern)
        if cached is not None:
            return cached
        return CalibrationResult(
            timestamp=self._clock().isoformat(),
            pattern=pattern,
            weights=dict(DEFAULT_CALIBRATION_WEIGHTS),
            spearman_correlation=0.0,
            krippendorff_alpha=0.0,
            confidence_interval=(0.0, 0.0),
            validation_metrics={"mse": 0.0, "mae": 0.0, "bias": 0.0},
        )

    def evaluate_with_calibration(
        self,
        scores: Mapping[str, float] | Sequence[MetricScore],
        pattern: AgentPattern | str,
        output_text: str | None = None,
    ) -> float:
        """
        Weighted score under the pattern's calibrated weights

        When output_text is given the score is length-normalized as well.
        """
        if isinstance(scores, Mapping):
            score_map = dict(scores)
        else:
            score_map = {s.metric: s.score for s in scores}
        value = weighted_score(score_map, self.get_calibration(pattern).weights)
        if output_text is not None:
            value = length_normalize(value, output_text, self.optimal_length)
        return value

    def apply_calibration(self, config: EvaluationConfig, result: CalibrationResult) -> EvaluationConfig:
        """Copy of config whose metric weights come from the calibration"""
        if config.pattern != result.pattern:
            raise InputValidationError(
                f"calibration for {result.pattern.value} cannot be applied to {config.pattern.value}"
            )
        return config.with_weights({k: v for k, v in result.weights.items() if config.metric(k) is not None})
