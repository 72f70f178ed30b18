"""
Calibration sub-package

Agreement statistics, the gold dataset, and weight calibration against
human ratings.
"""

from agent_pattern_eval.calibration.calibrator import (
    ReliabilityCalibrator,
    fit_simplex_weights,
    length_normalize,
    project_to_simplex,
)
from agent_pattern_eval.calibration.gold_dataset import (
    GoldDatasetMetadata,
    dataset_metadata,
    gold_sample_from_dict,
    gold_sample_to_dict,
    load_gold_samples,
    pairwise_agreement,
    save_gold_samples,
    stratify_samples,
)
from agent_pattern_eval.calibration.reliability import (
    ConsistencyReport,
    ReliabilityReport,
    bootstrap_interval,
    calculate_reliability,
    cohen_kappa,
    inter_rater_agreement,
    krippendorff_alpha,
    spearman_correlation,
    validate_evaluation_consistency,
)

__all__ = [
    # calibrator
    "ReliabilityCalibrator",
    "fit_simplex_weights",
    "length_normalize",
    "project_to_simplex",
    # gold dataset
    "GoldDatasetMetadata",
    "dataset_metadata",
    "gold_sample_from_dict",
    "gold_sample_to_dict",
    "load_gold_samples",
    "pairwise_agreement",
    "save_gold_samples",
    "stratify_samples",
    # reliability
    "ConsistencyReport",
    "ReliabilityReport",
    "bootstrap_interval",
    "calculate_reliability",
    "cohen_kappa",
    "inter_rater_agreement",
    "krippendorff_alpha",
    "spearman_correlation",
    "validate_evaluation_consistency",
]
