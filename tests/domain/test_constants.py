"""ドメイン定数のテスト"""

import pytest

from agent_pattern_eval.domain.constants import (
    DEFAULT_CALIBRATION_WEIGHTS,
    DEFAULT_JUDGE_MODEL,
    DEFAULT_PASSING_THRESHOLDS,
    FALLBACK_PASSING_THRESHOLD,
    KAPPA_CATEGORIES,
)
from agent_pattern_eval.domain.enums import AgentPattern, JudgeModel


def test_every_pattern_has_threshold():
    """全てのパターンに合格閾値が定義されていること"""
    for pattern in AgentPattern:
        assert pattern in DEFAULT_PASSING_THRESHOLDS, f"{pattern} has no threshold"


def test_thresholds_within_unit_interval():
    """閾値が0-1の範囲であること"""
    for threshold in list(DEFAULT_PASSING_THRESHOLDS.values()) + [FALLBACK_PASSING_THRESHOLD]:
        assert 0.0 <= threshold <= 1.0


def test_calibration_weights_sum_to_one():
    """デフォルトのキャリブレーション重みの合計が1であること"""
    assert sum(DEFAULT_CALIBRATION_WEIGHTS.values()) == pytest.approx(1.0)
    assert all(w >= 0 for w in DEFAULT_CALIBRATION_WEIGHTS.values())


def test_default_judge_model_has_provider():
    """デフォルトjudgeモデルのプロバイダが解決できること"""
    assert isinstance(DEFAULT_JUDGE_MODEL, JudgeModel)
    assert DEFAULT_JUDGE_MODEL.provider == "google"


def test_kappa_categories_sorted():
    """カッパ係数のカテゴリが昇順であること"""
    assert list(KAPPA_CATEGORIES) == sorted(KAPPA_CATEGORIES)
    assert KAPPA_CATEGORIES[0] == 0.0
    assert KAPPA_CATEGORIES[-1] == 1.0
