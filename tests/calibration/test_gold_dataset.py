"""
ゴールドデータセットのテスト
"""

import json
from collections import Counter

import pytest

from agent_pattern_eval.calibration.gold_dataset import (
    dataset_metadata,
    gold_sample_from_dict,
    load_gold_samples,
    pairwise_agreement,
    save_gold_samples,
    stratify_samples,
)
from agent_pattern_eval.domain.entities import GoldSample, HumanScore
from agent_pattern_eval.domain.errors import InputValidationError


def _human(evaluator, overall):
    return HumanScore(evaluator_id=evaluator, timestamp="2026-01-01T00:00:00+00:00", scores={"overall": overall})


def _sample(sample_id, complexity="medium", edge_case=False, overalls=(0.8, 0.7)):
    return GoldSample(
        id=sample_id,
        pattern="routing",
        version="1.0.0",
        created_at="2026-01-01",
        input={"content": "refund please", "context": {"channel": "email"}},
        expected_output={"route": "billing"},
        human_scores=tuple(_human(f"rater-{i}", o) for i, o in enumerate(overalls)),
        complexity=complexity,
        edge_case=edge_case,
        tags=("billing",),
    )


@pytest.fixture
def balanced():
    """各複雑度4件ずつ、うち1件がエッジケース"""
    return [
        _sample(f"{level}-{i}", complexity=level, edge_case=(i == 0))
        for level in ("low", "medium", "high")
        for i in range(4)
    ]


class TestPersistence:
    def test_save_then_load(self, tmp_path, balanced):
        path = tmp_path / "gold" / "routing.json"
        save_gold_samples(balanced, path, version="1.1.0")

        payload = json.loads(path.read_text(encoding="utf-8"))
        assert payload["version"] == "1.1.0"
        assert len(payload["samples"]) == 12
        assert load_gold_samples(path) == balanced

    def test_load_plain_list(self, tmp_path):
        path = tmp_path / "gold.json"
        path.write_text(json.dumps([{
            "id": "g1",
            "pattern": "routing",
            "input": {"content": "hi"},
            "human_scores": [{"evaluator_id": "a", "timestamp": "t", "scores": {"overall": 1}}],
        }]), encoding="utf-8")

        samples = load_gold_samples(path)

        assert samples[0].version == "1.0.0"
        assert samples[0].complexity == "medium"
        assert samples[0].human_scores[0].overall == 1.0

    def test_load_rejects_non_list(self, tmp_path):
        path = tmp_path / "gold.json"
        path.write_text('{"samples": 5}', encoding="utf-8")
        with pytest.raises(InputValidationError):
            load_gold_samples(path)

    def test_missing_field(self):
        with pytest.raises(InputValidationError, match="'input'"):
            gold_sample_from_dict({"id": "g1", "pattern": "routing"})


class TestStratify:
    def test_without_limit_keeps_order(self, balanced):
        assert stratify_samples(balanced) == balanced

    def test_even_split(self, balanced):
        picked = stratify_samples(balanced, limit=6, seed=1)
        assert Counter(s.complexity for s in picked) == {"low": 2, "medium": 2, "high": 2}

    def test_remainder_goes_to_medium_then_high(self, balanced):
        picked = stratify_samples(balanced, limit=8, seed=1)
        assert Counter(s.complexity for s in picked) == {"low": 2, "medium": 3, "high": 3}

    def test_edge_case_proportion_kept(self):
        samples = [_sample(f"m-{i}", edge_case=(i < 4)) for i in range(10)]
        picked = stratify_samples(samples, limit=15, seed=2)
        assert len(picked) == 5
        assert sum(1 for s in picked if s.edge_case) == 2

    def test_seed_is_reproducible(self, balanced):
        assert stratify_samples(balanced, limit=5, seed=9) == stratify_samples(balanced, limit=5, seed=9)

    def test_negative_limit(self, balanced):
        with pytest.raises(InputValidationError):
            stratify_samples(balanced, limit=-1)


class TestAgreementAndMetadata:
    def test_pairwise_agreement(self):
        scores = [_human("a", 0.8), _human("b", 0.6), _human("c", 0.7)]
        assert pairwise_agreement(scores) == pytest.approx((0.8 + 0.9 + 0.9) / 3)

    def test_single_rater_agrees_with_itself(self):
        assert pairwise_agreement([_human("a", 0.3)]) == 1.0

    def test_metadata(self, balanced):
        meta = dataset_metadata(balanced + [_sample("solo", overalls=(0.5,))], version="2.0.0")
        assert meta.version == "2.0.0"
        assert meta.sample_count == 13
        assert meta.human_evaluator_count == 2
        assert meta.complexity_distribution == {"low": 4, "medium": 5, "high": 4}
        assert meta.edge_case_count == 3
        assert meta.average_inter_rater_agreement == pytest.approx(0.9)
        assert meta.to_dict()["sample_count"] == 13
