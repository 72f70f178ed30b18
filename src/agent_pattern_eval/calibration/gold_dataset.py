"""
Gold dataset

Load, save, sample and summarize the human-rated gold samples used for
calibration.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Sequence

import numpy as np

from agent_pattern_eval.domain.constants import GOLD_DATASET_VERSION
from agent_pattern_eval.domain.entities import GoldSample, HumanScore
from agent_pattern_eval.domain.errors import InputValidationError

logger = logging.getLogger(__name__)

COMPLEXITY_LEVELS = ("low", "medium", "high")


@dataclass(frozen=True)
class GoldDatasetMetadata:
    version: str
    sample_count: int
    human_evaluator_count: int
    average_inter_rater_agreement: float
    complexity_distribution: dict[str, int]
    edge_case_count: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def human_score_from_dict(data: dict) -> HumanScore:
    return HumanScore(
        evaluator_id=data["evaluator_id"],
        timestamp=data["timestamp"],
        scores={k: float(v) for k, v in data["scores"].items()},
        comments=data.get("comments"),
        time_spent_seconds=float(data.get("time_spent_seconds", 0.0)),
    )


def gold_sample_from_dict(data: dict) -> GoldSample:
    try:
        return GoldSample(
            id=data["id"],
            pattern=data["pattern"],
            version=data.get("version", GOLD_DATASET_VERSION),
            created_at=data.get("created_at", ""),
            input=data["input"],
            expected_output=data.get("expected_output"),
            human_scores=tuple(human_score_from_dict(h) for h in data.get("human_scores", [])),
            complexity=data.get("complexity", "medium"),
            edge_case=bool(data.get("edge_case", False)),
            tags=tuple(data.get("tags", ())),
        )
    except KeyError as e:
        raise InputValidationError(f"gold sample is missing field {e.args[0]!r}") from None


def gold_sample_to_dict(sample: GoldSample) -> dict[str, Any]:
    return {
        "id": sample.id,
        "pattern": sample.pattern.value,
        "version": sample.version,
        "created_at": sample.created_at,
        "input": sample.input,
        "expected_output": sample.expected_output,
        "human_scores": [
            {
                "evaluator_id": h.evaluator_id,
                "timestamp": h.timestamp,
                "scores": dict(h.scores),
                "comments": h.comments,
                "time_spent_seconds": h.time_spent_seconds,
            }
            for h in sample.human_scores
        ],
        "complexity": sample.complexity,
        "edge_case": sample.edge_case,
        "tags": list(sample.tags),
    }


def load_gold_samples(path: str | Path) -> list[GoldSample]:
    """
    Load gold samples from a JSON file

    The file holds either a list of samples or an object
    ``{"version": ..., "samples": [...]}``.
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("samples", [])
    if not isinstance(data, list):
        raise InputValidationError(f"{path}: expected a list of gold samples")
    samples = [gold_sample_from_dict(d) for d in data]
    logger.info("Loaded %d gold samples from %s", len(samples), path)
    return samples


def save_gold_samples(
    samples: Sequence[GoldSample],
    path: str | Path,
    version: str = GOLD_DATASET_VERSION,
) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {"version": version, "samples": [gold_sample_to_dict(s) for s in samples]}
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
    logger.info("Saved %d gold samples to %s", len(samples), path)


def _take(group: list[GoldSample], quota: int, rng: np.random.Generator) -> list[GoldSample]:
    """Draw quota samples, keeping the group's share of edge cases"""
    if quota >= len(group):
        return list(group)
    edge = [s for s in group if s.edge_case]
    regular = [s for s in group if not s.edge_case]
    edge_quota = min(len(edge), round(quota * len(edge) / len(group)))
    regular_quota = min(len(regular), quota - edge_quota)
    edge_quota = quota - regular_quota
    picked = [edge[i] for i in rng.permutation(len(edge))[:edge_quota]]
    picked += [regular[i] for i in rng.permutation(len(regular))[:regular_quota]]
    return picked


def stratify_samples(
    samples: Sequence[GoldSample],
    limit: int | None = None,
    seed: int | None = None,
) -> list[GoldSample]:
    """
    Sample evenly across complexity levels

    Each level gets floor(limit / 3) samples; the remainder goes to medium,
    then high. Within a level, edge cases keep their proportion. Without a
    limit every sample is returned in its original order.
    """
    if not limit:
        return list(samples)
    if limit < 0:
        raise InputValidationError("limit must be positive")

    rng = np.random.default_rng(seed)
    per_level, remainder = divmod(limit, 3)
    quotas = {
        "low": per_level,
        "medium": per_level + (1 if remainder > 0 else 0),
        "high": per_level + (1 if remainder > 1 else 0),
    }
    picked: list[GoldSample] = []
    for level in COMPLEXITY_LEVELS:
        group = [s for s in samples if s.complexity == level]
        picked += _take(group, quotas[level], rng)
    return [picked[i] for i in rng.permutation(len(picked))]


def pairwise_agreement(scores: Sequence[HumanScore]) -> float:
    """Mean of 1 - |difference| of overall scores over all rater pairs"""
    if len(scores) < 2:
        return 1.0
    overall = np.array([s.overall for s in scores])
    i, j = np.triu_indices(len(overall), k=1)
    return float(np.clip(1 - np.abs(overall[i] - overall[j]), 0.0, None).mean())


def dataset_metadata(samples: Sequence[GoldSample], version: str = GOLD_DATASET_VERSION) -> GoldDatasetMetadata:
    evaluators = {h.evaluator_id for s in samples for h in s.human_scores}
    agreements = [pairwise_agreement(s.human_scores) for s in samples if len(s.human_scores) >= 2]
    distribution = {level: 0 for level in COMPLEXITY_LEVELS}
    for s in samples:
        distribution[s.complexity] += 1
    return GoldDatasetMetadata(
        version=version,
        sample_count=len(samples),
        human_evaluator_count=len(evaluators),
        average_inter_rater_agreement=sum(agreements) / len(agreements) if agreements else 0.0,
        complexity_distribution=distribution,
        edge_case_count=sum(1 for s in samples if s.edge_case),
    )
