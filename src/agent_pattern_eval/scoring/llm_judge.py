"""
LLM Judge scoring logic

Implements LLMJudgeScorer, which sends a metric rubric prompt to a judge model
and parses the returned score and rationale.
"""

from __future__ import annotations

import json
import logging
import math
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from agent_pattern_eval.infrastructure.judge_clients.base import JudgeClient

from agent_pattern_eval.domain.errors import JudgeInvocationError
from agent_pattern_eval.domain.value_objects import JudgeCallOptions, ModelResponse, ScoringResult

logger = logging.getLogger(__name__)


class LLMJudgeError(Exception):
    """Error raised when the judge response cannot be parsed"""
    pass


class LLMJudgeScorer:
    """
    Scorer that uses an LLM as a judge

    Pattern evaluators build one rubric prompt per metric; the scorer appends
    a JSON answer format, calls the judge client, and parses score + rationale.
    """

    # Regex patterns for score extraction
    _SCORE_RE = re.compile(r"score\s*[:=]?\s*(-?\d+(?:\.\d+)?|-?\.\d+)", re.IGNORECASE)
    _BARE_FLOAT_RE = re.compile(r"^-?\d+(?:\.\d+)?$|^-?\.\d+$")

    def __init__(self, judge_client: JudgeClient, model_name: str | None = None) -> None:
        self._client = judge_client
        self.model_name = model_name or getattr(judge_client, "model_name", None)

    def evaluate(
        self,
        prompt: str,
        score_range: tuple[float, float] = (0.0, 1.0),
        options: JudgeCallOptions | None = None,
    ) -> tuple[ScoringResult, ModelResponse]:
        """
        Ask the judge to score a prompt

        Args:
            prompt: Metric rubric prompt built by a pattern evaluator
            score_range: Range the judge is asked to answer in
            options: Per-call temperature and retry settings

        Returns:
            (ScoringResult with the raw score clamped to score_range, ModelResponse)

        Raises:
            JudgeInvocationError: When the judge call itself fails
            LLMJudgeError: When parsing the response fails
        """
        full_prompt = "\n".join([
            prompt,
            "",
            f"Score range: {score_range[0]:g}-{score_range[1]:g}",
            'Return JSON: {"score": <number>, "rationale": "explanation"}',
        ])
        try:
            response = self._client.generate(full_prompt, options)
        except Exception as e:
            raise JudgeInvocationError(f"Judge call failed ({self.model_name}): {e}") from e
        return self._parse_score(response.output, score_range), response

    def judge(self, prompt: str) -> ScoringResult:
        """Score a prompt on the 0-1 scale and return only the parsed result"""
        result, _ = self.evaluate(prompt)
        return result

    def _parse_score(self, raw: str, score_range: tuple[float, float] = (0.0, 1.0)) -> ScoringResult:
        """
        Extract score and rationale from the judge's response

        Parse order:
        1. JSON extraction (score + rationale)
        2. Regex fallback (no rationale)
        3. Bare float (no rationale)
        4. LLMJudgeError
        """
        text = raw.strip()

        # 1. JSON extraction
        try:
            # Explicitly extract the JSON portion from code blocks
            match = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text)
            json_text = match.group(1) if match else text
            data = json.loads(json_text.strip())
            if isinstance(data, dict) and "score" in data:
                return ScoringResult(
                    score=self._clamp(float(data["score"]), score_range),
                    reason=data.get("rationale") or data.get("reason"),
                )
        except (json.JSONDecodeError, ValueError, TypeError):
            pass

        # 2. Regex fallback
        m = self._SCORE_RE.search(text)
        if m:
            return ScoringResult(score=self._clamp(float(m.group(1)), score_range))

        # 3. Bare float (when the response is only a number)
        if self._BARE_FLOAT_RE.match(text):
            return ScoringResult(score=self._clamp(float(text), score_range))

        raise LLMJudgeError(f"Failed to parse score from judge response: {text[:200]}")

    @staticmethod
    def _clamp(value: float, score_range: tuple[float, float] = (0.0, 1.0)) -> float:
        """Clamp score to the given range; NaN and infinities are unparsable"""
        if not math.isfinite(value):
            raise LLMJudgeError(f"Judge returned a non-finite score: {value}")
        return max(score_range[0], min(score_range[1], value))
