"""
Sequential processing pattern evaluator

Scores a copywriting chain that drafts marketing copy and refines it over
several iterations.

Expected response shape:
    {"initialCopy": str, "refinedCopy": str, "finalCopy": str,
     "iterations": [{"version": str, "feedback": str, "improvements": [str, ...]}, ...]}
"""

from __future__ import annotations

import re
from typing import Any, Mapping, Sequence

from agent_pattern_eval.domain.entities import EvaluationResult, TestCase, utc_now
from agent_pattern_eval.domain.enums import AgentPattern, Complexity
from agent_pattern_eval.domain.value_objects import EvaluationConfig, MetricScore, ScoringResult, coerce_enum
from agent_pattern_eval.evaluators.base import (
    Clock,
    IdGenerator,
    MetricSpec,
    cycle_scenarios,
    evaluate_with,
    feedback_tier,
    generic_prompt,
    low_score_notes,
    random_token,
    validate_metric_scores,
)
from agent_pattern_eval.scoring.llm_judge import LLMJudgeScorer
from agent_pattern_eval.scoring.text_heuristics import sentences

BRAND_TONES = {
    "professional": re.compile(r"expert|professional|solution|enterprise|comprehensive|strategic", re.I),
    "casual": re.compile(r"hey|cool|awesome|chill|fun|easy", re.I),
    "luxury": re.compile(r"exclusive|premium|sophisticated|elegant|refined|exquisite", re.I),
    "playful": re.compile(r"fun|play|enjoy|exciting|adventure|discover", re.I),
    "authoritative": re.compile(r"leading|trusted|proven|industry|expert|guarantee", re.I),
}

_CTA_RES = tuple(
    re.compile(p, re.I)
    for p in (
        r"buy now", r"shop today", r"get yours", r"order today", r"learn more",
        r"discover", r"try it", r"sign up", r"get started", r"claim your",
    )
)
_URGENCY_RE = re.compile(r"limited|today|now|exclusive|special|offer|sale", re.I)
_ACTION_VERB_RE = re.compile(r"get|buy|shop|try|discover|explore|claim|save|join", re.I)
_BENEFIT_RE = re.compile(r"benefit|advantage|feature|help|improve", re.I)
_STORY_RE = re.compile(r"imagine|picture|feel|experience|journey", re.I)
_EMOTION_RES = (
    re.compile(r"love|amazing|perfect|dream|wonderful|exciting|joy|happy|delight", re.I),
    re.compile(r"achieve|succeed|transform|elevate|empower|inspire|unlock", re.I),
    re.compile(r"trust|reliable|proven|guaranteed|authentic|genuine|quality", re.I),
    re.compile(r"join|together|community|family|belong|share", re.I),
)
_COMPLEX_WORD_RE = re.compile(r"\b\w{10,}\b")
_BULLET_RE = re.compile(r"[•\-*]\s", re.M)

SCENARIOS = [
    {
        "category": "technology",
        "input": {
            "product": "SmartHome Hub",
            "targetAudience": "tech-savvy homeowners",
            "brandTone": "innovative and approachable",
            "requirements": ["highlight convenience", "emphasize security", "mention compatibility"],
        },
        "expected_behavior": [
            "Creates compelling copy highlighting smart home benefits",
            "Iteratively refines message for clarity",
            "Includes strong call-to-action",
            "Maintains innovative yet approachable tone",
        ],
    },
    {
        "category": "fashion",
        "input": {
            "product": "Eco-Friendly Sneakers",
            "targetAudience": "environmentally conscious millennials",
            "brandTone": "sustainable and trendy",
            "requirements": ["emphasize sustainability", "highlight style", "mention comfort"],
        },
        "expected_behavior": [
            "Balances environmental message with fashion appeal",
            "Refines copy to resonate with target demographic",
            "Creates urgency without compromising brand values",
            "Uses contemporary language",
        ],
    },
    {
        "category": "food",
        "input": {
            "product": "Organic Meal Prep Service",
            "targetAudience": "busy professionals",
            "brandTone": "healthy and convenient",
            "requirements": ["stress time-saving", "highlight nutrition", "mention variety"],
        },
        "expected_behavior": [
            "Addresses pain points of busy lifestyle",
            "Emphasizes health benefits clearly",
            "Creates appetizing descriptions",
            "Includes clear ordering instructions",
        ],
    },
]

COMPLEX_REQUIREMENTS = ["include social proof", "address objections", "create urgency"]


def brand_tone_alignment(brand_tone: str, copy: str) -> float:
    """0.8 when the copy uses vocabulary of a tone named in brand_tone, else 0.5"""
    tone = brand_tone.lower()
    for name, pattern in BRAND_TONES.items():
        if name in tone and pattern.search(copy):
            return 0.8
    return 0.5


class SequentialProcessingEvaluator:
    """Evaluator for the sequential processing pattern"""

    pattern = AgentPattern.SEQUENTIAL_PROCESSING

    def __init__(
        self,
        judge: LLMJudgeScorer | None = None,
        clock: Clock = utc_now,
        id_generator: IdGenerator = random_token,
    ) -> None:
        self.judge = judge
        self._clock = clock
        self._id_generator = id_generator
        self.metrics = {
            "content_quality": MetricSpec("content_quality", 1.0, self.content_quality),
            "call_to_action": MetricSpec("call_to_action", 1.0, self.call_to_action),
            "emotional_appeal": MetricSpec("emotional_appeal", 1.0, self.emotional_appeal),
            "clarity": MetricSpec("clarity", 1.0, self.clarity),
            "iteration_effectiveness": MetricSpec(
                "iteration_effectiveness", 1.0, self.iteration_effectiveness, always_on=True,
            ),
        }

    def generate_test_cases(self, count: int, complexity: Complexity = Complexity.MODERATE) -> list[TestCase]:
        return cycle_scenarios(
            self.pattern, self._scenarios(complexity), count, complexity,
            clock=self._clock, id_generator=self._id_generator,
        )

    def evaluate_response(self, test_case: TestCase, response: Any, config: EvaluationConfig) -> EvaluationResult:
        return evaluate_with(
            self.pattern, self.metrics, test_case, response, config,
            judge=self.judge, clock=self._clock,
            prompt_builder=self.evaluation_prompt, feedback_builder=self._feedback,
        )

    def validate_metrics(self, scores: Sequence[MetricScore]) -> bool:
        return validate_metric_scores(scores)

    def evaluation_prompt(self, metric: str, test_case: TestCase, response: Any) -> str:
        spec = test_case.input
        final_copy = response.get("finalCopy", "")
        if metric == "content_quality":
            return (
                "Evaluate the quality of the marketing copy for the following product:\n"
                f"Product: {spec.get('product')}\n"
                f"Target Audience: {spec.get('targetAudience')}\n"
                f"Brand Tone: {spec.get('brandTone')}\n\n"
                f"Final Copy:\n{final_copy}\n\n"
                "Evaluation Criteria:\n"
                "1. Relevance to the product and target audience\n"
                "2. Creativity and originality\n"
                "3. Brand alignment\n"
                "4. Persuasiveness\n"
                "5. Clarity of message\n\n"
                "Provide a score from 0-1 and detailed rationale."
            )
        if metric == "call_to_action":
            return (
                "Evaluate the effectiveness of the call-to-action in the following marketing copy:\n\n"
                f"Final Copy:\n{final_copy}\n\n"
                "Evaluation Criteria:\n"
                "1. Presence of clear CTA\n"
                "2. Action-oriented language\n"
                "3. Urgency or incentive\n"
                "4. Placement and visibility\n"
                "5. Alignment with product offering\n\n"
                "Provide a score from 0-1 and detailed rationale."
            )
        if metric == "emotional_appeal":
            return (
                "Evaluate the emotional appeal of the marketing copy:\n\n"
                f"Target Audience: {spec.get('targetAudience')}\n"
                f"Final Copy:\n{final_copy}\n\n"
                "Evaluation Criteria:\n"
                "1. Connection with target audience emotions\n"
                "2. Use of storytelling or narrative\n"
                "3. Aspirational elements\n"
                "4. Trust-building language\n"
                "5. Memorability\n\n"
                "Provide a score from 0-1 and detailed rationale."
            )
        if metric == "clarity":
            return (
                "Evaluate the clarity of the marketing copy:\n\n"
                f"Final Copy:\n{final_copy}\n\n"
                "Evaluation Criteria:\n"
                "1. Simple and concise language\n"
                "2. Clear value proposition\n"
                "3. Logical flow\n"
                "4. Absence of jargon (unless appropriate)\n"
                "5. Easy to scan and understand\n\n"
                "Provide a score from 0-1 and detailed rationale."
            )
        return generic_prompt(metric, test_case, response)

    # Metric heuristics

    def content_quality(self, test_case: TestCase, response: Mapping[str, Any]) -> ScoringResult:
        spec = test_case.input
        copy = response["finalCopy"]
        lowered = copy.lower()
        score = 0.0

        if spec["product"].lower() in lowered:
            score += 0.2
        if any(word in lowered for word in spec["targetAudience"].lower().split(" ")):
            score += 0.2
        score += brand_tone_alignment(spec["brandTone"], copy) * 0.3
        if _BENEFIT_RE.search(copy):
            score += 0.15
        if 30 <= len(copy.split(" ")) <= 150:
            score += 0.15

        return ScoringResult(
            score=score,
            reason="Content quality assessed based on relevance, audience targeting, brand alignment, and structure.",
        )

    def call_to_action(self, test_case: TestCase, response: Mapping[str, Any]) -> ScoringResult:
        copy = response["finalCopy"]
        score = 0.0
        if any(p.search(copy) for p in _CTA_RES):
            score += 0.4
        if _URGENCY_RE.search(copy):
            score += 0.3
        if _ACTION_VERB_RE.search(copy):
            score += 0.3
        return ScoringResult(
            score=score,
            reason="CTA effectiveness evaluated based on presence, urgency, and action-oriented language.",
        )

    def emotional_appeal(self, test_case: TestCase, response: Mapping[str, Any]) -> ScoringResult:
        copy = response["finalCopy"]
        score = 0.2 * sum(1 for p in _EMOTION_RES if p.search(copy))
        if _STORY_RE.search(copy):
            score += 0.2
        return ScoringResult(
            score=score,
            reason=(
                "Emotional appeal measured through use of emotional language, "
                "storytelling, and connection with audience."
            ),
        )

    def clarity(self, test_case: TestCase, response: Mapping[str, Any]) -> ScoringResult:
        copy = response["finalCopy"]
        score = 0.5

        parts = sentences(copy)
        if parts and sum(len(s.split(" ")) for s in parts) / len(parts) <= 20:
            score += 0.2
        if len(_COMPLEX_WORD_RE.findall(copy)) < 3:
            score += 0.15
        if _BULLET_RE.search(copy) or len(copy.split("\n\n")) > 1:
            score += 0.15

        return ScoringResult(
            score=score,
            reason="Clarity assessed through sentence structure, vocabulary simplicity, and formatting.",
        )

    def iteration_effectiveness(self, test_case: TestCase, response: Mapping[str, Any]) -> ScoringResult:
        iterations = response.get("iterations") or []
        if not iterations:
            return ScoringResult(score=0.0, reason="No iterations found in the response.")

        score = 0.0
        if all(it.get("improvements") for it in iterations):
            score += 0.4
        if all(len(it.get("feedback") or "") > 20 for it in iterations):
            score += 0.3
        if response["finalCopy"] != response.get("initialCopy"):
            score += 0.3

        return ScoringResult(
            score=score,
            reason=(
                "Iteration effectiveness measured by presence of improvements, "
                "feedback quality, and evolution of copy."
            ),
        )

    def _feedback(self, scores: Sequence[MetricScore], response: Mapping[str, Any], test_case: TestCase) -> str:
        parts = [feedback_tier(
            scores,
            (0.8, "Excellent marketing copy with strong performance across all metrics."),
            (0.6, "Good marketing copy with room for improvement in some areas."),
            "Marketing copy needs significant improvement.",
        )]
        parts.extend(low_score_notes(scores))
        iterations = response.get("iterations") or []
        if iterations:
            parts.append(f"Copy was refined through {len(iterations)} iterations.")
        return " ".join(parts)

    def _scenarios(self, complexity: Complexity | str) -> list[dict]:
        complexity = coerce_enum(Complexity, complexity, "complexity")
        if complexity == Complexity.SIMPLE:
            return [_with_requirements(s, s["input"]["requirements"][:1]) for s in SCENARIOS]
        if complexity == Complexity.COMPLEX:
            return [
                _with_requirements(s, s["input"]["requirements"] + COMPLEX_REQUIREMENTS)
                for s in SCENARIOS
            ]
        return list(SCENARIOS)


def _with_requirements(scenario: dict, requirements: list[str]) -> dict:
    return {**scenario, "input": {**scenario["input"], "requirements": list(requirements)}}
