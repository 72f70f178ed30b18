"""
Evaluator-optimizer pattern evaluator

Scores a translation loop in which one agent translates, another critiques,
and the translation is revised until it converges.

Expected response shape:
    {"initialTranslation": str,
     "evaluations": [{"criteria": str, "score": float, "feedback": str}, ...],
     "optimizations": [{"version": str, "changes": str, "improvements": [str, ...]}, ...],
     "finalTranslation": str, "totalIterations": int}
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
from agent_pattern_eval.scoring.text_heuristics import count_chars, length_ratio, sentences, word_count

# Target languages where the choice of formality register matters
FORMALITY_LANGUAGES = ("japanese", "korean", "german", "french")
FORMAT_CHARS = ('"', "'", "(", ")", "[", "]", "!", "?")

_FLUENCY_RE = re.compile(r"fluency|natural|smooth|flow|readable", re.I)
_FLUENCY_CRITERIA_RE = re.compile(r"fluency|natural", re.I)
_CULTURAL_RE = re.compile(r"cultur|formal|informal|polite|appropriate|local|custom", re.I)
_FORMALITY_RE = re.compile(r"formal|polite|honorific", re.I)

NUANCE_SENTENCE = " This requires careful consideration of cultural nuances and linguistic precision."

SCENARIOS = [
    {
        "category": "greeting",
        "input": {
            "sourceText": "Hello, how are you today?",
            "targetLanguage": "Spanish",
            "context": "Casual greeting",
        },
        "expected_behavior": [
            "Translates greeting appropriately",
            "Considers formality level",
            "Iteratively improves naturalness",
            "Achieves idiomatic expression",
        ],
    },
    {
        "category": "business",
        "input": {
            "sourceText": "We appreciate your business and look forward to our continued partnership.",
            "targetLanguage": "Japanese",
            "context": "Business correspondence",
            "preserveFormatting": False,
        },
        "expected_behavior": [
            "Maintains formal business tone",
            "Uses appropriate honorifics",
            "Preserves professional sentiment",
            "Optimizes for cultural appropriateness",
        ],
    },
    {
        "category": "technical",
        "input": {
            "sourceText": 'Click the "Save" button to store your changes permanently.',
            "targetLanguage": "French",
            "context": "Software user interface",
            "preserveFormatting": True,
        },
        "expected_behavior": [
            "Preserves technical accuracy",
            "Maintains UI conventions",
            "Keeps formatting elements",
            "Ensures clarity for users",
        ],
    },
    {
        "category": "literary",
        "input": {
            "sourceText": "The autumn leaves danced in the gentle breeze, painting the sky with golden hues.",
            "targetLanguage": "Chinese (Simplified)",
            "context": "Literary description",
        },
        "expected_behavior": [
            "Preserves poetic imagery",
            "Maintains literary style",
            "Adapts cultural metaphors",
            "Achieves aesthetic quality",
        ],
    },
]


class EvaluatorOptimizerEvaluator:
    """Evaluator for the evaluator-optimizer pattern"""

    pattern = AgentPattern.EVALUATOR_OPTIMIZER

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
            "translation_accuracy": MetricSpec("translation_accuracy", 1.5, self.translation_accuracy),
            "fluency": MetricSpec("fluency", 1.2, self.fluency),
            "iterative_improvement": MetricSpec("iterative_improvement", 1.0, self.iterative_improvement),
            "cultural_appropriateness": MetricSpec("cultural_appropriateness", 0.8, self.cultural_appropriateness),
            "context_preservation": MetricSpec("context_preservation", 0.7, self.context_preservation, always_on=True),
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
        source = test_case.input.get("sourceText", "")
        language = test_case.input.get("targetLanguage", "")
        final = response.get("finalTranslation", "")
        if metric == "translation_accuracy":
            return (
                "Evaluate the accuracy of this translation:\n"
                f"Source Text: {source}\n"
                f"Target Language: {language}\n"
                f"Final Translation: {final}\n\n"
                "Evaluation Criteria:\n"
                "1. Semantic accuracy - Is the meaning preserved?\n"
                "2. Completeness - Is all information translated?\n"
                "3. No additions - Is there no extra information?\n"
                "4. Terminology accuracy - Are technical terms correctly translated?\n"
                "5. Grammar correctness in target language\n\n"
                "Provide a score from 0-1 and detailed rationale."
            )
        if metric == "fluency":
            return (
                f"Evaluate the fluency and naturalness of this {language} translation:\n"
                f"Translation: {final}\n\n"
                "Evaluation Criteria:\n"
                "1. Natural word choice and phrasing\n"
                "2. Idiomatic expressions\n"
                "3. Sentence flow and rhythm\n"
                "4. Target language conventions\n"
                "5. Readability\n\n"
                "Provide a score from 0-1 and detailed rationale."
            )
        if metric == "cultural_appropriateness":
            return (
                "Evaluate the cultural appropriateness of this translation:\n"
                f"Source: {source}\n"
                f"Target Language: {language}\n"
                f"Context: {test_case.input.get('context') or 'General'}\n"
                f"Translation: {final}\n\n"
                "Evaluation Criteria:\n"
                "1. Cultural sensitivity\n"
                "2. Appropriate formality level\n"
                "3. Local conventions and customs\n"
                "4. Avoidance of cultural faux pas\n"
                "5. Target audience appropriateness\n\n"
                "Provide a score from 0-1 and detailed rationale."
            )
        if metric == "iterative_improvement":
            return (
                "Evaluate the effectiveness of the iterative improvement process:\n"
                f"Initial Translation: {response.get('initialTranslation')}\n"
                f"Final Translation: {final}\n"
                f"Number of Iterations: {response.get('totalIterations')}\n\n"
                "Evaluation Criteria:\n"
                "1. Quality improvement from initial to final\n"
                "2. Addressing of identified issues\n"
                "3. Effectiveness of each iteration\n"
                "4. Convergence to optimal translation\n"
                "5. Efficiency of the process\n\n"
                "Provide a score from 0-1 and detailed rationale."
            )
        return generic_prompt(metric, test_case, response)

    # Metric heuristics

    def translation_accuracy(self, test_case: TestCase, response: Mapping[str, Any]) -> ScoringResult:
        source = test_case.input["sourceText"]
        final = response["finalTranslation"]
        score = 0.5

        if final and final != source:
            score += 0.2
        # Completeness, approximated by comparable length; word_count handles CJK targets
        if length_ratio(word_count(final), word_count(source)) > 0.7:
            score += 0.2
        if response.get("totalIterations", 0) > 1 and final != response.get("initialTranslation"):
            score += 0.1

        return ScoringResult(
            score=score,
            reason=(
                "Translation accuracy evaluated based on completeness, semantic preservation, "
                "and improvement through iterations."
            ),
        )

    def fluency(self, test_case: TestCase, response: Mapping[str, Any]) -> ScoringResult:
        final = response["finalTranslation"]
        score = 0.5

        parts = sentences(final)
        if parts and 5 <= word_count(final) / len(parts) <= 25:
            score += 0.2
        if any(
            _FLUENCY_RE.search(imp)
            for opt in response.get("optimizations") or []
            for imp in opt.get("improvements") or []
        ):
            score += 0.2
        fluency_eval = next(
            (e for e in response.get("evaluations") or [] if _FLUENCY_CRITERIA_RE.search(e.get("criteria", ""))),
            None,
        )
        if fluency_eval is not None and fluency_eval.get("score", 0) > 0.7:
            score += 0.1

        return ScoringResult(
            score=score,
            reason="Fluency assessed through sentence structure, natural flow, and iterative improvements.",
        )

    def iterative_improvement(self, test_case: TestCase, response: Mapping[str, Any]) -> ScoringResult:
        total = response["totalIterations"]
        optimizations = response.get("optimizations") or []
        if total == 0 or not optimizations:
            return ScoringResult(score=0.0, reason="No iterative improvement process detected.")

        score = 0.3
        meaningful = sum(1 for opt in optimizations if opt.get("improvements"))
        score += meaningful / total * 0.3
        if all(len(e.get("feedback") or "") > 10 for e in response.get("evaluations") or []):
            score += 0.2
        if response["finalTranslation"] != response.get("initialTranslation"):
            score += 0.2

        return ScoringResult(
            score=score,
            reason=(
                f"Iterative process effectiveness measured across {total} iterations "
                f"with {meaningful} meaningful improvements."
            ),
        )

    def cultural_appropriateness(self, test_case: TestCase, response: Mapping[str, Any]) -> ScoringResult:
        optimizations = response.get("optimizations") or []
        score = 0.6

        if any(_CULTURAL_RE.search(imp) for opt in optimizations for imp in opt.get("improvements") or []):
            score += 0.2
        if test_case.input.get("context") and any(
            "context" in e.get("criteria", "") for e in response.get("evaluations") or []
        ):
            score += 0.1
        language = test_case.input["targetLanguage"].lower()
        if any(lang in language for lang in FORMALITY_LANGUAGES):
            if any(_FORMALITY_RE.search(opt.get("changes", "")) for opt in optimizations):
                score += 0.1

        return ScoringResult(
            score=score,
            reason="Cultural appropriateness evaluated based on context consideration and cultural adaptations.",
        )

    def context_preservation(self, test_case: TestCase, response: Mapping[str, Any]) -> ScoringResult:
        source = test_case.input["sourceText"]
        final = response["finalTranslation"]
        score = 0.7

        if test_case.input.get("preserveFormatting"):
            if abs(count_chars(source, FORMAT_CHARS) - count_chars(final, FORMAT_CHARS)) <= 2:
                score += 0.2
        context = test_case.input.get("context")
        if context and any(
            context.lower() in opt.get("changes", "").lower() for opt in response.get("optimizations") or []
        ):
            score += 0.1

        return ScoringResult(
            score=score,
            reason="Context and formatting preservation evaluated based on input requirements.",
        )

    def _feedback(self, scores: Sequence[MetricScore], response: Mapping[str, Any], test_case: TestCase) -> str:
        parts = [feedback_tier(
            scores,
            (0.8, "Excellent translation with effective iterative optimization."),
            (0.6, "Good translation quality with some areas for improvement."),
            "Translation needs significant improvement.",
        )]
        parts.extend(low_score_notes(scores))
        parts.append(f"Translation refined through {response.get('totalIterations', 0)} iterations.")
        return " ".join(parts)

    def _scenarios(self, complexity: Complexity | str) -> list[dict]:
        complexity = coerce_enum(Complexity, complexity, "complexity")
        if complexity == Complexity.SIMPLE:
            return [
                {**s, "input": {**s["input"], "sourceText": s["input"]["sourceText"].split(".")[0]}}
                for s in SCENARIOS[:2]
            ]
        if complexity == Complexity.COMPLEX:
            return [
                {**s, "input": {**s["input"], "sourceText": s["input"]["sourceText"] + NUANCE_SENTENCE}}
                for s in SCENARIOS
            ]
        return list(SCENARIOS)
