"""
Routing pattern evaluator

Scores how a customer-support router classified a query, which department it
sent it to, and how well the first response fits that department.

Expected response shape:
    {"classification": str, "confidence": float, "routedTo": str,
     "response": str, "reasoning": str (optional)}
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
    find_score,
    generic_prompt,
    random_token,
    validate_metric_scores,
)
from agent_pattern_eval.scoring.llm_judge import LLMJudgeScorer
from agent_pattern_eval.scoring.text_heuristics import significant_words, word_count

DEPARTMENTS = ("technical", "billing", "general", "complaints")

# Departments that are a defensible second choice for each expected department
ACCEPTABLE_ALTERNATIVES = {
    "technical": ("general",),
    "billing": ("general", "complaints"),
    "complaints": ("general",),
    "general": ("technical", "billing"),
}

_TECHNICAL_RE = re.compile(r"error|bug|crash|install|update|software|hardware|connection|network", re.I)
_BILLING_RE = re.compile(r"bill|payment|charge|refund|subscription|cancel|invoice|fee", re.I)
_COMPLAINT_RE = re.compile(r"complaint|unhappy|dissatisfied|terrible|worst|angry|frustrated", re.I)

_DEPARTMENT_LANGUAGE = {
    "technical": re.compile(r"troubleshoot|diagnostic|configuration|system|update|fix", re.I),
    "billing": re.compile(r"account|invoice|payment method|transaction|balance", re.I),
    "complaints": re.compile(r"apologize|sorry|understand your frustration|escalate|resolve", re.I),
    "general": re.compile(r"assist|help|information|question|inquiry", re.I),
}

# Response wording that makes a routing decision unambiguous
_CLEAR_MATCH = {
    "technical": re.compile(r"error|bug|crash|not working", re.I),
    "billing": re.compile(r"bill|payment|charge|refund", re.I),
    "complaints": re.compile(r"complaint|terrible|worst", re.I),
}

_AMBIGUOUS_RES = tuple(
    re.compile(p, re.I)
    for p in (r"how do i", r"can you help", r"i need", r"question about", r"^hello", r"^hi")
)
_SPECIFIC_RE = re.compile(r"error|bill|payment|broken|complaint|refund|crash", re.I)
_FALLBACK_LANGUAGE_RE = re.compile(r"general inquiry|assist you further|help you with|clarify", re.I)

SCENARIOS = [
    {
        "category": "technical_clear",
        "input": {
            "query": "My application keeps crashing when I try to save a file",
            "customerId": "CUST123",
        },
        "expected_department": "technical",
        "expected_behavior": [
            "Routes to technical support",
            "High confidence score",
            "Provides initial troubleshooting response",
        ],
    },
    {
        "category": "technical_complex",
        "input": {
            "query": "Getting error code 0x80004005 during installation",
            "context": "Windows 10, admin privileges",
        },
        "expected_department": "technical",
        "expected_behavior": [
            "Routes to technical support",
            "Recognizes specific error code",
            "Technical response with next steps",
        ],
    },
    {
        "category": "billing_clear",
        "input": {
            "query": "I was charged twice for my subscription this month",
            "customerId": "CUST456",
        },
        "expected_department": "billing",
        "expected_behavior": [
            "Routes to billing department",
            "Acknowledges the double charge issue",
            "Provides information about refund process",
        ],
    },
    {
        "category": "billing_dispute",
        "input": {"query": "I want to cancel my subscription and get a refund for unused time"},
        "expected_department": "billing",
        "expected_behavior": [
            "Routes to billing department",
            "Addresses both cancellation and refund",
            "Professional handling of request",
        ],
    },
    {
        "category": "complaint_clear",
        "input": {"query": "This is the worst service I have ever experienced! I want to file a complaint."},
        "expected_department": "complaints",
        "expected_behavior": [
            "Routes to complaints department",
            "Acknowledges customer frustration",
            "De-escalation language in response",
        ],
    },
    {
        "category": "general_ambiguous",
        "input": {"query": "I have a question about your product"},
        "expected_department": "general",
        "expected_behavior": [
            "Routes to general support",
            "Lower confidence score",
            "Asks for clarification",
        ],
    },
]

COMPLEX_SCENARIOS = [
    {
        "category": "mixed_technical_billing",
        "input": {
            "query": "The payment system crashes every time I try to update my credit card",
            "context": "Has active subscription",
        },
        "expected_department": "technical",
        "expected_behavior": [
            "Routes to either technical or billing",
            "Acknowledges both aspects",
            "May suggest escalation",
        ],
    },
    {
        "category": "urgent_ambiguous",
        "input": {"query": "URGENT: Need immediate help!!!", "customerId": "VIP001"},
        "expected_department": "general",
        "expected_behavior": [
            "Recognizes urgency",
            "Routes appropriately or escalates",
            "Requests more information",
        ],
    },
]


class RoutingEvaluator:
    """Evaluator for the routing pattern"""

    pattern = AgentPattern.ROUTING

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
            "classification_accuracy": MetricSpec("classification_accuracy", 1.5, self.classification_accuracy),
            "routing_appropriateness": MetricSpec("routing_appropriateness", 1.3, self.routing_appropriateness),
            "response_relevance": MetricSpec("response_relevance", 1.2, self.response_relevance),
            "confidence_alignment": MetricSpec("confidence_alignment", 0.8, self.confidence_alignment, always_on=True),
            "fallback_handling": MetricSpec("fallback_handling", 0.7, self.fallback_handling, always_on=True),
        }

    def generate_test_cases(self, count: int, complexity: Complexity = Complexity.MODERATE) -> list[TestCase]:
        return cycle_scenarios(
            self.pattern, self._scenarios(complexity), count, complexity,
            clock=self._clock, id_generator=self._id_generator,
            metadata_keys=("expected_department",),
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
        query = test_case.input.get("query", "")
        if metric == "classification_accuracy":
            lines = [
                "Evaluate the accuracy of the query classification:",
                "",
                f"Customer Query: {query}",
            ]
            if test_case.input.get("context"):
                lines.append(f"Context: {test_case.input['context']}")
            lines += [
                "",
                f"Classification: {response.get('classification')}",
                f"Routed To: {response.get('routedTo')}",
            ]
            if response.get("reasoning"):
                lines.append(f"Reasoning: {response['reasoning']}")
            lines += [
                "",
                f"Expected Department: {test_case.metadata.expected_department or 'Not specified'}",
                "",
                "Evaluation Criteria:",
                "1. Correct identification of query type",
                "2. Appropriate department selection",
                "3. Consideration of context clues",
                "4. Handling of ambiguous queries",
                "5. Consistency in classification",
                "",
                "Provide a score from 0-1 and detailed rationale.",
            ]
            return "\n".join(lines)
        if metric == "routing_appropriateness":
            return (
                "Evaluate the appropriateness of the routing decision:\n\n"
                f"Query: {query}\n"
                f"Routed To: {response.get('routedTo')}\n"
                f"Confidence: {response.get('confidence')}\n\n"
                "Evaluation Criteria:\n"
                "1. Match between query content and department expertise\n"
                "2. Consideration of urgency or priority\n"
                "3. Avoidance of unnecessary escalation\n"
                "4. Appropriate use of specialized departments\n"
                "5. Fallback handling for edge cases\n\n"
                "Provide a score from 0-1 and detailed rationale."
            )
        if metric == "response_relevance":
            return (
                "Evaluate the relevance of the response provided:\n\n"
                f"Customer Query: {query}\n"
                f"Response: {response.get('response')}\n\n"
                "Evaluation Criteria:\n"
                "1. Direct addressing of customer concern\n"
                "2. Completeness of information\n"
                "3. Appropriate level of detail\n"
                "4. Clarity and understandability\n"
                "5. Professional tone\n\n"
                "Provide a score from 0-1 and detailed rationale."
            )
        return generic_prompt(metric, test_case, response)

    # Metric heuristics

    def classification_accuracy(self, test_case: TestCase, response: Mapping[str, Any]) -> ScoringResult:
        expected = test_case.metadata.expected_department
        routed = response["routedTo"]
        confidence = float(response["confidence"])

        if expected and routed == expected:
            score = 0.8
        elif routed in ACCEPTABLE_ALTERNATIVES.get(expected, ()):
            score = 0.6
        else:
            score = 0.2

        if confidence >= 0.8 and score >= 0.8:
            score += 0.1
        elif confidence <= 0.5 and score <= 0.5:
            score += 0.1  # low confidence on an unclear routing is appropriate

        if routed in DEPARTMENTS:
            score += 0.1

        return ScoringResult(
            score=score,
            reason=f"Routed to {routed} (expected {expected or 'unspecified'}) with confidence {confidence:.2f}.",
        )

    def routing_appropriateness(self, test_case: TestCase, response: Mapping[str, Any]) -> ScoringResult:
        query = test_case.input["query"]
        routed = response["routedTo"]
        score = 0.5

        is_technical = bool(_TECHNICAL_RE.search(query))
        is_billing = bool(_BILLING_RE.search(query))
        is_complaint = bool(_COMPLAINT_RE.search(query))
        if is_technical and routed == "technical":
            score += 0.3
        if is_billing and routed == "billing":
            score += 0.3
        if is_complaint and routed == "complaints":
            score += 0.3
        if (is_technical and routed == "billing") or (is_billing and routed == "technical"):
            score -= 0.3

        reasoning = response.get("reasoning") or ""
        if len(reasoning) > 20:
            score += 0.2

        return ScoringResult(
            score=score,
            reason="Routing appropriateness evaluated based on query content and department match.",
        )

    def response_relevance(self, test_case: TestCase, response: Mapping[str, Any]) -> ScoringResult:
        text = response["response"]
        score = 0.3

        query_words = significant_words(test_case.input["query"])
        if query_words:
            lowered = text.lower()
            score += sum(1 for w in query_words if w in lowered) / len(query_words) * 0.3

        if 20 <= word_count(text) <= 150:
            score += 0.2

        language = _DEPARTMENT_LANGUAGE.get(response.get("routedTo"))
        if language is not None and language.search(text):
            score += 0.2

        return ScoringResult(
            score=score,
            reason="Response relevance measured by query addressing and appropriate content.",
        )

    def confidence_alignment(self, test_case: TestCase, response: Mapping[str, Any]) -> ScoringResult:
        confidence = float(response["confidence"])
        routed = response.get("routedTo")
        score = 0.5

        if 0.0 <= confidence <= 1.0:
            score += 0.2

        pattern = _CLEAR_MATCH.get(routed)
        clear = pattern is not None and bool(pattern.search(response.get("response") or ""))
        if clear and confidence >= 0.8:
            score += 0.3
        elif not clear and confidence <= 0.6:
            score += 0.3  # appropriate uncertainty

        return ScoringResult(
            score=score,
            reason="Confidence score appropriately reflects routing certainty.",
        )

    def fallback_handling(self, test_case: TestCase, response: Mapping[str, Any]) -> ScoringResult:
        routed = response.get("routedTo")
        confidence = float(response["confidence"])
        score = 0.7

        if is_ambiguous_query(test_case.input["query"]):
            if routed == "general" or confidence <= 0.6:
                score = 0.9
            elif confidence >= 0.9:
                score = 0.3  # too confident for an ambiguous query

        if routed == "general" and _FALLBACK_LANGUAGE_RE.search(response.get("response") or ""):
            score += 0.1

        return ScoringResult(
            score=score,
            reason="Fallback handling evaluated for ambiguous queries and edge cases.",
        )

    def _feedback(self, scores: Sequence[MetricScore], response: Mapping[str, Any], test_case: TestCase) -> str:
        parts = [feedback_tier(
            scores,
            (0.85, "Excellent routing performance with accurate classification."),
            (0.7, "Good routing with minor areas for improvement."),
            "Routing needs improvement in accuracy or appropriateness.",
        )]
        classification = find_score(scores, "classification_accuracy")
        if classification is not None and classification.score < 0.7:
            parts.append(
                f"Routed to {response.get('routedTo')} but expected {test_case.metadata.expected_department}."
            )
        confidence = response.get("confidence")
        if isinstance(confidence, (int, float)) and confidence < 0.5:
            parts.append("Low confidence score indicates uncertainty in routing decision.")
        return " ".join(parts)

    def _scenarios(self, complexity: Complexity | str) -> list[dict]:
        complexity = coerce_enum(Complexity, complexity, "complexity")
        if complexity == Complexity.SIMPLE:
            return [s for s in SCENARIOS if "clear" in s["category"] or s["category"] == "general_ambiguous"]
        if complexity == Complexity.COMPLEX:
            return SCENARIOS + COMPLEX_SCENARIOS
        return list(SCENARIOS)


def is_ambiguous_query(query: str) -> bool:
    """Open-ended query without any department-specific keyword"""
    return any(p.search(query) for p in _AMBIGUOUS_RES) and not _SPECIFIC_RE.search(query)
