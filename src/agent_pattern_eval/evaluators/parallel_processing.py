"""
Parallel processing pattern evaluator

Scores a code review fanned out to parallel analyzers (security, performance,
maintainability, ...) whose findings are aggregated into one report.

Expected response shape:
    {"analyses": {"<area>": {"category": str, "summary": str,
                             "findings": [{"severity": "high|medium|low", "issue": str,
                                           "line": int (optional), "suggestion": str}, ...]}, ...},
     "overallSummary": str, "prioritizedActions": [str, ...],
     "codeQualityScore": number (optional, 0-100)}
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
    random_token,
    validate_metric_scores,
)
from agent_pattern_eval.scoring.llm_judge import LLMJudgeScorer

DEFAULT_AREAS = ("security", "performance", "maintainability")
COMPLEX_FOCUS_AREAS = ["security", "performance", "maintainability", "testing", "documentation"]
COMPLEX_EXPECTED_ISSUES = ["No tests", "Missing documentation", "Poor naming conventions"]

_PRIORITY_RE = re.compile(r"critical|high priority|immediate|urgent|important", re.I)
_ACTIONABLE_RE = re.compile(r"implement|add|remove|refactor|update|fix|change|improve", re.I)

_WEB_API_CODE = """
class UserController {
  async getUser(id) {
    const query = `SELECT * FROM users WHERE id = ${id}`;
    const result = await db.query(query);
    return result[0];
  }

  async updateUser(id, data) {
    const user = await this.getUser(id);
    Object.assign(user, data);
    await db.query(`UPDATE users SET data = '${JSON.stringify(user)}' WHERE id = ${id}`);
    return user;
  }
}"""

_ALGORITHM_CODE = """
def find_duplicates(arr):
    duplicates = []
    for i in range(len(arr)):
        for j in range(i + 1, len(arr)):
            if arr[i] == arr[j] and arr[i] not in duplicates:
                duplicates.append(arr[i])
    return duplicates

def process_large_dataset(data):
    results = []
    for item in data:
        processed = expensive_operation(item)
        if processed:
            results.append(processed)
    return results"""

_REACT_CODE = """
const UserProfile = ({ userId }) => {
  const [user, setUser] = useState(null);
  const [posts, setPosts] = useState([]);

  useEffect(() => {
    fetch('/api/users/' + userId)
      .then(res => res.json())
      .then(data => setUser(data));

    fetch('/api/posts?user=' + userId)
      .then(res => res.json())
      .then(data => setPosts(data));
  }, []);

  return (
    <div>
      <h1>{user.name}</h1>
      {posts.map(post => <Post key={post.id} {...post} />)}
    </div>
  );
};"""

SCENARIOS = [
    {
        "category": "web_api",
        "input": {"code": _WEB_API_CODE, "language": "javascript", "context": "REST API controller"},
        "expected_issues": ["SQL injection", "No input validation", "No error handling"],
        "expected_behavior": [
            "Identifies SQL injection vulnerabilities",
            "Flags missing input validation",
            "Suggests parameterized queries",
            "Notes lack of error handling",
        ],
    },
    {
        "category": "algorithm",
        "input": {"code": _ALGORITHM_CODE, "language": "python", "context": "Data processing functions"},
        "expected_issues": ["O(n²) complexity", "No caching", "Memory inefficient"],
        "expected_behavior": [
            "Identifies performance issues with nested loops",
            "Suggests using sets for duplicate detection",
            "Recommends batch processing or generators",
            "Analyzes time complexity",
        ],
    },
    {
        "category": "react_component",
        "input": {"code": _REACT_CODE, "language": "javascript", "context": "React component"},
        "expected_issues": ["Missing dependency", "No error handling", "Potential null reference"],
        "expected_behavior": [
            "Identifies missing userId dependency in useEffect",
            "Flags potential null reference error",
            "Suggests error handling for API calls",
            "Recommends loading states",
        ],
    },
]


def all_findings(response: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    """Findings of every analysis, flattened in analysis order"""
    return [
        finding
        for analysis in response["analyses"].values()
        if analysis
        for finding in analysis.get("findings") or []
    ]


def _finding_count(analysis: Mapping[str, Any] | None) -> int:
    return len(analysis.get("findings") or []) if analysis else 0


def has_contradictions(findings: Sequence[Mapping[str, Any]]) -> bool:
    """Opposing recommendations such as optimize vs simplify, or add vs remove"""
    issues = [f["issue"].lower() for f in findings]
    optimize_and_simplify = any("optimize" in i for i in issues) and any("simplify" in i for i in issues)
    add_and_remove = (
        any("add" in i for i in issues)
        and any("remove" in i for i in issues)
        and sum(1 for i in issues if "add" in i or "remove" in i) > 1
    )
    return optimize_and_simplify or add_and_remove


def severity_consistent(findings: Sequence[Mapping[str, Any]]) -> bool:
    """Security findings should not span all three severity levels"""
    security = [
        f for f in findings
        if "security" in f["issue"].lower() or "vulnerability" in f["issue"].lower()
    ]
    if len(security) > 1:
        return len({f.get("severity") for f in security}) <= 2
    return True


class ParallelProcessingEvaluator:
    """Evaluator for the parallel processing pattern"""

    pattern = AgentPattern.PARALLEL_PROCESSING

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
            "analysis_completeness": MetricSpec("analysis_completeness", 1.5, self.analysis_completeness),
            "consistency": MetricSpec("consistency", 1.2, self.consistency),
            "aggregation_quality": MetricSpec("aggregation_quality", 1.0, self.aggregation_quality),
            "finding_accuracy": MetricSpec("finding_accuracy", 1.3, self.finding_accuracy, always_on=True),
            "actionability": MetricSpec("actionability", 0.9, self.actionability, always_on=True),
        }

    def generate_test_cases(self, count: int, complexity: Complexity = Complexity.MODERATE) -> list[TestCase]:
        return cycle_scenarios(
            self.pattern, self._scenarios(complexity), count, complexity,
            clock=self._clock, id_generator=self._id_generator,
            metadata_keys=("expected_issues",),
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
        analyses = response.get("analyses") or {}
        if metric == "analysis_completeness":
            focus = test_case.input.get("focusAreas") or []
            provided = "\n".join(f"- {key}: {_finding_count(a)} findings" for key, a in analyses.items())
            return (
                "Evaluate the completeness of the parallel code review analysis:\n\n"
                f"Code Language: {test_case.input.get('language')}\n"
                f"Focus Areas: {', '.join(focus) or 'Security, Performance, Maintainability'}\n\n"
                f"Analyses Provided:\n{provided}\n\n"
                "Evaluation Criteria:\n"
                "1. Coverage of all requested focus areas\n"
                "2. Depth of analysis in each area\n"
                "3. Identification of relevant issues\n"
                "4. Appropriate severity classification\n"
                "5. Comprehensiveness of review\n\n"
                "Provide a score from 0-1 and detailed rationale."
            )
        if metric == "consistency":
            individual = "\n\n".join(
                f"{key}: {(a or {}).get('summary') or 'No summary'}" for key, a in analyses.items()
            )
            return (
                "Evaluate the consistency across parallel analyses:\n\n"
                f"Overall Summary: {response.get('overallSummary')}\n\n"
                f"Individual Analyses:\n{individual}\n\n"
                "Evaluation Criteria:\n"
                "1. Alignment between individual analyses\n"
                "2. Consistent severity ratings for related issues\n"
                "3. No contradictory findings\n"
                "4. Coherent overall narrative\n"
                "5. Unified recommendations\n\n"
                "Provide a score from 0-1 and detailed rationale."
            )
        if metric == "aggregation_quality":
            return (
                "Evaluate the quality of aggregated results:\n\n"
                f"Overall Summary: {response.get('overallSummary')}\n"
                f"Prioritized Actions: {', '.join(response.get('prioritizedActions') or [])}\n"
                f"Total Findings: {sum(_finding_count(a) for a in analyses.values())}\n\n"
                "Evaluation Criteria:\n"
                "1. Effective synthesis of individual analyses\n"
                "2. Clear prioritization of actions\n"
                "3. Balanced representation of all areas\n"
                "4. Actionable overall recommendations\n"
                "5. Clear summary of key issues\n\n"
                "Provide a score from 0-1 and detailed rationale."
            )
        return generic_prompt(metric, test_case, response)

    # Metric heuristics

    def analysis_completeness(self, test_case: TestCase, response: Mapping[str, Any]) -> ScoringResult:
        analyses = response["analyses"]
        score = 0.0

        covered = [area for area in DEFAULT_AREAS if _finding_count(analyses.get(area)) > 0]
        score += len(covered) / len(DEFAULT_AREAS) * 0.4

        focus = test_case.input.get("focusAreas") or []
        if focus:
            custom = [area for area in focus if _finding_count(analyses.get(area.lower())) > 0]
            score += len(custom) / len(focus) * 0.3

        total = sum(_finding_count(a) for a in analyses.values())
        if total >= 6:
            score += 0.2
        elif total >= 3:
            score += 0.1

        if all(a and len(a.get("summary") or "") > 20 for a in analyses.values()):
            score += 0.1

        return ScoringResult(
            score=score,
            reason="Completeness evaluated based on coverage of focus areas and depth of analysis.",
        )

    def consistency(self, test_case: TestCase, response: Mapping[str, Any]) -> ScoringResult:
        findings = all_findings(response)
        score = 0.5

        if not has_contradictions(findings):
            score += 0.3
        if severity_consistent(findings):
            score += 0.2

        actions = response.get("prioritizedActions") or []
        if actions:
            def aligned(action: str) -> bool:
                head = action.lower().split(" ")[0]
                return any(
                    head in f["issue"].lower() or head in (f.get("suggestion") or "").lower()
                    for f in findings
                )
            if all(aligned(a) for a in actions):
                score += 0.2

        return ScoringResult(
            score=score,
            reason="Consistency measured across parallel analyses and aggregated results.",
        )

    def aggregation_quality(self, test_case: TestCase, response: Mapping[str, Any]) -> ScoringResult:
        summary = response.get("overallSummary") or ""
        areas = list(response["analyses"])
        score = 0.0

        if len(summary) > 50:
            score += 0.3
            if areas:
                mentioned = [a for a in areas if a in summary.lower()]
                score += len(mentioned) / len(areas) * 0.2

        actions = response.get("prioritizedActions") or []
        if actions:
            score += 0.2
            if any(_PRIORITY_RE.search(a) for a in actions) or len(actions) <= 5:
                score += 0.1

        quality = response.get("codeQualityScore")
        if isinstance(quality, (int, float)) and 0 <= quality <= 100:
            score += 0.2

        return ScoringResult(
            score=score,
            reason="Aggregation quality based on synthesis, prioritization, and clarity.",
        )

    def finding_accuracy(self, test_case: TestCase, response: Mapping[str, Any]) -> ScoringResult:
        expected = test_case.metadata.expected_issues
        findings = all_findings(response)
        score = 0.3

        if expected:
            def found(issue: str) -> bool:
                needle = issue.lower()
                return any(
                    needle in f["issue"].lower() or needle in (f.get("suggestion") or "").lower()
                    for f in findings
                )
            score += sum(1 for issue in expected if found(issue)) / len(expected) * 0.4

        # Too many findings per line of code suggests false positives
        per_line = len(findings) / len(test_case.input["code"].split("\n"))
        if per_line <= 0.5:
            score += 0.2
        elif per_line <= 1:
            score += 0.1

        high = sum(1 for f in findings if f.get("severity") == "high")
        if findings and high / len(findings) <= 0.3:
            score += 0.1

        return ScoringResult(
            score=score,
            reason="Finding accuracy based on expected issues and reasonable distribution.",
        )

    def actionability(self, test_case: TestCase, response: Mapping[str, Any]) -> ScoringResult:
        findings = all_findings(response)
        score = 0.0

        with_suggestions = sum(1 for f in findings if len(f.get("suggestion") or "") > 10)
        score += with_suggestions / max(len(findings), 1) * 0.4

        actions = response.get("prioritizedActions") or []
        if actions:
            score += sum(1 for a in actions if _ACTIONABLE_RE.search(a)) / len(actions) * 0.3

        if findings:
            score += sum(1 for f in findings if f.get("line") is not None) / len(findings) * 0.3

        return ScoringResult(
            score=score,
            reason="Actionability measured by quality of suggestions and specific recommendations.",
        )

    def _feedback(self, scores: Sequence[MetricScore], response: Mapping[str, Any], test_case: TestCase) -> str:
        parts = [feedback_tier(
            scores,
            (0.85, "Excellent parallel analysis with comprehensive coverage."),
            (0.7, "Good analysis with minor areas for improvement."),
            "Analysis needs improvement in completeness or consistency.",
        )]
        analyses = response.get("analyses") or {}
        if isinstance(analyses, Mapping):
            total = sum(_finding_count(a) for a in analyses.values())
            parts.append(f"Identified {total} issues across {len(analyses)} categories.")
        actions = response.get("prioritizedActions") or []
        if actions:
            parts.append(f"Provided {len(actions)} prioritized actions.")
        return " ".join(parts)

    def _scenarios(self, complexity: Complexity | str) -> list[dict]:
        complexity = coerce_enum(Complexity, complexity, "complexity")
        if complexity == Complexity.SIMPLE:
            return [
                {
                    **s,
                    "input": {**s["input"], "code": "\n".join(s["input"]["code"].split("\n")[:10])},
                    "expected_issues": s["expected_issues"][:1],
                }
                for s in SCENARIOS
            ]
        if complexity == Complexity.COMPLEX:
            return [
                {
                    **s,
                    "input": {**s["input"], "focusAreas": list(COMPLEX_FOCUS_AREAS)},
                    "expected_issues": s["expected_issues"] + COMPLEX_EXPECTED_ISSUES,
                }
                for s in SCENARIOS
            ]
        return list(SCENARIOS)
