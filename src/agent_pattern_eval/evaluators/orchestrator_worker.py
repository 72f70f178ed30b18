"""
Orchestrator-worker pattern evaluator

Scores an orchestrator that splits a feature request into tasks, assigns them
to workers, and reports on their execution.

Expected response shape:
    {"plan": {"overview": str, "tasks": [{"id", "title", "description", "dependencies",
                                          "assignedWorker", "estimatedEffort", "priority"}, ...],
              "timeline": str, "risks": [str, ...]},
     "execution": {"completedTasks": [{"workerId", "taskId", "implementation",
                                       "testsPassed", "notes"}, ...],
                   "inProgressTasks": [str, ...], "blockedTasks": [str, ...]},
     "summary": {"successRate": number (percent), "implementationNotes": str,
                 "nextSteps": [str, ...]}}
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
from agent_pattern_eval.scoring.text_heuristics import significant_words

DEFAULT_EXPECTED_TASK_COUNT = 5

TASK_TYPES = {
    "backend": re.compile(r"backend|api|server|database|model", re.I),
    "frontend": re.compile(r"frontend|ui|component|react|view", re.I),
    "testing": re.compile(r"test|spec|coverage|quality", re.I),
    "devops": re.compile(r"deploy|ci|cd|build|docker", re.I),
    "documentation": re.compile(r"document|readme|guide|comment", re.I),
    "design": re.compile(r"design|mockup|wireframe|ux", re.I),
}

COMPLEX_CONSTRAINTS = [
    "Must support multiple regions",
    "Include monitoring and analytics",
    "Zero downtime deployment",
]
COMPLEX_BEHAVIORS = ["Includes monitoring setup", "Plans rollback strategy", "Considers scalability"]

SCENARIOS = [
    {
        "category": "user_authentication",
        "input": {
            "featureRequest": "Add user authentication with email/password and social login",
            "projectContext": "Next.js application with TypeScript and PostgreSQL",
            "constraints": ["Must be GDPR compliant", "Support OAuth 2.0"],
            "technologies": ["Next.js", "TypeScript", "PostgreSQL", "NextAuth.js"],
        },
        "expected_task_count": 6,
        "expected_behavior": [
            "Creates tasks for database schema",
            "Implements authentication endpoints",
            "Adds frontend components",
            "Includes security considerations",
            "Plans testing strategy",
        ],
    },
    {
        "category": "search_feature",
        "input": {
            "featureRequest": "Implement full-text search with filters and autocomplete",
            "projectContext": "E-commerce platform with product catalog",
            "constraints": ["Sub-100ms response time", "Support 1M+ products"],
            "technologies": ["Elasticsearch", "React", "Node.js"],
        },
        "expected_task_count": 7,
        "expected_behavior": [
            "Sets up search infrastructure",
            "Implements indexing strategy",
            "Creates search API",
            "Builds UI components",
            "Adds caching layer",
            "Performance optimization tasks",
        ],
    },
    {
        "category": "notification_system",
        "input": {
            "featureRequest": "Build real-time notification system with email and push notifications",
            "projectContext": "SaaS application for team collaboration",
            "constraints": ["Scalable to 100K concurrent users", "Delivery guarantees"],
            "technologies": ["WebSockets", "Redis", "SendGrid", "Firebase"],
        },
        "expected_task_count": 8,
        "expected_behavior": [
            "Designs notification architecture",
            "Implements message queue",
            "Creates notification service",
            "Adds email integration",
            "Implements push notifications",
            "Builds preference management",
        ],
    },
]


def task_types(tasks: Sequence[Mapping[str, Any]]) -> set[str]:
    """Kinds of work (backend, frontend, testing, ...) the tasks cover"""
    types = set()
    for task in tasks:
        text = f"{task.get('title', '')} {task.get('description', '')}".lower()
        types.update(name for name, pattern in TASK_TYPES.items() if pattern.search(text))
    return types


class OrchestratorWorkerEvaluator:
    """Evaluator for the orchestrator-worker pattern"""

    pattern = AgentPattern.ORCHESTRATOR_WORKER

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
            "task_decomposition": MetricSpec("task_decomposition", 1.5, self.task_decomposition),
            "worker_coordination": MetricSpec("worker_coordination", 1.3, self.worker_coordination),
            "implementation_correctness": MetricSpec(
                "implementation_correctness", 1.5, self.implementation_correctness,
            ),
            "planning_quality": MetricSpec("planning_quality", 1.0, self.planning_quality, always_on=True),
            "execution_effectiveness": MetricSpec(
                "execution_effectiveness", 1.1, self.execution_effectiveness, always_on=True,
            ),
        }

    def generate_test_cases(self, count: int, complexity: Complexity = Complexity.MODERATE) -> list[TestCase]:
        return cycle_scenarios(
            self.pattern, self._scenarios(complexity), count, complexity,
            clock=self._clock, id_generator=self._id_generator,
            metadata_keys=("expected_task_count",),
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
        plan = response.get("plan") or {}
        tasks = plan.get("tasks") or []
        execution = response.get("execution") or {}
        if metric == "task_decomposition":
            titles = "\n".join(f"- {t.get('title')}" for t in tasks)
            return (
                "Evaluate the quality of task decomposition for the feature implementation:\n\n"
                f"Feature Request: {test_case.input.get('featureRequest')}\n"
                f"Project Context: {test_case.input.get('projectContext')}\n\n"
                f"Tasks Created: {len(tasks)}\n"
                f"Task Titles:\n{titles}\n\n"
                "Evaluation Criteria:\n"
                "1. Appropriate granularity of tasks\n"
                "2. Logical breakdown of the feature\n"
                "3. Clear task boundaries and responsibilities\n"
                "4. Consideration of all aspects of the feature\n"
                "5. Reasonable scope for each task\n\n"
                "Provide a score from 0-1 and detailed rationale."
            )
        if metric == "worker_coordination":
            workers = {t.get("assignedWorker") for t in tasks}
            with_deps = sum(1 for t in tasks if t.get("dependencies"))
            return (
                "Evaluate the coordination between orchestrator and workers:\n\n"
                f"Total Tasks: {len(tasks)}\n"
                f"Unique Workers: {len(workers)}\n"
                f"Task Dependencies: {with_deps} tasks with dependencies\n\n"
                "Execution Status:\n"
                f"- Completed: {len(execution.get('completedTasks') or [])}\n"
                f"- In Progress: {len(execution.get('inProgressTasks') or [])}\n"
                f"- Blocked: {len(execution.get('blockedTasks') or [])}\n\n"
                "Evaluation Criteria:\n"
                "1. Appropriate worker assignment\n"
                "2. Dependency management\n"
                "3. Parallel execution where possible\n"
                "4. Clear communication of requirements\n"
                "5. Handling of blocked tasks\n\n"
                "Provide a score from 0-1 and detailed rationale."
            )
        if metric == "implementation_correctness":
            summary = response.get("summary") or {}
            completed = execution.get("completedTasks") or []
            passed = sum(1 for t in completed if t.get("testsPassed"))
            return (
                "Evaluate the correctness of the implementation:\n\n"
                f"Success Rate: {summary.get('successRate')}%\n"
                f"Tests Passed: {passed}/{len(completed)}\n\n"
                f"Implementation Notes: {summary.get('implementationNotes')}\n\n"
                "Evaluation Criteria:\n"
                "1. All critical tasks completed successfully\n"
                "2. Test coverage and passing tests\n"
                "3. Quality of individual implementations\n"
                "4. Integration between components\n"
                "5. Adherence to requirements\n\n"
                "Provide a score from 0-1 and detailed rationale."
            )
        return generic_prompt(metric, test_case, response)

    # Metric heuristics

    def task_decomposition(self, test_case: TestCase, response: Mapping[str, Any]) -> ScoringResult:
        expected = test_case.metadata.expected_task_count or DEFAULT_EXPECTED_TASK_COUNT
        tasks = response["plan"]["tasks"]
        score = 0.0

        if expected - 2 <= len(tasks) <= expected + 3:
            score += 0.3
        elif 2 <= len(tasks) <= 15:
            score += 0.15

        if all(len(t.get("description") or "") > 20 for t in tasks):
            score += 0.2
        if len(task_types(tasks)) >= 3:
            score += 0.2

        priorities = [t.get("priority") for t in tasks]
        if "high" in priorities and len(set(priorities)) > 1:
            score += 0.15

        keywords = significant_words(test_case.input["featureRequest"])
        if any(
            k in (t.get("title") or "").lower() or k in (t.get("description") or "").lower()
            for k in keywords
            for t in tasks
        ):
            score += 0.15

        return ScoringResult(
            score=score,
            reason="Task decomposition quality based on granularity, coverage, and logical structure.",
        )

    def worker_coordination(self, test_case: TestCase, response: Mapping[str, Any]) -> ScoringResult:
        tasks = response["plan"]["tasks"]
        execution = response["execution"]
        score = 0.3

        workers = {t.get("assignedWorker") for t in tasks}
        if 2 <= len(workers) <= len(tasks):
            score += 0.2

        ids = {t.get("id") for t in tasks}
        has_dependencies = any(t.get("dependencies") for t in tasks)
        dependencies_valid = all(
            dep in ids and dep != t.get("id")
            for t in tasks
            for dep in t.get("dependencies") or []
        )
        if has_dependencies and dependencies_valid:
            score += 0.2

        completion = len(execution["completedTasks"]) / len(tasks) if tasks else 0.0
        score += completion * 0.2

        if execution.get("blockedTasks"):
            score += 0.1  # blocked work is surfaced rather than hidden
        elif completion == 1:
            score += 0.1

        return ScoringResult(
            score=score,
            reason="Worker coordination evaluated on assignment, dependencies, and execution management.",
        )

    def implementation_correctness(self, test_case: TestCase, response: Mapping[str, Any]) -> ScoringResult:
        success_rate = float(response["summary"]["successRate"])
        completed = response["execution"]["completedTasks"]
        score = 0.0

        if success_rate >= 90:
            score += 0.4
        elif success_rate >= 70:
            score += 0.25
        elif success_rate >= 50:
            score += 0.1

        if completed:
            score += sum(1 for t in completed if t.get("testsPassed")) / len(completed) * 0.3
        if all(len(t.get("implementation") or "") > 50 for t in completed):
            score += 0.2
        if sum(1 for t in completed if len(t.get("notes") or "") > 10) > len(completed) * 0.5:
            score += 0.1

        return ScoringResult(
            score=score,
            reason="Implementation correctness based on success rate, tests, and quality indicators.",
        )

    def planning_quality(self, test_case: TestCase, response: Mapping[str, Any]) -> ScoringResult:
        plan = response["plan"]
        tasks = plan.get("tasks") or []
        score = 0.2

        if len(plan.get("overview") or "") > 50:
            score += 0.2
        if len(plan.get("timeline") or "") > 20:
            score += 0.15
        risks = plan.get("risks") or []
        if risks:
            score += 0.2
            if 2 <= len(risks) <= 5:
                score += 0.1
        if sum(1 for t in tasks if t.get("estimatedEffort")) > len(tasks) * 0.7:
            score += 0.15

        return ScoringResult(
            score=score,
            reason="Planning quality assessed through overview, timeline, risks, and estimates.",
        )

    def execution_effectiveness(self, test_case: TestCase, response: Mapping[str, Any]) -> ScoringResult:
        tasks = response["plan"]["tasks"]
        execution = response["execution"]
        summary = response["summary"]
        score = 0.0

        if tasks:
            score += len(execution["completedTasks"]) / len(tasks) * 0.4
        if "inProgressTasks" in execution or "blockedTasks" in execution:
            score += 0.2
        if len(summary.get("implementationNotes") or "") > 50:
            score += 0.2
        if summary.get("nextSteps"):
            score += 0.2

        return ScoringResult(
            score=score,
            reason="Execution effectiveness based on completion rate and tracking quality.",
        )

    def _feedback(self, scores: Sequence[MetricScore], response: Mapping[str, Any], test_case: TestCase) -> str:
        parts = [feedback_tier(
            scores,
            (0.85, "Excellent orchestration with effective task planning and execution."),
            (0.7, "Good orchestration with some areas for improvement."),
            "Orchestration needs improvement in planning or execution.",
        )]
        plan = response.get("plan") or {}
        execution = response.get("execution") or {}
        summary = response.get("summary") or {}
        if plan or execution:
            parts.append(
                f"Created {len(plan.get('tasks') or [])} tasks with "
                f"{len(execution.get('completedTasks') or [])} completed."
            )
        if "successRate" in summary:
            parts.append(f"Success rate: {summary['successRate']}%.")
        blocked = execution.get("blockedTasks") or []
        if blocked:
            parts.append(f"{len(blocked)} tasks blocked.")
        return " ".join(parts)

    def _scenarios(self, complexity: Complexity | str) -> list[dict]:
        complexity = coerce_enum(Complexity, complexity, "complexity")
        if complexity == Complexity.SIMPLE:
            return [
                {
                    **s,
                    "input": {
                        **s["input"],
                        "constraints": s["input"]["constraints"][:1],
                        "technologies": s["input"]["technologies"][:2],
                    },
                    "expected_task_count": max(3, s["expected_task_count"] - 2),
                }
                for s in SCENARIOS
            ]
        if complexity == Complexity.COMPLEX:
            return [
                {
                    **s,
                    "input": {**s["input"], "constraints": s["input"]["constraints"] + COMPLEX_CONSTRAINTS},
                    "expected_task_count": s["expected_task_count"] + 3,
                    "expected_behavior": s["expected_behavior"] + COMPLEX_BEHAVIORS,
                }
                for s in SCENARIOS
            ]
        return list(SCENARIOS)
