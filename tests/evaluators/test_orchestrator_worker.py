"""Tests for the orchestrator-worker evaluator"""

import copy
from datetime import datetime, timezone

import pytest

from agent_pattern_eval.domain.enums import AgentPattern, Complexity
from agent_pattern_eval.domain.value_objects import EvaluationConfig
from agent_pattern_eval.evaluators.orchestrator_worker import OrchestratorWorkerEvaluator, task_types

FIXED_NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)

TASKS = [
    {"id": "T1", "title": "Design database schema for users",
     "description": "Create the users and accounts tables in PostgreSQL",
     "assignedWorker": "backend-1", "dependencies": [], "estimatedEffort": "4h", "priority": "high"},
    {"id": "T2", "title": "Build authentication API endpoints",
     "description": "Implement login, logout and session endpoints on the server",
     "assignedWorker": "backend-1", "dependencies": ["T1"], "estimatedEffort": "6h", "priority": "high"},
    {"id": "T3", "title": "Create login UI component",
     "description": "React form for email/password with validation messages",
     "assignedWorker": "frontend-1", "dependencies": ["T2"], "estimatedEffort": "5h", "priority": "medium"},
    {"id": "T4", "title": "Integrate social login",
     "description": "Configure OAuth 2.0 providers through NextAuth.js",
     "assignedWorker": "backend-2", "dependencies": ["T2"], "estimatedEffort": "4h", "priority": "medium"},
    {"id": "T5", "title": "Write authentication tests",
     "description": "Unit and integration test coverage for all auth flows",
     "assignedWorker": "qa-1", "dependencies": ["T2", "T3"], "estimatedEffort": "5h", "priority": "medium"},
    {"id": "T6", "title": "Document the authentication setup",
     "description": "Write a README guide covering configuration and GDPR notes",
     "assignedWorker": "docs-1", "dependencies": ["T4"], "estimatedEffort": "2h", "priority": "low"},
]


def _completed(tasks):
    return [
        {
            "workerId": t["assignedWorker"],
            "taskId": t["id"],
            "implementation": f"Implemented {t['title'].lower()} with migrations and review fixes applied.",
            "testsPassed": True,
            "notes": "Reviewed and merged.",
        }
        for t in tasks
    ]


RESPONSE = {
    "plan": {
        "overview": "Add credential and OAuth sign-in backed by PostgreSQL sessions, delivered in two phases.",
        "tasks": TASKS,
        "timeline": "Two sprints, social login in the second sprint",
        "risks": ["OAuth provider review delays", "GDPR consent flows"],
    },
    "execution": {"completedTasks": _completed(TASKS), "inProgressTasks": [], "blockedTasks": []},
    "summary": {
        "successRate": 100,
        "implementationNotes": "All endpoints are covered by integration tests and the README documents setup.",
        "nextSteps": ["Enable rate limiting on login"],
    },
}


@pytest.fixture
def evaluator():
    return OrchestratorWorkerEvaluator(clock=lambda: FIXED_NOW, id_generator=lambda: "orc000001")


@pytest.fixture
def auth_case(evaluator):
    return evaluator.generate_test_cases(1)[0]


@pytest.fixture
def config():
    return EvaluationConfig(
        pattern=AgentPattern.ORCHESTRATOR_WORKER,
        metrics=["task_decomposition", "worker_coordination", "implementation_correctness"],
    )


class TestEvaluateResponse:
    def test_complete_run(self, evaluator, auth_case, config):
        result = evaluator.evaluate_response(auth_case, RESPONSE, config)

        for metric, score in result.score_map().items():
            assert score == pytest.approx(1.0), metric
        assert result.overall_score == pytest.approx(1.0)
        assert result.passed is True
        assert result.feedback == (
            "Excellent orchestration with effective task planning and execution. "
            "Created 6 tasks with 6 completed. Success rate: 100%."
        )

    def test_blocked_tasks_reported(self, evaluator, auth_case, config):
        response = copy.deepcopy(RESPONSE)
        response["execution"] = {
            "completedTasks": _completed(TASKS[:4]),
            "inProgressTasks": [],
            "blockedTasks": ["T5", "T6"],
        }
        result = evaluator.evaluate_response(auth_case, response, config)

        assert result.score_map()["worker_coordination"] == pytest.approx(0.8 + 0.2 * 4 / 6)
        assert result.feedback.endswith("2 tasks blocked.")

    def test_missing_execution_degrades(self, evaluator, auth_case, config):
        response = {"plan": RESPONSE["plan"], "summary": RESPONSE["summary"]}
        result = evaluator.evaluate_response(auth_case, response, config)

        assert result.score_map()["worker_coordination"] == 0.0
        assert result.score_map()["implementation_correctness"] == 0.0
        assert "Created 6 tasks with 0 completed." in result.feedback


class TestHeuristics:
    def test_self_dependency_loses_dependency_credit(self, evaluator, auth_case):
        response = copy.deepcopy(RESPONSE)
        response["plan"]["tasks"][1]["dependencies"] = ["T2"]
        assert evaluator.worker_coordination(auth_case, response).score == pytest.approx(0.8)

    def test_low_success_rate(self, evaluator, auth_case):
        response = copy.deepcopy(RESPONSE)
        response["summary"]["successRate"] = 60
        assert evaluator.implementation_correctness(auth_case, response).score == pytest.approx(0.7)

    def test_task_types(self):
        assert task_types(TASKS) >= {"backend", "frontend", "testing", "documentation"}
        assert task_types([]) == set()


class TestGenerateTestCases:
    def test_expected_task_count(self, auth_case):
        assert auth_case.metadata.category == "user_authentication"
        assert auth_case.metadata.expected_task_count == 6

    def test_simple_and_complex(self, evaluator):
        simple = evaluator.generate_test_cases(1, Complexity.SIMPLE)[0]
        assert simple.metadata.expected_task_count == 4
        assert len(simple.input["technologies"]) == 2

        complex_case = evaluator.generate_test_cases(1, Complexity.COMPLEX)[0]
        assert complex_case.metadata.expected_task_count == 9
        assert len(complex_case.input["constraints"]) == 5
        assert "Plans rollback strategy" in complex_case.expected_behavior
