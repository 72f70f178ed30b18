"""Tests for the evaluator registry"""

from datetime import datetime, timezone

import pytest

from agent_pattern_eval.domain.enums import AgentPattern
from agent_pattern_eval.domain.errors import InputValidationError, UnknownPatternError
from agent_pattern_eval.evaluators.registry import EvaluatorRegistry, default_registry
from agent_pattern_eval.evaluators.routing import RoutingEvaluator


class TestEvaluatorRegistry:
    def test_default_registry_covers_every_pattern(self):
        registry = default_registry()
        assert len(registry) == len(AgentPattern)
        assert set(registry.patterns()) == set(AgentPattern)
        for evaluator in registry:
            assert registry.get(evaluator.pattern) is evaluator

    def test_get_by_string(self):
        registry = default_registry()
        assert isinstance(registry.get("routing"), RoutingEvaluator)

    def test_unknown_pattern_string(self):
        with pytest.raises(UnknownPatternError, match="swarm"):
            default_registry().get("swarm")

    def test_unregistered_pattern(self):
        registry = EvaluatorRegistry()
        with pytest.raises(UnknownPatternError, match="routing"):
            registry.get(AgentPattern.ROUTING)

    def test_unknown_pattern_is_input_error(self):
        assert issubclass(UnknownPatternError, InputValidationError)

    def test_register_replaces(self):
        registry = EvaluatorRegistry()
        first, second = RoutingEvaluator(), RoutingEvaluator()
        registry.register(first)
        registry.register(second)
        assert len(registry) == 1
        assert registry.get("routing") is second

    def test_contains(self):
        registry = EvaluatorRegistry()
        registry.register(RoutingEvaluator())
        assert "routing" in registry
        assert AgentPattern.ROUTING in registry
        assert "parallel-processing" not in registry
        assert "swarm" not in registry

    def test_shared_clock_and_ids(self):
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        registry = default_registry(clock=lambda: now, id_generator=lambda: "fixed")
        case = registry.get("parallel-processing").generate_test_cases(1)[0]
        assert case.id == "parallel-processing-1767225600000-fixed"
