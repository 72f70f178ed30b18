"""Tests for work item ordering and requeueing"""

from datetime import datetime, timezone

import pytest

from agent_pattern_eval.domain.batch import BatchConfig, BatchJob, TestSuite
from agent_pattern_eval.domain.entities import TestCase
from agent_pattern_eval.domain.enums import AgentPattern, PrioritizationStrategy
from agent_pattern_eval.orchestration.work_queue import WorkQueue, build_work_items, order_items


def _suite(suite_id, pattern, ids, priorities=None):
    priorities = priorities or [0] * len(ids)
    return TestSuite(
        suite_id=suite_id,
        pattern=pattern,
        test_cases=[
            TestCase(id=case_id, pattern=pattern, input={}, priority=p)
            for case_id, p in zip(ids, priorities)
        ],
    )


def _items(*suites, patterns=None):
    job = BatchJob(
        id="job",
        name="queue test",
        patterns=patterns or [s.pattern for s in suites],
        test_suites=list(suites),
        config=BatchConfig(),
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )
    return build_work_items(job)


def _ids(items):
    return [i.test_case.id for i in items]


ROUTING = _suite("r", AgentPattern.ROUTING, ["r1", "r2", "r3"])
PARALLEL = _suite("p", AgentPattern.PARALLEL_PROCESSING, ["p1"])


class TestBuildWorkItems:
    def test_submission_order(self):
        items = _items(ROUTING, PARALLEL)
        assert _ids(items) == ["r1", "r2", "r3", "p1"]
        assert [i.submission_index for i in items] == [0, 1, 2, 3]

    def test_suites_outside_job_patterns_are_ignored(self):
        items = _items(ROUTING, PARALLEL, patterns=[AgentPattern.PARALLEL_PROCESSING])
        assert _ids(items) == ["p1"]


class TestOrderItems:
    def test_fifo(self):
        assert _ids(order_items(_items(ROUTING, PARALLEL), PrioritizationStrategy.FIFO)) == ["r1", "r2", "r3", "p1"]

    def test_lifo(self):
        assert _ids(order_items(_items(ROUTING, PARALLEL), PrioritizationStrategy.LIFO)) == ["p1", "r3", "r2", "r1"]

    def test_priority_higher_first_ties_by_submission(self):
        suite = _suite("s", AgentPattern.ROUTING, ["a", "b", "c", "d"], [1, 5, 1, 5])
        assert _ids(order_items(_items(suite), PrioritizationStrategy.PRIORITY)) == ["b", "d", "a", "c"]

    def test_round_robin(self):
        multi = _suite("m", AgentPattern.MULTI_STEP_TOOL_USAGE, ["m1", "m2"])
        ordered = order_items(_items(ROUTING, PARALLEL, multi), PrioritizationStrategy.ROUND_ROBIN)
        assert _ids(ordered) == ["r1", "p1", "m1", "r2", "m2", "r3"]


class TestWorkQueue:
    def test_pop_stamps_sequence(self):
        queue = WorkQueue(_items(ROUTING), PrioritizationStrategy.FIFO)
        first, second = queue.pop(), queue.pop()
        assert (first.sequence, second.sequence) == (0, 1)
        assert len(queue) == 1

    def test_requeue_goes_to_back(self):
        queue = WorkQueue(_items(ROUTING), PrioritizationStrategy.FIFO)
        item = queue.pop()
        queue.requeue(item.next_attempt())
        assert _ids(queue.drain()) == ["r2", "r3", "r1"]
        assert not queue

    def test_next_attempt_clears_sequence(self):
        item = WorkQueue(_items(ROUTING), PrioritizationStrategy.FIFO).pop()
        retry = item.next_attempt()
        assert retry.attempt == 2
        assert retry.sequence is None

    def test_priority_requeue_stays_in_its_band(self):
        suite = _suite("s", AgentPattern.ROUTING, ["hi1", "hi2", "mid", "lo"], [9, 9, 5, 1])
        queue = WorkQueue(_items(suite), PrioritizationStrategy.PRIORITY)
        failed = queue.pop()  # hi1
        queue.requeue(failed.next_attempt())
        assert _ids(queue.drain()) == ["hi2", "hi1", "mid", "lo"]

    def test_priority_requeue_behind_higher_work(self):
        suite = _suite("s", AgentPattern.ROUTING, ["hi", "mid1", "mid2", "lo"], [9, 5, 5, 1])
        queue = WorkQueue(_items(suite), PrioritizationStrategy.PRIORITY)
        queue.pop()
        mid = queue.pop()
        queue.requeue(mid.next_attempt())
        assert _ids(queue.drain()) == ["mid2", "mid1", "lo"]

    def test_pop_empty_raises(self):
        queue = WorkQueue([], PrioritizationStrategy.FIFO)
        with pytest.raises(IndexError):
            queue.pop()
