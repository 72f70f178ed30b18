"""
Batch work queue

Holds the (pattern, test case) items of one job in the order workers should
start them. The order is fixed when the queue is built and follows the job's
PrioritizationStrategy; retried items re-enter at the back of that order.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, replace
from itertools import count
from typing import Iterable

from agent_pattern_eval.domain.batch import BatchJob, TestSuite
from agent_pattern_eval.domain.entities import TestCase
from agent_pattern_eval.domain.enums import AgentPattern, PrioritizationStrategy


@dataclass(frozen=True)
class WorkItem:
    """One evaluation to perform"""
    pattern: AgentPattern
    test_case: TestCase
    suite: TestSuite
    submission_index: int
    attempt: int = 1
    sequence: int | None = None  # stamped when popped

    @property
    def priority(self) -> int:
        return self.test_case.priority

    def next_attempt(self) -> "WorkItem":
        return replace(self, attempt=self.attempt + 1, sequence=None)


def build_work_items(job: BatchJob) -> list[WorkItem]:
    """Flatten the job's suites into items in submission order"""
    items = []
    for suite in job.test_suites:
        if suite.pattern not in job.patterns:
            continue
        for test_case in suite.test_cases:
            items.append(WorkItem(
                pattern=suite.pattern,
                test_case=test_case,
                suite=suite,
                submission_index=len(items),
            ))
    return items


def order_items(items: Iterable[WorkItem], strategy: PrioritizationStrategy) -> list[WorkItem]:
    """
    Arrange items in start order

    FIFO keeps submission order, LIFO reverses it, PRIORITY puts higher
    priority first with submission order breaking ties, and ROUND_ROBIN takes
    one item from each pattern in turn (patterns in first-seen order).
    """
    items = list(items)
    if strategy == PrioritizationStrategy.LIFO:
        return items[::-1]
    if strategy == PrioritizationStrategy.PRIORITY:
        return sorted(items, key=lambda i: (-i.priority, i.submission_index))
    if strategy == PrioritizationStrategy.ROUND_ROBIN:
        lanes: dict[AgentPattern, deque[WorkItem]] = {}
        for item in items:
            lanes.setdefault(item.pattern, deque()).append(item)
        ordered = []
        while lanes:
            for pattern in list(lanes):
                ordered.append(lanes[pattern].popleft())
                if not lanes[pattern]:
                    del lanes[pattern]
        return ordered
    return items


class WorkQueue:
    """
    Ordered queue of pending work items

    Not thread-safe; the batch execution loop is its only user.
    """

    def __init__(self, items: Iterable[WorkItem], strategy: PrioritizationStrategy):
        self.strategy = strategy
        self._items: deque[WorkItem] = deque(order_items(items, strategy))
        self._sequence = count()

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def pop(self) -> WorkItem:
        """Take the next item and stamp its sequence number"""
        item = self._items.popleft()
        return replace(item, sequence=next(self._sequence))

    def requeue(self, item: WorkItem) -> None:
        """
        Put a retried item back at the back of the active order

        Under PRIORITY the back is the end of the item's own priority band,
        so a retry never jumps ahead of equal or higher priority work.
        """
        if self.strategy == PrioritizationStrategy.PRIORITY:
            position = 0
            for i, queued in enumerate(self._items):
                if queued.priority >= item.priority:
                    position = i + 1
            self._items.insert(position, item)
        else:
            self._items.append(item)

    def drain(self) -> list[WorkItem]:
        """Remove and return every pending item"""
        items = list(self._items)
        self._items.clear()
        return items
