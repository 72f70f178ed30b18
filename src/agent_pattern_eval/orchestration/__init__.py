"""
Orchestration sub-package

Batch job scheduling, concurrency control, resource limits and notifications.
"""

from agent_pattern_eval.orchestration.execution import BatchExecution, ItemRunner, StopReason
from agent_pattern_eval.orchestration.notifications import LoggingNotifier, Notifier
from agent_pattern_eval.orchestration.orchestrator import BatchOrchestrator
from agent_pattern_eval.orchestration.resources import ResourceMonitor
from agent_pattern_eval.orchestration.work_queue import WorkItem, WorkQueue, build_work_items, order_items

__all__ = [
    # execution
    "BatchExecution",
    "ItemRunner",
    "StopReason",
    # notifications
    "LoggingNotifier",
    "Notifier",
    # service
    "BatchOrchestrator",
    # resources
    "ResourceMonitor",
    # queue
    "WorkItem",
    "WorkQueue",
    "build_work_items",
    "order_items",
]
