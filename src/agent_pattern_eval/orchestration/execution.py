"""
Batch execution

Runs the work items of one BatchJob on a bounded thread pool and applies the
job's prioritization, error-handling policy and resource limits. Produces the
terminal status and the final BatchResults.
"""

from __future__ import annotations

import logging
import threading
import time
import traceback
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from agent_pattern_eval.domain.batch import (
    BatchError,
    BatchJob,
    BatchPerformance,
    BatchResults,
    BatchSummary,
    PatternBatchResult,
)
from agent_pattern_eval.domain.constants import (
    DEFAULT_PASSING_THRESHOLDS,
    ETA_WINDOW,
    FALLBACK_PASSING_THRESHOLD,
)
from agent_pattern_eval.domain.entities import EvaluationResult, utc_now
from agent_pattern_eval.domain.enums import BatchJobStatus, ErrorHandlingStrategy, ErrorSeverity
from agent_pattern_eval.domain.errors import BatchAbortedError
from agent_pattern_eval.evaluators.base import Clock
from agent_pattern_eval.orchestration.resources import ResourceMonitor
from agent_pattern_eval.orchestration.work_queue import WorkItem, WorkQueue, build_work_items
from agent_pattern_eval.scoring.aggregator import build_result

logger = logging.getLogger(__name__)

# Runs one item; must honour the cancellation token before starting work
ItemRunner = Callable[[WorkItem, threading.Event], EvaluationResult]


class StopReason(str, Enum):
    """Why dispatch of new items stopped early"""
    CANCELLED = "cancelled"
    FAIL_FAST = "fail-fast"
    RESOURCE_LIMIT = "resource-limit"


@dataclass(frozen=True)
class _Outcome:
    item: WorkItem
    result: EvaluationResult
    duration_ms: int


class BatchExecution:
    """
    One run of one batch job

    The dispatch loop is the only user of the work queue. Workers only run
    items; every counter update happens on the loop thread under ``lock``,
    which the orchestrator shares so status readers always see consistent
    counters. ``cancel_token`` is handed to every item and is set whenever
    dispatch stops, whatever the reason.
    """

    def __init__(
        self,
        job: BatchJob,
        runner: ItemRunner,
        cancel_token: threading.Event,
        *,
        lock: threading.Lock | threading.RLock | None = None,
        monitor: ResourceMonitor | None = None,
        on_progress: Callable[[], None] | None = None,
        clock: Clock = utc_now,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.job = job
        self._runner = runner
        self._token = cancel_token
        self._lock = lock or threading.Lock()
        self._monitor = monitor
        self._on_progress = on_progress or (lambda: None)
        self._clock = clock
        self._timer = timer

        self._errors: list[BatchError] = []
        self._final: dict[int, _Outcome] = {}
        self._durations: deque[int] = deque(maxlen=ETA_WINDOW)
        self.stop_reason: StopReason | None = None

    def run(self) -> tuple[BatchJobStatus, BatchResults]:
        config = self.job.config
        queue = WorkQueue(build_work_items(self.job), config.prioritization)
        with self._lock:
            self.job.progress.total_tests = len(queue)

        start_time = self._clock()
        t0 = self._timer()
        workers = config.workers
        in_flight: dict[Future, tuple[WorkItem, float]] = {}
        logger.info("Batch %s: %d items, %d workers, %s, %s", self.job.id, len(queue), workers,
                    config.prioritization.value, config.error_handling.value)

        if self._monitor is not None:
            self._monitor.start()
        try:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"batch-{self.job.id[:8]}") as pool:
                while True:
                    if self.stop_reason is None:
                        self._check_stop(queue)
                    while self.stop_reason is None and queue and len(in_flight) < workers:
                        item = queue.pop()
                        with self._lock:
                            self.job.progress.current_pattern = item.pattern
                            self.job.progress.current_test = item.test_case.id
                        in_flight[pool.submit(self._runner, item, self._token)] = (item, self._timer())
                    if not in_flight:
                        break
                    done, _ = wait(in_flight, timeout=config.progress_interval_seconds,
                                   return_when=FIRST_COMPLETED)
                    for future in done:
                        item, started = in_flight.pop(future)
                        duration_ms = int((self._timer() - started) * 1000)
                        self._settle(item, future, duration_ms, queue)
                        self._on_progress()
        finally:
            if self._monitor is not None:
                self._monitor.stop()

        with self._lock:
            self.job.progress.current_pattern = None
            self.job.progress.current_test = None
            self.job.progress.estimated_time_remaining_ms = 0
        elapsed_ms = int((self._timer() - t0) * 1000)
        results = self._assemble(start_time, elapsed_ms)
        status = self._terminal_status()
        logger.info("Batch %s finished: %s (%d passed, %d errors, %d skipped)", self.job.id, status.value,
                    results.summary.passed_tests, results.summary.error_tests, results.summary.skipped_tests)
        return status, results

    def skip_all(self) -> BatchResults:
        """Results of a job cancelled before it ever ran: every item skipped"""
        total = len(build_work_items(self.job))
        with self._lock:
            self.job.progress.total_tests = total
            self.job.progress.skipped_tests = total
        self.stop_reason = StopReason.CANCELLED
        return self._assemble(self._clock(), 0)

    # Dispatch control

    def _check_stop(self, queue: WorkQueue) -> None:
        if self._token.is_set():
            logger.info("Batch %s cancelled", self.job.id)
            self._halt(StopReason.CANCELLED, queue)
            return
        breach = self._monitor.breach if self._monitor is not None else None
        if breach is not None:
            self._record(BatchError(
                timestamp=self._clock().isoformat(),
                error=str(breach),
                error_type=type(breach).__name__,
                severity=ErrorSeverity.CRITICAL,
            ))
            self._halt(StopReason.RESOURCE_LIMIT, queue)

    def _halt(self, reason: StopReason, queue: WorkQueue) -> None:
        """Stop dispatching; everything still queued is skipped"""
        self.stop_reason = reason
        self._token.set()
        skipped = queue.drain()
        with self._lock:
            self.job.progress.skipped_tests += len(skipped)
        if skipped:
            logger.warning("Batch %s stopped (%s): %d items skipped", self.job.id, reason.value, len(skipped))

    # Outcomes

    def _settle(self, item: WorkItem, future: Future, duration_ms: int, queue: WorkQueue) -> None:
        try:
            result = future.result()
        except Exception as e:
            self._item_failed(item, e, duration_ms, queue)
            return
        self._item_finished(_Outcome(item, result, duration_ms), failed=False)

    def _item_failed(self, item: WorkItem, error: Exception, duration_ms: int, queue: WorkQueue) -> None:
        config = self.job.config
        if isinstance(error, BatchAbortedError) and self._token.is_set():
            # Item saw the cancellation token and never started
            if self.stop_reason is None:
                logger.info("Batch %s cancelled", self.job.id)
                self._halt(StopReason.CANCELLED, queue)
            with self._lock:
                self.job.progress.skipped_tests += 1
            return

        retry = (
            config.error_handling == ErrorHandlingStrategy.RETRY_FAILED
            and item.attempt <= config.max_retries
            and self.stop_reason is None
        )
        self._record(self._batch_error(item, error, ErrorSeverity.WARNING if retry else ErrorSeverity.ERROR))
        if retry:
            logger.warning("Retrying %s (attempt %d failed): %s", item.test_case.id, item.attempt, error)
            queue.requeue(item.next_attempt())
            return

        logger.error("Item %s failed after %d attempt(s): %s", item.test_case.id, item.attempt, error)
        threshold = DEFAULT_PASSING_THRESHOLDS.get(item.pattern, FALLBACK_PASSING_THRESHOLD)
        result = build_result(
            item.test_case.id,
            item.pattern,
            [],
            threshold,
            timestamp=self._clock().isoformat(),
            execution_time_ms=duration_ms,
            error=f"{type(error).__name__}: {error}",
        )
        self._item_finished(_Outcome(item, result, duration_ms), failed=True)

        if config.error_handling == ErrorHandlingStrategy.FAIL_FAST and self.stop_reason is None:
            aborted = BatchAbortedError(f"Aborted after failure of {item.test_case.id}: {error}")
            self._record(BatchError(
                timestamp=self._clock().isoformat(),
                error=str(aborted),
                error_type=type(aborted).__name__,
                severity=ErrorSeverity.CRITICAL,
                pattern=item.pattern,
                test_id=item.test_case.id,
                attempt=item.attempt,
            ))
            self._halt(StopReason.FAIL_FAST, queue)

    def _item_finished(self, outcome: _Outcome, failed: bool) -> None:
        """Count an item's last attempt"""
        with self._lock:
            self._final[outcome.item.submission_index] = outcome
            progress = self.job.progress
            if failed:
                progress.failed_tests += 1
            else:
                progress.completed_tests += 1
            self._durations.append(outcome.duration_ms)
            average = sum(self._durations) / len(self._durations)
            progress.estimated_time_remaining_ms = int(average * progress.remaining_tests)

    def _batch_error(self, item: WorkItem, error: Exception, severity: ErrorSeverity) -> BatchError:
        return BatchError(
            timestamp=self._clock().isoformat(),
            error=str(error),
            error_type=type(error).__name__,
            severity=severity,
            pattern=item.pattern,
            test_id=item.test_case.id,
            attempt=item.attempt,
            stack="".join(traceback.format_exception(type(error), error, error.__traceback__)),
        )

    def _record(self, error: BatchError) -> None:
        with self._lock:
            self._errors.append(error)

    # Final assembly

    def _terminal_status(self) -> BatchJobStatus:
        if self.stop_reason == StopReason.CANCELLED:
            return BatchJobStatus.CANCELLED
        if self.stop_reason in (StopReason.FAIL_FAST, StopReason.RESOURCE_LIMIT):
            return BatchJobStatus.FAILED
        if self.job.progress.failed_tests > 0:
            return BatchJobStatus.PARTIALLY_COMPLETED
        return BatchJobStatus.COMPLETED

    def _assemble(self, start_time, elapsed_ms: int) -> BatchResults:
        with self._lock:
            outcomes = sorted(self._final.values(), key=lambda o: o.item.sequence)
            errors = list(self._errors)
            total = self.job.progress.total_tests
            skipped = self.job.progress.skipped_tests

        results = [o.result for o in outcomes]
        evaluated = [r for r in results if r.error is None]
        passed = sum(1 for r in evaluated if r.passed)
        summary = BatchSummary(
            total_tests=total,
            passed_tests=passed,
            failed_tests=len(evaluated) - passed,
            error_tests=len(results) - len(evaluated),
            skipped_tests=skipped,
            success_rate=passed / total if total else 0.0,
            average_score=_mean([r.overall_score for r in evaluated]),
            duration_ms=elapsed_ms,
        )

        pattern_results: dict = {}
        performance = BatchPerformance(
            start_time=start_time.isoformat(),
            end_time=self._clock().isoformat(),
            total_duration_ms=elapsed_ms,
            average_test_duration_ms=_mean([o.duration_ms for o in outcomes]),
            tests_per_minute=len(outcomes) / (elapsed_ms / 60_000) if elapsed_ms > 0 else 0.0,
        )
        for pattern in self.job.patterns:
            mine = [o for o in outcomes if o.item.pattern == pattern]
            if not mine:
                continue
            ok = [o.result for o in mine if o.result.error is None]
            pattern_results[pattern] = PatternBatchResult(
                pattern=pattern,
                tests_run=len(mine),
                tests_passed=sum(1 for r in ok if r.passed),
                tests_failed=len(mine) - sum(1 for r in ok if r.passed),
                average_score=_mean([r.overall_score for r in ok]),
                average_latency_ms=_mean([o.duration_ms for o in mine]),
                errors=[o.result.error for o in mine if o.result.error is not None],
            )
            for o in mine:
                performance.token_usage.add(pattern, o.result.input_tokens + o.result.output_tokens)
                performance.api_calls.add(pattern, o.result.api_calls)

        return BatchResults(
            results=results,
            summary=summary,
            pattern_results=pattern_results,
            errors=errors,
            performance=performance,
        )


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0
