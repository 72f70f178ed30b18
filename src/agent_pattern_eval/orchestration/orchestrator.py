"""
Batch orchestrator

Accepts batch jobs, runs them through BatchExecution, and exposes status,
cancellation and lifecycle events to callers.
"""

from __future__ import annotations

import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Callable, Iterable

from agent_pattern_eval.domain.batch import BatchConfig, BatchJob, BatchResults, ResourceLimits, TestSuite
from agent_pattern_eval.domain.entities import utc_now
from agent_pattern_eval.domain.enums import AgentPattern, BatchEvent, BatchJobStatus
from agent_pattern_eval.domain.errors import InputValidationError
from agent_pattern_eval.domain.value_objects import coerce_enum
from agent_pattern_eval.evaluators.base import Clock, IdGenerator
from agent_pattern_eval.orchestration import notifications
from agent_pattern_eval.orchestration.execution import BatchExecution, ItemRunner
from agent_pattern_eval.orchestration.notifications import LoggingNotifier, Notifier
from agent_pattern_eval.orchestration.resources import ResourceMonitor

logger = logging.getLogger(__name__)

Listener = Callable[[BatchEvent, BatchJob], None]
MonitorFactory = Callable[[ResourceLimits, float], ResourceMonitor]

_EVENT_BY_STATUS = {
    BatchJobStatus.COMPLETED: BatchEvent.COMPLETED,
    BatchJobStatus.PARTIALLY_COMPLETED: BatchEvent.COMPLETED,
    BatchJobStatus.FAILED: BatchEvent.FAILED,
    BatchJobStatus.CANCELLED: BatchEvent.CANCELLED,
}


def _uuid() -> str:
    return str(uuid.uuid4())


class BatchOrchestrator:
    """
    Runs batch evaluation jobs

    Up to ``max_concurrent_jobs`` jobs run at the same time; each has its own
    worker pool and queue. Jobs waiting for a slot are QUEUED.

    Args:
        runner: Evaluates one work item (see EvaluationPipeline)
        notifier: Receives start/complete/error notifications
        max_concurrent_jobs: Number of jobs allowed to run at once
        clock: Source of timestamps
        id_generator: Source of job ids
        monitor_factory: Builds the ResourceMonitor of each job
    """

    def __init__(
        self,
        runner: ItemRunner,
        *,
        notifier: Notifier | None = None,
        max_concurrent_jobs: int = 1,
        clock: Clock = utc_now,
        id_generator: IdGenerator = _uuid,
        monitor_factory: MonitorFactory = ResourceMonitor,
    ):
        if max_concurrent_jobs < 1:
            raise InputValidationError("max_concurrent_jobs must be at least 1")
        self._runner = runner
        self._notifier = notifier or LoggingNotifier()
        self._clock = clock
        self._id_generator = id_generator
        self._monitor_factory = monitor_factory
        self._max_concurrent_jobs = max_concurrent_jobs

        self._lock = threading.RLock()
        self._slots = threading.BoundedSemaphore(max_concurrent_jobs)
        self._jobs: dict[str, BatchJob] = {}
        self._cancel_tokens: dict[str, threading.Event] = {}
        self._listeners: list[Listener] = []
        self._background: ThreadPoolExecutor | None = None

    def __enter__(self) -> "BatchOrchestrator":
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()

    def add_listener(self, listener: Listener) -> None:
        """Register a callback receiving (event, job snapshot)"""
        self._listeners.append(listener)

    def create_batch_job(
        self,
        name: str,
        patterns: Iterable[AgentPattern | str],
        test_suites: Iterable[TestSuite],
        config: BatchConfig | None = None,
        description: str | None = None,
        scheduled_for: datetime | None = None,
    ) -> BatchJob:
        """
        Register a new PENDING job

        Raises:
            InputValidationError: On an empty pattern list or unknown pattern
        """
        patterns = [coerce_enum(AgentPattern, p, "patterns") for p in patterns]
        if not patterns:
            raise InputValidationError("patterns must contain at least one pattern")
        job = BatchJob(
            id=self._id_generator(),
            name=name,
            patterns=patterns,
            test_suites=list(test_suites),
            config=config or BatchConfig(),
            created_at=self._clock(),
            description=description,
            scheduled_for=scheduled_for,
        )
        with self._lock:
            self._jobs[job.id] = job
            self._cancel_tokens[job.id] = threading.Event()
        logger.info("Batch job %s (%s) created with %d suites", job.id, name, len(job.test_suites))
        self._emit(BatchEvent.CREATED, job)
        return job

    def execute_batch(self, job_id: str) -> BatchResults:
        """
        Run a job to completion on the calling thread

        Returns:
            The job's final BatchResults

        Raises:
            KeyError: Unknown job id
            InputValidationError: The job already ran or is running
        """
        job = self._get(job_id)
        token = self._cancel_tokens[job_id]
        execution = BatchExecution(job, self._runner, token, lock=self._lock, clock=self._clock)

        with self._lock:
            if job.status == BatchJobStatus.CANCELLED and job.results is None:
                job.results = execution.skip_all()
                return job.results
            if job.status != BatchJobStatus.PENDING:
                raise InputValidationError(f"Batch job {job_id} is {job.status.value}, expected pending")
            job.status = BatchJobStatus.QUEUED

        self._slots.acquire()
        try:
            with self._lock:
                if token.is_set():
                    job.results = execution.skip_all()
                    job.status = BatchJobStatus.CANCELLED
                    job.completed_at = self._clock()
                    return job.results
                job.status = BatchJobStatus.RUNNING
                job.started_at = self._clock()
            self._emit(BatchEvent.STARTED, job)
            notifications.dispatch(self._notifier, job.config.notifications, notifications.START,
                                   notifications.job_payload(job))

            execution = BatchExecution(
                job,
                self._runner,
                token,
                lock=self._lock,
                monitor=self._monitor_factory(job.config.resource_limits, job.config.progress_interval_seconds),
                on_progress=lambda: self._emit(BatchEvent.PROGRESS, job),
                clock=self._clock,
            )
            try:
                status, results = execution.run()
            except Exception as e:
                logger.exception("Batch job %s crashed", job_id)
                with self._lock:
                    job.status = BatchJobStatus.FAILED
                    job.completed_at = self._clock()
                self._emit(BatchEvent.FAILED, job)
                notifications.dispatch(self._notifier, job.config.notifications, notifications.ERROR,
                                       notifications.job_payload(job, error=str(e)))
                raise

            with self._lock:
                job.status = status
                job.results = results
                job.completed_at = self._clock()
        finally:
            self._slots.release()

        self._emit(_EVENT_BY_STATUS[status], job)
        if results.errors:
            notifications.dispatch(self._notifier, job.config.notifications, notifications.ERROR,
                                   notifications.job_payload(job, errors=len(results.errors)))
        notifications.dispatch(self._notifier, job.config.notifications, notifications.COMPLETE,
                               notifications.job_payload(job))
        return results

    def start_batch(self, job_id: str) -> Future:
        """Run a job on a background thread; the future yields its BatchResults"""
        self._get(job_id)
        with self._lock:
            if self._background is None:
                self._background = ThreadPoolExecutor(
                    max_workers=self._max_concurrent_jobs, thread_name_prefix="batch-job",
                )
            return self._background.submit(self.execute_batch, job_id)

    def cancel_batch(self, job_id: str) -> bool:
        """
        Request cancellation

        Jobs that have not started become CANCELLED at once. Running jobs
        stop dispatching; in-flight items finish and are reported.

        Returns:
            False if the job had already reached a terminal status
        """
        job = self._get(job_id)
        with self._lock:
            if job.status.is_terminal:
                return False
            self._cancel_tokens[job_id].set()
            not_started = job.status in (BatchJobStatus.PENDING, BatchJobStatus.QUEUED)
            if not_started:
                job.status = BatchJobStatus.CANCELLED
                job.completed_at = self._clock()
        logger.info("Batch job %s cancellation requested", job_id)
        if not_started:
            self._emit(BatchEvent.CANCELLED, job)
        return True

    def get_batch_status(self, job_id: str) -> BatchJob:
        """Snapshot of a job; later changes do not affect it"""
        job = self._get(job_id)
        with self._lock:
            return job.snapshot()

    def get_all_batches(self) -> list[BatchJob]:
        with self._lock:
            return [job.snapshot() for job in self._jobs.values()]

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            background, self._background = self._background, None
        if background is not None:
            background.shutdown(wait=wait)

    def _get(self, job_id: str) -> BatchJob:
        with self._lock:
            try:
                return self._jobs[job_id]
            except KeyError:
                raise KeyError(f"Batch job {job_id} not found") from None

    def _emit(self, event: BatchEvent, job: BatchJob) -> None:
        with self._lock:
            snapshot = job.snapshot()
        for listener in list(self._listeners):
            try:
                listener(event, snapshot)
            except Exception as e:
                logger.warning("Batch listener failed on %s: %r", event.value, e)
