"""
Resource monitor

Samples the process's memory and CPU usage with psutil on a daemon thread and
records the first breach of a job's ResourceLimits.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

import psutil

from agent_pattern_eval.domain.batch import ResourceLimits
from agent_pattern_eval.domain.errors import ResourceLimitExceededError
from agent_pattern_eval.domain.value_objects import ResourceUsage

logger = logging.getLogger(__name__)

Reader = Callable[[], float]


def process_memory_mb(process: psutil.Process | None = None) -> float:
    """Resident set size of the process in MB"""
    process = process or psutil.Process()
    return process.memory_info().rss / (1024 * 1024)


class ResourceMonitor:
    """
    Watches one batch job's resource usage

    Readers default to the current process via psutil and can be replaced
    in tests. A breach is sticky: once recorded it is reported by
    ``breach`` until the monitor is discarded.
    """

    def __init__(
        self,
        limits: ResourceLimits,
        interval_seconds: float = 1.0,
        memory_reader: Reader | None = None,
        cpu_reader: Reader | None = None,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.limits = limits
        self.interval_seconds = interval_seconds
        self._timer = timer
        self._start = timer()
        self._breach: ResourceLimitExceededError | None = None
        self._last_usage: ResourceUsage | None = None
        self._lock = threading.Lock()
        self._stopped = threading.Event()
        self._thread: threading.Thread | None = None

        if memory_reader is None or cpu_reader is None:
            process = psutil.Process()
            process.cpu_percent(None)  # first call primes the counter and returns 0.0
            memory_reader = memory_reader or (lambda: process_memory_mb(process))
            cpu_reader = cpu_reader or (lambda: process.cpu_percent(None))
        self._memory_reader = memory_reader
        self._cpu_reader = cpu_reader

    @property
    def breach(self) -> ResourceLimitExceededError | None:
        with self._lock:
            return self._breach

    @property
    def last_usage(self) -> ResourceUsage | None:
        with self._lock:
            return self._last_usage

    def start(self) -> None:
        """Take a first sample, then keep sampling on a daemon thread"""
        if self.limits.is_unbounded or self._thread is not None:
            return
        self._start = self._timer()
        if self.check() is not None:
            return
        self._thread = threading.Thread(target=self._loop, name="resource-monitor", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stopped.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    def sample(self) -> ResourceUsage:
        return ResourceUsage(
            memory_mb=self._memory_reader(),
            cpu_percent=self._cpu_reader(),
            elapsed_seconds=self._timer() - self._start,
        )

    def check(self) -> ResourceLimitExceededError | None:
        """
        Take one sample and compare it against the limits

        Returns:
            The recorded breach, if any limit has been exceeded so far
        """
        usage = self.sample()
        breach = self._compare(usage)
        with self._lock:
            self._last_usage = usage
            if breach is not None and self._breach is None:
                self._breach = breach
                logger.error("%s", breach)
            return self._breach

    def _compare(self, usage: ResourceUsage) -> ResourceLimitExceededError | None:
        limits = self.limits
        if limits.max_memory_mb is not None and usage.memory_mb > limits.max_memory_mb:
            return ResourceLimitExceededError("memory_mb", usage.memory_mb, limits.max_memory_mb)
        if limits.max_cpu_percent is not None and usage.cpu_percent > limits.max_cpu_percent:
            return ResourceLimitExceededError("cpu_percent", usage.cpu_percent, limits.max_cpu_percent)
        if limits.max_duration_minutes is not None:
            minutes = usage.elapsed_seconds / 60
            if minutes > limits.max_duration_minutes:
                return ResourceLimitExceededError("duration_minutes", minutes, limits.max_duration_minutes)
        return None

    def _loop(self) -> None:
        while not self._stopped.is_set():
            try:
                if self.check() is not None:
                    return
            except psutil.Error as e:
                logger.warning("Resource sampling failed: %r", e)
            self._stopped.wait(self.interval_seconds)
