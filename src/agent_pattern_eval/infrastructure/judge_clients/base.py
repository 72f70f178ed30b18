"""
Judge client base class and retry mixin

Every judge client implements ``generate(prompt, options)``. ``options``
carries the per-call settings of the EvaluationConfig being scored; a client
falls back to its constructor settings for anything left unset.
"""

import logging
import time
from abc import ABC, abstractmethod

from agent_pattern_eval.domain.value_objects import JudgeCallOptions, ModelResponse

logger = logging.getLogger(__name__)


class RetryMixin:
    """
    Exponential backoff retry

    ``max_retries`` is the client-wide number of attempts. A call whose
    options set ``max_retries`` makes that many retries after the first
    attempt instead.
    """

    max_retries: int = 3
    backoff_base_seconds: float = 1.0

    def _attempts(self, options: JudgeCallOptions | None) -> int:
        if options is not None and options.max_retries is not None:
            return options.max_retries + 1
        return self.max_retries

    def _with_retry(self, fn, retryable_exceptions=(Exception,), options: JudgeCallOptions | None = None):
        """
        Call fn until it succeeds or the attempts run out

        Args:
            fn: Callable with no arguments
            retryable_exceptions: Exception types that trigger another attempt
            options: Per-call override of the number of retries

        Returns:
            The return value of fn()

        Raises:
            ValueError: If fewer than one attempt is allowed
            Exception: The last retryable exception once attempts run out;
                non-retryable exceptions propagate at once
        """
        attempts = self._attempts(options)
        if attempts < 1:
            raise ValueError("max_retries must allow at least one attempt.")

        for attempt in range(1, attempts + 1):
            try:
                return fn()
            except retryable_exceptions as e:
                if attempt == attempts:
                    raise
                delay = self.backoff_base_seconds * 2 ** (attempt - 1)
                logger.warning("Judge call failed (attempt %d/%d), retrying in %.1fs: %s",
                               attempt, attempts, delay, e)
                time.sleep(delay)


def call_temperature(default: float, options: JudgeCallOptions | None) -> float:
    """Temperature for one call: the option when given, else the client default"""
    if options is not None and options.temperature is not None:
        return options.temperature
    return default


class JudgeClient(ABC):
    """Abstract base class for judge clients"""

    model_name: str

    @abstractmethod
    def generate(self, prompt: str, options: JudgeCallOptions | None = None) -> ModelResponse:
        """Send a prompt and retrieve the response"""
        pass
