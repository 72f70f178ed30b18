"""
Anthropic Claude judge client
"""

import os
import time

from anthropic import Anthropic, APIConnectionError, RateLimitError, APIStatusError

from agent_pattern_eval.domain.value_objects import JudgeCallOptions, ModelResponse
from agent_pattern_eval.infrastructure.judge_clients.base import JudgeClient, RetryMixin, call_temperature


class ClaudeClient(RetryMixin, JudgeClient):
    """Claude judge using the Anthropic API"""

    def __init__(
        self,
        model_name: str,
        api_key: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 1024,
        timeout_seconds: int = 30,
        max_retries: int = 3,
    ):
        """
        Args:
            model_name: Model name (e.g. claude-3-5-sonnet-20241022)
            api_key: Anthropic API key (falls back to environment variable if not specified)
            temperature: Sampling temperature
            max_tokens: Maximum number of output tokens
            timeout_seconds: Request timeout
            max_retries: Maximum number of attempts (default: 3)
        """
        self.model_name = model_name
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_retries = max_retries

        if not self.api_key:
            raise ValueError("ANTHROPIC_API_KEY is not set")

        self.client = Anthropic(api_key=self.api_key, timeout=timeout_seconds)

    def generate(self, prompt: str, options: JudgeCallOptions | None = None) -> ModelResponse:
        """
        Send a prompt and retrieve the response

        Raises:
            Exception: If the maximum number of retries is exceeded
        """
        def _call():
            start_time = time.time()
            response = self.client.messages.create(
                model=self.model_name,
                max_tokens=self.max_tokens,
                temperature=call_temperature(self.temperature, options),
                messages=[{"role": "user", "content": prompt}]
            )
            latency_ms = int((time.time() - start_time) * 1000)

            return ModelResponse(
                output=response.content[0].text.strip(),
                latency_ms=latency_ms,
                model_name=self.model_name,
                input_tokens=getattr(response.usage, "input_tokens", 0) or 0,
                output_tokens=getattr(response.usage, "output_tokens", 0) or 0,
            )

        return self._with_retry(
            _call,
            retryable_exceptions=(APIConnectionError, RateLimitError, APIStatusError),
            options=options,
        )
