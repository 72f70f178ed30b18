"""
OpenAI (and OpenAI-compatible API) judge client

Also serves local vLLM and Ollama servers through their OpenAI-compatible
endpoints.
"""

import os
import time

import openai
from openai import OpenAI

from agent_pattern_eval.domain.value_objects import JudgeCallOptions, ModelResponse
from agent_pattern_eval.infrastructure.judge_clients.base import JudgeClient, RetryMixin, call_temperature


class OpenAIClient(RetryMixin, JudgeClient):
    """Judge using the OpenAI chat completions API"""

    def __init__(
        self,
        model_name: str,
        base_url: str | None = None,
        api_key: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 1024,
        timeout_seconds: int = 30,
        max_retries: int = 3,
        api_model_name: str | None = None,
    ):
        """
        Args:
            model_name: Name reported in results (e.g. gpt-4o, local-vllm)
            base_url: API endpoint; None uses api.openai.com
            api_key: API key (falls back to OPENAI_API_KEY if not specified)
            temperature: Sampling temperature
            max_tokens: Maximum number of output tokens
            timeout_seconds: Request timeout
            max_retries: Maximum number of attempts (default: 3)
            api_model_name: Model name sent to the API when it differs from model_name
        """
        self.model_name = model_name
        self.api_model_name = api_model_name or model_name
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_retries = max_retries
        self.base_url = base_url

        api_key = api_key or os.environ.get("OPENAI_API_KEY")
        if not api_key:
            raise ValueError("OPENAI_API_KEY is not set")

        self.client = OpenAI(base_url=base_url, api_key=api_key, timeout=timeout_seconds)

    def generate(self, prompt: str, options: JudgeCallOptions | None = None) -> ModelResponse:
        """
        Send a prompt and retrieve the response

        Raises:
            Exception: If the maximum number of retries is exceeded
        """
        def _call():
            start_time = time.time()
            response = self.client.chat.completions.create(
                model=self.api_model_name,
                messages=[{"role": "user", "content": prompt}],
                temperature=call_temperature(self.temperature, options),
                max_tokens=self.max_tokens,
            )
            latency_ms = int((time.time() - start_time) * 1000)

            input_tokens = 0
            output_tokens = 0
            if response.usage:
                input_tokens = response.usage.prompt_tokens or 0
                output_tokens = response.usage.completion_tokens or 0

            return ModelResponse(
                output=(response.choices[0].message.content or "").strip(),
                latency_ms=latency_ms,
                model_name=self.model_name,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
            )

        return self._with_retry(
            _call,
            retryable_exceptions=(
                openai.APIConnectionError,
                openai.RateLimitError,
                openai.APIStatusError,
            ),
            options=options,
        )
