"""
Vertex AI (Google GenAI SDK) judge client
"""

import os
import time

from google import genai
from google.api_core import exceptions as google_exceptions
from google.genai.types import GenerateContentConfig, HttpOptions

from agent_pattern_eval.domain.value_objects import JudgeCallOptions, ModelResponse
from agent_pattern_eval.infrastructure.judge_clients.base import JudgeClient, RetryMixin, call_temperature

# Transient Vertex AI failures worth another attempt
RETRYABLE = (
    google_exceptions.DeadlineExceeded,
    google_exceptions.ServiceUnavailable,
    google_exceptions.ResourceExhausted,
)


def _token_counts(response) -> tuple[int, int]:
    usage = getattr(response, "usage_metadata", None)
    if not usage:
        return 0, 0
    return (
        getattr(usage, "prompt_token_count", 0) or 0,
        getattr(usage, "candidates_token_count", 0) or 0,
    )


class VertexAIClient(RetryMixin, JudgeClient):
    """Gemini judge served through Vertex AI"""

    def __init__(
        self,
        model_name: str,
        project_id: str | None = None,
        location: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 1024,
        timeout_seconds: int = 30,
        max_retries: int = 3,
    ):
        """
        Args:
            model_name: Gemini model id (e.g. gemini-2.5-pro-preview-06-05)
            project_id: GCP project; GCP_PROJECT_ID when omitted
            location: Region; GCP_LOCATION when omitted, then "global"
            temperature: Default sampling temperature
            max_tokens: Output token cap
            timeout_seconds: HTTP timeout
            max_retries: Attempts per call unless the call overrides it
        """
        self.model_name = model_name
        self.project_id = project_id or os.environ.get("GCP_PROJECT_ID")
        self.location = location or os.environ.get("GCP_LOCATION", "global")
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries

        if not self.project_id:
            raise ValueError("GCP_PROJECT_ID is not set")

        self.client = genai.Client(
            vertexai=True,
            project=self.project_id,
            location=self.location,
            http_options=HttpOptions(timeout=timeout_seconds * 1000),  # milliseconds
        )

    def _generation_config(self, options: JudgeCallOptions | None) -> GenerateContentConfig:
        return GenerateContentConfig(
            temperature=call_temperature(self.temperature, options),
            max_output_tokens=self.max_tokens,
        )

    def generate(self, prompt: str, options: JudgeCallOptions | None = None) -> ModelResponse:
        """
        Raises:
            Exception: The last transient error once attempts run out
        """
        config = self._generation_config(options)

        def _call() -> ModelResponse:
            started = time.time()
            response = self.client.models.generate_content(
                model=self.model_name, contents=prompt, config=config,
            )
            input_tokens, output_tokens = _token_counts(response)
            return ModelResponse(
                output=(response.text or "").strip(),
                latency_ms=int((time.time() - started) * 1000),
                model_name=self.model_name,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
            )

        return self._with_retry(_call, retryable_exceptions=RETRYABLE, options=options)
