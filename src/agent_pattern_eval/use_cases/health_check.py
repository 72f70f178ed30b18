"""
Health Check

Performs connectivity checks for the judge models.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from agent_pattern_eval.infrastructure.judge_clients.base import JudgeClient

HEALTH_CHECK_PROMPT = "Reply with only 'OK' if you can read this message."


@dataclass(frozen=True)
class HealthCheckResult:
    model_name: str
    success: bool
    latency_ms: int | None = None
    error: str | None = None


def health_check_judge(
    model_name: str,
    create_client_fn: Callable[[str], JudgeClient],
) -> HealthCheckResult:
    """
    Execute a health check for a single judge model.

    Args:
        model_name: Judge model to check
        create_client_fn: Function to create a judge client

    Returns:
        HealthCheckResult: Health check result (never raises)
    """
    try:
        client = create_client_fn(model_name)
        response = client.generate(HEALTH_CHECK_PROMPT)
    except Exception as e:
        return HealthCheckResult(model_name=model_name, success=False, error=str(e))
    if not response.output:
        return HealthCheckResult(
            model_name=model_name,
            success=False,
            latency_ms=response.latency_ms,
            error=f"Judge ({model_name}) returned an empty response",
        )
    return HealthCheckResult(model_name=model_name, success=True, latency_ms=response.latency_ms)


def run_judge_health_check(
    model_name: str,
    create_client_fn: Callable[[str], JudgeClient] | None = None,
) -> HealthCheckResult:
    """
    Check a judge model and print the outcome.

    Uses judge_clients.create_client if create_client_fn is not specified.
    """
    if create_client_fn is None:
        from agent_pattern_eval.infrastructure.judge_clients import create_client
        create_client_fn = create_client

    print(f"=== Judge Health Check ===\n")
    print(f"  {model_name}... ", end="", flush=True)
    result = health_check_judge(model_name, create_client_fn)
    if result.success:
        print(f"OK ({result.latency_ms}ms)")
    else:
        # Display only the first 200 characters of the error message
        print("FAILED")
        print(f"    Error: {(result.error or 'Unknown error')[:200]}")
        print("    Troubleshooting:")
        print("    - For Gemini: Run `gcloud auth application-default login` and set GCP_PROJECT_ID")
        print("    - For Claude: Set the ANTHROPIC_API_KEY environment variable")
        print("    - For OpenAI: Set the OPENAI_API_KEY environment variable")
        print("    - For local models: Verify the server at VLLM_BASE_URL / OLLAMA_BASE_URL is running")
    print()
    return result
