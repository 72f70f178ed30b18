"""
Judge client factory

Creates the appropriate client instance based on the judge model's provider.
"""

from __future__ import annotations

from agent_pattern_eval.domain.enums import JudgeModel
from agent_pattern_eval.domain.value_objects import coerce_enum
from agent_pattern_eval.harness_config import HarnessConfig, load_config
from agent_pattern_eval.infrastructure.judge_clients.base import JudgeClient
from agent_pattern_eval.infrastructure.judge_clients.claude import ClaudeClient
from agent_pattern_eval.infrastructure.judge_clients.openai_client import OpenAIClient
from agent_pattern_eval.infrastructure.judge_clients.vertex_ai import VertexAIClient


def create_client(judge_model: JudgeModel | str, config: HarnessConfig | None = None) -> JudgeClient:
    """
    Create the appropriate client for a judge model

    Args:
        judge_model: JudgeModel or its string value
        config: HarnessConfig (loads from env if not provided)

    Returns:
        JudgeClient: The appropriate client instance

    Raises:
        InputValidationError: Unknown judge model
    """
    if config is None:
        config = load_config()
    judge_model = coerce_enum(JudgeModel, judge_model, "judge_model")

    common = {
        "temperature": config.judge.temperature,
        "max_tokens": config.judge.max_tokens,
        "timeout_seconds": config.judge.timeout_seconds,
        "max_retries": config.judge.max_retries,
    }
    provider = judge_model.provider
    if provider == "anthropic":
        return ClaudeClient(judge_model.value, **common)
    if provider == "openai":
        return OpenAIClient(judge_model.value, **common)
    if provider == "local":
        local = config.local_models
        if judge_model == JudgeModel.LOCAL_VLLM:
            base_url, api_model = local.vllm_base_url, local.vllm_model
        else:
            base_url, api_model = local.ollama_base_url, local.ollama_model
        return OpenAIClient(
            judge_model.value,
            base_url=base_url,
            api_key=local.api_key,
            api_model_name=api_model,
            **common,
        )
    return VertexAIClient(judge_model.value, **common)
