"""
Judge client package

Provides a unified interface to each LLM provider used as a scoring judge.
"""

from agent_pattern_eval.infrastructure.judge_clients.base import JudgeClient
from agent_pattern_eval.infrastructure.judge_clients.factory import create_client
from agent_pattern_eval.domain.value_objects import ModelResponse

__all__ = ["JudgeClient", "ModelResponse", "create_client"]
