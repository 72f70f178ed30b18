"""
Evaluation Harness Configuration

Manages loading from environment variables and default values.
"""

import os
from dataclasses import dataclass, field, asdict

from agent_pattern_eval.domain.batch import BatchConfig, ResourceLimits
from agent_pattern_eval.domain.constants import (
    BOOTSTRAP_ITERATIONS,
    CONFIDENCE_LEVEL,
    DEFAULT_BATCH_MAX_RETRIES,
    DEFAULT_JUDGE_MODEL,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_MAX_RETRIES,
    DEFAULT_TEMPERATURE,
    MIN_CALIBRATION_SAMPLES,
    OPTIMAL_OUTPUT_LENGTH,
)


def _env_bool(key: str, default: bool) -> bool:
    """Convert an environment variable to bool"""
    val = os.environ.get(key)
    if val is None:
        return default
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int) -> int:
    """Convert an environment variable to int"""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        raise ValueError(f"The value '{val}' of environment variable '{key}' cannot be converted to an integer.")


def _env_float(key: str, default: float) -> float:
    """Convert an environment variable to float"""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return float(val)
    except ValueError:
        raise ValueError(f"The value '{val}' of environment variable '{key}' cannot be converted to a number.")


def _env_optional_float(key: str) -> float | None:
    """Convert an environment variable to float; unset or empty means None"""
    val = os.environ.get(key)
    if not val:
        return None
    return _env_float(key, 0.0)


def _env_str(key: str, default: str) -> str:
    """Get an environment variable as a string"""
    return os.environ.get(key, default)


@dataclass
class BatchDefaults:
    """Default execution policy of batch jobs started from the CLI"""
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    max_retries: int = DEFAULT_BATCH_MAX_RETRIES
    error_handling: str = "continue"  # fail-fast / continue / retry-failed
    prioritization: str = "fifo"  # fifo / lifo / priority / round-robin
    progress_interval_seconds: float = 1.0
    max_concurrent_jobs: int = 1


@dataclass
class ResourceLimitConfig:
    """Per-job resource ceilings (None = unlimited)"""
    max_memory_mb: float | None = None
    max_cpu_percent: float | None = None
    max_duration_minutes: float | None = None


@dataclass
class JudgeConfig:
    """LLM judge configuration"""
    model: str = DEFAULT_JUDGE_MODEL.value
    enabled: bool = False
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = 1024
    timeout_seconds: int = 30
    max_retries: int = DEFAULT_MAX_RETRIES


@dataclass
class CalibrationConfig:
    """Calibration configuration"""
    min_samples: int = MIN_CALIBRATION_SAMPLES
    bootstrap_iterations: int = BOOTSTRAP_ITERATIONS
    confidence_level: float = CONFIDENCE_LEVEL
    optimal_length: int = OPTIMAL_OUTPUT_LENGTH


@dataclass
class LocalModelConfig:
    """OpenAI-compatible local judge servers"""
    vllm_base_url: str = "http://localhost:8000/v1"
    vllm_model: str = "default"
    ollama_base_url: str = "http://localhost:11434/v1"
    ollama_model: str = "llama3"
    api_key: str = "local"


@dataclass
class HarnessConfig:
    """Overall evaluation harness configuration"""
    batch: BatchDefaults = field(default_factory=BatchDefaults)
    resource_limits: ResourceLimitConfig = field(default_factory=ResourceLimitConfig)
    judge: JudgeConfig = field(default_factory=JudgeConfig)
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)
    local_models: LocalModelConfig = field(default_factory=LocalModelConfig)

    def to_dict(self) -> dict:
        """Convert to dictionary format"""
        return {"harness_config": asdict(self)}

    @classmethod
    def from_dict(cls, data: dict) -> "HarnessConfig":
        """Create from dictionary (handles presence/absence of harness_config key)"""
        config_data = data.get("harness_config", data)
        return cls(
            batch=BatchDefaults(**config_data.get("batch", {})),
            resource_limits=ResourceLimitConfig(**config_data.get("resource_limits", {})),
            judge=JudgeConfig(**config_data.get("judge", {})),
            calibration=CalibrationConfig(**config_data.get("calibration", {})),
            local_models=LocalModelConfig(**config_data.get("local_models", {})),
        )

    def batch_config(self, **overrides) -> BatchConfig:
        """BatchConfig built from the batch and resource-limit sections"""
        values = {
            "max_concurrency": self.batch.max_concurrency,
            "max_retries": self.batch.max_retries,
            "error_handling": self.batch.error_handling,
            "prioritization": self.batch.prioritization,
            "progress_interval_seconds": self.batch.progress_interval_seconds,
            "resource_limits": ResourceLimits(**asdict(self.resource_limits)),
        }
        values.update(overrides)
        return BatchConfig(**values)


def load_config() -> HarnessConfig:
    """
    Load configuration from environment variables

    Uses default values when environment variables are not set.

    Returns:
        HarnessConfig
    """
    batch = BatchDefaults(
        max_concurrency=_env_int("BATCH_MAX_CONCURRENCY", DEFAULT_MAX_CONCURRENCY),
        max_retries=_env_int("BATCH_MAX_RETRIES", DEFAULT_BATCH_MAX_RETRIES),
        error_handling=_env_str("BATCH_ERROR_HANDLING", "continue"),
        prioritization=_env_str("BATCH_PRIORITIZATION", "fifo"),
        progress_interval_seconds=_env_float("BATCH_PROGRESS_INTERVAL_SECONDS", 1.0),
        max_concurrent_jobs=_env_int("BATCH_MAX_CONCURRENT_JOBS", 1),
    )
    resource_limits = ResourceLimitConfig(
        max_memory_mb=_env_optional_float("BATCH_MAX_MEMORY_MB"),
        max_cpu_percent=_env_optional_float("BATCH_MAX_CPU_PERCENT"),
        max_duration_minutes=_env_optional_float("BATCH_MAX_DURATION_MINUTES"),
    )
    judge = JudgeConfig(
        model=_env_str("JUDGE_MODEL", DEFAULT_JUDGE_MODEL.value),
        enabled=_env_bool("JUDGE_ENABLED", False),
        temperature=_env_float("JUDGE_TEMPERATURE", DEFAULT_TEMPERATURE),
        max_tokens=_env_int("JUDGE_MAX_TOKENS", 1024),
        timeout_seconds=_env_int("JUDGE_TIMEOUT_SECONDS", 30),
        max_retries=_env_int("JUDGE_MAX_RETRIES", DEFAULT_MAX_RETRIES),
    )
    calibration = CalibrationConfig(
        min_samples=_env_int("CALIBRATION_MIN_SAMPLES", MIN_CALIBRATION_SAMPLES),
        bootstrap_iterations=_env_int("CALIBRATION_BOOTSTRAP_ITERATIONS", BOOTSTRAP_ITERATIONS),
        confidence_level=_env_float("CALIBRATION_CONFIDENCE_LEVEL", CONFIDENCE_LEVEL),
        optimal_length=_env_int("CALIBRATION_OPTIMAL_LENGTH", OPTIMAL_OUTPUT_LENGTH),
    )
    local_models = LocalModelConfig(
        vllm_base_url=_env_str("VLLM_BASE_URL", "http://localhost:8000/v1"),
        vllm_model=_env_str("VLLM_MODEL", "default"),
        ollama_base_url=_env_str("OLLAMA_BASE_URL", "http://localhost:11434/v1"),
        ollama_model=_env_str("OLLAMA_MODEL", "llama3"),
        api_key=_env_str("LOCAL_MODEL_API_KEY", "local"),
    )
    return HarnessConfig(
        batch=batch,
        resource_limits=resource_limits,
        judge=judge,
        calibration=calibration,
        local_models=local_models,
    )
