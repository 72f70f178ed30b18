"""
Domain Enumerations

Identifiers for agent patterns, judge models, and batch execution policies.
"""

from enum import Enum


class AgentPattern(str, Enum):
    """Agent interaction pattern under evaluation"""
    SEQUENTIAL_PROCESSING = "sequential-processing"
    ROUTING = "routing"
    PARALLEL_PROCESSING = "parallel-processing"
    ORCHESTRATOR_WORKER = "orchestrator-worker"
    EVALUATOR_OPTIMIZER = "evaluator-optimizer"
    MULTI_STEP_TOOL_USAGE = "multi-step-tool-usage"

    @property
    def display_name(self) -> str:
        return AGENT_PATTERN_NAMES[self]


AGENT_PATTERN_NAMES = {
    AgentPattern.SEQUENTIAL_PROCESSING: "Sequential Processing",
    AgentPattern.ROUTING: "Routing",
    AgentPattern.PARALLEL_PROCESSING: "Parallel Processing",
    AgentPattern.ORCHESTRATOR_WORKER: "Orchestrator-Worker",
    AgentPattern.EVALUATOR_OPTIMIZER: "Evaluator-Optimizer",
    AgentPattern.MULTI_STEP_TOOL_USAGE: "Multi-Step Tool Usage",
}


class Complexity(str, Enum):
    """Test case complexity requested from a scenario generator"""
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


class JudgeModel(str, Enum):
    """Models that can act as the scoring judge"""
    GEMINI_2_5_PRO = "gemini-2.5-pro-preview-06-05"
    GEMINI_2_5_FLASH = "gemini-2.5-flash-preview-05-20"
    GPT_4O = "gpt-4o"
    GPT_4O_MINI = "gpt-4o-mini"
    CLAUDE_3_OPUS = "claude-3-opus-20240229"
    CLAUDE_3_5_SONNET = "claude-3-5-sonnet-20241022"
    CLAUDE_3_HAIKU = "claude-3-haiku-20240307"
    LOCAL_VLLM = "local-vllm"
    LOCAL_OLLAMA = "local-ollama"

    @property
    def provider(self) -> str:
        return JUDGE_MODEL_PROVIDERS[self]


JUDGE_MODEL_PROVIDERS = {
    JudgeModel.GEMINI_2_5_PRO: "google",
    JudgeModel.GEMINI_2_5_FLASH: "google",
    JudgeModel.GPT_4O: "openai",
    JudgeModel.GPT_4O_MINI: "openai",
    JudgeModel.CLAUDE_3_OPUS: "anthropic",
    JudgeModel.CLAUDE_3_5_SONNET: "anthropic",
    JudgeModel.CLAUDE_3_HAIKU: "anthropic",
    JudgeModel.LOCAL_VLLM: "local",
    JudgeModel.LOCAL_OLLAMA: "local",
}


class ScoringMode(str, Enum):
    """How metric scores are produced"""
    HEURISTIC = "heuristic"  # rule-based scorers only
    JUDGE = "judge"          # LLM judge, heuristic fallback on unparsable output


class PrioritizationStrategy(str, Enum):
    FIFO = "fifo"
    LIFO = "lifo"
    PRIORITY = "priority"
    ROUND_ROBIN = "round-robin"


class ErrorHandlingStrategy(str, Enum):
    FAIL_FAST = "fail-fast"
    CONTINUE = "continue"
    RETRY_FAILED = "retry-failed"


class BatchJobStatus(str, Enum):
    PENDING = "pending"
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    PARTIALLY_COMPLETED = "partially-completed"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES


_TERMINAL_STATUSES = frozenset({
    BatchJobStatus.COMPLETED,
    BatchJobStatus.FAILED,
    BatchJobStatus.CANCELLED,
    BatchJobStatus.PARTIALLY_COMPLETED,
})


class ErrorSeverity(str, Enum):
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class NotificationChannel(str, Enum):
    LOG = "log"
    EMAIL = "email"
    WEBHOOK = "webhook"
    SLACK = "slack"


class BatchEvent(str, Enum):
    """Lifecycle events emitted by the batch orchestrator"""
    CREATED = "created"
    STARTED = "started"
    PROGRESS = "progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
