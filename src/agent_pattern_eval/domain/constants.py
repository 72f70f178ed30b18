"""
Domain Constants

Centrally manages constants shared across the evaluation engine.
"""

from agent_pattern_eval.domain.enums import AgentPattern, JudgeModel

DEFAULT_JUDGE_MODEL = JudgeModel.GEMINI_2_5_PRO

# Passing threshold applied when an EvaluationConfig does not set one
DEFAULT_PASSING_THRESHOLDS = {
    AgentPattern.SEQUENTIAL_PROCESSING: 0.7,
    AgentPattern.ROUTING: 0.75,
    AgentPattern.PARALLEL_PROCESSING: 0.75,
    AgentPattern.ORCHESTRATOR_WORKER: 0.75,
    AgentPattern.EVALUATOR_OPTIMIZER: 0.75,
    AgentPattern.MULTI_STEP_TOOL_USAGE: 0.8,
}
FALLBACK_PASSING_THRESHOLD = 0.75

# Judge call defaults
DEFAULT_TEMPERATURE = 0.1
DEFAULT_MAX_RETRIES = 3
DEFAULT_TIMEOUT_MS = 30_000

# Batch defaults
DEFAULT_MAX_CONCURRENCY = 5
DEFAULT_BATCH_MAX_RETRIES = 2
ETA_WINDOW = 20  # completed-item durations kept for the moving average

# Calibration
DEFAULT_CALIBRATION_WEIGHTS = {
    "accuracy": 0.3,
    "coherence": 0.2,
    "completeness": 0.2,
    "relevance": 0.2,
    "efficiency": 0.1,
}
MIN_CALIBRATION_SAMPLES = 30
MIN_HUMAN_SCORES_PER_SAMPLE = 2
BOOTSTRAP_ITERATIONS = 1000
CONFIDENCE_LEVEL = 0.95
OPTIMAL_OUTPUT_LENGTH = 500
AGREEMENT_TOLERANCE = 0.1
KAPPA_CATEGORIES = (0.0, 0.25, 0.5, 0.75, 1.0)
GOLD_DATASET_VERSION = "1.0.0"

# Relative change (fraction) under which a metric trend counts as stable
TREND_STABLE_BAND = 0.05
