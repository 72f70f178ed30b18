"""
Domain Errors

Error kinds raised by evaluators, the batch orchestrator, and calibration.
"""


class EvaluationError(Exception):
    """Base class for all evaluation engine errors"""
    pass


class InputValidationError(EvaluationError, ValueError):
    """Malformed test case, metric score, or evaluation config"""
    pass


class UnknownPatternError(InputValidationError):
    """No evaluator is registered for the requested pattern"""
    pass


class JudgeInvocationError(EvaluationError):
    """The external judge call failed"""
    pass


class EvaluationTimeoutError(EvaluationError):
    """A single evaluation exceeded its deadline"""
    pass


class ResourceLimitExceededError(EvaluationError):
    """A batch job breached its memory, CPU, or duration limit"""

    def __init__(self, limit: str, observed: float, allowed: float):
        self.limit = limit
        self.observed = observed
        self.allowed = allowed
        super().__init__(f"Resource limit exceeded: {limit} = {observed:.2f} (limit {allowed:.2f})")


class BatchAbortedError(EvaluationError):
    """A batch job was aborted under the fail-fast policy"""
    pass


class CalibrationError(EvaluationError):
    """Calibration cannot run on the supplied gold samples"""
    pass
