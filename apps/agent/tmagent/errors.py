"""Error types shared by the agent's loops and data layer."""

from __future__ import annotations


class AgentError(Exception):
    """Base error with classification."""
    def __init__(self, message: str, error_type: str = "runtime", retriable: bool = False):
        super().__init__(message)
        self.error_type = error_type
        self.retriable = retriable


class TransientIOError(AgentError):
    """Social channel or text-generation call failed. The unit of work is skipped."""
    def __init__(self, message: str):
        super().__init__(message, error_type="io", retriable=True)


class AcquireTimeout(AgentError):
    """No warehouse connection became free before the acquire timeout."""
    def __init__(self, message: str):
        super().__init__(message, error_type="pool_timeout", retriable=True)


class QueryExecutionError(AgentError):
    """Warehouse query failed or the generated SQL was unusable."""
    def __init__(self, message: str):
        super().__init__(message, error_type="query")


class RateLimitExceeded(AgentError):
    """Admission refused by the sliding-window limiter."""
    def __init__(self, message: str = "Rate limit exceeded"):
        super().__init__(message, error_type="rate_limit", retriable=True)
