"""LLM transport interface, error classification, and retry policy."""

from kestrel_swarm.llm.errors import classify_error, classify_status
from kestrel_swarm.llm.http_transport import HttpTransport
from kestrel_swarm.llm.retry import (
    BackoffStrategy,
    ExponentialBackoff,
    FixedBackoff,
    LinearBackoff,
    RetryExecutor,
    RetryExecutorImpl,
)
from kestrel_swarm.llm.transport import LLMTransport, ModelConfig

__all__ = [
    "classify_error",
    "classify_status",
    "HttpTransport",
    "BackoffStrategy",
    "ExponentialBackoff",
    "FixedBackoff",
    "LinearBackoff",
    "RetryExecutor",
    "RetryExecutorImpl",
    "LLMTransport",
    "ModelConfig",
]
