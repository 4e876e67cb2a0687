"""Core types shared across kestrel_swarm."""

from kestrel_swarm.core.errors import (
    CircularDependencyError,
    ConfigurationError,
    ExecutionTimeoutError,
    GraphCycleError,
    NonRetryableTransportError,
    RetriesExhaustedError,
    RetryableTransportError,
    StaleReadError,
    StateError,
    SwarmError,
    SwarmTimeoutError,
    TransportError,
    TurnTimeoutError,
    UnknownTargetError,
)
from kestrel_swarm.core.events import Events, emit, execution_scope, on_event, subscribed
from kestrel_swarm.core.execution import ExecutionResult
from kestrel_swarm.core.models import (
    LLMResponse,
    Message,
    MessageContent,
    ModelPricing,
    ToolCall,
    Usage,
)
from kestrel_swarm.core.result import Err, Ok, Result

__all__ = [
    "CircularDependencyError",
    "ConfigurationError",
    "ExecutionTimeoutError",
    "GraphCycleError",
    "NonRetryableTransportError",
    "RetriesExhaustedError",
    "RetryableTransportError",
    "StaleReadError",
    "StateError",
    "SwarmError",
    "SwarmTimeoutError",
    "TransportError",
    "TurnTimeoutError",
    "UnknownTargetError",
    "Events",
    "emit",
    "execution_scope",
    "on_event",
    "subscribed",
    "ExecutionResult",
    "LLMResponse",
    "Message",
    "MessageContent",
    "ModelPricing",
    "ToolCall",
    "Usage",
    "Err",
    "Ok",
    "Result",
]
