"""Exception hierarchy for kestrel_swarm.

Build-time errors (ConfigurationError, GraphCycleError) always raise
synchronously during construction. Runtime errors are usually captured into
an ExecutionResult by the orchestration layer instead of propagating.
"""

from __future__ import annotations

from typing import Optional, Sequence


class SwarmError(Exception):
    """Base class for all kestrel_swarm errors."""


class ConfigurationError(SwarmError):
    """Invalid graph, workflow, or agent configuration."""


class GraphCycleError(ConfigurationError):
    """Workflow dependency graph contains a cycle."""

    def __init__(self, message: str, cycle: Optional[Sequence[str]] = None):
        super().__init__(message)
        self.cycle = list(cycle or [])


class CircularDependencyError(SwarmError):
    """Delegation target is already active on the current call stack.

    Attributes:
        chain: Agent names from the bottom of the stack to the rejected target.
    """

    def __init__(self, chain: Sequence[str]):
        self.chain = list(chain)
        super().__init__(f"Circular delegation detected: {' -> '.join(self.chain)}")


class UnknownTargetError(SwarmError):
    """Delegation target does not resolve to an agent, instance, or sub-graph."""

    def __init__(self, target: str, caller: Optional[str] = None):
        self.target = target
        self.caller = caller
        where = f" (called from '{caller}')" if caller else ""
        super().__init__(f"Unknown delegation target '{target}'{where}")


class StateError(SwarmError):
    """Snapshot cannot be parsed or does not match the live orchestration."""


class StaleReadError(SwarmError):
    """Resource changed since the agent last read it."""

    def __init__(self, agent: str, path: str):
        self.agent = agent
        self.path = path
        super().__init__(
            f"'{path}' has been modified since agent '{agent}' last read it. "
            "Read it again before editing."
        )


class SwarmTimeoutError(SwarmError):
    """Base class for timeout errors."""

    def __init__(self, message: str, timeout: Optional[float] = None):
        super().__init__(message)
        self.timeout = timeout


class ExecutionTimeoutError(SwarmTimeoutError):
    """Run-level timeout fired."""


class TurnTimeoutError(SwarmTimeoutError):
    """A single agent turn exceeded its timeout."""

    def __init__(self, message: str, agent: str, timeout: Optional[float] = None):
        super().__init__(message, timeout)
        self.agent = agent


class TransportError(SwarmError):
    """Error returned by the LLM transport."""

    retryable: bool = True

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RetryableTransportError(TransportError):
    """Transient transport failure (rate limit, network, server error)."""

    retryable = True


class NonRetryableTransportError(TransportError):
    """Terminal transport failure (authentication, authorization, validation)."""

    retryable = False


class RetriesExhaustedError(TransportError):
    """Retryable transport failures persisted past the attempt limit."""

    retryable = False

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


__all__ = [
    "SwarmError",
    "ConfigurationError",
    "GraphCycleError",
    "CircularDependencyError",
    "UnknownTargetError",
    "StateError",
    "StaleReadError",
    "SwarmTimeoutError",
    "ExecutionTimeoutError",
    "TurnTimeoutError",
    "TransportError",
    "RetryableTransportError",
    "NonRetryableTransportError",
    "RetriesExhaustedError",
]
