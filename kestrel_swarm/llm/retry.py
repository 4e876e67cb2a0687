"""RetryExecutor for transport calls.

Retries operations whose failures classify as retryable, with a backoff
delay between attempts. Terminal failures are returned after one attempt.

This module provides:
- BackoffStrategy protocol and Exponential/Linear/Fixed implementations
- RetryExecutor protocol and RetryExecutorImpl
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Optional, Protocol, runtime_checkable

from kestrel_swarm.core.errors import RetriesExhaustedError, TransportError
from kestrel_swarm.core.result import Err, Ok, Result
from kestrel_swarm.llm.errors import classify_error

logger = logging.getLogger(__name__)

RetryCallback = Callable[[int, int, float, TransportError], None]


# =============================================================================
# BackoffStrategy Protocol
# =============================================================================


@runtime_checkable
class BackoffStrategy(Protocol):
    """Protocol for backoff strategies."""

    def calculate_delay(self, attempt: int) -> float:
        """Delay in milliseconds before the retry following `attempt` (0-indexed)."""
        ...


class ExponentialBackoff:
    """delay = base_delay_ms * (exponential_base ** attempt), capped at max_delay_ms

    Example:
        backoff = ExponentialBackoff(base_delay_ms=100, max_delay_ms=5000)
        # Attempt 0: 100ms, attempt 1: 200ms, attempt 2: 400ms
    """

    def __init__(
        self,
        base_delay_ms: float = 100.0,
        max_delay_ms: float = 5000.0,
        exponential_base: float = 2.0,
        jitter: bool = False,
    ):
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self.exponential_base = exponential_base
        self.jitter = jitter

    def calculate_delay(self, attempt: int) -> float:
        delay = min(self.base_delay_ms * (self.exponential_base**attempt), self.max_delay_ms)
        if self.jitter:
            jitter_amount = delay * 0.1
            delay += random.uniform(-jitter_amount, jitter_amount)
        return max(delay, 0.0)


class LinearBackoff:
    """delay = base_delay_ms * (attempt + 1), capped at max_delay_ms"""

    def __init__(self, base_delay_ms: float = 100.0, max_delay_ms: float = 5000.0):
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

    def calculate_delay(self, attempt: int) -> float:
        return min(self.base_delay_ms * (attempt + 1), self.max_delay_ms)


class FixedBackoff:
    """Constant delay between attempts"""

    def __init__(self, delay_ms: float = 500.0):
        self.delay_ms = delay_ms

    def calculate_delay(self, attempt: int) -> float:
        return self.delay_ms


# =============================================================================
# RetryExecutor
# =============================================================================


@runtime_checkable
class RetryExecutor(Protocol):
    """Protocol for retry executors."""

    async def execute(
        self,
        operation: Callable[[], Awaitable[Any]],
        on_retry: Optional[RetryCallback] = None,
    ) -> Result[Any]:
        ...


class RetryExecutorImpl:
    """Retry executor for LLM transport calls.

    Exceptions raised by the operation are classified with classify_error:
    - non-retryable: returned at once as Err(retryable=False)
    - retryable: retried after a backoff delay, up to max_attempts in total

    When attempts run out the result is Err("MAX_RETRIES_EXCEEDED") carrying
    a RetriesExhaustedError.

    Example:
        executor = RetryExecutorImpl(max_attempts=3, backoff=ExponentialBackoff())
        result = await executor.execute(lambda: transport.send(msgs, schemas, cfg))
        if result.is_ok():
            response = result.unwrap()
    """

    def __init__(
        self,
        max_attempts: int = 3,
        backoff: Optional[BackoffStrategy] = None,
        classifier: Callable[[BaseException], TransportError] = classify_error,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize retry executor.

        Args:
            max_attempts: Total attempts including the first call.
            backoff: Backoff strategy (ExponentialBackoff if None).
            classifier: Maps exceptions to retryable/terminal transport errors.
            sleep: Coroutine used to wait between attempts.
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self._max_attempts = max_attempts
        self._backoff = backoff or ExponentialBackoff()
        self._classifier = classifier
        self._sleep = sleep

        self._stats: dict[str, Any] = {
            "total_calls": 0,
            "successful_calls": 0,
            "failed_calls": 0,
            "total_attempts": 0,
            "last_attempt_count": 0,
            "retry_count": 0,
            "errors_by_type": {},
        }

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    async def execute(
        self,
        operation: Callable[[], Awaitable[Any]],
        on_retry: Optional[RetryCallback] = None,
    ) -> Result[Any]:
        """Execute operation with retry logic.

        Args:
            operation: Zero-argument coroutine function.
            on_retry: Called as (attempt, max_attempts, delay_ms, error)
                before each retry sleep.

        Returns:
            Ok(value) on success, Err with the classified error otherwise.
        """
        self._stats["total_calls"] += 1
        self._stats["last_attempt_count"] = 0

        last_error: Optional[TransportError] = None

        for attempt in range(self._max_attempts):
            self._stats["total_attempts"] += 1
            self._stats["last_attempt_count"] = attempt + 1

            try:
                value = await operation()
                self._stats["successful_calls"] += 1
                return Ok(value)
            except Exception as e:
                error = self._classifier(e)
                error_type = type(error).__name__
                self._stats["errors_by_type"][error_type] = (
                    self._stats["errors_by_type"].get(error_type, 0) + 1
                )
                if not error.retryable:
                    logger.error(f"Non-retryable error on attempt {attempt + 1}: {error}")
                    self._stats["failed_calls"] += 1
                    return Err(str(error), code="NON_RETRYABLE", retryable=False, exception=error)
                last_error = error

            if attempt < self._max_attempts - 1:
                self._stats["retry_count"] += 1
                delay_ms = self._backoff.calculate_delay(attempt)
                logger.warning(
                    f"Retry {attempt + 2}/{self._max_attempts} after {delay_ms / 1000.0:.2f}s: "
                    f"{last_error}"
                )
                if on_retry is not None:
                    on_retry(attempt + 1, self._max_attempts, delay_ms, last_error)
                await self._sleep(delay_ms / 1000.0)

        self._stats["failed_calls"] += 1
        exhausted = RetriesExhaustedError(
            f"Transport failed after {self._max_attempts} attempts: {last_error}",
            attempts=self._max_attempts,
        )
        exhausted.__cause__ = last_error
        return Err("MAX_RETRIES_EXCEEDED", code="MAX_RETRIES_EXCEEDED", exception=exhausted)

    async def get_attempt_count(self) -> int:
        return self._stats["last_attempt_count"]

    async def get_stats(self) -> dict[str, Any]:
        return self._stats.copy()


__all__ = [
    "BackoffStrategy",
    "ExponentialBackoff",
    "LinearBackoff",
    "FixedBackoff",
    "RetryCallback",
    "RetryExecutor",
    "RetryExecutorImpl",
]
