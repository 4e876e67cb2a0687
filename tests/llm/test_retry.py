"""Tests for backoff strategies, RetryExecutorImpl, and error classification."""

import asyncio
from unittest.mock import AsyncMock

import httpx
import pytest

from kestrel_swarm.core.errors import (
    NonRetryableTransportError,
    RetriesExhaustedError,
    RetryableTransportError,
)
from kestrel_swarm.llm.errors import classify_error, classify_status
from kestrel_swarm.llm.retry import (
    BackoffStrategy,
    ExponentialBackoff,
    FixedBackoff,
    LinearBackoff,
    RetryExecutor,
    RetryExecutorImpl,
)


async def no_sleep(seconds: float) -> None:
    return None


# =============================================================================
# BackoffStrategy Tests
# =============================================================================


class TestBackoff:
    """Tests for backoff delay calculations."""

    def test_exponential_doubles_and_caps(self):
        backoff = ExponentialBackoff(base_delay_ms=100, max_delay_ms=300, jitter=False)
        assert [backoff.calculate_delay(a) for a in range(3)] == [100, 200, 300]

    def test_exponential_jitter_stays_within_ten_percent(self):
        backoff = ExponentialBackoff(base_delay_ms=100, max_delay_ms=5000, jitter=True)
        for _ in range(20):
            assert 180 <= backoff.calculate_delay(1) <= 220

    def test_linear_and_fixed(self):
        assert LinearBackoff(base_delay_ms=50, max_delay_ms=120).calculate_delay(2) == 120
        assert LinearBackoff(base_delay_ms=50).calculate_delay(1) == 100
        assert FixedBackoff(delay_ms=75).calculate_delay(9) == 75

    def test_protocol_conformance(self):
        assert isinstance(ExponentialBackoff(), BackoffStrategy)
        assert isinstance(RetryExecutorImpl(), RetryExecutor)


# =============================================================================
# RetryExecutor Tests
# =============================================================================


class TestRetryExecutor:
    """Tests for RetryExecutorImpl."""

    @pytest.mark.asyncio
    async def test_success_first_attempt(self):
        executor = RetryExecutorImpl(max_attempts=3, sleep=no_sleep)
        operation = AsyncMock(return_value="ok")
        result = await executor.execute(operation)
        assert result.unwrap() == "ok"
        assert operation.await_count == 1
        assert await executor.get_attempt_count() == 1

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        executor = RetryExecutorImpl(
            max_attempts=3, backoff=FixedBackoff(delay_ms=10), sleep=no_sleep
        )
        operation = AsyncMock(side_effect=[RetryableTransportError("503"), "ok"])
        retries = []

        result = await executor.execute(
            operation, on_retry=lambda attempt, total, delay, error: retries.append((attempt, total, delay))
        )

        assert result.unwrap() == "ok"
        assert retries == [(1, 3, 10)]
        stats = await executor.get_stats()
        assert stats["retry_count"] == 1
        assert stats["errors_by_type"] == {"RetryableTransportError": 1}

    @pytest.mark.asyncio
    async def test_non_retryable_fails_once(self):
        executor = RetryExecutorImpl(max_attempts=5, sleep=no_sleep)
        operation = AsyncMock(side_effect=NonRetryableTransportError("401", status_code=401))

        result = await executor.execute(operation)

        assert result.is_err()
        assert result.code == "NON_RETRYABLE"
        assert operation.await_count == 1
        with pytest.raises(NonRetryableTransportError):
            result.unwrap()

    @pytest.mark.asyncio
    async def test_exhaustion(self):
        executor = RetryExecutorImpl(max_attempts=3, sleep=no_sleep)
        operation = AsyncMock(side_effect=RetryableTransportError("429", status_code=429))

        result = await executor.execute(operation)

        assert result.code == "MAX_RETRIES_EXCEEDED"
        assert operation.await_count == 3
        assert isinstance(result.exception, RetriesExhaustedError)
        assert result.exception.attempts == 3
        assert isinstance(result.exception.__cause__, RetryableTransportError)

    @pytest.mark.asyncio
    async def test_sleeps_between_attempts(self):
        sleeps = []

        async def record_sleep(seconds):
            sleeps.append(seconds)

        executor = RetryExecutorImpl(
            max_attempts=3,
            backoff=ExponentialBackoff(base_delay_ms=100, jitter=False),
            sleep=record_sleep,
        )
        await executor.execute(AsyncMock(side_effect=ConnectionError("reset")))
        assert sleeps == [0.1, 0.2]

    def test_invalid_max_attempts(self):
        with pytest.raises(ValueError):
            RetryExecutorImpl(max_attempts=0)


# =============================================================================
# Classification Tests
# =============================================================================


def status_error(code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://llm.test/v1/chat/completions")
    response = httpx.Response(code, request=request, text="nope")
    return httpx.HTTPStatusError("error", request=request, response=response)


class TestClassification:
    """Tests for classify_error and classify_status."""

    @pytest.mark.parametrize("code", [400, 401, 403, 404, 422])
    def test_client_errors_are_terminal(self, code):
        error = classify_error(status_error(code))
        assert isinstance(error, NonRetryableTransportError)
        assert error.status_code == code

    @pytest.mark.parametrize("code", [408, 429, 500, 502, 503])
    def test_transient_statuses_are_retryable(self, code):
        assert isinstance(classify_error(status_error(code)), RetryableTransportError)

    def test_unlisted_4xx_is_terminal(self):
        assert isinstance(classify_status(418, "teapot"), NonRetryableTransportError)

    def test_network_failures_are_retryable(self):
        request = httpx.Request("POST", "https://llm.test")
        for error in (
            httpx.ConnectTimeout("slow", request=request),
            httpx.ConnectError("refused", request=request),
            asyncio.TimeoutError(),
            ConnectionResetError("reset"),
        ):
            classified = classify_error(error)
            assert classified.retryable
            assert classified.__cause__ is error

    def test_invalid_input_is_terminal(self):
        assert not classify_error(ValueError("bad payload")).retryable

    def test_transport_errors_pass_through(self):
        error = NonRetryableTransportError("gone", status_code=410)
        assert classify_error(error) is error
