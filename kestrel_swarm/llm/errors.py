"""Classification of transport failures into retryable and terminal errors."""

from __future__ import annotations

import asyncio
from typing import Optional

import httpx

from kestrel_swarm.core.errors import (
    NonRetryableTransportError,
    RetryableTransportError,
    TransportError,
)

# Authentication, authorization and request validation failures
NON_RETRYABLE_STATUS = frozenset({400, 401, 403, 404, 405, 413, 422})
RETRYABLE_STATUS = frozenset({408, 409, 425, 429})


def classify_status(status_code: int, message: str) -> TransportError:
    if status_code in NON_RETRYABLE_STATUS:
        return NonRetryableTransportError(message, status_code=status_code)
    if status_code in RETRYABLE_STATUS or status_code >= 500:
        return RetryableTransportError(message, status_code=status_code)
    return NonRetryableTransportError(message, status_code=status_code)


def classify_error(error: BaseException) -> TransportError:
    """Map any transport failure onto the transport error hierarchy.

    TransportError instances are returned unchanged.

    Args:
        error: Exception raised by LLMTransport.send.

    Returns:
        RetryableTransportError or NonRetryableTransportError.
    """
    if isinstance(error, TransportError):
        return error

    status_code: Optional[int] = None
    if isinstance(error, httpx.HTTPStatusError):
        status_code = error.response.status_code
        classified = classify_status(status_code, f"HTTP {status_code}: {error.response.text[:200]}")
    elif isinstance(error, (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)):
        classified = RetryableTransportError(f"Network error: {error}")
    elif isinstance(error, (asyncio.TimeoutError, ConnectionError)):
        classified = RetryableTransportError(f"Network error: {error}")
    elif isinstance(error, (ValueError, TypeError, PermissionError)):
        classified = NonRetryableTransportError(f"Invalid request: {error}")
    else:
        classified = RetryableTransportError(str(error) or type(error).__name__)

    classified.__cause__ = error
    return classified


__all__ = ["classify_error", "classify_status", "NON_RETRYABLE_STATUS", "RETRYABLE_STATUS"]
