"""Result pattern for operations that report failure without raising.

Tool executions and LLM calls made through the retry executor return a
Result instead of raising:
- Ok: success with a value
- Err: failure with a message, an error code, and a retryable flag

Err may also carry the exception that produced it so callers can re-raise
or classify it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Generic, Optional, TypeVar, cast

T = TypeVar("T")
U = TypeVar("U")


class Result(ABC, Generic[T]):
    """Base class for Result types."""

    @abstractmethod
    def is_ok(self) -> bool:
        """Return True if this is an Ok result."""

    @abstractmethod
    def is_err(self) -> bool:
        """Return True if this is an Err result."""

    @abstractmethod
    def unwrap(self) -> T:
        """Return the value from Ok, or raise.

        Raises:
            ValueError: If this is an Err without an attached exception.
        """

    @abstractmethod
    def unwrap_or(self, default: T) -> T:
        """Return the value from Ok, or default otherwise."""

    def map(self, func: Callable[[T], U]) -> "Result[U]":
        """Transform the value inside an Ok result; Err passes through."""
        if self.is_ok():
            return Ok(func(self.unwrap()))
        return cast(Any, self)


class Ok(Result[T]):
    """Success result containing a value."""

    def __init__(self, value: T):
        self._value = value

    @property
    def value(self) -> T:
        return self._value

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self._value

    def unwrap_or(self, default: T) -> T:
        return self._value

    def __repr__(self) -> str:
        return f"Ok({self._value!r})"

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, Ok) and self._value == other._value

    def __hash__(self) -> int:
        return hash(("Ok", self._value))


class Err(Result[T]):
    """Error result containing error information."""

    def __init__(
        self,
        error: str,
        code: Optional[str] = None,
        retryable: bool = False,
        exception: Optional[BaseException] = None,
    ):
        """Initialize Err with error information.

        Args:
            error: Error message describing what went wrong.
            code: Optional error code for categorization.
            retryable: Whether this error is retryable (default: False).
            exception: Optional exception that caused the failure.
        """
        self.error = error
        self.code = code
        self.retryable = retryable
        self.exception = exception

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:
        """Re-raise the attached exception, or raise ValueError with the message."""
        if self.exception is not None:
            raise self.exception
        raise ValueError(self.error)

    def unwrap_or(self, default: T) -> T:
        return default

    def __repr__(self) -> str:
        if self.code:
            return f"Err({self.error!r}, code={self.code!r}, retryable={self.retryable})"
        return f"Err({self.error!r})"

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Err):
            return False
        return (
            self.error == other.error
            and self.code == other.code
            and self.retryable == other.retryable
        )

    def __hash__(self) -> int:
        return hash(("Err", self.error, self.code, self.retryable))


__all__ = ["Result", "Ok", "Err"]
