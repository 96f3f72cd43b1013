"""
Classified API Errors
=====================

Single error type for every failure the market data client can surface.

For On-Call Engineers:
    Error kinds and their meanings:
    - TIMEOUT: Request exceeded the per-attempt timeout
    - NETWORK_ERROR: No response (DNS, refused) or upstream 5xx
    - RATE_LIMIT: Per-minute frequency limit or daily quota hit
    - INVALID_CREDENTIALS: API key missing or rejected (never retried)
    - DATA_NOT_AVAILABLE: Unknown symbol, bad parameters, premium endpoint
    - UNKNOWN: Anything else that was judged erroneous

    Search logs by kind:
        grep '"error_kind": "RATE_LIMIT"'

For Developers:
    - Branch on ``error.kind``; there are no subclasses
    - ``retry_after_seconds`` is only set for RATE_LIMIT
    - ``cause`` holds the original exception or body for debugging
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Closed taxonomy of client failures."""

    TIMEOUT = "TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    RATE_LIMIT = "RATE_LIMIT"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    DATA_NOT_AVAILABLE = "DATA_NOT_AVAILABLE"
    UNKNOWN = "UNKNOWN"


# Kinds the retry engine gives up on after the first attempt
NON_RETRYABLE_KINDS = frozenset(
    {ErrorKind.INVALID_CREDENTIALS, ErrorKind.DATA_NOT_AVAILABLE}
)


class ClassifiedError(Exception):
    """Normalized failure produced by the error classifier.

    Immutable once constructed. Carries no cache key; callers attach
    their own context when logging.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        retry_after_seconds: int | None = None,
        cause: Any = None,
    ):
        super().__init__(message)
        object.__setattr__(self, "_kind", ErrorKind(kind))
        object.__setattr__(self, "_message", message)
        object.__setattr__(self, "_retry_after_seconds", retry_after_seconds)
        object.__setattr__(self, "_cause", cause)

    def __setattr__(self, name: str, value: Any) -> None:
        # Exception machinery sets dunder attributes while raising/chaining
        if name.startswith("__"):
            super().__setattr__(name, value)
            return
        raise AttributeError(f"{type(self).__name__} is immutable")

    @property
    def kind(self) -> ErrorKind:
        return self._kind

    @property
    def message(self) -> str:
        return self._message

    @property
    def retry_after_seconds(self) -> int | None:
        return self._retry_after_seconds

    @property
    def cause(self) -> Any:
        return self._cause

    @property
    def is_retryable(self) -> bool:
        """True if the retry engine may attempt the request again."""
        return self._kind not in NON_RETRYABLE_KINDS

    def __reduce__(self):
        return (
            type(self),
            (self._kind, self._message, self._retry_after_seconds, self._cause),
        )

    def __repr__(self) -> str:
        return (
            f"ClassifiedError(kind={self._kind.value}, message={self._message!r}, "
            f"retry_after_seconds={self._retry_after_seconds})"
        )

    def to_log_dict(self) -> dict[str, Any]:
        """Structured fields for ``logger.*(..., extra=...)``."""
        return {
            "error_kind": self._kind.value,
            "error_message": self._message,
            "retry_after_seconds": self._retry_after_seconds,
        }
