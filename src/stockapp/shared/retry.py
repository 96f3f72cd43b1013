"""Retry engine for upstream API calls.

Wraps tenacity's AsyncRetrying with a policy chosen per failure:

For On-Call Engineers:
    - INVALID_CREDENTIALS and DATA_NOT_AVAILABLE are never retried
    - RATE_LIMIT waits on the long-wait policy; an upstream retry-after hint
      wins over the exponential schedule (still capped at max_delay_ms)
    - Everything else backs off on the default policy: 1s, 2s, 4s ... capped
    - Each retry is logged at WARNING with the attempt number
    - Sleeping only suspends the calling coroutine; other requests proceed
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from tenacity import AsyncRetrying, RetryCallState, before_sleep_log, retry_if_exception

from src.stockapp.shared.classifier import classify
from src.stockapp.shared.errors import ClassifiedError, ErrorKind

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and exponential backoff parameters."""

    max_attempts: int
    base_delay_ms: int
    max_delay_ms: int
    backoff_multiplier: float

    def backoff_delay_ms(self, attempt: int) -> int:
        """Delay after the given (1-based) attempt has failed.

        ``min(base * multiplier^(attempt-1), max)``
        """
        delay = self.base_delay_ms * self.backoff_multiplier ** (attempt - 1)
        return int(min(delay, self.max_delay_ms))


DEFAULT_RETRY_POLICY = RetryPolicy(
    max_attempts=3,
    base_delay_ms=1_000,
    max_delay_ms=10_000,
    backoff_multiplier=2.0,
)

# Reserved for RATE_LIMIT failures
RATE_LIMIT_RETRY_POLICY = RetryPolicy(
    max_attempts=2,
    base_delay_ms=10_000,
    max_delay_ms=60_000,
    backoff_multiplier=2.0,
)


def compute_delay_ms(
    error: ClassifiedError,
    attempt: int,
    default_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    rate_limit_policy: RetryPolicy = RATE_LIMIT_RETRY_POLICY,
) -> int:
    """Delay before the next attempt after ``attempt`` failed with ``error``."""
    if error.kind == ErrorKind.RATE_LIMIT:
        if error.retry_after_seconds is not None:
            return min(error.retry_after_seconds * 1000, rate_limit_policy.max_delay_ms)
        return rate_limit_policy.backoff_delay_ms(attempt)
    return default_policy.backoff_delay_ms(attempt)


def _is_retryable(exception: BaseException) -> bool:
    return isinstance(exception, ClassifiedError) and exception.is_retryable


class RetryEngine:
    """Drives re-attempts of a transport call until success or exhaustion.

    Example:
        engine = RetryEngine()
        result = await engine.execute(lambda: send_request(params))

        # Fewer attempts where stale data is acceptable
        result = await engine.execute(call, max_attempts=2)
    """

    def __init__(
        self,
        default_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        rate_limit_policy: RetryPolicy = RATE_LIMIT_RETRY_POLICY,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        classifier: Callable[[Any], ClassifiedError | None] = classify,
    ):
        """
        Args:
            default_policy: Backoff for every retryable kind except RATE_LIMIT.
            rate_limit_policy: Long-wait backoff for RATE_LIMIT.
            sleep: Coroutine used between attempts. Injected in tests.
            classifier: Maps an outcome or exception to a ClassifiedError.
        """
        self.default_policy = default_policy
        self.rate_limit_policy = rate_limit_policy
        self._sleep = sleep
        self._classify = classifier

    def policy_for(self, error: ClassifiedError) -> RetryPolicy:
        if error.kind == ErrorKind.RATE_LIMIT:
            return self.rate_limit_policy
        return self.default_policy

    async def execute(
        self,
        transport_call: Callable[[], Awaitable[T]],
        max_attempts: int | None = None,
    ) -> T:
        """Run ``transport_call`` with classification and retries.

        Args:
            transport_call: Zero-argument coroutine function performing one attempt.
            max_attempts: Optional per-endpoint cap on attempts. Delay
                formulas are unaffected.

        Returns:
            The first outcome the classifier accepts.

        Raises:
            ClassifiedError: The last failure, once retries are exhausted or
                immediately for non-retryable kinds.
        """
        retrying = AsyncRetrying(
            stop=self._stop_condition(max_attempts),
            wait=self._wait,
            retry=retry_if_exception(_is_retryable),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
            reraise=True,
        )
        return await retrying(self._attempt, transport_call)

    async def _attempt(self, transport_call: Callable[[], Awaitable[T]]) -> T:
        try:
            outcome = await transport_call()
        except ClassifiedError:
            raise
        except Exception as e:
            raise self._classify(e) from e

        error = self._classify(outcome)
        if error is not None:
            raise error
        return outcome

    def _stop_condition(self, max_attempts: int | None) -> Callable[[RetryCallState], bool]:
        def should_stop(retry_state: RetryCallState) -> bool:
            error = retry_state.outcome.exception()
            limit = self.policy_for(error).max_attempts
            if max_attempts is not None:
                limit = min(limit, max_attempts)
            return retry_state.attempt_number >= limit

        return should_stop

    def _wait(self, retry_state: RetryCallState) -> float:
        error = retry_state.outcome.exception()
        delay_ms = compute_delay_ms(
            error,
            retry_state.attempt_number,
            self.default_policy,
            self.rate_limit_policy,
        )
        return delay_ms / 1000
