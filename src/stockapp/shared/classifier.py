"""Error classification for upstream responses.

Alpha Vantage reports most failures as HTTP 200 with a sentinel text field
(``Information``, ``Note`` or ``Error Message``) in place of data, so a
successful transport call still has to be inspected before its body is
trusted or cached.

Classification order (first match wins):
    1. timeout transport error            -> TIMEOUT
    2. no response (DNS, refused, reset)  -> NETWORK_ERROR
    3. frequency-limit notice             -> RATE_LIMIT, retry after 1 hour
    4. daily-quota notice                 -> RATE_LIMIT, retry after 1 day
    5. invalid-credentials notice         -> INVALID_CREDENTIALS
    6. "Error Message" field              -> DATA_NOT_AVAILABLE
    7. premium-endpoint notice            -> DATA_NOT_AVAILABLE
    8. HTTP 5xx                           -> NETWORK_ERROR
    9. HTTP 429                           -> RATE_LIMIT, retry after 1 hour
   10. anything else erroneous            -> UNKNOWN
   11. otherwise                          -> None (success)

Limit notices are checked before the generic error field because the API
sometimes sends a quota note next to an empty data payload.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from src.stockapp.shared.errors import ClassifiedError, ErrorKind

logger = logging.getLogger(__name__)

SENTINEL_FIELDS = ("Information", "Note", "Error Message")

RATE_LIMIT_RETRY_AFTER_SECONDS = 3600
DAILY_QUOTA_RETRY_AFTER_SECONDS = 86400

FREQUENCY_LIMIT_PHRASES = (
    "call frequency",
    "per minute",
    "per second",
    "requests more sparingly",
)
DAILY_QUOTA_PHRASES = (
    "per day",
    # bare "daily" would match "Invalid API call ... for TIME_SERIES_DAILY"
    "daily rate limit",
    "daily limit",
    "quota",
)
INVALID_CREDENTIALS_PHRASES = (
    "apikey is invalid",
    "api key is invalid",
    "invalid api key",
    "apikey is missing",
    "invalid or missing",
)
PREMIUM_PHRASES = ("premium",)

MAX_MESSAGE_LENGTH = 300


@dataclass(frozen=True)
class TransportResult:
    """A response that made it back over the wire.

    Attributes:
        status_code: HTTP status
        payload: Parsed JSON body, or None if the body was not JSON
        text: Raw body text, kept for non-JSON bodies
    """

    status_code: int
    payload: Any = None
    text: str = ""

    @classmethod
    def from_response(cls, response: httpx.Response) -> "TransportResult":
        try:
            payload = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError, ValueError):
            payload = None
        return cls(status_code=response.status_code, payload=payload, text=response.text)

    @property
    def is_json(self) -> bool:
        return self.payload is not None


def classify(outcome: "TransportResult | BaseException") -> ClassifiedError | None:
    """Classify a transport outcome.

    Args:
        outcome: Either the exception raised by the transport call or the
            response it returned.

    Returns:
        ClassifiedError describing the failure, or None if the outcome is a
        usable response.
    """
    if isinstance(outcome, ClassifiedError):
        return outcome
    if isinstance(outcome, BaseException):
        classified = classify_transport_error(outcome)
    else:
        classified = classify_response(outcome)

    if classified is not None:
        logger.debug("Classified upstream failure", extra=classified.to_log_dict())
    return classified


def classify_transport_error(error: BaseException) -> ClassifiedError:
    """Classify an exception raised before any response was received."""
    if isinstance(
        error,
        (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError, ConnectionAbortedError),
    ):
        return ClassifiedError(
            ErrorKind.TIMEOUT, "Request timed out", cause=error
        )

    if isinstance(error, httpx.HTTPStatusError):
        classified = classify_response(TransportResult.from_response(error.response))
        if classified is not None:
            return classified

    if isinstance(error, (httpx.TransportError, ConnectionError)):
        return ClassifiedError(
            ErrorKind.NETWORK_ERROR,
            "Network connection failed",
            cause=error,
        )

    return ClassifiedError(
        ErrorKind.UNKNOWN,
        f"Unexpected error: {type(error).__name__}",
        cause=error,
    )


def classify_response(result: TransportResult) -> ClassifiedError | None:
    """Inspect a received response for embedded or HTTP-level errors."""
    notice = _notice_text(result)
    lowered = notice.lower()
    message = _truncate(notice)

    if _contains_any(lowered, FREQUENCY_LIMIT_PHRASES):
        return ClassifiedError(
            ErrorKind.RATE_LIMIT,
            message or "API call frequency limit reached",
            retry_after_seconds=RATE_LIMIT_RETRY_AFTER_SECONDS,
            cause=result,
        )

    if _contains_any(lowered, DAILY_QUOTA_PHRASES):
        return ClassifiedError(
            ErrorKind.RATE_LIMIT,
            message or "Daily API quota reached",
            retry_after_seconds=DAILY_QUOTA_RETRY_AFTER_SECONDS,
            cause=result,
        )

    if _contains_any(lowered, INVALID_CREDENTIALS_PHRASES):
        return ClassifiedError(
            ErrorKind.INVALID_CREDENTIALS,
            message or "Invalid API key",
            cause=result,
        )

    if isinstance(result.payload, dict) and "Error Message" in result.payload:
        return ClassifiedError(
            ErrorKind.DATA_NOT_AVAILABLE,
            message or "Data not available for this request",
            cause=result,
        )

    if _contains_any(lowered, PREMIUM_PHRASES):
        return ClassifiedError(
            ErrorKind.DATA_NOT_AVAILABLE,
            message or "Premium endpoint",
            cause=result,
        )

    if result.status_code >= 500:
        return ClassifiedError(
            ErrorKind.NETWORK_ERROR,
            f"Upstream server error: HTTP {result.status_code}",
            cause=result,
        )

    if result.status_code == 429:
        return ClassifiedError(
            ErrorKind.RATE_LIMIT,
            "HTTP 429 Too Many Requests",
            retry_after_seconds=RATE_LIMIT_RETRY_AFTER_SECONDS,
            cause=result,
        )

    if result.status_code >= 400:
        return ClassifiedError(
            ErrorKind.UNKNOWN, f"HTTP {result.status_code}", cause=result
        )

    if not result.is_json:
        return ClassifiedError(
            ErrorKind.UNKNOWN, "Response body is not valid JSON", cause=result
        )

    if _is_notice_only(result.payload):
        return ClassifiedError(
            ErrorKind.UNKNOWN, message or "Upstream returned no data", cause=result
        )

    return None


def _notice_text(result: TransportResult) -> str:
    """Concatenated sentinel-field text, or the raw body for non-JSON replies."""
    payload = result.payload
    if isinstance(payload, dict):
        parts = [
            str(payload[field])
            for field in SENTINEL_FIELDS
            if field in payload and payload[field] is not None
        ]
        return " ".join(parts)
    if payload is None:
        return result.text
    return ""


def _is_notice_only(payload: Any) -> bool:
    """True if the body holds sentinel fields and nothing else."""
    if not isinstance(payload, dict) or not payload:
        return False
    return all(key in SENTINEL_FIELDS for key in payload)


def _contains_any(text: str, phrases: tuple[str, ...]) -> bool:
    return any(phrase in text for phrase in phrases)


def _truncate(text: str) -> str:
    text = text.strip()
    if len(text) > MAX_MESSAGE_LENGTH:
        return text[:MAX_MESSAGE_LENGTH] + "..."
    return text
