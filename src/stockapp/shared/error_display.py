"""
User-facing error handling helpers.

Screens receive either a ClassifiedError or, occasionally, any other
exception. These helpers decide the copy, whether to offer a retry button,
whether to retry automatically and how long to wait first.

For Developers:
    - INVALID_CREDENTIALS is a configuration problem: no retry button
    - Every other kind is shown as a transient failure with a retry button
    - A stale fallback is not an error; show stale_data_banner() instead
"""

import logging

from src.stockapp.shared.errors import ClassifiedError, ErrorKind
from src.stockapp.shared.logging_utils import sanitize_for_log

logger = logging.getLogger(__name__)

MAX_AUTO_RETRIES = 2

# Suggested wait in seconds when the error carries no retry-after hint
RATE_LIMIT_RETRY_DELAY = 300
NETWORK_RETRY_DELAY = 30
DEFAULT_RETRY_DELAY = 60

ERROR_MESSAGES = {
    ErrorKind.RATE_LIMIT: "API rate limit reached. Please try again in a few minutes.",
    ErrorKind.NETWORK_ERROR: "Network connection failed. Please check your internet connection.",
    ErrorKind.INVALID_CREDENTIALS: "Service configuration error. Please contact support.",
    ErrorKind.DATA_NOT_AVAILABLE: "Data not available for this request.",
    ErrorKind.TIMEOUT: "Request timed out. Please try again.",
    ErrorKind.UNKNOWN: "An unexpected error occurred. Please try again.",
}

GENERIC_ERROR_MESSAGE = "Unable to load data. Please try again."
STALE_DATA_MESSAGE = "Showing saved data. Prices may be out of date."

_NETWORK_HINTS = ("network", "connection", "timeout", "timed out", "econnaborted")
_RATE_LIMIT_HINTS = ("rate limit", "quota", "api call frequency")


def _text(error: BaseException) -> str:
    return str(error).lower()


def is_rate_limit_error(error: BaseException) -> bool:
    if isinstance(error, ClassifiedError):
        return error.kind == ErrorKind.RATE_LIMIT
    return any(hint in _text(error) for hint in _RATE_LIMIT_HINTS)


def is_network_error(error: BaseException) -> bool:
    if isinstance(error, ClassifiedError):
        return error.kind in (ErrorKind.NETWORK_ERROR, ErrorKind.TIMEOUT)
    return any(hint in _text(error) for hint in _NETWORK_HINTS)


def get_error_category(error: BaseException) -> str:
    """Short label used in logs and diagnostics."""
    if is_rate_limit_error(error):
        return "Rate Limit"
    if is_network_error(error):
        return "Network"
    if isinstance(error, ClassifiedError):
        if error.kind == ErrorKind.DATA_NOT_AVAILABLE:
            return "Data Unavailable"
        if error.kind == ErrorKind.INVALID_CREDENTIALS:
            return "Credentials"
    return "Unknown"


def get_suggested_retry_delay(error: BaseException) -> int:
    """Seconds to wait before offering or scheduling a retry."""
    if isinstance(error, ClassifiedError) and error.retry_after_seconds:
        return error.retry_after_seconds
    if is_rate_limit_error(error):
        return RATE_LIMIT_RETRY_DELAY
    if is_network_error(error):
        return NETWORK_RETRY_DELAY
    return DEFAULT_RETRY_DELAY


def should_auto_retry(error: BaseException, attempt_count: int = 0) -> bool:
    """Whether a screen should re-request on its own.

    Args:
        error: Failure from an endpoint call
        attempt_count: Automatic retries already made by the screen
    """
    if attempt_count >= MAX_AUTO_RETRIES:
        return False
    if isinstance(error, ClassifiedError):
        return error.is_retryable
    return is_network_error(error)


def get_error_message(error: BaseException) -> str:
    """User-facing copy for an error."""
    if isinstance(error, ClassifiedError):
        return ERROR_MESSAGES[error.kind]
    text = _text(error)
    if "network" in text or "connection" in text:
        return ERROR_MESSAGES[ErrorKind.NETWORK_ERROR]
    if "timeout" in text or "timed out" in text:
        return ERROR_MESSAGES[ErrorKind.TIMEOUT]
    return GENERIC_ERROR_MESSAGE


def show_retry_button(error: BaseException) -> bool:
    """Only a credentials problem is presented as non-retryable."""
    if isinstance(error, ClassifiedError):
        return error.kind != ErrorKind.INVALID_CREDENTIALS
    return True


def stale_data_banner(error: ClassifiedError) -> str:
    """Soft warning shown when stale cached data replaced a failed fetch."""
    if error.kind == ErrorKind.RATE_LIMIT:
        return f"{STALE_DATA_MESSAGE} Live data is paused by the API rate limit."
    return STALE_DATA_MESSAGE


def log_error(error: BaseException, context: str = "") -> None:
    """Structured log line for an error surfaced to a screen."""
    extra = {
        "context": sanitize_for_log(context),
        "category": get_error_category(error),
        "auto_retry": should_auto_retry(error),
        "suggested_delay_seconds": get_suggested_retry_delay(error),
    }
    if isinstance(error, ClassifiedError):
        extra.update(error.to_log_dict())
    else:
        extra["error_type"] = type(error).__name__
    logger.error("API error surfaced to screen", extra=extra)
