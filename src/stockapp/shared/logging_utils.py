"""
Log sanitization helpers for the market data client.

Symbols, search keywords and upstream notices are partly user-controlled
and partly copied from third-party responses, so anything that ends up in
a log line goes through ``sanitize_for_log`` first. The upstream API key
travels as a query parameter and must never be logged: request parameters
are passed through ``redact_params`` before they are attached to a record.

Example:
    >>> logger.debug(
    ...     "Upstream request",
    ...     extra={"params": redact_params(params), "symbol": sanitize_for_log(symbol)},
    ... )
"""

import re
from typing import Any

# Maximum length for logged values to prevent log flooding
MAX_LOG_INPUT_LENGTH = 200

REDACTED = "***REDACTED***"

# Query/field names whose values are secrets
SENSITIVE_FIELDS = {
    "apikey",
    "api_key",
    "token",
    "secret",
    "password",
    "authorization",
}

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")


def sanitize_for_log(value: Any, max_length: int = MAX_LOG_INPUT_LENGTH) -> str:
    """
    Make a value safe to log: no CR/LF/control characters, bounded length.

    Args:
        value: Value to sanitize (converted with ``str``)
        max_length: Maximum length of output (default: 200)

    Returns:
        Sanitized string

    Example:
        >>> sanitize_for_log("AAPL\\n[FAKE] quota reset")
        'AAPL [FAKE] quota reset'
    """
    text = str(value)
    text = text.replace("\r", " ").replace("\n", " ").replace("\t", " ")
    text = _CONTROL_CHARS.sub(" ", text)

    if len(text) > max_length:
        text = text[:max_length] + "..."

    return text


def redact_params(params: dict[str, Any]) -> dict[str, Any]:
    """
    Copy request parameters with secret values replaced.

    Args:
        params: Query parameters of an upstream request

    Returns:
        New dict; matching keys (case-insensitive) map to ``***REDACTED***``

    Example:
        >>> redact_params({"function": "OVERVIEW", "apikey": "abc123"})  # pragma: allowlist secret
        {'function': 'OVERVIEW', 'apikey': '***REDACTED***'}
    """
    result = {}
    for key, value in params.items():
        if key.lower() in SENSITIVE_FIELDS:
            result[key] = REDACTED
        elif isinstance(value, dict):
            result[key] = redact_params(value)
        else:
            result[key] = value
    return result


def get_safe_error_info(exception: BaseException) -> dict[str, str]:
    """Exception type only; messages may echo request URLs with the API key."""
    return {"error_type": type(exception).__name__}
