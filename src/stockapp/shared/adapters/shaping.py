"""Per-endpoint response shaping for Alpha Vantage payloads.

The classifier only rules out embedded error notices. Each endpoint then
checks that the part of the body it needs is actually there; the API
answers unknown symbols with ``{}`` or an empty ``Global Quote`` object
rather than an error. A missing section is reported as DATA_NOT_AVAILABLE
so it takes the same stale-fallback path as a failed fetch.
"""

from typing import Any

from src.stockapp.shared.errors import ClassifiedError, ErrorKind

GLOBAL_QUOTE_KEY = "Global Quote"

# function -> series key in the response body
SERIES_KEYS = {
    "TIME_SERIES_DAILY": "Time Series (Daily)",
    "TIME_SERIES_WEEKLY": "Weekly Time Series",
    "TIME_SERIES_MONTHLY": "Monthly Time Series",
}

MOVERS_KEYS = ("top_gainers", "top_losers", "most_actively_traded")


def _not_available(message: str, payload: Any = None) -> ClassifiedError:
    return ClassifiedError(ErrorKind.DATA_NOT_AVAILABLE, message, cause=payload)


def _require_mapping(payload: Any, what: str) -> dict[str, Any]:
    if not isinstance(payload, dict) or not payload:
        raise _not_available(f"No {what} data returned", payload)
    return payload


def unwrap_global_quote(payload: Any) -> dict[str, Any]:
    """Return the nested ``Global Quote`` object.

    Raises:
        ClassifiedError: DATA_NOT_AVAILABLE if the object is absent or empty.
    """
    quote = payload.get(GLOBAL_QUOTE_KEY) if isinstance(payload, dict) else None
    if not isinstance(quote, dict) or not quote:
        raise _not_available("Quote data not available for this symbol", payload)
    return quote


def require_overview(payload: Any) -> dict[str, Any]:
    return _require_mapping(payload, "company overview")


def intraday_series_key(interval: str) -> str:
    return f"Time Series ({interval})"


def require_series(payload: Any, series_key: str) -> dict[str, Any]:
    """Check the time series section is present; returns the whole body."""
    body = _require_mapping(payload, "time series")
    series = body.get(series_key)
    if not isinstance(series, dict) or not series:
        raise _not_available(f"Missing '{series_key}' in response", payload)
    return body


def require_news_feed(payload: Any) -> dict[str, Any]:
    body = _require_mapping(payload, "news")
    if not isinstance(body.get("feed"), list):
        raise _not_available("News feed not available", payload)
    return body


def require_search_matches(payload: Any) -> dict[str, Any]:
    body = _require_mapping(payload, "symbol search")
    if not isinstance(body.get("bestMatches"), list):
        raise _not_available("Symbol search returned no match list", payload)
    return body


def require_market_status(payload: Any) -> dict[str, Any]:
    body = _require_mapping(payload, "market status")
    if not isinstance(body.get("markets"), list):
        raise _not_available("Market status not available", payload)
    return body


def require_earnings(payload: Any) -> dict[str, Any]:
    return _require_mapping(payload, "earnings")


def require_movers(payload: Any) -> dict[str, Any]:
    body = _require_mapping(payload, "top movers")
    if not any(isinstance(body.get(key), list) for key in MOVERS_KEYS):
        raise _not_available("Top gainers/losers not available", payload)
    return body
