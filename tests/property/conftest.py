"""Hypothesis strategies for property testing.

Provides reusable composite strategies for generating cache values,
upstream bodies and classified errors that match the Alpha Vantage
client's data contracts.
"""

from hypothesis import strategies as st

from src.stockapp.shared.errors import ClassifiedError, ErrorKind

# JSON values as they come back from the API and go into the cache
json_values = st.recursive(
    st.none()
    | st.booleans()
    | st.integers(min_value=-(2**53), max_value=2**53)
    | st.floats(allow_nan=False, allow_infinity=False)
    | st.text(max_size=20),
    lambda children: st.lists(children, max_size=5)
    | st.dictionaries(st.text(max_size=10), children, max_size=5),
    max_leaves=20,
)


@st.composite
def cache_key(draw):
    """Generate cache keys in the endpoint_param form.

    Returns:
        str: e.g. "quote_AAPL" or "intraday_MSFT_5min"
    """
    endpoint = draw(st.sampled_from(["quote", "overview", "daily", "intraday", "search"]))
    symbol = draw(st.from_regex(r"[A-Z]{1,5}", fullmatch=True))
    return f"{endpoint}_{symbol}"


@st.composite
def cacheable_value(draw):
    """Generate non-null JSON values (None is the cache's miss marker).

    Returns:
        JSON-compatible dict, list or scalar
    """
    return draw(json_values.filter(lambda v: v is not None))


@st.composite
def frequency_limit_body(draw):
    """Generate bodies carrying a per-minute limit notice.

    Returns:
        dict: Notice under one of the sentinel fields, optionally with other keys
    """
    field = draw(st.sampled_from(["Information", "Note", "Error Message"]))
    phrase = draw(
        st.sampled_from(
            [
                "Our standard API call frequency is 5 calls per minute",
                "Please consider spreading out your free API requests more sparingly (1 request per second).",
                "API CALL FREQUENCY exceeded",
            ]
        )
    )
    prefix = draw(st.text(alphabet="abcdefghij ", max_size=20))
    body = {field: f"{prefix}{phrase}"}
    if draw(st.booleans()):
        body["Meta Data"] = {}
    return body


@st.composite
def classified_error(draw, kinds=None):
    """Generate ClassifiedErrors.

    Args:
        draw: Hypothesis draw function
        kinds: Optional list of kinds to sample from

    Returns:
        ClassifiedError with a retry hint only for RATE_LIMIT
    """
    kind = draw(st.sampled_from(kinds or list(ErrorKind)))
    retry_after = None
    if kind == ErrorKind.RATE_LIMIT:
        retry_after = draw(st.none() | st.sampled_from([1, 30, 3600, 86400]))
    return ClassifiedError(kind, draw(st.text(max_size=50)), retry_after_seconds=retry_after)
