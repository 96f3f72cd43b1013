"""
Pytest Configuration and Shared Fixtures
=========================================

Common fixtures used across all test modules.

Test Environment Separation:
    - Every test runs offline: HTTP goes through httpx.MockTransport
    - Backoff sleeps are replaced with an AsyncMock so no test waits
    - The device store is an InMemoryStore unless a test opts into SQLite

For On-Call Engineers:
    If tests fail with "ALPHA_VANTAGE_API_KEY is required":
    1. A test called get_config() without setting the env var
    2. Use the ``config`` fixture or monkeypatch.setenv instead

For Developers:
    - Import fixtures by name in test files (pytest auto-discovers conftest.py)
    - ``make_adapter(responses)`` replays a list of httpx.Response objects or
      exceptions, one per transport attempt, and records each request
    - Use assert_error_logged / assert_warning_logged for expected logs
"""

import logging
import os
from collections.abc import Callable
from unittest.mock import AsyncMock

import httpx
import pytest

from src.stockapp.shared.adapters import AlphaVantageAdapter
from src.stockapp.shared.cache import ResponseCache
from src.stockapp.shared.config import ClientConfig
from src.stockapp.shared.retry import RetryEngine
from src.stockapp.shared.storage import InMemoryStore

TEST_API_KEY = "test-alpha-vantage-key"  # pragma: allowlist secret
TEST_BASE_URL = "https://av.test/query"

# Set default test environment variables at module load time
os.environ.setdefault("ALPHA_VANTAGE_API_KEY", TEST_API_KEY)


@pytest.fixture(autouse=True)
def reset_env_vars():
    """
    Reset environment variables before each test.

    Ensures tests don't pollute each other's environment.
    """
    original_env = os.environ.copy()

    yield

    os.environ.clear()
    os.environ.update(original_env)


# =============================================================================
# Client Building Blocks
# =============================================================================


@pytest.fixture
def config():
    """ClientConfig pointing at a fake host with default TTL and timeouts."""
    return ClientConfig(api_key=TEST_API_KEY, base_url=TEST_BASE_URL)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def clock():
    """Mutable millisecond clock: ``clock.now_ms += 1000`` advances time."""

    class FakeClock:
        def __init__(self) -> None:
            self.now_ms = 1_700_000_000_000

        def __call__(self) -> int:
            return self.now_ms

    return FakeClock()


@pytest.fixture
def cache(store, clock):
    return ResponseCache(store, clock=clock)


@pytest.fixture
def fake_sleep():
    """Replacement for asyncio.sleep; inspect ``await_args_list`` for delays."""
    return AsyncMock()


@pytest.fixture
def retry_engine(fake_sleep):
    return RetryEngine(sleep=fake_sleep)


class RecordingTransport:
    """Replays canned outcomes, one per request.

    Each outcome is an ``httpx.Response`` (returned) or an exception
    (raised). Once the queue is exhausted the last outcome repeats.
    """

    def __init__(self, outcomes: list) -> None:
        self.outcomes = list(outcomes)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests), len(self.outcomes)) - 1
        outcome = self.outcomes[index]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    @property
    def call_count(self) -> int:
        return len(self.requests)


@pytest.fixture
def make_adapter(config, cache, retry_engine) -> Callable:
    """
    Factory for an AlphaVantageAdapter backed by a RecordingTransport.

    Example:
        def test_quote(make_adapter):
            api, transport = make_adapter([httpx.Response(200, json=GLOBAL_QUOTE_AAPL)])
            quote = await api.get_global_quote("AAPL")
            assert transport.call_count == 1
    """

    def _make(outcomes: list, on_stale_fallback=None):
        transport = RecordingTransport(outcomes)
        client = httpx.AsyncClient(transport=httpx.MockTransport(transport))
        adapter = AlphaVantageAdapter(
            config,
            cache,
            retry_engine=retry_engine,
            client=client,
            on_stale_fallback=on_stale_fallback,
        )
        return adapter, transport

    return _make


# =============================================================================
# Log Validation Helpers
# =============================================================================
#
# Production code logs normally (never test-aware); tests assert on the
# logs they expect using caplog.


def assert_error_logged(caplog, pattern: str):
    """
    Helper to assert an ERROR log was captured.

    Args:
        caplog: pytest caplog fixture
        pattern: String pattern to search for in log messages

    Raises:
        AssertionError: If no ERROR log matches the pattern
    """
    assert any(
        pattern in record.message
        for record in caplog.records
        if record.levelno >= logging.ERROR
    ), f"Expected ERROR log matching '{pattern}' not found"


def assert_warning_logged(caplog, pattern: str):
    """
    Helper to assert a WARNING log was captured.

    Args:
        caplog: pytest caplog fixture
        pattern: String pattern to search for in log messages

    Raises:
        AssertionError: If no WARNING log matches the pattern
    """
    assert any(
        pattern in record.message
        for record in caplog.records
        if record.levelno == logging.WARNING
    ), f"Expected WARNING log matching '{pattern}' not found"
