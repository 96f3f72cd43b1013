"""Unit tests for user-facing error helpers."""

import pytest

from src.stockapp.shared.error_display import (
    ERROR_MESSAGES,
    GENERIC_ERROR_MESSAGE,
    MAX_AUTO_RETRIES,
    STALE_DATA_MESSAGE,
    get_error_category,
    get_error_message,
    get_suggested_retry_delay,
    is_network_error,
    is_rate_limit_error,
    log_error,
    should_auto_retry,
    show_retry_button,
    stale_data_banner,
)
from src.stockapp.shared.errors import ClassifiedError, ErrorKind


def err(kind, retry_after=None):
    return ClassifiedError(kind, "m", retry_after_seconds=retry_after)


class TestCategorization:
    """Tests for error categorization."""

    def test_classified_kinds(self):
        assert get_error_category(err(ErrorKind.RATE_LIMIT)) == "Rate Limit"
        assert get_error_category(err(ErrorKind.TIMEOUT)) == "Network"
        assert get_error_category(err(ErrorKind.NETWORK_ERROR)) == "Network"
        assert get_error_category(err(ErrorKind.DATA_NOT_AVAILABLE)) == "Data Unavailable"
        assert get_error_category(err(ErrorKind.INVALID_CREDENTIALS)) == "Credentials"
        assert get_error_category(err(ErrorKind.UNKNOWN)) == "Unknown"

    def test_generic_exceptions_by_message(self):
        assert is_rate_limit_error(RuntimeError("API call frequency exceeded"))
        assert is_network_error(OSError("Network request failed"))
        assert get_error_category(ValueError("bad")) == "Unknown"


class TestRetryAdvice:
    """Tests for retry delay, auto-retry and the retry button."""

    def test_retry_after_hint_wins(self):
        assert get_suggested_retry_delay(err(ErrorKind.RATE_LIMIT, 3600)) == 3600

    def test_default_delays(self):
        assert get_suggested_retry_delay(err(ErrorKind.RATE_LIMIT)) == 300
        assert get_suggested_retry_delay(err(ErrorKind.NETWORK_ERROR)) == 30
        assert get_suggested_retry_delay(err(ErrorKind.UNKNOWN)) == 60

    def test_auto_retry_follows_retryability(self):
        assert should_auto_retry(err(ErrorKind.TIMEOUT)) is True
        assert should_auto_retry(err(ErrorKind.DATA_NOT_AVAILABLE)) is False
        assert should_auto_retry(ConnectionError("connection reset")) is True
        assert should_auto_retry(ValueError("bad")) is False

    def test_auto_retry_budget(self):
        assert should_auto_retry(err(ErrorKind.TIMEOUT), attempt_count=MAX_AUTO_RETRIES) is False

    @pytest.mark.parametrize("kind", [k for k in ErrorKind if k != ErrorKind.INVALID_CREDENTIALS])
    def test_retry_button_for_transient_kinds(self, kind):
        assert show_retry_button(err(kind)) is True

    def test_no_retry_button_for_credentials(self):
        assert show_retry_button(err(ErrorKind.INVALID_CREDENTIALS)) is False

    def test_retry_button_for_generic_errors(self):
        assert show_retry_button(RuntimeError("x")) is True


class TestMessages:
    def test_every_kind_has_copy(self):
        for kind in ErrorKind:
            assert get_error_message(err(kind)) == ERROR_MESSAGES[kind]

    def test_generic_messages(self):
        assert get_error_message(OSError("Network Error")) == ERROR_MESSAGES[ErrorKind.NETWORK_ERROR]
        assert get_error_message(TimeoutError("timed out")) == ERROR_MESSAGES[ErrorKind.TIMEOUT]
        assert get_error_message(ValueError("??")) == GENERIC_ERROR_MESSAGE

    def test_stale_banner(self):
        assert stale_data_banner(err(ErrorKind.NETWORK_ERROR)) == STALE_DATA_MESSAGE
        assert "rate limit" in stale_data_banner(err(ErrorKind.RATE_LIMIT))


class TestLogError:
    def test_structured_fields(self, caplog):
        from tests.conftest import assert_error_logged

        log_error(err(ErrorKind.RATE_LIMIT, 3600), context="home\nscreen")

        assert_error_logged(caplog, "API error surfaced to screen")
        record = caplog.records[-1]
        assert record.context == "home screen"
        assert record.error_kind == "RATE_LIMIT"
        assert record.suggested_delay_seconds == 3600

    def test_generic_exception(self, caplog):
        log_error(KeyError("x"))
        assert caplog.records[-1].error_type == "KeyError"
