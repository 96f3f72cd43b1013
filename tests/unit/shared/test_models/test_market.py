"""Unit tests for screen-facing market models."""

from datetime import datetime

import pytest

from src.stockapp.shared.models import (
    MarketSession,
    StockDetails,
    chart_points_from_series,
    find_us_equity_market,
    parse_number,
    search_results_from_matches,
    stock_from_quote,
    stock_from_series,
    stocks_from_movers,
)
from tests.fixtures.alpha_vantage_responses import (
    COMPANY_OVERVIEW_AAPL,
    DAILY_AAPL,
    GLOBAL_QUOTE_AAPL,
    INTRADAY_60MIN_AAPL,
    MARKET_STATUS,
    SYMBOL_SEARCH_TESCO,
    TOP_GAINERS_LOSERS,
)

QUOTE = GLOBAL_QUOTE_AAPL["Global Quote"]


class TestParseNumber:
    @pytest.mark.parametrize(
        "raw,expected",
        [("1.23", 1.23), ("-0.5%", -0.5), (" 99.4220% ", 99.422), (7, 7.0), (None, 0.0), ("None", 0.0)],
    )
    def test_values(self, raw, expected):
        assert parse_number(raw) == pytest.approx(expected)

    def test_custom_default(self):
        assert parse_number("-", default=-1.0) == -1.0


class TestStocks:
    """Tests for quote and mover conversion."""

    def test_stock_from_quote(self):
        stock = stock_from_quote(QUOTE, name="Apple Inc")

        assert stock.symbol == "AAPL"
        assert stock.name == "Apple Inc"
        assert stock.price == pytest.approx(190.64)
        assert stock.change == pytest.approx(2.01)
        assert stock.change_percent == pytest.approx(1.0656)
        assert stock.volume == "46431249"

    def test_name_defaults_to_symbol(self):
        assert stock_from_quote(QUOTE).name == "AAPL"

    def test_movers(self):
        movers = stocks_from_movers(TOP_GAINERS_LOSERS)

        assert [s.symbol for s in movers.top_gainers] == ["XYZW"]
        assert movers.top_losers[0].change == pytest.approx(-0.49)
        assert movers.most_active[0].change_percent == pytest.approx(3.4)

    def test_movers_missing_sections(self):
        movers = stocks_from_movers({"top_gainers": []})
        assert movers.top_losers == []
        assert movers.most_active == []


class TestChartPoints:
    """Tests for time series conversion."""

    def test_sorted_oldest_first(self):
        points = chart_points_from_series(INTRADAY_60MIN_AAPL["Time Series (60min)"])

        assert [p.timestamp for p in points] == [
            datetime(2025, 1, 15, 18, 0),
            datetime(2025, 1, 15, 19, 0),
        ]
        assert points[-1].close == pytest.approx(190.64)
        assert points[0].volume == 98765

    def test_daily_dates(self):
        points = chart_points_from_series(DAILY_AAPL["Time Series (Daily)"])
        assert points[0].timestamp == datetime(2025, 1, 15)

    def test_limit_keeps_most_recent(self):
        points = chart_points_from_series(INTRADAY_60MIN_AAPL["Time Series (60min)"], limit=1)

        assert len(points) == 1
        assert points[0].timestamp.hour == 19

    def test_zero_limit(self):
        assert chart_points_from_series(DAILY_AAPL["Time Series (Daily)"], limit=0) == []

    def test_unparseable_bars_skipped(self):
        series = {"yesterday": {"4. close": "1"}, "2025-01-15": "not a bar"}
        assert chart_points_from_series(series) == []

    def test_stock_from_series(self):
        points = chart_points_from_series(INTRADAY_60MIN_AAPL["Time Series (60min)"])

        stock = stock_from_series("AAPL", points)

        assert stock.price == pytest.approx(190.64)
        assert stock.change == pytest.approx(190.64 - 190.50)

    def test_stock_from_empty_series(self):
        assert stock_from_series("AAPL", []) is None


class TestSearchAndStatus:
    def test_search_results(self):
        results = search_results_from_matches(SYMBOL_SEARCH_TESCO)

        assert [r.symbol for r in results] == ["TSCO.LON", "TSCDF"]
        assert results[1].currency == "USD"

    def test_search_results_limit(self):
        assert len(search_results_from_matches(SYMBOL_SEARCH_TESCO, limit=1)) == 1

    def test_us_equity_market(self):
        session = find_us_equity_market(MARKET_STATUS)

        assert session.primary_exchanges.startswith("NASDAQ")
        assert session.is_open is True

    def test_us_market_absent(self):
        assert find_us_equity_market({"markets": []}) is None

    def test_closed_session(self):
        session = MarketSession(market_type="Equity", region="Japan", current_status="closed")
        assert session.is_open is False


class TestStockDetails:
    def test_from_overview_with_quote(self):
        details = StockDetails.from_overview(COMPANY_OVERVIEW_AAPL, QUOTE)

        assert details.symbol == "AAPL"
        assert details.sector == "TECHNOLOGY"
        assert details.fifty_two_week_high == "199.62"
        assert details.current_price == pytest.approx(190.64)

    def test_from_overview_without_quote(self):
        details = StockDetails.from_overview({"Name": "Apple Inc."})

        assert details.name == "Apple Inc."
        assert details.current_price == 0.0
