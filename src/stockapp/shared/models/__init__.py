"""Screen-facing market data models."""

from src.stockapp.shared.models.market import (
    ChartPoint,
    MarketMovers,
    MarketSession,
    SearchResult,
    Stock,
    StockDetails,
    chart_points_from_series,
    find_us_equity_market,
    parse_number,
    search_results_from_matches,
    stock_from_quote,
    stock_from_series,
    stocks_from_movers,
)

__all__ = [
    "ChartPoint",
    "MarketMovers",
    "MarketSession",
    "SearchResult",
    "Stock",
    "StockDetails",
    "chart_points_from_series",
    "find_us_equity_market",
    "parse_number",
    "search_results_from_matches",
    "stock_from_quote",
    "stock_from_series",
    "stocks_from_movers",
]
