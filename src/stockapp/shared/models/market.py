"""Screen-facing models built from raw Alpha Vantage payloads.

The endpoint client returns (and caches) upstream bodies as-is; screens
convert them with the helpers here. Upstream numbers arrive as strings,
percentages with a trailing ``%``.
"""

import logging
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


def parse_number(value: Any, default: float = 0.0) -> float:
    """Parse an upstream numeric string ("1.23", "-0.5%", "None")."""
    if value is None:
        return default
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip().rstrip("%").strip()
    try:
        return float(text)
    except ValueError:
        return default


class Stock(BaseModel):
    """Ticker row shown on the home, favorites and watchlist screens."""

    symbol: str
    name: str = ""
    price: float = 0.0
    change: float = 0.0
    change_percent: float = 0.0
    volume: str | None = None


class MarketMovers(BaseModel):
    top_gainers: list[Stock] = Field(default_factory=list)
    top_losers: list[Stock] = Field(default_factory=list)
    most_active: list[Stock] = Field(default_factory=list)


def _stock_from_mover(item: dict[str, Any]) -> Stock:
    ticker = item.get("ticker", "")
    return Stock(
        symbol=ticker,
        name=ticker,
        price=parse_number(item.get("price")),
        change=parse_number(item.get("change_amount")),
        change_percent=parse_number(item.get("change_percentage")),
        volume=item.get("volume"),
    )


def stocks_from_movers(payload: dict[str, Any]) -> MarketMovers:
    """Convert a TOP_GAINERS_LOSERS body."""
    return MarketMovers(
        top_gainers=[_stock_from_mover(i) for i in payload.get("top_gainers", [])],
        top_losers=[_stock_from_mover(i) for i in payload.get("top_losers", [])],
        most_active=[
            _stock_from_mover(i) for i in payload.get("most_actively_traded", [])
        ],
    )


def stock_from_quote(quote: dict[str, Any], name: str | None = None) -> Stock:
    """Convert an unwrapped Global Quote object."""
    symbol = quote.get("01. symbol", "")
    return Stock(
        symbol=symbol,
        name=name or symbol,
        price=parse_number(quote.get("05. price")),
        change=parse_number(quote.get("09. change")),
        change_percent=parse_number(quote.get("10. change percent")),
        volume=quote.get("06. volume"),
    )


class ChartPoint(BaseModel):
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: int = 0


def _parse_timestamp(raw: str) -> datetime | None:
    for fmt in ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d"):
        try:
            return datetime.strptime(raw, fmt)
        except ValueError:
            continue
    return None


def chart_points_from_series(
    series: dict[str, dict[str, Any]], limit: int | None = None
) -> list[ChartPoint]:
    """Convert a ``Time Series (...)`` mapping into points, oldest first.

    Args:
        series: timestamp -> {"1. open": ..., "4. close": ...}
        limit: Keep only the most recent ``limit`` points
    """
    points = []
    for raw_ts, values in series.items():
        timestamp = _parse_timestamp(raw_ts)
        if timestamp is None or not isinstance(values, dict):
            logger.debug("Skipping unparseable bar", extra={"timestamp": raw_ts[:40]})
            continue
        points.append(
            ChartPoint(
                timestamp=timestamp,
                open=parse_number(values.get("1. open")),
                high=parse_number(values.get("2. high")),
                low=parse_number(values.get("3. low")),
                close=parse_number(values.get("4. close")),
                volume=int(parse_number(values.get("5. volume"))),
            )
        )

    points.sort(key=lambda p: p.timestamp)
    if limit is not None:
        points = points[-limit:] if limit > 0 else []
    return points


def stock_from_series(symbol: str, points: list[ChartPoint]) -> Stock | None:
    """Price/change from the latest bar; used when the quote is unavailable."""
    if not points:
        return None
    latest = points[-1]
    change = latest.close - latest.open
    change_percent = (change / latest.open) * 100 if latest.open else 0.0
    return Stock(
        symbol=symbol,
        name=symbol,
        price=latest.close,
        change=change,
        change_percent=change_percent,
    )


class SearchResult(BaseModel):
    symbol: str
    name: str
    type: str = ""
    region: str = ""
    market_open: str = ""
    market_close: str = ""
    timezone: str = ""
    currency: str = ""


def search_results_from_matches(
    payload: dict[str, Any], limit: int = 10
) -> list[SearchResult]:
    """Convert a SYMBOL_SEARCH body's ``bestMatches``."""
    results = []
    for match in payload.get("bestMatches", [])[:limit]:
        results.append(
            SearchResult(
                symbol=match.get("1. symbol", ""),
                name=match.get("2. name", ""),
                type=match.get("3. type", ""),
                region=match.get("4. region", ""),
                market_open=match.get("5. marketOpen", ""),
                market_close=match.get("6. marketClose", ""),
                timezone=match.get("7. timezone", ""),
                currency=match.get("8. currency", ""),
            )
        )
    return results


class MarketSession(BaseModel):
    market_type: str
    region: str
    primary_exchanges: str = ""
    local_open: str = ""
    local_close: str = ""
    current_status: str = ""
    notes: str = ""

    @property
    def is_open(self) -> bool:
        return self.current_status.lower() == "open"


def find_us_equity_market(payload: dict[str, Any]) -> MarketSession | None:
    """US equity session from a MARKET_STATUS body, if listed."""
    for market in payload.get("markets", []):
        if (
            market.get("region") == "United States"
            and market.get("market_type") == "Equity"
        ):
            return MarketSession.model_validate(market)
    return None


class StockDetails(BaseModel):
    """Header block of the stock details screen."""

    symbol: str
    name: str
    description: str = ""
    industry: str = ""
    sector: str = ""
    market_cap: str = ""
    pe_ratio: str = ""
    dividend_yield: str = ""
    fifty_two_week_high: str = ""
    fifty_two_week_low: str = ""
    current_price: float = 0.0
    change: float = 0.0
    change_percent: float = 0.0

    @classmethod
    def from_overview(
        cls, overview: dict[str, Any], quote: dict[str, Any] | None = None
    ) -> "StockDetails":
        price = stock_from_quote(quote) if quote else None
        return cls(
            symbol=overview.get("Symbol", ""),
            name=overview.get("Name", ""),
            description=overview.get("Description", ""),
            industry=overview.get("Industry", ""),
            sector=overview.get("Sector", ""),
            market_cap=overview.get("MarketCapitalization", ""),
            pe_ratio=overview.get("PERatio", ""),
            dividend_yield=overview.get("DividendYield", ""),
            fifty_two_week_high=overview.get("52WeekHigh", ""),
            fifty_two_week_low=overview.get("52WeekLow", ""),
            current_price=price.price if price else 0.0,
            change=price.change if price else 0.0,
            change_percent=price.change_percent if price else 0.0,
        )
