"""Data structures for the portfolio news dashboard.

Wire dictionaries use the dashboard's camelCase keys (``impactedStocks``,
``totalPnlPercent``); the dataclasses use snake_case attributes.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

SENTIMENT_LABELS = ("Positive", "Negative", "Neutral")


@dataclass(frozen=True)
class NewsItem:
    """
    A normalized market-news record produced by a fetcher. Never mutated.
    """
    title: str
    url: str
    summary: str
    timestamp: str  # ISO 8601 or the feed's native date string
    source: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NewsItem":
        """Build from a request payload. ``title`` is mandatory; the rest default to ''."""
        title = data.get("title")
        if not isinstance(title, str) or not title.strip():
            raise ValueError("news item requires a non-empty 'title'")
        return cls(
            title=title,
            url=str(data.get("url") or ""),
            summary=str(data.get("summary") or ""),
            timestamp=str(data.get("timestamp") or ""),
            source=str(data.get("source") or ""),
        )


@dataclass
class Holding:
    """A delivery holding reported by a broker."""
    trading_symbol: str
    exchange: str
    isin: str
    quantity: int
    average_price: float
    last_price: float
    pnl: float
    pnl_percent: float
    collateral_quantity: Optional[int] = None
    collateral_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tradingSymbol": self.trading_symbol,
            "exchange": self.exchange,
            "isin": self.isin,
            "quantity": self.quantity,
            "averagePrice": self.average_price,
            "lastPrice": self.last_price,
            "pnl": self.pnl,
            "pnlPercent": self.pnl_percent,
            "collateralQuantity": self.collateral_quantity,
            "collateralType": self.collateral_type,
        }


@dataclass
class Position:
    """An open intraday / F&O position reported by a broker."""
    trading_symbol: str
    exchange: str
    quantity: int
    average_price: float
    current_price: float
    pnl: float
    pnl_percent: float
    instrument_token: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tradingSymbol": self.trading_symbol,
            "exchange": self.exchange,
            "quantity": self.quantity,
            "averagePrice": self.average_price,
            "currentPrice": self.current_price,
            "pnl": self.pnl,
            "pnlPercent": self.pnl_percent,
            "instrumentToken": self.instrument_token,
        }


@dataclass
class Portfolio:
    """
    A manual or broker-linked portfolio. ``stocks`` is always uppercase and unique.
    """
    id: str
    name: str
    broker_id: str
    broker_name: str
    stocks: List[str] = field(default_factory=list)
    holdings: List[Holding] = field(default_factory=list)
    positions: List[Position] = field(default_factory=list)
    total_value: float = 0.0
    total_pnl: float = 0.0
    total_pnl_percent: float = 0.0
    is_linked: bool = False
    last_synced: str = ""
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "brokerId": self.broker_id,
            "brokerName": self.broker_name,
            "stocks": list(self.stocks),
            "holdings": [h.to_dict() for h in self.holdings],
            "positions": [p.to_dict() for p in self.positions],
            "totalValue": self.total_value,
            "totalPnl": self.total_pnl,
            "totalPnlPercent": self.total_pnl_percent,
            "isLinked": self.is_linked,
            "lastSynced": self.last_synced,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class BrokerAccount:
    """A connected broker login. Zerodha holds a real Kite session; other brokers hold demo tokens."""
    id: str
    user_id: str
    broker_id: str
    broker_name: str
    access_token: str
    is_active: bool = True
    last_synced: str = ""
    refresh_token: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "brokerId": self.broker_id,
            "brokerName": self.broker_name,
            "accessToken": self.access_token,
            "isActive": self.is_active,
            "lastSynced": self.last_synced,
        }


@dataclass(frozen=True)
class SentimentVerdict:
    """
    Aggregate-mode result for a whole portfolio. Produced per call, never stored.
    """
    sentiment: str
    confidence: float  # within [0.10, 0.85]
    reasoning: str
    impacted_stocks: List[str]
    overall_market_sentiment: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sentiment": self.sentiment,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "impactedStocks": list(self.impacted_stocks),
            "overallMarketSentiment": self.overall_market_sentiment,
        }


@dataclass(frozen=True)
class StockAnalysis:
    """Per-stock result: relevance-filtered news plus weighted sentiment."""
    stock: str
    company_name: str
    sentiment: str
    confidence: float
    reasoning: str
    news_count: int
    relevant_news: List[NewsItem]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stock": self.stock,
            "companyName": self.company_name,
            "sentiment": self.sentiment,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "newsCount": self.news_count,
            "relevantNews": [item.to_dict() for item in self.relevant_news],
        }
