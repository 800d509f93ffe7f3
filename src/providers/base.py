"""Abstract base classes for news, sentiment and broker providers."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from src.models.datatypes import Holding, NewsItem, Position, SentimentVerdict


class NewsProvider(ABC):
    """Abstract interface for one external news source."""

    #: short identifier used for source selection (e.g. ``"moneycontrol"``)
    name: str = ""

    @abstractmethod
    def fetch_news(self) -> List[NewsItem]:
        """
        Fetch and normalize the source's latest market headlines.

        Implementations must not raise: network, timeout and parse failures
        are logged and turned into an empty list.

        Returns:
            List[NewsItem]: Normalized items that passed the topical filter.
        """
        pass


class SentimentProvider(ABC):
    """Abstract interface for aggregate-mode portfolio sentiment."""

    @abstractmethod
    def analyze(self, news: Sequence[NewsItem], portfolio: Sequence[str]) -> SentimentVerdict:
        """
        Score a news list against a portfolio's symbols.

        Args:
            news (Sequence[NewsItem]): Filtered news; must not be empty.
            portfolio (Sequence[str]): Portfolio symbols, possibly empty.

        Returns:
            SentimentVerdict: Label, confidence in [0.10, 0.85] and rationale.
        """
        pass


class BrokerProvider(ABC):
    """Abstract interface for a broker integration variant."""

    broker_id: str = ""

    def exchange_token(self, request_token: str) -> Optional[Dict[str, Any]]:
        """Trade a login ``request_token`` for a session dict, or None if unsupported."""
        return None

    @abstractmethod
    def get_login_url(self, user_id: str) -> str:
        """Return the URL that starts the broker's login flow for ``user_id``."""
        pass

    @abstractmethod
    def get_holdings(self, access_token: str) -> List[Holding]:
        """Return delivery holdings for the account behind ``access_token``."""
        pass

    @abstractmethod
    def get_positions(self, access_token: str) -> List[Position]:
        """Return open positions for the account behind ``access_token``."""
        pass
