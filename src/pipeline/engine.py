"""Dashboard engine — wires fetchers, aggregator, scorers and services.

Flow per dashboard refresh:
  1. News      — every selected NewsProvider runs concurrently; a failing
                 provider contributes an empty list and never aborts the rest
  2. Aggregate — filter, dedupe, sort and cap the concatenated output
  3. Analyze   — aggregate-mode verdict for the whole portfolio
  4. Stocks    — per-stock analysis for each portfolio symbol

``run`` performs all four steps and writes output/dashboard_report.json.
"""

import copy
import json
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Sequence

from src.core.clock import now_iso
from src.core.config import DEFAULTS
from src.core.errors import ValidationError
from src.core.lexicon import Lexicon
from src.core.logger import logger
from src.core.news_utils import unique_symbols
from src.models.datatypes import NewsItem, SentimentVerdict, StockAnalysis
from src.pipeline.aggregator import aggregate
from src.providers.base import NewsProvider, SentimentProvider
from src.providers.news import build_news_providers
from src.providers.sentiment import get_sentiment_provider
from src.providers.stock_sentiment import StockSentimentAnalyzer
from src.services.accounts import BrokerAccountService
from src.services.portfolio import PortfolioService
from src.store.memory import InMemoryStore

REPORT_FILENAME = "dashboard_report.json"
ALL_SOURCES = "all"


class DashboardEngine:
    """Holds the long-lived collaborators for one dashboard process.

    Args:
        settings: Effective settings from ``load_settings`` (defaults when None).
        news_providers: Override the configured fetchers (tests).
        sentiment: Override the aggregate-mode scorer (tests).
        llm_client: LLM client passed to the ``llm`` scorer.
    """

    def __init__(
        self,
        settings: Optional[Dict[str, Any]] = None,
        news_providers: Optional[Sequence[NewsProvider]] = None,
        sentiment: Optional[SentimentProvider] = None,
        llm_client: Any = None,
    ) -> None:
        self.settings = settings or copy.deepcopy(DEFAULTS)
        self.output_dir = self.settings.get("output_dir", "output")
        self.max_items = int(self.settings.get("news", {}).get("max_items", 20))

        self.lexicon = Lexicon.from_config(self.settings.get("lexicon"))
        self.news_providers: List[NewsProvider] = (
            list(news_providers) if news_providers is not None
            else build_news_providers(self.settings, self.lexicon)
        )
        self.sentiment = sentiment or get_sentiment_provider(
            self.settings.get("sentiment", {}).get("provider", "keyword"),
            settings=self.settings,
            lexicon=self.lexicon,
            client=llm_client,
        )
        self.stock_analyzer = StockSentimentAnalyzer(self.lexicon)

        self.accounts = BrokerAccountService(InMemoryStore("broker_accounts"), self.settings)
        self.portfolios = PortfolioService(self.accounts, InMemoryStore("portfolios"), self.settings)

        logger.info(
            f"DashboardEngine: {len(self.news_providers)} news providers "
            f"({', '.join(p.name for p in self.news_providers)}), "
            f"sentiment={type(self.sentiment).__name__}"
        )

    # ── public ────────────────────────────────────────────────────────────────

    def select_providers(self, source: str = ALL_SOURCES) -> List[NewsProvider]:
        """Providers for ``source`` (``"all"`` or one provider name).

        Raises:
            ValidationError: Unknown source name.
        """
        if not source or source == ALL_SOURCES:
            return list(self.news_providers)
        selected = [p for p in self.news_providers if p.name == source]
        if not selected:
            raise ValidationError(f"Unknown news source: {source}")
        return selected

    def fetch_raw(self, providers: Sequence[NewsProvider]) -> List[List[NewsItem]]:
        """Run providers concurrently and return their outputs in provider order.

        Every future is awaited; one that raises is logged and contributes [].
        """
        if not providers:
            return []
        with ThreadPoolExecutor(max_workers=len(providers)) as pool:
            futures = [pool.submit(provider.fetch_news) for provider in providers]
            results: List[List[NewsItem]] = []
            for provider, future in zip(providers, futures):
                try:
                    results.append(list(future.result()))
                except Exception as exc:
                    logger.error(f"DashboardEngine: provider {provider.name} failed: {exc}")
                    results.append([])
        return results

    def fetch_news(self, source: str = ALL_SOURCES) -> List[NewsItem]:
        """Fetch, concatenate (provider order) and aggregate the news list."""
        providers = self.select_providers(source)
        batches = self.fetch_raw(providers)
        for provider, batch in zip(providers, batches):
            logger.info(f"DashboardEngine: {provider.name} → {len(batch)} items")
        combined = [item for batch in batches for item in batch]
        return aggregate(combined, self.lexicon, max_items=self.max_items)

    def analyze(self, news: Sequence[NewsItem], portfolio: Sequence[str]) -> SentimentVerdict:
        """Aggregate-mode verdict. Raises ValidationError on empty news."""
        return self.sentiment.analyze(news, portfolio)

    def analyze_stocks(self, stocks: Sequence[str], news: Sequence[NewsItem]) -> List[StockAnalysis]:
        return self.stock_analyzer.analyze_portfolio(stocks, news)

    def run(self, portfolio: Optional[Sequence[str]] = None, source: str = ALL_SOURCES) -> Dict[str, Any]:
        """Full refresh: fetch, score and write the JSON report.

        Args:
            portfolio: Symbols to score; defaults to the ``portfolio`` setting.
            source: News source selection.

        Returns:
            The report dict that was written.
        """
        symbols = unique_symbols(portfolio if portfolio is not None else self.settings.get("portfolio", []))
        news = self.fetch_news(source)

        verdict: Optional[SentimentVerdict] = None
        if news:
            verdict = self.analyze(news, symbols)
        else:
            logger.warning("DashboardEngine: no news after aggregation — verdict skipped")

        report = {
            "generatedAt": now_iso(),
            "maxItems": self.max_items,
            "portfolio": symbols,
            "news": [item.to_dict() for item in news],
            "analysis": verdict.to_dict() if verdict else None,
            "stockAnalysis": [a.to_dict() for a in self.analyze_stocks(symbols, news)],
        }
        self._write_report(report)
        return report

    # ── internal ──────────────────────────────────────────────────────────────

    def _write_report(self, report: Dict[str, Any]) -> str:
        os.makedirs(self.output_dir, exist_ok=True)
        path = os.path.join(self.output_dir, REPORT_FILENAME)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(report, f, indent=2)
        logger.info(f"DashboardEngine: wrote report → {path}")
        return path
