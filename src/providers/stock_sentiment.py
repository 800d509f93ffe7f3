"""Per-stock sentiment: relevance filter plus weighted keyword scoring.

For each symbol the news list is narrowed to items that mention the stock
(symbol, company name, first word of the company name, or a known alias).
Matched keyword weights are summed per direction and turned into a label
and a confidence in ``[0.15, 0.85]``.
"""

from typing import List, Optional, Sequence, Tuple

from src.core.lexicon import DEFAULT_LEXICON, Lexicon, WeightedCategory
from src.core.logger import logger
from src.core.news_utils import contains_any, item_text, mentions_symbol, unique_symbols
from src.models.datatypes import NewsItem, StockAnalysis

NO_COVERAGE_CONFIDENCE = 0.15
MAX_STOCK_CONFIDENCE = 0.85
RELEVANT_NEWS_LIMIT = 3
HIGH_COVERAGE_COUNT = 3
HIGH_COVERAGE_BOOST = 0.10
SECTOR_BOOST = 0.05
PER_ARTICLE_BOOST = 0.05


def weighted_score(text: str, categories: Sequence[WeightedCategory]) -> float:
    """Sum the weight of every keyword present in ``text``."""
    return sum(weight for keywords, weight in categories for keyword in keywords if keyword in text)


def _plural(count: int) -> str:
    return "s" if count > 1 else ""


class StockSentimentAnalyzer:
    """Scores one stock at a time against the shared news list.

    Args:
        lexicon: Shared tables supplying names, aliases, weights and sectors.
    """

    def __init__(self, lexicon: Lexicon = DEFAULT_LEXICON) -> None:
        self.lexicon = lexicon

    def relevant_news(self, symbol: str, news: Sequence[NewsItem]) -> List[NewsItem]:
        return [
            item for item in news
            if mentions_symbol(item_text(item), symbol, self.lexicon, include_first_word=True)
        ]

    def sector_note(self, symbol: str, relevant: Sequence[NewsItem]) -> Optional[str]:
        """Return the sector clause when the stock's sector keywords appear in its news."""
        sector = self.lexicon.sector_of(symbol)
        if sector is None:
            return None
        keywords = self.lexicon.sector_keywords.get(sector, ())
        if any(contains_any(item_text(item), keywords) for item in relevant):
            return self.lexicon.sector_notes.get(sector, "")
        return None

    def analyze_stock(self, symbol: str, news: Sequence[NewsItem]) -> StockAnalysis:
        """Score one symbol.

        Args:
            symbol: Ticker symbol (any case).
            news: Full filtered news list; may be empty.

        Returns:
            :class:`StockAnalysis` with at most three ``relevant_news`` items.
        """
        symbol = symbol.strip().upper()
        company = self.lexicon.company_name(symbol)
        relevant = self.relevant_news(symbol, news or [])
        count = len(relevant)

        if not relevant:
            logger.info(f"StockSentimentAnalyzer: {symbol} — no relevant news")
            return StockAnalysis(
                stock=symbol,
                company_name=company,
                sentiment="Neutral",
                confidence=NO_COVERAGE_CONFIDENCE,
                reasoning=(
                    f"No recent news coverage found for {company}. Limited market "
                    f"visibility may indicate stable but unremarkable performance."
                ),
                news_count=0,
                relevant_news=[],
            )

        positive, negative = self._scores(relevant)
        sentiment, confidence, reasoning = _verdict(positive, negative, count)

        if count >= HIGH_COVERAGE_COUNT:
            confidence = min(MAX_STOCK_CONFIDENCE, confidence + HIGH_COVERAGE_BOOST)

        note = self.sector_note(symbol, relevant)
        if note is not None:
            confidence = min(MAX_STOCK_CONFIDENCE, confidence + SECTOR_BOOST)
            if note:
                reasoning = f"{reasoning} {note}"

        logger.info(
            f"StockSentimentAnalyzer: {symbol} [{sentiment} / {confidence:.2f}] "
            f"pos={positive:.1f} neg={negative:.1f} articles={count}"
        )
        return StockAnalysis(
            stock=symbol,
            company_name=company,
            sentiment=sentiment,
            confidence=confidence,
            reasoning=reasoning,
            news_count=count,
            relevant_news=list(relevant[:RELEVANT_NEWS_LIMIT]),
        )

    def analyze_portfolio(self, stocks: Sequence[str], news: Sequence[NewsItem]) -> List[StockAnalysis]:
        """Score every symbol in ``stocks`` (uppercased, de-duplicated, order kept)."""
        return [self.analyze_stock(symbol, news) for symbol in unique_symbols(stocks)]

    def _scores(self, relevant: Sequence[NewsItem]) -> Tuple[float, float]:
        positive = negative = 0.0
        for item in relevant:
            text = item_text(item)
            positive += weighted_score(text, self.lexicon.positive_weights)
            negative += weighted_score(text, self.lexicon.negative_weights)
        return positive, negative


def _verdict(positive: float, negative: float, count: int) -> Tuple[str, float, str]:
    """Label, confidence and reasoning from the weighted scores."""
    total = positive + negative
    difference = abs(positive - negative)
    articles = f"{count} article{_plural(count)}"

    if total == 0:
        return (
            "Neutral",
            min(MAX_STOCK_CONFIDENCE, 0.25 + count * PER_ARTICLE_BOOST),
            f"{count} news article{_plural(count)} found but no clear sentiment indicators detected",
        )

    if positive > negative:
        confidence = min(MAX_STOCK_CONFIDENCE, 0.4 + (difference / total) * 0.3 + count * PER_ARTICLE_BOOST)
        return (
            "Positive",
            confidence,
            f"Strong positive sentiment detected (score: +{positive:.1f}) across {articles}. "
            f"Key indicators suggest favorable outlook.",
        )

    if negative > positive:
        confidence = min(MAX_STOCK_CONFIDENCE, 0.4 + (difference / total) * 0.3 + count * PER_ARTICLE_BOOST)
        return (
            "Negative",
            confidence,
            f"Negative sentiment detected (score: -{negative:.1f}) across {articles}. "
            f"Risk factors and concerns identified.",
        )

    return (
        "Neutral",
        min(MAX_STOCK_CONFIDENCE, 0.35 + count * PER_ARTICLE_BOOST),
        f"Mixed signals detected (positive: {positive:.1f}, negative: {negative:.1f}) "
        f"in {articles}. Market sentiment unclear.",
    )
