"""Aggregate-mode portfolio sentiment.

Pipeline:
    news list + portfolio symbols → SentimentProvider.analyze() → SentimentVerdict

Providers:
  1. KeywordSentimentProvider — keyword counts, portfolio relevance and news
     volume folded into a bounded confidence score
  2. LLMSentimentProvider     — OpenAI chat completion parsed into the same
     verdict shape; any failure falls back to the keyword provider

Confidence base by portfolio size (before adjustments):
    0 stocks  → [0.15, 0.25)
    1 stock   → [0.25, 0.40)
    2–3       → [0.35, 0.55)
    4–5       → [0.45, 0.70)
    6+        → [0.55, 0.75)

The base is chosen by a ConfidenceStrategy: the bucket midpoint
(``deterministic``) or a uniform draw inside the bucket (``sampled``).
"""

import json
import random
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

from src.core.errors import LLMError, ValidationError
from src.core.lexicon import DEFAULT_LEXICON, Lexicon
from src.core.logger import logger
from src.core.news_utils import count_present, item_text, mentions_symbol, unique_symbols
from src.models.datatypes import SENTIMENT_LABELS, NewsItem, SentimentVerdict
from src.providers.base import SentimentProvider

MIN_CONFIDENCE = 0.10
MAX_CONFIDENCE = 0.85

# (max portfolio size inclusive, low, high); the last bucket is open-ended
_CONFIDENCE_BUCKETS: Tuple[Tuple[int, float, float], ...] = (
    (0, 0.15, 0.25),
    (1, 0.25, 0.40),
    (3, 0.35, 0.55),
    (5, 0.45, 0.70),
)
_LARGE_PORTFOLIO_BUCKET = (0.55, 0.75)

_LABEL_MARGIN = 2
_STRENGTH_WEIGHT = 0.3
_HIGH_RELEVANCE_BONUS = 0.15
_SOME_RELEVANCE_BONUS = 0.08
_NO_RELEVANCE_PENALTY = 0.10
_LOW_VOLUME_THRESHOLD = 5
_LOW_VOLUME_PENALTY = 0.10
_HIGH_VOLUME_THRESHOLD = 15
_HIGH_VOLUME_BONUS = 0.05
_NEUTRAL_PENALTY = 0.05

_JSON_RE = re.compile(r"\{.*\}", re.DOTALL)

_LLM_SYSTEM_PROMPT = (
    "You are a financial analyst specializing in Indian stock markets. "
    "Provide objective, data-driven analysis."
)


def clamp_confidence(value: float) -> float:
    return max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, value))


def confidence_bucket(portfolio_size: int) -> Tuple[float, float]:
    """Return the ``(low, high)`` confidence-base range for a portfolio size."""
    for max_size, low, high in _CONFIDENCE_BUCKETS:
        if portfolio_size <= max_size:
            return low, high
    return _LARGE_PORTFOLIO_BUCKET


def require_news(news: Optional[Sequence[NewsItem]]) -> List[NewsItem]:
    """Reject a missing or empty news list before any scoring happens."""
    if not news:
        raise ValidationError("No news data provided")
    return list(news)


# ── Confidence strategies ────────────────────────────────────────────────────

class ConfidenceStrategy(ABC):
    """Chooses the starting confidence for a portfolio-size bucket."""

    name: str = ""

    @abstractmethod
    def base(self, portfolio_size: int) -> float:
        pass


class DeterministicConfidence(ConfidenceStrategy):
    """Bucket midpoint. Same inputs always give the same confidence."""

    name = "deterministic"

    def base(self, portfolio_size: int) -> float:
        low, high = confidence_bucket(portfolio_size)
        return (low + high) / 2


class SampledConfidence(ConfidenceStrategy):
    """Uniform draw inside the bucket from an injectable random source.

    Args:
        rng: Random source; pass a seeded ``random.Random`` to pin results.
        seed: Used to build ``rng`` when none is given.
    """

    name = "sampled"

    def __init__(self, rng: Optional[random.Random] = None, seed: Optional[int] = None) -> None:
        self.rng = rng or random.Random(seed)

    def base(self, portfolio_size: int) -> float:
        low, high = confidence_bucket(portfolio_size)
        return low + self.rng.random() * (high - low)


def get_confidence_strategy(name: str = "deterministic", seed: Optional[int] = None) -> ConfidenceStrategy:
    """Registry for confidence strategies.

    Raises:
        ValueError: Unknown strategy name.
    """
    key = (name or "deterministic").strip().lower()
    if key == DeterministicConfidence.name:
        return DeterministicConfidence()
    if key == SampledConfidence.name:
        return SampledConfidence(seed=seed)
    raise ValueError(f"Unknown confidence strategy: {name!r}")


# ── KeywordSentimentProvider ──────────────────────────────────────────────────

class KeywordSentimentProvider(SentimentProvider):
    """Deterministic keyword scorer; also the mandatory fallback for the LLM path.

    Args:
        lexicon: Shared keyword and company tables.
        strategy: Confidence-base strategy (defaults to bucket midpoints).
    """

    def __init__(
        self,
        lexicon: Lexicon = DEFAULT_LEXICON,
        strategy: Optional[ConfidenceStrategy] = None,
    ) -> None:
        self.lexicon = lexicon
        self.strategy = strategy or DeterministicConfidence()

    # ── public API ──────────────────────────────────────────────────────────

    def analyze(self, news: Sequence[NewsItem], portfolio: Sequence[str]) -> SentimentVerdict:
        """Score ``news`` against ``portfolio``.

        Args:
            news: Filtered news items; must not be empty.
            portfolio: Portfolio symbols (normalized to unique uppercase).

        Returns:
            :class:`SentimentVerdict` with confidence in ``[0.10, 0.85]``.

        Raises:
            ValidationError: ``news`` is missing or empty.
        """
        news = require_news(news)
        portfolio = unique_symbols(portfolio or [])

        positive, negative = self.count_signals(news)
        impacted = self.find_impacted(news, portfolio)

        confidence = self.strategy.base(len(portfolio))

        total_signals = positive + negative
        strength = abs(positive - negative) / total_signals if total_signals else 0.0
        confidence += strength * _STRENGTH_WEIGHT

        if portfolio:
            ratio = len(impacted) / len(portfolio)
            if ratio > 0.5:
                confidence += _HIGH_RELEVANCE_BONUS
            elif ratio > 0:
                confidence += _SOME_RELEVANCE_BONUS
            else:
                confidence -= _NO_RELEVANCE_PENALTY

        if len(news) < _LOW_VOLUME_THRESHOLD:
            confidence -= _LOW_VOLUME_PENALTY
        elif len(news) > _HIGH_VOLUME_THRESHOLD:
            confidence += _HIGH_VOLUME_BONUS

        if positive - negative >= _LABEL_MARGIN:
            sentiment = "Positive"
        elif negative - positive >= _LABEL_MARGIN:
            sentiment = "Negative"
        else:
            sentiment = "Neutral"
            confidence -= _NEUTRAL_PENALTY

        confidence = clamp_confidence(confidence)

        logger.info(
            f"KeywordSentimentProvider: [{sentiment} / {confidence:.2f}] "
            f"pos={positive} neg={negative} impacted={impacted} "
            f"portfolio={len(portfolio)} news={len(news)}"
        )
        return SentimentVerdict(
            sentiment=sentiment,
            confidence=confidence,
            reasoning=_reasoning(sentiment, positive, negative, impacted, len(portfolio)),
            impacted_stocks=impacted,
            overall_market_sentiment=_overall(sentiment, confidence, len(portfolio)),
        )

    def count_signals(self, news: Sequence[NewsItem]) -> Tuple[int, int]:
        """Return ``(positiveCount, negativeCount)``; a keyword counts once per item."""
        positive = negative = 0
        for item in news:
            text = item_text(item)
            positive += count_present(text, self.lexicon.positive_keywords)
            negative += count_present(text, self.lexicon.negative_keywords)
        return positive, negative

    def find_impacted(self, news: Sequence[NewsItem], portfolio: Sequence[str]) -> List[str]:
        """Portfolio symbols mentioned anywhere in ``news``, in portfolio order."""
        texts = [item_text(item) for item in news]
        return [
            symbol for symbol in portfolio
            if any(mentions_symbol(text, symbol, self.lexicon) for text in texts)
        ]


def _reasoning(sentiment: str, positive: int, negative: int, impacted: List[str], size: int) -> str:
    concentrated = size < 3
    if sentiment == "Positive":
        mentions = (
            f"{len(impacted)} of your stocks ({', '.join(impacted)}) mentioned in news."
            if impacted else f"Your {size} stock portfolio not directly mentioned in current news."
        )
        outlook = (
            "Limited diversification may increase risk." if concentrated
            else "Portfolio diversification provides stability."
        )
        return f"Positive market signals detected ({positive} vs {negative} negative). {mentions} {outlook}"

    if sentiment == "Negative":
        mentions = (
            f"{len(impacted)} of your stocks ({', '.join(impacted)}) facing headwinds."
            if impacted else f"Your {size} stock portfolio not directly mentioned in current negative news."
        )
        outlook = (
            "Concentrated holdings may amplify volatility." if concentrated
            else "Diversification may help weather the downturn."
        )
        return f"Market concerns evident ({negative} vs {positive} positive signals). {mentions} {outlook}"

    mentions = (
        f"{len(impacted)} of your stocks mentioned in current news."
        if impacted else f"Limited news coverage of your {size} stock portfolio."
    )
    advice = "consider diversification" if concentrated else "maintain cautious optimism"
    return (
        f"Mixed market signals ({positive} positive vs {negative} negative). "
        f"{mentions} Market direction unclear - {advice}."
    )


def _overall(sentiment: str, confidence: float, size: int) -> str:
    scope = f" for your {size}-stock portfolio" if size else " - add stocks for better analysis"
    return f"{sentiment.upper()} outlook with {round(confidence * 100)}% confidence{scope}"


# ── LLMSentimentProvider ──────────────────────────────────────────────────────

class LLMSentimentProvider(SentimentProvider):
    """Chat-completion scorer with a mandatory keyword fallback.

    The client must expose ``complete(system, prompt) -> str``. When it is
    None (no API key configured) every call goes straight to the fallback.

    Args:
        client: LLM client, or None to disable the LLM path.
        fallback: Keyword provider used on any call or parse failure.
    """

    def __init__(self, client: Any = None, fallback: Optional[KeywordSentimentProvider] = None) -> None:
        self.client = client
        self.fallback = fallback or KeywordSentimentProvider()

    def analyze(self, news: Sequence[NewsItem], portfolio: Sequence[str]) -> SentimentVerdict:
        news = require_news(news)
        portfolio = unique_symbols(portfolio or [])

        if self.client is None:
            logger.debug("LLMSentimentProvider: no client configured — using keyword fallback")
            return self.fallback.analyze(news, portfolio)

        try:
            content = self.client.complete(_LLM_SYSTEM_PROMPT, build_prompt(news, portfolio))
            verdict = parse_verdict(content, portfolio)
        except (LLMError, ValueError) as exc:
            logger.warning(f"LLMSentimentProvider: {exc} — falling back to keyword analysis")
            return self.fallback.analyze(news, portfolio)
        except Exception as exc:
            logger.error(f"LLMSentimentProvider: unexpected client failure: {exc} — falling back")
            return self.fallback.analyze(news, portfolio)

        logger.info(
            f"LLMSentimentProvider: [{verdict.sentiment} / {verdict.confidence:.2f}] "
            f"impacted={verdict.impacted_stocks}"
        )
        return verdict


def build_prompt(news: Sequence[NewsItem], portfolio: Sequence[str]) -> str:
    """User prompt listing every headline and the portfolio symbols."""
    news_text = "\n".join(f"{item.title}: {item.summary}" for item in news)
    portfolio_text = f"Portfolio stocks: {', '.join(portfolio)}" if portfolio else ""
    return (
        "Analyze the following Indian stock market news and provide sentiment analysis:\n\n"
        f"{news_text}\n\n"
        f"{portfolio_text}\n\n"
        "Please provide:\n"
        "1. Overall sentiment (Positive/Negative/Neutral)\n"
        "2. Confidence score (0-1)\n"
        "3. Brief reasoning\n"
        "4. Which portfolio stocks (if any) might be impacted\n"
        "5. Overall market sentiment summary\n\n"
        "Respond in JSON format with keys: sentiment, confidence, reasoning, "
        "impactedStocks, overallMarketSentiment\n"
    )


def parse_verdict(text: str, portfolio: Sequence[str]) -> SentimentVerdict:
    """Parse an LLM reply into a verdict.

    The reply may wrap the JSON in prose or code fences; the outermost
    ``{...}`` span is used. Confidence is clamped into ``[0.10, 0.85]`` and
    impacted stocks are restricted to the portfolio.

    Raises:
        ValueError: No JSON object, invalid JSON, or missing/invalid fields.
    """
    if not isinstance(text, str) or not text.strip():
        raise ValueError("empty LLM reply")
    match = _JSON_RE.search(text)
    if not match:
        raise ValueError("no JSON object in LLM reply")
    data = json.loads(match.group(0))
    if not isinstance(data, dict):
        raise ValueError("LLM reply is not a JSON object")

    sentiment = str(data.get("sentiment", "")).strip().capitalize()
    if sentiment not in SENTIMENT_LABELS:
        raise ValueError(f"invalid sentiment label {data.get('sentiment')!r}")

    try:
        confidence = float(data["confidence"])
    except (KeyError, TypeError) as exc:
        raise ValueError(f"invalid confidence: {exc}") from exc
    if confidence != confidence:  # NaN
        raise ValueError("confidence is NaN")

    impacted_raw = data.get("impactedStocks") or []
    if not isinstance(impacted_raw, list):
        raise ValueError("impactedStocks must be a list")
    allowed = set(portfolio)
    impacted = [s for s in unique_symbols([str(s) for s in impacted_raw]) if s in allowed]

    reasoning = data.get("reasoning")
    if not isinstance(reasoning, str) or not reasoning.strip():
        raise ValueError("missing reasoning")

    confidence = clamp_confidence(confidence)
    overall = data.get("overallMarketSentiment")
    if not isinstance(overall, str) or not overall.strip():
        overall = _overall(sentiment, confidence, len(portfolio))

    return SentimentVerdict(
        sentiment=sentiment,
        confidence=confidence,
        reasoning=reasoning.strip(),
        impacted_stocks=impacted,
        overall_market_sentiment=overall.strip(),
    )


# ── Registry ──────────────────────────────────────────────────────────────────

def get_sentiment_provider(
    name: str,
    settings: Optional[Dict[str, Any]] = None,
    lexicon: Lexicon = DEFAULT_LEXICON,
    client: Any = None,
) -> SentimentProvider:
    """Build the aggregate-mode provider named ``keyword`` or ``llm``.

    Args:
        name: Provider name.
        settings: Effective settings; supplies the ``sentiment`` and ``llm`` sections.
        lexicon: Shared keyword tables.
        client: Pre-built LLM client; built from settings when omitted.

    Raises:
        ValueError: Unknown provider or confidence strategy.
    """
    settings = settings or {}
    sentiment_cfg = settings.get("sentiment", {})
    strategy = get_confidence_strategy(
        sentiment_cfg.get("confidence_strategy", "deterministic"),
        seed=sentiment_cfg.get("seed"),
    )
    keyword = KeywordSentimentProvider(lexicon=lexicon, strategy=strategy)

    key = (name or "keyword").strip().lower()
    if key == "keyword":
        return keyword
    if key == "llm":
        if client is None:
            from src.providers.llm import OpenAIChatClient
            client = OpenAIChatClient.from_settings(settings)
        return LLMSentimentProvider(client=client, fallback=keyword)
    raise ValueError(f"Unknown sentiment provider: {name!r}")
