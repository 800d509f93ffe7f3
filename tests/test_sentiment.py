# tests/test_sentiment.py
import random

import pytest

from helpers import make_item
from src.core.errors import ValidationError
from src.providers.sentiment import (
    DeterministicConfidence,
    KeywordSentimentProvider,
    SampledConfidence,
    confidence_bucket,
    get_confidence_strategy,
    get_sentiment_provider,
)

BULLISH = make_item(
    "Sensex surges 500 points as IT stocks rally",
    summary="TCS and Infosys beat estimates",
)
BEARISH = make_item(
    "Market falls amid weak earnings, banks decline",
    summary="SBI reports losses",
)


def test_bullish_scenario_is_positive_and_flags_tcs():
    verdict = KeywordSentimentProvider().analyze([BULLISH], ["TCS"])

    assert verdict.sentiment == "Positive"
    assert verdict.impacted_stocks == ["TCS"]


def test_bearish_scenario_is_negative_and_matches_sbin_by_alias():
    verdict = KeywordSentimentProvider().analyze([BEARISH], ["SBIN"])

    assert verdict.sentiment == "Negative"
    assert verdict.impacted_stocks == ["SBIN"]


def test_keyword_counts_once_per_item():
    provider = KeywordSentimentProvider()
    item = make_item("Rally rally rally on Dalal Street stock market", summary="Another rally for the Nifty index today.")
    positive, negative = provider.count_signals([item])
    assert (positive, negative) == (1, 0)
    assert provider.count_signals([item, item]) == (2, 0)


def test_small_difference_is_neutral():
    item = make_item("Nifty gains early then falls", summary="Market ends the session near flat.")
    verdict = KeywordSentimentProvider().analyze([item], [])
    assert verdict.sentiment == "Neutral"


def test_deterministic_confidence_for_bullish_scenario():
    # base 0.325 (1 stock) + strength 1.0*0.3 + relevance 0.15 - low volume 0.10
    verdict = KeywordSentimentProvider().analyze([BULLISH], ["TCS"])
    assert verdict.confidence == pytest.approx(0.675)


def test_confidence_is_clamped_to_floor():
    # Neutral, no relevance, little news: 0.325 - 0.10 - 0.10 - 0.05 would go below 0.10
    item = make_item("Stock market opens", summary="Traders waited for cues from global markets.")
    verdict = KeywordSentimentProvider().analyze([item], ["MARUTI"])
    assert verdict.sentiment == "Neutral"
    assert verdict.confidence == pytest.approx(0.10)


@pytest.mark.parametrize("portfolio", [[], ["TCS"], ["TCS", "INFY"], list("ABCDE"), list("ABCDEFGH")])
@pytest.mark.parametrize("news", [[BULLISH], [BEARISH], [BULLISH, BEARISH] * 10])
def test_confidence_always_within_bounds(portfolio, news):
    provider = KeywordSentimentProvider(strategy=SampledConfidence(rng=random.Random(7)))
    for _ in range(5):
        confidence = provider.analyze(news, portfolio).confidence
        assert 0.10 <= confidence <= 0.85


def test_label_and_impacted_stable_across_strategies_and_calls():
    sampled = KeywordSentimentProvider(strategy=SampledConfidence(seed=1))
    deterministic = KeywordSentimentProvider()
    news = [BULLISH, BEARISH, BULLISH]

    results = {
        (v.sentiment, tuple(v.impacted_stocks))
        for v in [sampled.analyze(news, ["TCS", "SBIN", "ITC"]) for _ in range(5)]
        + [deterministic.analyze(news, ["TCS", "SBIN", "ITC"])]
    }
    assert len(results) == 1


def test_sampled_strategy_is_reproducible_with_seed():
    a = SampledConfidence(seed=42)
    b = SampledConfidence(seed=42)
    assert [a.base(2) for _ in range(3)] == [b.base(2) for _ in range(3)]
    low, high = confidence_bucket(2)
    assert all(low <= a.base(2) < high for _ in range(20))


def test_confidence_buckets():
    assert confidence_bucket(0) == (0.15, 0.25)
    assert confidence_bucket(1) == (0.25, 0.40)
    assert confidence_bucket(3) == (0.35, 0.55)
    assert confidence_bucket(5) == (0.45, 0.70)
    assert confidence_bucket(12) == (0.55, 0.75)
    assert DeterministicConfidence().base(0) == pytest.approx(0.20)


def test_empty_news_is_a_validation_error():
    with pytest.raises(ValidationError):
        KeywordSentimentProvider().analyze([], ["TCS"])


def test_reasoning_and_overall_embed_the_facts():
    verdict = KeywordSentimentProvider().analyze([BULLISH], ["TCS", "ITC"])
    assert "2 vs 0 negative" in verdict.reasoning
    assert "TCS" in verdict.reasoning
    assert verdict.overall_market_sentiment.startswith("POSITIVE outlook with ")
    assert f"{round(verdict.confidence * 100)}% confidence" in verdict.overall_market_sentiment
    assert "2-stock portfolio" in verdict.overall_market_sentiment


def test_portfolio_symbols_are_normalized():
    verdict = KeywordSentimentProvider().analyze([BULLISH], ["tcs", "TCS "])
    assert verdict.impacted_stocks == ["TCS"]


def test_registry():
    assert isinstance(get_sentiment_provider("keyword"), KeywordSentimentProvider)
    assert isinstance(get_confidence_strategy("sampled", seed=3), SampledConfidence)
    with pytest.raises(ValueError):
        get_sentiment_provider("finbert")
    with pytest.raises(ValueError):
        get_confidence_strategy("noisy")
