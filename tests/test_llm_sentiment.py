# tests/test_llm_sentiment.py
import json

import pytest

from helpers import FakeLLM, make_item
from src.core.errors import LLMError, ValidationError
from src.providers.llm import OpenAIChatClient
from src.providers.sentiment import (
    KeywordSentimentProvider,
    LLMSentimentProvider,
    build_prompt,
    get_sentiment_provider,
    parse_verdict,
)

NEWS = [
    make_item("Sensex surges 500 points as IT stocks rally", summary="TCS and Infosys beat estimates"),
]


def _reply(**overrides):
    body = {
        "sentiment": "Positive",
        "confidence": 0.7,
        "reasoning": "IT majors lead the gains.",
        "impactedStocks": ["TCS"],
        "overallMarketSentiment": "Bullish tone across IT.",
    }
    body.update(overrides)
    return json.dumps(body)


def test_valid_reply_is_used():
    client = FakeLLM(reply=_reply())
    verdict = LLMSentimentProvider(client).analyze(NEWS, ["TCS"])

    assert verdict.sentiment == "Positive"
    assert verdict.confidence == pytest.approx(0.7)
    assert verdict.reasoning == "IT majors lead the gains."
    assert len(client.calls) == 1
    system, prompt = client.calls[0]
    assert "Indian stock markets" in system
    assert "Portfolio stocks: TCS" in prompt


def test_fenced_reply_is_parsed():
    text = "Here you go:\n```json\n" + _reply(sentiment="negative") + "\n```"
    verdict = LLMSentimentProvider(FakeLLM(reply=text)).analyze(NEWS, ["TCS"])
    assert verdict.sentiment == "Negative"


def test_confidence_clamped_and_impacted_restricted_to_portfolio():
    reply = _reply(confidence=0.99, impactedStocks=["TCS", "WIPRO", "tcs"])
    verdict = parse_verdict(reply, ["TCS", "INFY"])
    assert verdict.confidence == pytest.approx(0.85)
    assert verdict.impacted_stocks == ["TCS"]
    assert parse_verdict(_reply(confidence=0.01), ["TCS"]).confidence == pytest.approx(0.10)


@pytest.mark.parametrize("reply", [
    "I think the market looks fine.",
    "{not json}",
    _reply(sentiment="Bullish"),
    _reply(confidence="high"),
    _reply(impactedStocks="TCS"),
    json.dumps({"sentiment": "Positive"}),
    "",
])
def test_bad_reply_falls_back_to_keyword_scoring(reply):
    fallback = KeywordSentimentProvider()
    verdict = LLMSentimentProvider(FakeLLM(reply=reply), fallback).analyze(NEWS, ["TCS"])
    assert verdict == fallback.analyze(NEWS, ["TCS"])


@pytest.mark.parametrize("error", [LLMError("quota exceeded"), RuntimeError("socket closed")])
def test_client_failure_falls_back(error):
    verdict = LLMSentimentProvider(FakeLLM(error=error)).analyze(NEWS, ["TCS"])
    assert verdict.sentiment == "Positive"
    assert verdict.impacted_stocks == ["TCS"]


def test_no_client_uses_fallback_without_calling():
    verdict = LLMSentimentProvider(None).analyze(NEWS, ["TCS"])
    assert verdict.sentiment == "Positive"


def test_empty_news_rejected_before_llm_call():
    client = FakeLLM(reply=_reply())
    with pytest.raises(ValidationError):
        LLMSentimentProvider(client).analyze([], ["TCS"])
    assert client.calls == []


def test_prompt_lists_every_headline():
    news = NEWS + [make_item("Nifty slips", summary="Profit booking in banks")]
    prompt = build_prompt(news, [])
    assert "Sensex surges 500 points as IT stocks rally: TCS and Infosys beat estimates" in prompt
    assert "Nifty slips: Profit booking in banks" in prompt
    assert "Portfolio stocks" not in prompt


def test_registry_without_api_key_disables_llm(settings):
    settings["llm"]["api_key"] = ""
    provider = get_sentiment_provider("llm", settings)
    assert isinstance(provider, LLMSentimentProvider)
    assert provider.client is None
    assert OpenAIChatClient.from_settings(settings) is None
