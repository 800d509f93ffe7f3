# tests/test_news_providers.py
import pytest
import requests

from helpers import FakeResponse
from src.providers import news as news_module
from src.providers.news import NewsApiProvider, RssNewsProvider, build_news_providers

RSS_BODY = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Business News</title>
    <item>
      <title>Sensex climbs 400 points on banking rally</title>
      <link>https://example.com/sensex-climbs</link>
      <description><![CDATA[<p>Banking <b>stocks</b> led the gains on Dalal Street.</p>]]></description>
      <pubDate>Mon, 10 Jun 2024 10:30:00 +0530</pubDate>
    </item>
    <item>
      <title>Monsoon arrives in Kerala</title>
      <link>https://example.com/monsoon</link>
      <description>The India Meteorological Department confirmed the onset.</description>
    </item>
    <item>
      <title>Nifty IPO listing today</title>
      <link>https://example.com/ipo</link>
      <description>Short.</description>
    </item>
    <item>
      <title>Nifty ends flat ahead of results</title>
      <link>https://example.com/nifty-flat</link>
      <description>Traders stayed on the sidelines before quarterly numbers.</description>
    </item>
  </channel>
</rss>
"""


def _rss_provider(max_entries=6):
    return RssNewsProvider(
        name="moneycontrol",
        source_label="MoneyControl",
        url="https://example.com/rss.xml",
        max_entries=max_entries,
    )


def test_rss_provider_normalizes_and_filters(monkeypatch):
    monkeypatch.setattr(news_module.requests, "get", lambda *a, **k: FakeResponse(content=RSS_BODY))

    items = _rss_provider().fetch_news()

    assert [i.title for i in items] == [
        "Sensex climbs 400 points on banking rally",
        "Nifty ends flat ahead of results",
    ]
    first = items[0]
    assert first.summary == "Banking stocks led the gains on Dalal Street."
    assert first.source == "MoneyControl"
    assert first.url == "https://example.com/sensex-climbs"
    assert first.timestamp == "Mon, 10 Jun 2024 10:30:00 +0530"
    # missing pubDate falls back to the fetch time
    assert items[1].timestamp.endswith("+00:00")


def test_rss_provider_only_reads_first_entries(monkeypatch):
    monkeypatch.setattr(news_module.requests, "get", lambda *a, **k: FakeResponse(content=RSS_BODY))
    items = _rss_provider(max_entries=2).fetch_news()
    assert [i.title for i in items] == ["Sensex climbs 400 points on banking rally"]


def test_rss_provider_returns_empty_on_network_error(monkeypatch):
    def boom(*args, **kwargs):
        raise requests.Timeout("timed out after 10s")

    monkeypatch.setattr(news_module.requests, "get", boom)
    assert _rss_provider().fetch_news() == []


def test_rss_provider_returns_empty_on_http_error(monkeypatch):
    monkeypatch.setattr(news_module.requests, "get", lambda *a, **k: FakeResponse(status_code=503, text="busy"))
    assert _rss_provider().fetch_news() == []


def test_rss_provider_streams_with_timeout(monkeypatch):
    seen = {}
    resp = FakeResponse(content=RSS_BODY)

    def fake_get(url, headers=None, timeout=None, stream=False):
        seen["timeout"] = timeout
        seen["stream"] = stream
        return resp

    monkeypatch.setattr(news_module.requests, "get", fake_get)
    RssNewsProvider("economictimes", "Economic Times", "https://example.com/et.xml", timeout=7).fetch_news()
    assert seen == {"timeout": 7, "stream": True}
    assert resp.closed


def _newsapi():
    return NewsApiProvider(api_key="", url="https://newsapi.example/v2/everything", query="sensex", page_size=5)


def test_newsapi_provider_maps_articles(monkeypatch):
    payload = {
        "articles": [
            {
                "title": "Sensex hits record high",
                "url": "https://example.com/record",
                "description": "Benchmark indices extended gains.",
                "publishedAt": "2024-06-10T06:00:00Z",
                "source": {"name": "Mint"},
            },
            {
                "title": "Stock markets wobble as Russia tensions flare",
                "url": "https://example.com/russia",
                "description": "Geopolitics weighs on sentiment.",
                "publishedAt": "2024-06-10T05:00:00Z",
                "source": {"name": "Wire"},
            },
            {
                "title": "Nifty bank index steady",
                "url": "https://example.com/bank",
                "description": None,
                "publishedAt": "2024-06-10T04:00:00Z",
                "source": {},
            },
            {"title": "Cricket score update", "url": "https://example.com/cricket"},
        ]
    }
    captured = {}

    def fake_get(url, params=None, headers=None, timeout=None, stream=False):
        captured.update(params)
        return FakeResponse(json_data=payload)

    monkeypatch.setattr(news_module.requests, "get", fake_get)
    provider = _newsapi()
    items = provider.fetch_news()

    assert [i.title for i in items] == ["Sensex hits record high", "Nifty bank index steady"]
    assert items[0].source == "Mint"
    assert items[1].source == "NewsAPI"
    assert items[1].summary == "Click to read the full article."
    assert captured["pageSize"] == 5
    assert captured["apiKey"] == "demo"
    assert captured["sortBy"] == "publishedAt"


def test_newsapi_provider_handles_bad_json(monkeypatch):
    monkeypatch.setattr(news_module.requests, "get", lambda *a, **k: FakeResponse(json_data=None))
    assert _newsapi().fetch_news() == []


def test_build_news_providers_keeps_configured_order(settings):
    settings["news"]["sources"] = ["newsapi", "bogus", "moneycontrol"]
    providers = build_news_providers(settings)
    assert [p.name for p in providers] == ["newsapi", "moneycontrol"]
    assert providers[1].max_entries == 6


def test_rss_provider_gives_up_on_a_trickling_body(monkeypatch):
    slow = FakeResponse(content=b"<rss>" + b" " * 40000 + b"</rss>", chunk_delay=0.05)
    monkeypatch.setattr(news_module.requests, "get", lambda *a, **k: slow)

    provider = RssNewsProvider("moneycontrol", "MoneyControl", "https://example.com/rss.xml", timeout=0.1)

    assert provider.fetch_news() == []
    assert slow.closed


def test_get_within_returns_status_and_body(monkeypatch):
    monkeypatch.setattr(news_module.requests, "get", lambda *a, **k: FakeResponse(status_code=404, text="gone"))
    assert news_module.get_within("https://example.com/x", 5) == (404, b"gone")


def test_newsapi_provider_returns_empty_on_timeout(monkeypatch):
    def boom(*args, **kwargs):
        raise requests.Timeout("read timed out")

    monkeypatch.setattr(news_module.requests, "get", boom)
    assert _newsapi().fetch_news() == []


def test_newsapi_provider_returns_empty_on_http_error(monkeypatch):
    monkeypatch.setattr(news_module.requests, "get", lambda *a, **k: FakeResponse(status_code=429, text="rate limited"))
    assert _newsapi().fetch_news() == []


@pytest.mark.parametrize("payload", [[], "error", 42, {"articles": "none"}, {"articles": {"title": "Sensex"}}])
def test_newsapi_provider_rejects_unexpected_payload_shapes(monkeypatch, payload):
    monkeypatch.setattr(news_module.requests, "get", lambda *a, **k: FakeResponse(json_data=payload))
    assert _newsapi().fetch_news() == []


def test_newsapi_provider_skips_malformed_articles_only(monkeypatch):
    payload = {
        "articles": [
            {"title": 12345, "url": "https://example.com/number", "description": "Numeric title."},
            {"title": "Nifty stock update", "url": ["https://example.com/list"]},
            "not an article",
            {
                "title": "Sensex hits record",
                "url": "https://example.com/record",
                "description": {"html": "<p>nested</p>"},
                "publishedAt": 1718000000,
                "source": {"name": 7},
            },
        ]
    }
    monkeypatch.setattr(news_module.requests, "get", lambda *a, **k: FakeResponse(json_data=payload))

    items = _newsapi().fetch_news()

    assert [i.title for i in items] == ["Sensex hits record"]
    assert items[0].summary == "Click to read the full article."
    assert items[0].source == "NewsAPI"
    assert items[0].timestamp.endswith("+00:00")
