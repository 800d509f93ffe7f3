"""
Debug dump — fetches every configured news source raw (before any filter)
and annotates each entry with the filter decisions the dashboard would make.

Writes output/news_debug.json with one block per source, then prints which
items survive aggregation.

Run with:
    $env:PYTHONPATH="."; python scripts/dump_news_debug.py
"""

import json
import os

import feedparser
import requests
from dotenv import load_dotenv

load_dotenv()

from src.core.config import load_settings  # noqa: E402
from src.core.lexicon import Lexicon  # noqa: E402
from src.core.news_utils import contains_any, mentions_topic, strip_html  # noqa: E402
from src.models.datatypes import NewsItem  # noqa: E402
from src.pipeline.aggregator import aggregate, is_valid_content, passes_keyword_filters  # noqa: E402
from src.providers.news import get_within  # noqa: E402

BROWSER_UA = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


# ── raw fetch helpers ─────────────────────────────────────────────────────────

def _fetch_feed(url: str, max_entries: int, timeout: float) -> list:
    """Download an RSS feed and return its first ``max_entries`` entries as dicts."""
    try:
        status, body = get_within(url, timeout, headers={"User-Agent": BROWSER_UA})
        if status != 200:
            print(f"    [RSS] HTTP {status}")
            return []
    except requests.RequestException as e:
        print(f"    [RSS] Exception: {e}")
        return []

    feed = feedparser.parse(body)
    return [
        {
            "title": (entry.get("title") or "").strip(),
            "url": entry.get("link") or "",
            "summary": strip_html(entry.get("summary") or entry.get("description") or ""),
            "timestamp": entry.get("published") or "",
        }
        for entry in feed.entries[:max_entries]
    ]


def _fetch_newsapi(cfg: dict, timeout: float) -> list:
    """Call NewsAPI /v2/everything with the configured query."""
    params = {
        "q": cfg.get("query", ""), "language": "en",
        "sortBy": "publishedAt", "pageSize": cfg.get("page_size", 5),
        "apiKey": cfg.get("api_key", "demo"),
    }
    if cfg.get("domains"):
        params["domains"] = cfg["domains"]
    try:
        status, body = get_within(cfg["url"], timeout, params=params)
        if status != 200:
            print(f"    [NewsAPI] HTTP {status}")
            return []
        data = json.loads(body)
    except (requests.RequestException, ValueError) as e:
        print(f"    [NewsAPI] Exception: {e}")
        return []
    articles = data.get("articles") if isinstance(data, dict) else None
    if not isinstance(articles, list):
        print(f"    [NewsAPI] Unexpected payload: {str(data)[:200]}")
        return []
    return [
        {
            "title": str(a.get("title") or "").strip(),
            "url": str(a.get("url") or ""),
            "summary": strip_html(str(a.get("description") or "")),
            "timestamp": str(a.get("publishedAt") or ""),
        }
        for a in articles
        if isinstance(a, dict)
    ]


# ── annotation ────────────────────────────────────────────────────────────────

def _annotate(entries: list, source: str, lexicon: Lexicon) -> list:
    """Attach topic / deny-list / validity flags to raw entries."""
    annotated = []
    for e in entries:
        flags = {
            **e,
            "source": source,
            "topic_match": contains_any(e["title"], lexicon.market_keywords),
            "deny_listed": mentions_topic(f"{e['title']} {e['summary']}", lexicon.exclude_keywords),
            "valid_content": False,
            "passes_aggregator": False,
        }
        if e["title"]:
            item = NewsItem(e["title"], e["url"], e["summary"], e["timestamp"], source)
            flags["valid_content"] = is_valid_content(item, lexicon)
            flags["passes_aggregator"] = flags["valid_content"] and passes_keyword_filters(item, lexicon)
        annotated.append(flags)
    return annotated


# ── main ─────────────────────────────────────────────────────────────────────

def main():
    settings = load_settings()
    news_cfg = settings["news"]
    timeout = float(news_cfg.get("timeout_seconds", 10))
    lexicon = Lexicon.from_config(settings.get("lexicon"))
    output_dir = settings.get("output_dir", "output")
    os.makedirs(output_dir, exist_ok=True)

    out, candidates = {}, []
    for source in news_cfg.get("sources", []):
        print(f"\n{'─'*60}\nSource: {source}")
        if source in news_cfg.get("feeds", {}):
            feed = news_cfg["feeds"][source]
            raw = _fetch_feed(feed["url"], int(feed.get("max_entries", 6)), timeout)
            label = feed.get("name", source)
        elif source == "newsapi":
            raw = _fetch_newsapi(news_cfg["newsapi"], timeout)
            label = "NewsAPI"
        else:
            print("  unknown source — skipped")
            continue

        annotated = _annotate(raw, label, lexicon)
        kept = [a for a in annotated if a["passes_aggregator"]]
        print(f"  fetched={len(annotated)}  topic={sum(a['topic_match'] for a in annotated)}  kept={len(kept)}")
        out[source] = {"total_fetched": len(annotated), "kept": len(kept), "entries": annotated}
        candidates.extend(
            NewsItem(a["title"], a["url"], a["summary"], a["timestamp"], a["source"]) for a in kept
        )

    path = os.path.join(output_dir, "news_debug.json")
    with open(path, "w", encoding="utf-8") as f:
        json.dump(out, f, indent=2, ensure_ascii=False)

    final = aggregate(candidates, lexicon, max_items=int(news_cfg.get("max_items", 20)))
    print(f"\n{'═'*60}\nWrote {path}\n{'═'*60}")
    print(f"\n{'Source':16}  Title")
    print("-" * 90)
    for item in final:
        title = (item.title[:68] + "..") if len(item.title) > 70 else item.title
        print(f"{item.source:16}  {title}")


if __name__ == "__main__":
    main()
