"""News feed providers for Indian market headlines.

Sources:
  1. RssNewsProvider — MoneyControl and Economic Times RSS feeds
  2. NewsApiProvider — NewsAPI.org ``/v2/everything`` keyword search

Every provider applies the topical filter (headline must mention a market
keyword) and never raises: HTTP errors, timeouts and parse failures are
logged as INFRA_FAILURE / PARSE_FAILURE and produce an empty list. A
malformed NewsAPI article is skipped on its own.
"""

import json
import time
from typing import Any, Dict, List, Optional, Tuple

import feedparser
import requests

from src.core.clock import now_iso
from src.core.lexicon import DEFAULT_LEXICON, Lexicon
from src.core.logger import logger
from src.core.news_utils import contains_any, mentions_topic, strip_html
from src.models.datatypes import NewsItem
from src.providers.base import NewsProvider

_BROWSER_UA = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
_API_UA = "Mozilla/5.0 (compatible; NewsBot/1.0)"
_MIN_FEED_DESCRIPTION = 10
_NEWSAPI_EMPTY_SUMMARY = "Click to read the full article."
_CHUNK_SIZE = 8192

DEFAULT_TIMEOUT_SECONDS = 10


def get_within(url: str, timeout: float, **kwargs: Any) -> Tuple[int, bytes]:
    """GET ``url`` and read the full body within ``timeout`` seconds overall.

    ``requests`` only bounds the connect and each individual socket read, so
    the body is streamed and abandoned once the overall deadline passes.

    Args:
        url: Resource to fetch.
        timeout: Budget in seconds for connect plus the whole body.
        **kwargs: Passed through to ``requests.get`` (params, headers).

    Returns:
        Tuple of ``(status_code, body)``.

    Raises:
        requests.RequestException: Network failure, or the deadline passed
            (``requests.Timeout``).
    """
    deadline = time.monotonic() + timeout
    resp = requests.get(url, timeout=timeout, stream=True, **kwargs)
    try:
        chunks: List[bytes] = []
        for chunk in resp.iter_content(chunk_size=_CHUNK_SIZE):
            chunks.append(chunk)
            if time.monotonic() > deadline:
                raise requests.Timeout(f"body not received within {timeout}s")
        return resp.status_code, b"".join(chunks)
    finally:
        resp.close()


def _snippet(body: bytes) -> str:
    return body[:200].decode("utf-8", "replace")


def _text(value: Any) -> Optional[str]:
    """Stripped string for a JSON field; '' when absent, None when not a string."""
    if value is None:
        return ""
    if not isinstance(value, str):
        return None
    return value.strip()


# ── RssNewsProvider ───────────────────────────────────────────────────────────

class RssNewsProvider(NewsProvider):
    """Generic market RSS feed provider.

    Downloads the feed with ``requests`` under an overall deadline and hands
    the body to ``feedparser``. Only the first ``max_entries`` entries
    are considered; each needs a title, a link and a description longer
    than ten characters.
    """

    def __init__(
        self,
        name: str,
        source_label: str,
        url: str,
        max_entries: int = 6,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        lexicon: Lexicon = DEFAULT_LEXICON,
    ) -> None:
        """Args:
            name: Source key used for selection (``"moneycontrol"``).
            source_label: Value written into ``NewsItem.source``.
            url: RSS feed URL.
            max_entries: Feed entries inspected per fetch.
            timeout: Overall fetch budget in seconds.
            lexicon: Shared keyword tables.
        """
        self.name = name
        self.source_label = source_label
        self.url = url
        self.max_entries = max_entries
        self.timeout = timeout
        self.lexicon = lexicon

    def fetch_news(self) -> List[NewsItem]:
        """Return normalized, topically filtered items or ``[]`` on any failure."""
        logger.info(f"RssNewsProvider[{self.name}]: fetching {self.url}")
        try:
            status, body = get_within(
                self.url,
                self.timeout,
                headers={"User-Agent": _BROWSER_UA},
            )
        except requests.RequestException as exc:
            logger.error(f"RssNewsProvider[{self.name}]: INFRA_FAILURE: {exc}")
            return []

        if status != 200:
            logger.error(
                f"RssNewsProvider[{self.name}]: INFRA_FAILURE "
                f"HTTP {status}: {_snippet(body)}"
            )
            return []

        try:
            feed = feedparser.parse(body)
        except Exception as exc:
            logger.error(f"RssNewsProvider[{self.name}]: PARSE_FAILURE: {exc}")
            return []

        if feed.bozo and not feed.entries:
            logger.error(
                f"RssNewsProvider[{self.name}]: PARSE_FAILURE: "
                f"{getattr(feed, 'bozo_exception', 'unknown error')}"
            )
            return []

        items = [
            item
            for item in (self._normalize(entry) for entry in feed.entries[: self.max_entries])
            if item is not None
        ]
        logger.info(
            f"RssNewsProvider[{self.name}]: {len(items)} of "
            f"{min(len(feed.entries), self.max_entries)} entries kept"
        )
        return items

    def _normalize(self, entry: Any) -> Optional[NewsItem]:
        """Convert one feed entry into a NewsItem, or None if it is filtered out."""
        title = (entry.get("title") or "").strip()
        url = (entry.get("link") or "").strip()
        description = strip_html(entry.get("summary") or entry.get("description") or "")
        published = (entry.get("published") or "").strip()

        if not title or not url:
            return None
        if not contains_any(title, self.lexicon.market_keywords):
            logger.debug(f"RssNewsProvider[{self.name}]: skipped (topic): {title!r}")
            return None
        if len(description) <= _MIN_FEED_DESCRIPTION:
            logger.debug(f"RssNewsProvider[{self.name}]: skipped (description): {title!r}")
            return None

        return NewsItem(
            title=title,
            url=url,
            summary=description,
            timestamp=published or now_iso(),
            source=self.source_label,
        )


# ── NewsApiProvider ───────────────────────────────────────────────────────────

class NewsApiProvider(NewsProvider):
    """NewsAPI.org ``/v2/everything`` provider for Indian market coverage.

    The query already excludes geopolitics server-side; the deny-list is
    applied again locally on title + description.
    """

    name = "newsapi"

    def __init__(
        self,
        api_key: str,
        url: str,
        query: str,
        domains: str = "",
        page_size: int = 5,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        lexicon: Lexicon = DEFAULT_LEXICON,
    ) -> None:
        self.api_key = api_key or "demo"
        self.url = url
        self.query = query
        self.domains = domains
        self.page_size = page_size
        self.timeout = timeout
        self.lexicon = lexicon

    def fetch_news(self) -> List[NewsItem]:
        """Return normalized NewsAPI articles or ``[]`` on any failure."""
        params = {
            "q": self.query,
            "language": "en",
            "sortBy": "publishedAt",
            "pageSize": self.page_size,
            "apiKey": self.api_key,
        }
        if self.domains:
            params["domains"] = self.domains

        logger.info(f"NewsApiProvider: fetching (pageSize={self.page_size})")
        try:
            status, body = get_within(
                self.url,
                self.timeout,
                params=params,
                headers={"User-Agent": _API_UA},
            )
        except requests.RequestException as exc:
            logger.error(f"NewsApiProvider: INFRA_FAILURE: {exc}")
            return []

        if status != 200:
            logger.error(f"NewsApiProvider: INFRA_FAILURE HTTP {status}: {_snippet(body)}")
            return []

        try:
            data = json.loads(body)
        except ValueError as exc:
            logger.error(f"NewsApiProvider: PARSE_FAILURE: {exc}")
            return []

        if not isinstance(data, dict):
            logger.error(f"NewsApiProvider: PARSE_FAILURE: expected a JSON object, got {type(data).__name__}")
            return []
        articles = data.get("articles") or []
        if not isinstance(articles, list):
            logger.error(f"NewsApiProvider: PARSE_FAILURE: 'articles' is {type(articles).__name__}, not a list")
            return []

        items = [
            item for item in (self._normalize(a) for a in articles if isinstance(a, dict))
            if item is not None
        ]
        logger.info(f"NewsApiProvider: {len(items)} of {len(articles)} articles kept")
        return items

    def _normalize(self, article: Dict[str, Any]) -> Optional[NewsItem]:
        title = _text(article.get("title"))
        url = _text(article.get("url"))
        if title is None or url is None:
            logger.warning(f"NewsApiProvider: PARSE_FAILURE: non-string title/url skipped: {article!r:.200}")
            return None
        description = strip_html(_text(article.get("description")) or "")
        published = _text(article.get("publishedAt")) or ""

        if not title or not url:
            return None
        if not contains_any(title, self.lexicon.market_keywords):
            logger.debug(f"NewsApiProvider: skipped (topic): {title!r}")
            return None
        if mentions_topic(f"{title} {description}", self.lexicon.exclude_keywords):
            logger.debug(f"NewsApiProvider: skipped (deny-list): {title!r}")
            return None

        source = article.get("source")
        source_name = _text(source.get("name")) if isinstance(source, dict) else None
        return NewsItem(
            title=title,
            url=url,
            summary=description or _NEWSAPI_EMPTY_SUMMARY,
            timestamp=published or now_iso(),
            source=source_name or "NewsAPI",
        )


# ── Factory ───────────────────────────────────────────────────────────────────

def build_news_providers(settings: Dict[str, Any], lexicon: Lexicon = DEFAULT_LEXICON) -> List[NewsProvider]:
    """Instantiate the providers listed in ``settings['news']['sources']``, in order.

    Args:
        settings: Effective settings from ``load_settings``.
        lexicon: Shared keyword tables.

    Returns:
        Providers in configured order; unknown source names are logged and skipped.
    """
    news_cfg = settings.get("news", {})
    timeout = float(news_cfg.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS))
    feeds = news_cfg.get("feeds", {})
    providers: List[NewsProvider] = []

    for source in news_cfg.get("sources", []):
        if source in feeds:
            feed = feeds[source]
            providers.append(RssNewsProvider(
                name=source,
                source_label=feed.get("name", source),
                url=feed["url"],
                max_entries=int(feed.get("max_entries", 6)),
                timeout=timeout,
                lexicon=lexicon,
            ))
        elif source == NewsApiProvider.name:
            api_cfg = news_cfg.get("newsapi", {})
            providers.append(NewsApiProvider(
                api_key=api_cfg.get("api_key", "demo"),
                url=api_cfg["url"],
                query=api_cfg.get("query", ""),
                domains=api_cfg.get("domains", ""),
                page_size=int(api_cfg.get("page_size", 5)),
                timeout=timeout,
                lexicon=lexicon,
            ))
        else:
            logger.warning(f"build_news_providers: unknown news source {source!r} skipped")

    return providers
