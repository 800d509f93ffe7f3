"""News aggregator — merges fetcher output into the dashboard's news list.

Steps, applied in order to the concatenated fetcher output:
  1. Topical filter   — headline must mention a market keyword
  2. Broad filter     — title + summary must mention an include keyword and
                        must not mention a deny-listed topic
  3. Validity check   — summary longer than 20 chars, no placeholder markers
  4. Deduplication    — lowercased first 50 title chars; first occurrence wins
  5. Sort             — newest first; unparsable timestamps count as "now"
  6. Truncate         — keep at most ``max_items``
"""

from datetime import datetime, timezone
from typing import Iterable, List, Optional

import pandas as pd

from src.core.lexicon import DEFAULT_LEXICON, Lexicon
from src.core.logger import logger
from src.core.news_utils import contains_any, item_text, mentions_topic
from src.models.datatypes import NewsItem

MAX_NEWS_ITEMS = 20
DEDUP_PREFIX_LENGTH = 50
MIN_SUMMARY_LENGTH = 20


def is_valid_content(item: NewsItem, lexicon: Lexicon = DEFAULT_LEXICON) -> bool:
    """Return False for items that look like a broken scrape."""
    if len(item.summary) <= MIN_SUMMARY_LENGTH:
        return False
    if any(marker in item.summary for marker in lexicon.placeholder_markers):
        return False
    if any(marker in item.title for marker in lexicon.placeholder_markers):
        return False
    return True


def passes_keyword_filters(item: NewsItem, lexicon: Lexicon = DEFAULT_LEXICON) -> bool:
    """Apply the topical headline filter, then the broad include/exclude pass."""
    if not contains_any(item.title, lexicon.market_keywords):
        return False
    text = item_text(item)
    if not contains_any(text, lexicon.include_keywords):
        return False
    return not mentions_topic(text, lexicon.exclude_keywords)


def dedupe_by_title(items: Iterable[NewsItem], prefix_length: int = DEDUP_PREFIX_LENGTH) -> List[NewsItem]:
    """Drop items whose lowercased title prefix was already seen."""
    seen = set()
    unique: List[NewsItem] = []
    for item in items:
        key = item.title.lower()[:prefix_length]
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique


def parse_timestamp(value: str, now: datetime) -> datetime:
    """Parse ISO-8601 or RFC-822 feed dates to an aware UTC datetime.

    Anything pandas cannot parse is treated as ``now``.
    """
    if not value:
        return now
    try:
        parsed = pd.to_datetime(value, utc=True, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return now
    if pd.isna(parsed):
        return now
    return parsed.to_pydatetime()


def sort_by_recency(items: Iterable[NewsItem], now: Optional[datetime] = None) -> List[NewsItem]:
    """Newest first. The sort is stable, so ties keep fetcher order."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return sorted(items, key=lambda item: parse_timestamp(item.timestamp, now), reverse=True)


def aggregate(
    items: Iterable[NewsItem],
    lexicon: Lexicon = DEFAULT_LEXICON,
    max_items: int = MAX_NEWS_ITEMS,
    now: Optional[datetime] = None,
) -> List[NewsItem]:
    """Filter, deduplicate, sort and cap the concatenated fetcher output.

    Args:
        items: Fetcher outputs concatenated in fetcher order.
        lexicon: Shared keyword tables.
        max_items: Output cap.
        now: Clock used for unparsable timestamps (defaults to current UTC time).

    Returns:
        List[NewsItem]: At most ``max_items`` items, newest first.
    """
    items = list(items)
    kept = [
        item for item in items
        if passes_keyword_filters(item, lexicon) and is_valid_content(item, lexicon)
    ]
    unique = dedupe_by_title(kept)
    result = sort_by_recency(unique, now=now)[:max_items]

    logger.info(
        f"aggregate: {len(items)} in → {len(kept)} filtered → "
        f"{len(unique)} unique → {len(result)} out"
    )
    return result
