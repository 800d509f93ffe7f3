"""Text helpers shared by the fetchers, the aggregator and the scorers."""

import re
from functools import lru_cache
from typing import Iterable, List, Sequence

from src.core.lexicon import Lexicon
from src.models.datatypes import NewsItem

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")


def strip_html(text: str) -> str:
    """Remove markup tags and collapse whitespace.

    Examples:
        ``"<p>Sensex <b>up</b></p>"`` → ``"Sensex up"``
    """
    return _WS_RE.sub(" ", _TAG_RE.sub("", text or "")).strip()


def item_text(item: NewsItem) -> str:
    """Lowercased ``title + summary`` used by every keyword scan."""
    return f"{item.title} {item.summary}".lower()


def contains_any(text: str, keywords: Iterable[str]) -> bool:
    """Return True if the lowercased text contains any keyword as a substring."""
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


def count_present(text: str, keywords: Iterable[str]) -> int:
    """Count how many distinct keywords occur in ``text`` (once each)."""
    return sum(1 for keyword in keywords if keyword in text)


@lru_cache(maxsize=256)
def _word_pattern(phrase: str) -> "re.Pattern[str]":
    return re.compile(r"\b" + re.escape(phrase) + r"\b")


@lru_cache(maxsize=256)
def _topic_pattern(keyword: str) -> "re.Pattern[str]":
    # word start + optional plural, so "war" hits "wars" but not "software"
    return re.compile(r"\b" + re.escape(keyword) + r"s?\b")


def contains_word(text: str, phrase: str) -> bool:
    """Return True if ``phrase`` occurs in ``text`` as a standalone word or phrase."""
    return _word_pattern(phrase.lower()).search(text) is not None


def mentions_topic(text: str, keywords: Iterable[str]) -> bool:
    """Deny-list check: any keyword present as a word (plural tolerated)."""
    lowered = text.lower()
    return any(_topic_pattern(keyword).search(lowered) for keyword in keywords)


def mentions_symbol(text: str, symbol: str, lexicon: Lexicon, include_first_word: bool = False) -> bool:
    """Return True if lowercased ``text`` refers to ``symbol``.

    Matching order: the symbol itself, the mapped company name, then the
    symbol's aliases (whole words). Per-stock relevance additionally accepts
    the first word of the company name.

    Args:
        text: Lowercased news text.
        symbol: Ticker symbol (any case).
        lexicon: Shared lexicon supplying names and aliases.
        include_first_word: Also match the company name's first word.
    """
    symbol_lower = symbol.lower()
    if symbol_lower and symbol_lower in text:
        return True

    company = lexicon.company_name(symbol).lower()
    if company and company in text:
        return True

    if include_first_word:
        first_word = company.split(" ")[0] if company else ""
        if first_word and first_word in text:
            return True

    return any(contains_word(text, alias) for alias in lexicon.aliases_for(symbol))


def unique_symbols(symbols: Sequence[str]) -> List[str]:
    """Uppercase, strip and de-duplicate symbols keeping first-seen order."""
    seen: List[str] = []
    for symbol in symbols:
        cleaned = symbol.strip().upper()
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return seen
