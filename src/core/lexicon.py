"""Keyword lexicons and company reference tables.

A single :class:`Lexicon` instance is built at startup and handed to the
aggregator and to both sentiment scorers, so every consumer sees the same
keyword lists, company names, aliases and sector memberships.
"""

from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Mapping, Tuple

# (keywords, weight) pairs for per-stock weighted scoring
WeightedCategory = Tuple[Tuple[str, ...], float]


# Fetcher-level topical filter: a headline must contain at least one of these.
MARKET_KEYWORDS: Tuple[str, ...] = (
    "stock", "market", "sensex", "nifty", "share", "equity", "trading",
    "bse", "nse", "investment", "mutual fund", "ipo", "listing", "earnings",
    "results", "quarterly", "financial", "banking", "sector", "fii", "dii",
)

# Aggregator-level include list, checked against title + summary.
AGGREGATE_INCLUDE_KEYWORDS: Tuple[str, ...] = (
    "stock", "market", "sensex", "nifty", "share", "equity", "trading",
    "bse", "nse", "investment", "earnings", "financial", "banking", "sector",
    "ipo", "listing", "mutual fund",
)

# Unrelated topics dropped even when the headline looked market related.
EXCLUDE_KEYWORDS: Tuple[str, ...] = (
    "ukraine", "russia", "trump", "politics", "war", "election", "covid",
    "weather", "ceasefire", "putin", "biden",
)

# Serialized empty values that show up in broken scrapes.
PLACEHOLDER_MARKERS: Tuple[str, ...] = ("undefined", "null", "{}", "[]")

POSITIVE_KEYWORDS: Tuple[str, ...] = (
    "rises", "surge", "rally", "beats", "strong", "growth", "expansion",
    "inflows", "bullish", "gains", "profit", "buy", "upgrade",
)

NEGATIVE_KEYWORDS: Tuple[str, ...] = (
    "falls", "decline", "weak", "concerns", "drop", "losses", "bearish",
    "sell", "downgrade", "crash", "plunge", "deficit",
)

POSITIVE_WEIGHTS: Tuple[WeightedCategory, ...] = (
    (("beats", "beat", "exceeded", "surpassed"), 3.0),
    (("growth", "rises", "surge", "rally", "soared"), 2.5),
    (("strong", "robust", "solid", "impressive"), 2.0),
    (("profit", "revenue", "earnings", "income"), 2.0),
    (("buy", "upgrade", "outperform", "overweight"), 2.5),
    (("expansion", "acquire", "merger", "partnership"), 1.5),
    (("record", "highest", "milestone", "achievement"), 2.0),
)

NEGATIVE_WEIGHTS: Tuple[WeightedCategory, ...] = (
    (("falls", "decline", "plunge", "crash"), 3.0),
    (("weak", "poor", "disappointing", "missed"), 2.5),
    (("loss", "deficit", "debt", "liability"), 2.5),
    (("concerns", "risks", "challenges", "issues"), 2.0),
    (("sell", "downgrade", "underperform", "underweight"), 2.5),
    (("layoffs", "cuts", "reduction", "closure"), 2.0),
    (("regulatory", "investigation", "probe", "fine"), 1.5),
)

COMPANY_NAMES: Dict[str, str] = {
    "TCS": "Tata Consultancy Services",
    "INFY": "Infosys",
    "HDFCBANK": "HDFC Bank",
    "RELIANCE": "Reliance Industries",
    "ITC": "ITC Limited",
    "SBIN": "State Bank of India",
    "BAJFINANCE": "Bajaj Finance",
    "ASIANPAINT": "Asian Paints",
    "MARUTI": "Maruti Suzuki",
    "KOTAKBANK": "Kotak Mahindra Bank",
}

# Short forms used in headlines, matched as whole words.
SYMBOL_ALIASES: Dict[str, Tuple[str, ...]] = {
    "TCS": ("tata consultancy",),
    "INFY": ("infosys",),
    "HDFCBANK": ("hdfc", "hdfc bank"),
    "RELIANCE": ("ril",),
    "SBIN": ("sbi", "state bank"),
    "BAJFINANCE": ("bajaj",),
    "ASIANPAINT": ("asian paint",),
    "KOTAKBANK": ("kotak",),
}

SECTOR_MEMBERS: Dict[str, Tuple[str, ...]] = {
    "tech": ("TCS", "INFY"),
    "banking": ("HDFCBANK", "SBIN", "KOTAKBANK"),
    "auto": ("MARUTI",),
}

SECTOR_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "tech": ("digital", "cloud", "ai", "technology", "software", "contract", "client"),
    "banking": ("rbi", "interest rate", "npa", "deposits", "loans", "credit", "banking"),
    "auto": ("sales", "vehicle", "auto", "car", "suv", "domestic", "export"),
}

SECTOR_NOTES: Dict[str, str] = {
    "tech": "Technology sector exposure provides additional context.",
    "banking": "Banking sector dynamics provide additional insight.",
    "auto": "Automotive sector indicators considered.",
}

# Symbols the dashboard knows about; others are accepted but logged.
KNOWN_SYMBOLS: Tuple[str, ...] = (
    "TCS", "INFY", "HDFCBANK", "RELIANCE", "ITC", "SBIN", "BAJFINANCE",
    "ASIANPAINT", "MARUTI", "KOTAKBANK", "WIPRO", "ONGC", "NTPC", "POWERGRID",
    "ULTRACEMCO", "AXISBANK", "ICICIBANK", "BHARTIARTL", "HINDUNILVR", "NESTLEIND",
    "LT", "SUNPHARMA", "DRREDDY", "CIPLA", "APOLLOHOSP", "TATAMOTORS", "M&M",
    "JSWSTEEL", "TATASTEEL", "COALINDIA", "ADANIPORTS", "BPCL", "IOC", "GAIL",
)


@dataclass(frozen=True)
class Lexicon:
    """All static keyword and reference tables in one immutable object."""

    market_keywords: Tuple[str, ...] = MARKET_KEYWORDS
    include_keywords: Tuple[str, ...] = AGGREGATE_INCLUDE_KEYWORDS
    exclude_keywords: Tuple[str, ...] = EXCLUDE_KEYWORDS
    placeholder_markers: Tuple[str, ...] = PLACEHOLDER_MARKERS
    positive_keywords: Tuple[str, ...] = POSITIVE_KEYWORDS
    negative_keywords: Tuple[str, ...] = NEGATIVE_KEYWORDS
    positive_weights: Tuple[WeightedCategory, ...] = POSITIVE_WEIGHTS
    negative_weights: Tuple[WeightedCategory, ...] = NEGATIVE_WEIGHTS
    company_names: Mapping[str, str] = field(default_factory=lambda: dict(COMPANY_NAMES))
    aliases: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: dict(SYMBOL_ALIASES))
    sector_members: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: dict(SECTOR_MEMBERS))
    sector_keywords: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: dict(SECTOR_KEYWORDS))
    sector_notes: Mapping[str, str] = field(default_factory=lambda: dict(SECTOR_NOTES))

    def company_name(self, symbol: str) -> str:
        """Return the mapped company name, or the symbol itself when unmapped."""
        return self.company_names.get(symbol.upper(), symbol)

    def aliases_for(self, symbol: str) -> Tuple[str, ...]:
        return tuple(self.aliases.get(symbol.upper(), ()))

    def sector_of(self, symbol: str) -> str | None:
        for sector, members in self.sector_members.items():
            if symbol.upper() in members:
                return sector
        return None

    @classmethod
    def from_config(cls, overrides: Mapping[str, Any] | None) -> "Lexicon":
        """Build a lexicon, replacing any table named in the ``lexicon`` config section.

        Unknown keys raise ``ValueError`` so typos in config.yaml surface early.
        """
        base = cls()
        if not overrides:
            return base

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ValueError(f"Unknown lexicon tables in config: {unknown}")

        changes: Dict[str, Any] = {}
        for name, value in overrides.items():
            changes[name] = _coerce_table(name, value)
        return replace(base, **changes)


def _coerce_table(name: str, value: Any) -> Any:
    """Convert YAML lists/dicts into the tuple-based shapes the lexicon uses."""
    if name in ("positive_weights", "negative_weights"):
        # YAML form: [{keywords: [...], weight: 2.5}, ...]
        return tuple(
            (tuple(str(k).lower() for k in entry["keywords"]), float(entry["weight"]))
            for entry in value
        )
    if name in ("company_names", "sector_notes"):
        return {str(k).upper() if name == "company_names" else str(k): str(v) for k, v in value.items()}
    if name in ("aliases", "sector_members", "sector_keywords"):
        upper_keys = name == "aliases"
        upper_values = name == "sector_members"
        return {
            (str(k).upper() if upper_keys else str(k)): tuple(
                str(v).upper() if upper_values else str(v).lower() for v in values
            )
            for k, values in value.items()
        }
    return tuple(str(v).lower() for v in value)


DEFAULT_LEXICON = Lexicon()
