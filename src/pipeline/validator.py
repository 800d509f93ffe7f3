"""Report validator — checks output/dashboard_report.json.

Checks:
  1. News count ≤ maxItems
  2. Verdict label is Positive/Negative/Neutral, confidence ∈ [0.10, 0.85]
  3. impactedStocks ⊆ portfolio
  4. Per-stock confidence ∈ [0.15, 0.85]
  5. Per-stock relevantNews ≤ 3 and ≤ newsCount

Usage:
    python -m src.pipeline.validator output/dashboard_report.json
"""

import json
import sys
from typing import Any, Dict, List, Tuple

from src.models.datatypes import SENTIMENT_LABELS

_REQUIRED_KEYS = ["maxItems", "portfolio", "news", "analysis", "stockAnalysis"]

_VERDICT_RANGE = (0.10, 0.85)
_STOCK_RANGE = (0.15, 0.85)
_RELEVANT_LIMIT = 3


def validate(report_path: str) -> Tuple[bool, List[str]]:
    """Run all validation checks against report_path.

    Args:
        report_path: Path to ``dashboard_report.json``.

    Returns:
        Tuple of ``(passed: bool, messages: list[str])``.
        ``messages`` contains PASS/FAIL lines for each check.
    """
    try:
        with open(report_path, encoding="utf-8") as f:
            report = json.load(f)
    except FileNotFoundError:
        return False, [f"FAIL  file not found: {report_path}"]
    except (OSError, ValueError) as exc:
        return False, [f"FAIL  could not read report: {exc}"]

    if not isinstance(report, dict):
        return False, ["FAIL  report is not a JSON object"]
    missing = [k for k in _REQUIRED_KEYS if k not in report]
    if missing:
        return False, [f"FAIL  missing keys: {missing}"]

    return validate_report(report)


def validate_report(report: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """Same checks as :func:`validate`, on an already-loaded report dict."""
    messages: List[str] = []
    passed = True

    # ── check 1: news cap ─────────────────────────────────────────────────────
    n_news = len(report.get("news") or [])
    cap = int(report.get("maxItems") or 0)
    if n_news <= cap:
        messages.append(f"PASS  news count = {n_news} (≤ {cap})")
    else:
        messages.append(f"FAIL  news count = {n_news} (> {cap})")
        passed = False

    # ── check 2 + 3: aggregate verdict ───────────────────────────────────────
    analysis = report.get("analysis")
    portfolio = set(report.get("portfolio") or [])
    if analysis is None:
        if n_news:
            messages.append("FAIL  analysis missing although news is present")
            passed = False
        else:
            messages.append("PASS  no news → no verdict")
    else:
        label = analysis.get("sentiment")
        confidence = analysis.get("confidence")
        lo, hi = _VERDICT_RANGE
        if label in SENTIMENT_LABELS and isinstance(confidence, (int, float)) and lo <= confidence <= hi:
            messages.append(f"PASS  verdict {label} / {confidence:.2f} ∈ [{lo}, {hi}]")
        else:
            messages.append(f"FAIL  verdict invalid: sentiment={label!r} confidence={confidence!r}")
            passed = False

        stray = [s for s in analysis.get("impactedStocks") or [] if s not in portfolio]
        if not stray:
            messages.append("PASS  impactedStocks ⊆ portfolio")
        else:
            messages.append(f"FAIL  impactedStocks outside portfolio: {stray}")
            passed = False

    # ── check 4 + 5: per-stock records ───────────────────────────────────────
    lo, hi = _STOCK_RANGE
    bad_conf = []
    bad_news = []
    for record in report.get("stockAnalysis") or []:
        stock = record.get("stock")
        confidence = record.get("confidence")
        if not isinstance(confidence, (int, float)) or not lo <= confidence <= hi:
            bad_conf.append((stock, confidence))
        relevant = len(record.get("relevantNews") or [])
        if relevant > _RELEVANT_LIMIT or relevant > int(record.get("newsCount") or 0):
            bad_news.append((stock, relevant, record.get("newsCount")))

    if not bad_conf:
        messages.append(f"PASS  per-stock confidence ∈ [{lo}, {hi}]")
    else:
        messages.append(f"FAIL  per-stock confidence out of range: {bad_conf[:3]}")
        passed = False
    if not bad_news:
        messages.append(f"PASS  relevantNews ≤ {_RELEVANT_LIMIT} and ≤ newsCount")
    else:
        messages.append(f"FAIL  relevantNews too long: {bad_news[:3]}")
        passed = False

    return passed, messages


def main() -> int:
    if len(sys.argv) < 2:
        print("Usage: python -m src.pipeline.validator <path_to_report_json>")
        return 1
    passed, messages = validate(sys.argv[1])
    for msg in messages:
        print(msg)
    if passed:
        print("\nVALIDATION PASSED ✓")
        return 0
    print("\nVALIDATION FAILED ✗")
    return 1


if __name__ == "__main__":
    sys.exit(main())
