"""Portfolio news dashboard entry point.

Usage:
    python run_dashboard.py [SYMBOL ...]

Loads config.yaml, fetches and aggregates market news, scores the portfolio
(command-line symbols or the ``portfolio`` setting) in aggregate and
per-stock mode, writes output/dashboard_report.json and validates it.
"""

import os
import sys

from dotenv import load_dotenv

load_dotenv()  # must precede src imports so env vars are available at module load

from src.core.config import load_settings  # noqa: E402
from src.core.logger import logger  # noqa: E402
from src.pipeline.engine import REPORT_FILENAME, DashboardEngine  # noqa: E402
from src.pipeline.validator import validate  # noqa: E402


def main(argv: list[str] | None = None) -> int:
    """Run one dashboard refresh. Returns 0 on success, 1 on failure."""
    symbols = list(sys.argv[1:] if argv is None else argv)

    try:
        settings = load_settings()
    except (FileNotFoundError, ValueError) as exc:
        logger.error(f"run_dashboard: failed to load config: {exc}")
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    try:
        engine = DashboardEngine(settings=settings)
        report = engine.run(portfolio=symbols or None)
    except Exception as exc:
        logger.error(f"run_dashboard: DashboardEngine raised: {exc}", exc_info=True)
        print(f"ERROR: dashboard refresh failed — {exc}", file=sys.stderr)
        return 1

    report_path = os.path.join(engine.output_dir, REPORT_FILENAME)
    analysis = report["analysis"]
    if analysis:
        print(
            f"{analysis['sentiment']} ({analysis['confidence']:.0%}) — "
            f"{analysis['overallMarketSentiment']}"
        )
    for record in report["stockAnalysis"]:
        print(
            f"  {record['stock']:12} {record['sentiment']:9} "
            f"{record['confidence']:.0%}  ({record['newsCount']} articles)"
        )

    passed, messages = validate(report_path)
    for msg in messages:
        print(msg)
    if not passed:
        logger.error(f"run_dashboard: validation failed for {report_path}")
        return 1

    print(f"SUCCESS: {len(report['news'])} news items → {report_path}")
    logger.info(f"run_dashboard: completed — {len(report['news'])} news → {report_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
