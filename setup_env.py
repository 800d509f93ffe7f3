"""Post-clone environment setup helper.

Run once after creating the env and installing the package:

    python -m venv .venv
    pip install -e ".[test]"
    python setup_env.py

This script:
1. Verifies all third-party imports resolve correctly.
2. Verifies the dashboard's own modules import cleanly.
3. Reports whether the optional API keys are configured.
"""

import os
import sys

from dotenv import load_dotenv


def verify_imports() -> None:
    print("Verifying core imports...")
    required = [
        ("requests", "requests"),
        ("feedparser", "feedparser"),
        ("pandas", "pandas"),
        ("yaml", "PyYAML"),
        ("dotenv", "python-dotenv"),
        ("openai", "openai"),
    ]
    all_ok = True
    for mod, pkg in required:
        try:
            __import__(mod)
            print(f"  [OK] {pkg}")
        except ImportError:
            print(f"  [MISSING] {pkg}  →  run: pip install {pkg}")
            all_ok = False

    if not all_ok:
        print("\nSome packages are missing. Run:  pip install -e .")
        sys.exit(1)


def verify_dashboard_imports() -> None:
    print("\nVerifying dashboard source imports...")
    try:
        from src.providers.news import RssNewsProvider  # noqa: F401
        from src.providers.sentiment import KeywordSentimentProvider  # noqa: F401
        from src.providers.llm import OpenAIChatClient  # noqa: F401
        from src.providers.brokers import get_broker  # noqa: F401
        from src.pipeline.engine import DashboardEngine  # noqa: F401
        from src.api.handlers import handle_analyze  # noqa: F401
        print("  [OK] All dashboard modules import cleanly.")
    except Exception as exc:
        print(f"  [ERROR] Dashboard import failed: {exc}")
        sys.exit(1)


def report_keys() -> None:
    print("\nChecking optional API keys...")
    load_dotenv()
    for name, effect in (
        ("NEWS_API_KEY", "NewsAPI uses the 'demo' key"),
        ("OPENAI_API_KEY", "LLM sentiment falls back to keyword scoring"),
        ("ZERODHA_API_KEY", "Zerodha login URLs carry an empty api_key"),
    ):
        if os.getenv(name):
            print(f"  [OK] {name} set")
        else:
            print(f"  [INFO] {name} not set — {effect}")


if __name__ == "__main__":
    print("=" * 60)
    print("  Portfolio News Dashboard — Environment Setup Check")
    print("=" * 60)
    verify_imports()
    verify_dashboard_imports()
    report_keys()
    print("\n" + "=" * 60)
    print("  Setup complete. You can now run: python run_dashboard.py")
    print("=" * 60)
