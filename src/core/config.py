"""Configuration module for loading dashboard settings and environment variables."""

import copy
import os
from pathlib import Path
from typing import Any, Dict

import yaml
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

DEFAULTS: Dict[str, Any] = {
    "output_dir": "output",
    "app": {
        "base_url": "http://localhost:3000",
        "default_user_id": "user123",
        "seed_demo_account": True,
    },
    "news": {
        "timeout_seconds": 10,
        "max_items": 20,
        "sources": ["moneycontrol", "economictimes", "newsapi"],
        "feeds": {
            "moneycontrol": {
                "name": "MoneyControl",
                "url": "https://www.moneycontrol.com/rss/business.xml",
                "max_entries": 6,
            },
            "economictimes": {
                "name": "Economic Times",
                "url": "https://economictimes.indiatimes.com/markets/stocks/rssfeeds/2146842.cms",
                "max_entries": 5,
            },
        },
        "newsapi": {
            "url": "https://newsapi.org/v2/everything",
            "api_key": "demo",
            "page_size": 5,
            "query": (
                '("indian stock market" OR "sensex" OR "nifty 50" OR "BSE" OR "NSE") '
                "AND NOT (ukraine OR russia OR trump OR politics OR war)"
            ),
            "domains": "economictimes.com,moneycontrol.com,business-standard.com,livemint.com",
        },
    },
    "sentiment": {
        "provider": "keyword",
        "confidence_strategy": "deterministic",
        "seed": None,
    },
    "llm": {
        "api_key": "",
        "model": "gpt-3.5-turbo",
        "max_tokens": 500,
        "temperature": 0.3,
        "timeout_seconds": 30,
    },
    "brokers": {
        "zerodha": {
            "api_key": "",
            "api_secret": "",
            "base_url": "https://api.kite.trade",
        },
    },
    "lexicon": {},
    "portfolio": [],
}

# env var -> (section, key); a None section means top level
_ENV_OVERRIDES = {
    "NEWS_API_KEY": (("news", "newsapi"), "api_key"),
    "OPENAI_API_KEY": (("llm",), "api_key"),
    "SENTIMENT_PROVIDER": (("sentiment",), "provider"),
    "CONFIDENCE_STRATEGY": (("sentiment",), "confidence_strategy"),
    "PUBLIC_BASE_URL": (("app",), "base_url"),
    "ZERODHA_API_KEY": (("brokers", "zerodha"), "api_key"),
    "ZERODHA_API_SECRET": (("brokers", "zerodha"), "api_secret"),
    "ZERODHA_BASE_URL": (("brokers", "zerodha"), "base_url"),
}


def load_config(config_path: str | Path = "config.yaml") -> Dict[str, Any]:
    """
    Load configuration from the specified YAML file.

    Args:
        config_path (str | Path): Path to the configuration file. Defaults to "config.yaml".

    Returns:
        Dict[str, Any]: A dictionary containing the configuration settings.
    """
    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found at {config_path}")

    with open(config_file, "r", encoding="utf-8") as file:
        config_data = yaml.safe_load(file)

    if not config_data:
        raise ValueError(f"Configuration file {config_path} is empty or invalid.")

    return config_data


def load_settings(config_path: str | Path = "config.yaml") -> Dict[str, Any]:
    """
    Build the effective settings: DEFAULTS, then config.yaml, then environment.

    A missing config file is not an error here; the defaults are used instead.

    Args:
        config_path (str | Path): Path to the configuration file.

    Returns:
        Dict[str, Any]: Fully populated settings dictionary.
    """
    settings = copy.deepcopy(DEFAULTS)
    if Path(config_path).exists():
        _deep_merge(settings, load_config(config_path))

    for env_name, (path, key) in _ENV_OVERRIDES.items():
        value = os.getenv(env_name, "").strip()
        if not value:
            continue
        section = settings
        for part in path:
            section = section.setdefault(part, {})
        section[key] = value

    return settings


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into ``base`` in place and return it."""
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base
