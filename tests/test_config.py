# tests/test_config.py
import pytest

from src.core.config import DEFAULTS, load_config, load_settings
from src.core.lexicon import DEFAULT_LEXICON, Lexicon


def test_missing_config_file_falls_back_to_defaults(tmp_path, monkeypatch):
    for name in ("NEWS_API_KEY", "OPENAI_API_KEY", "SENTIMENT_PROVIDER", "PUBLIC_BASE_URL"):
        monkeypatch.delenv(name, raising=False)
    settings = load_settings(tmp_path / "absent.yaml")
    assert settings["news"]["sources"] == DEFAULTS["news"]["sources"]
    assert settings["sentiment"]["provider"] == "keyword"


def test_yaml_merges_over_defaults_and_env_wins(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text(
        "news:\n  max_items: 10\n  sources: [newsapi]\nsentiment:\n  provider: llm\nportfolio: [TCS]\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("SENTIMENT_PROVIDER", "keyword")

    settings = load_settings(path)

    assert settings["news"]["max_items"] == 10
    assert settings["news"]["sources"] == ["newsapi"]
    assert settings["news"]["feeds"]["moneycontrol"]["max_entries"] == 6
    assert settings["sentiment"]["provider"] == "keyword"
    assert settings["llm"]["api_key"] == "sk-test"
    assert settings["portfolio"] == ["TCS"]
    # defaults are never mutated
    assert DEFAULTS["news"]["max_items"] == 20


def test_load_config_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.yaml")
    empty = tmp_path / "empty.yaml"
    empty.write_text("", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(empty)


def test_lexicon_overrides():
    lexicon = Lexicon.from_config({
        "company_names": {"zomato": "Zomato Ltd"},
        "positive_weights": [{"keywords": ["Upgrade"], "weight": 2}],
    })
    assert lexicon.company_name("ZOMATO") == "Zomato Ltd"
    assert lexicon.positive_weights == ((("upgrade",), 2.0),)
    assert lexicon.negative_weights == DEFAULT_LEXICON.negative_weights
    assert Lexicon.from_config(None) == DEFAULT_LEXICON


def test_lexicon_rejects_unknown_tables():
    with pytest.raises(ValueError, match="Unknown lexicon tables"):
        Lexicon.from_config({"postive_keywords": ["up"]})
