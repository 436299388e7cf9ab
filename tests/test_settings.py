from __future__ import annotations

import pytest

import settings
from core.config import DEFAULT_TIE_BREAK
from core.errors import ConfigurationError
from core.rules_engine import build_rule_set


def _doc(**overrides) -> dict:
    doc = {
        "rss": "https://tracker.example/rss.php",
        "accept": ["Show"],
        "deny": None,
        "defines": {"m": {"title": "$1"}},
    }
    doc.update(overrides)
    return doc


def test_parse_config_fills_defaults() -> None:
    config = settings.parse_config(_doc())

    assert config.feed.url == "https://tracker.example/rss.php"
    assert config.feed.poll == 0
    assert config.filters.accept == ("Show",)
    assert config.filters.deny == ()
    assert config.filters.tie_break == DEFAULT_TIE_BREAK
    assert config.save.enabled is False
    assert config.logging == {}


def test_sample_entries_and_explanations_are_dropped() -> None:
    doc = _doc(
        accept=[{"title": "sample", "sample_entry": True}, {"title": "Show", "explanation": "why"}],
        save={"dir": "torrents/", "explanation": "where"},
    )

    config = settings.parse_config(doc)

    assert config.filters.accept == ({"title": "Show"},)
    assert config.save.directory == "torrents/"


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"rss": None}, "rss"),
        ({"accept": "Show"}, "accept"),
        ({"defines": ["m"]}, "defines"),
        ({"tie_break": "res"}, "tie_break"),
        ({"poll": "often"}, "poll"),
    ],
)
def test_invalid_documents_are_rejected(overrides: dict, message: str) -> None:
    with pytest.raises(ConfigurationError, match=message):
        settings.parse_config(_doc(**overrides))


def test_non_mapping_document_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        settings.parse_config(["not", "a", "mapping"])


def test_missing_config_writes_default(tmp_path) -> None:
    path = tmp_path / "torrentsieve.yaml"

    with pytest.raises(settings.ConfigMissing):
        settings.load_settings(str(path))

    assert path.exists()
    config = settings.load_settings(str(path))
    assert config.filters.accept == ()
    assert config.filters.deny == ()
    assert config.filters.tie_break == ("res", "bit", "ver")
    assert config.feed.poll == 7200
    assert config.save.directory == "torrents/"
    assert "examplemacro" in config.filters.defines
    build_rule_set(config.filters)


def test_yaml_rules_compile_end_to_end(tmp_path) -> None:
    path = tmp_path / "rules.yaml"
    path.write_text(
        "rss: https://tracker.example/rss.php\n"
        "tie_break: [ver]\n"
        "defines:\n"
        "  show:\n"
        "    title: '(?<name>$1) - (?<ep>\\d+)'\n"
        "accept:\n"
        "  - show: Some Show\n"
        "    category: Anime\n"
        "save:\n"
        "  urlfile: '-'\n",
        encoding="utf-8",
    )

    config = settings.load_settings(str(path))
    rule_set = build_rule_set(config.filters)

    assert len(rule_set.accept) == 1
    assert rule_set.tie_break == ("ver",)
    assert config.save.urlfile == "-"


def test_unparseable_yaml_is_a_configuration_error(tmp_path) -> None:
    path = tmp_path / "broken.yaml"
    path.write_text("accept: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        settings.load_settings(str(path))
