from __future__ import annotations

import pytest

from core.config import FilterConfig
from core.errors import ConfigurationError
from core.models import Entry
from core.rules_engine import (
    CaptureGate,
    FilterEngine,
    LiteralMatch,
    RegexMatch,
    SetMatch,
    build_rule_set,
    build_rules,
    compile_title,
    match_rules,
)


def _entry(title: str, *, entry_id: int = 1, category: str = "Anime", authorized: bool = False) -> Entry:
    return Entry(
        id=entry_id,
        title=title,
        link=f"https://tracker.example/?page=download&tid={entry_id}",
        torrent_url=f"https://tracker.example/?page=download&tid={entry_id}",
        size="350MB",
        category=category,
        authorized=authorized,
        magnet_uri=None,
        comment=None,
        published_at=None,
        guid=f"https://tracker.example/details.php?id={entry_id}",
    )


def test_build_rules_produces_tagged_matchers() -> None:
    (rule,) = build_rules(
        [{"title": r"(?<name>\w+) (?<res>\d+)p", "category": ["Anime", "Music"], "authorized": True, "res": 1080}],
        kind="accept",
    )

    assert rule.name == "accept[0]"
    kinds = {type(matcher) for matcher in rule.matchers}
    assert kinds == {RegexMatch, SetMatch, LiteralMatch}
    assert rule.gates == (CaptureGate("res", 1080),)
    assert rule.info_checks == (("res", 1080),)


def test_selector_on_capture_filters_by_resolution() -> None:
    rules = build_rules([{"title": r"(?<name>\w+) (?<res>\d+)p", "res": 1080}])

    accepted = match_rules(rules, _entry("Show 1080p"))
    assert accepted is not None
    assert accepted.info.name == "Show"
    assert accepted.info.res == 1080
    assert match_rules(rules, _entry("Show 720p")) is None


def test_missing_endep_defaults_to_ep() -> None:
    rules = build_rules([r"(?<name>.+) - (?<ep>\d+)"])

    result = match_rules(rules, _entry("Show - 05"))

    assert result.info.ep == 5
    assert result.info.endep == 5
    assert result.info.eps == range(5, 6)


def test_missing_numeric_capture_defaults_to_minus_one() -> None:
    rules = build_rules([r"(?<name>.+) - (?<ep>\d+)(?:v(?<ver>\d+))?"])

    info = match_rules(rules, _entry("Show - 05")).info

    assert info.res == -1
    assert info.bit == -1
    assert info.ver == -1
    assert info.crc is None


def test_episode_range_selector_uses_containment() -> None:
    rules = build_rules([{"title": r"(?<name>\w+) (?<ep>\d+)-(?<endep>\d+)", "eps": 3}])

    assert match_rules(rules, _entry("Show 01-04")) is not None
    assert match_rules(rules, _entry("Show 05-06")) is None


def test_string_capture_selector_requires_equality() -> None:
    rules = build_rules([{"title": r"\[(?<group>\w+)\] (?<name>\w+)", "group": "Good"}])

    assert match_rules(rules, _entry("[Good] Show")) is not None
    assert match_rules(rules, _entry("[Bad] Show")) is None


def test_unknown_selector_raises_at_evaluation() -> None:
    rules = build_rules([{"title": "Show", "resolution": 1080}])

    with pytest.raises(ConfigurationError, match="resolution"):
        match_rules(rules, _entry("Show 1080p"))


def test_info_selector_without_capture_raises() -> None:
    rules = build_rules([{"title": r"(?<name>\w+) \d+p", "res": 1080}])

    with pytest.raises(ConfigurationError, match="res"):
        match_rules(rules, _entry("Show 1080p"))


def test_episode_range_selector_needs_an_ep_capture() -> None:
    rules = build_rules([{"title": r"(?<name>\w+) \d+", "eps": 3}])

    with pytest.raises(ConfigurationError, match="eps"):
        match_rules(rules, _entry("Show 03"))


def test_list_selector_accepts_any_element() -> None:
    rules = build_rules([{"title": "Show", "category": ["Anime", "Music"]}])

    assert match_rules(rules, _entry("Show", category="Music")) is not None
    assert match_rules(rules, _entry("Show", category="Drama")) is None


def test_literal_selector_and_field_aliases() -> None:
    rules = build_rules([{"title": "Show", "authorized": True, "torrent": "https://tracker.example/?page=download&tid=1"}])

    assert match_rules(rules, _entry("Show", authorized=True)) is not None
    assert match_rules(rules, _entry("Show", authorized=False)) is None


def test_rule_without_regex_matches_without_info() -> None:
    rules = build_rules([{"category": "Anime"}])

    result = match_rules(rules, _entry("Anything"))

    assert result is not None
    assert result.info is None


def test_first_matching_rule_wins() -> None:
    rules = build_rules(["Show", r"(?<name>Show)"], kind="accept")

    result = match_rules(rules, _entry("Show"))

    assert result.rule_name == "accept[0]"
    assert result.info.name is None


def test_invalid_regex_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError, match=r"accept\[0\]"):
        build_rules(["(unclosed"], kind="accept")


def test_compile_title_accepts_both_named_group_syntaxes() -> None:
    pattern = compile_title(r"(?<name>\w+)(?<!x) (?P<ep>\d+)")

    assert set(pattern.groupindex) == {"name", "ep"}


def test_unknown_tie_break_key_is_rejected() -> None:
    with pytest.raises(ConfigurationError, match="tie_break"):
        build_rule_set(FilterConfig(tie_break=("res", "size")))


def test_deny_is_checked_before_accept() -> None:
    engine = FilterEngine()
    engine.load(FilterConfig(accept=(r"(?<name>Show) (?<res>\d+)p",), deny=("720p",)))

    assert engine.evaluate(_entry("Show 720p")) is None
    accepted = engine.evaluate(_entry("Show 1080p"))
    assert accepted is not None
    assert accepted.info.res == 1080


def test_accept_attaches_info_to_a_copy() -> None:
    engine = FilterEngine()
    engine.load(FilterConfig(accept=(r"(?<name>Show) - (?<ep>\d+)",)))
    entries = [_entry("Show - 01", entry_id=1), _entry("Other - 01", entry_id=2)]

    accepted = engine.accept(entries)

    assert [entry.id for entry in accepted] == [1]
    assert accepted[0].info.ep == 1
    assert entries[0].info is None


def test_failed_reload_keeps_previous_rules() -> None:
    engine = FilterEngine()
    engine.load(FilterConfig(accept=("Show",)))
    previous = engine.rule_set

    with pytest.raises(ConfigurationError):
        engine.load(FilterConfig(accept=("(broken",)))

    assert engine.rule_set is previous
    assert engine.evaluate(_entry("Show")) is not None


def test_macros_feed_rule_compilation() -> None:
    engine = FilterEngine()
    engine.load(
        FilterConfig(
            defines={"show": {"title": r"(?<name>$1) - (?<ep>\d+) \[(?<res>\d+)p\]"}},
            accept=({"show": "Show", "res": 1080},),
        )
    )

    assert engine.evaluate(_entry("Show - 02 [1080p]")) is not None
    assert engine.evaluate(_entry("Show - 02 [720p]")) is None
