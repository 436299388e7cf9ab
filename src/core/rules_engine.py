"""Rule compilation and matching logic (core domain)."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union

from core.config import FilterConfig
from core.errors import ConfigurationError
from core.macros import expand_macros
from core.models import INFO_KEYS, SELECTOR_FIELDS, Entry, Info

LOGGER = logging.getLogger(__name__)

# Rule keys that are re-checked against the derived Info after a match.
_INFO_CHECK_KEYS = frozenset(INFO_KEYS) | {"eps"}
# Derived selectors and the capture they are computed from.
_DERIVED_FROM = {"eps": "ep"}

_RUBY_NAMED_GROUP = re.compile(r"(?<!\\)\(\?<(?=[A-Za-z_])")
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


@dataclass(frozen=True)
class LiteralMatch:
    """Entry field must equal the value exactly."""

    selector: str
    value: Any

    def test(self, entry: Entry) -> bool:
        return entry.selector_value(self.selector) == self.value


@dataclass(frozen=True)
class SetMatch:
    """Entry field must equal at least one of the values."""

    selector: str
    values: Tuple[Any, ...]

    def test(self, entry: Entry) -> bool:
        actual = entry.selector_value(self.selector)
        return actual is not None and any(actual == value for value in self.values)


@dataclass(frozen=True)
class RegexMatch:
    """Entry field must match the compiled pattern (search semantics)."""

    selector: str
    pattern: re.Pattern

    def search(self, entry: Entry) -> Optional[re.Match]:
        actual = entry.selector_value(self.selector)
        if actual is None:
            return None
        return self.pattern.search(str(actual))


@dataclass(frozen=True)
class CaptureGate:
    """Selector naming a capture group of the rule's regex, not an Entry field."""

    selector: str
    value: Any


Matcher = Union[LiteralMatch, SetMatch, RegexMatch]


@dataclass(frozen=True)
class Rule:
    """Compiled rule used by the filter engine."""

    name: str
    matchers: Tuple[Matcher, ...]
    gates: Tuple[CaptureGate, ...]
    info_checks: Tuple[Tuple[str, Any], ...]
    source: Tuple[Tuple[str, Any], ...]


@dataclass(frozen=True)
class RuleMatch:
    """A successful rule match with a human-readable reason."""

    rule_name: str
    reason: str
    info: Optional[Info]


@dataclass(frozen=True)
class RuleSet:
    """Everything one filtering pass needs, swapped in as a unit on reload."""

    deny: Tuple[Rule, ...] = ()
    accept: Tuple[Rule, ...] = ()
    tie_break: Tuple[str, ...] = ()


def compile_title(pattern: str, rule_name: str = "") -> re.Pattern:
    """Compile a title pattern, accepting ``(?<name>...)`` group syntax."""

    try:
        return re.compile(_RUBY_NAMED_GROUP.sub("(?P<", pattern))
    except re.error as exc:
        where = f" in rule {rule_name}" if rule_name else ""
        raise ConfigurationError(f"Invalid title regexp {pattern!r}{where}: {exc}") from exc


def build_rule(fragment: Any, defines: dict, name: str) -> Rule:
    """Expand macros in one rule fragment and compile its selectors."""

    expanded = expand_macros(fragment, defines)
    if not expanded:
        raise ConfigurationError(f"Rule {name} is empty")

    matchers: List[Matcher] = []
    gates: List[CaptureGate] = []
    for key, value in expanded.items():
        if not isinstance(key, str):
            raise ConfigurationError(f"Rule {name} has a non-string selector {key!r}")
        if key not in SELECTOR_FIELDS:
            gates.append(CaptureGate(key, value))
        elif key == "title" and isinstance(value, str):
            matchers.append(RegexMatch(key, compile_title(value, name)))
        elif isinstance(value, list):
            matchers.append(SetMatch(key, tuple(value)))
        else:
            matchers.append(LiteralMatch(key, value))

    info_checks = tuple((key, value) for key, value in expanded.items() if key in _INFO_CHECK_KEYS)
    return Rule(
        name=name,
        matchers=tuple(matchers),
        gates=tuple(gates),
        info_checks=info_checks,
        source=tuple(expanded.items()),
    )


def build_rules(fragments: Iterable[Any], defines: Optional[dict] = None, kind: str = "rule") -> List[Rule]:
    """Compile raw rule fragments into Rules named ``<kind>[<index>]``."""

    defines = dict(defines or {})
    return [build_rule(fragment, defines, f"{kind}[{index}]") for index, fragment in enumerate(fragments)]


def build_rule_set(config: FilterConfig) -> RuleSet:
    """Compile a complete RuleSet; raises before anything is swapped in."""

    unknown = [key for key in config.tie_break if key not in _INFO_CHECK_KEYS]
    if unknown:
        raise ConfigurationError(f"Unknown tie_break key(s): {', '.join(map(str, unknown))}")
    return RuleSet(
        deny=tuple(build_rules(config.deny, config.defines, "deny")),
        accept=tuple(build_rules(config.accept, config.defines, "accept")),
        tie_break=tuple(config.tie_break),
    )


def _coerce_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    match = _LEADING_INT.match(str(value)) if value is not None else None
    return int(match.group(1)) if match else 0


def derive_info(match: re.Match) -> Info:
    """Build an Info from the recognised named captures of a match."""

    groups = match.groupdict()
    captured = frozenset(key for key in INFO_KEYS if key in groups)
    ep_raw = groups.get("ep")
    endep_raw = groups.get("endep") or ep_raw

    def _number(raw: Any) -> int:
        return _coerce_int(raw) if raw is not None else -1

    return Info(
        name=groups.get("name"),
        ep=_number(ep_raw),
        endep=_number(endep_raw),
        ver=_number(groups.get("ver")),
        crc=groups.get("crc"),
        group=groups.get("group"),
        res=_number(groups.get("res")),
        bit=_number(groups.get("bit")),
        captured=captured,
    )


def _info_value_matches(actual: Any, expected: Any) -> bool:
    if isinstance(expected, list):
        return any(_info_value_matches(actual, item) for item in expected)
    if isinstance(actual, range):
        return _coerce_int(expected) in actual
    if isinstance(actual, int):
        return actual == _coerce_int(expected)
    return actual == expected


def _describe(entry: Entry) -> str:
    return f"entry {entry.id} {entry.title!r}"


def match_rule(rule: Rule, entry: Entry) -> Optional[RuleMatch]:
    """Return a RuleMatch if every selector of ``rule`` accepts ``entry``.

    Field selectors run first, then capture gates, then the Info re-check
    for selectors that name Info keys (``res: 1080``, ``ep: 12``...).
    """

    match: Optional[re.Match] = None
    reasons: List[str] = []
    for matcher in rule.matchers:
        if isinstance(matcher, RegexMatch):
            found = matcher.search(entry)
            if found is None:
                return None
            # The title regex is the canonical capture source.
            if match is None or matcher.selector == "title":
                match = found
            reasons.append(f"{matcher.selector} ~ /{matcher.pattern.pattern}/")
        elif not matcher.test(entry):
            return None

    captures = match.groupdict() if match is not None else {}
    for gate in rule.gates:
        if gate.selector in captures:
            continue
        if _DERIVED_FROM.get(gate.selector) in captures:
            continue
        raise ConfigurationError(
            f"Selector {gate.selector!r} in rule {rule.name} is neither a standard selector "
            f"nor a named capture in the title regexp ({_describe(entry)})"
        )

    if match is None:
        return RuleMatch(rule_name=rule.name, reason="; ".join(reasons) or "fields", info=None)

    info = derive_info(match)
    info_keys = info.keys()
    for key, expected in rule.info_checks:
        if key not in info_keys:
            continue
        if not _info_value_matches(info.get(key), expected):
            return None
        reasons.append(f"{key}={expected}")

    return RuleMatch(rule_name=rule.name, reason="; ".join(reasons), info=info)


def match_rules(rules: Iterable[Rule], entry: Entry) -> Optional[RuleMatch]:
    """Return the first matching rule in list order, if any."""

    for rule in rules:
        result = match_rule(rule, entry)
        if result is not None:
            return result
    return None


class FilterEngine:
    """Applies deny rules, then accept rules, against a single RuleSet."""

    def __init__(self, rule_set: Optional[RuleSet] = None) -> None:
        self._rule_set = rule_set or RuleSet()

    @property
    def rule_set(self) -> RuleSet:
        return self._rule_set

    def load(self, config: FilterConfig) -> RuleSet:
        """Recompile all rules and replace the active set in one assignment.

        On ConfigurationError the previous RuleSet stays active.
        """

        rule_set = build_rule_set(config)
        self._rule_set = rule_set
        LOGGER.info("%s deny and %s accept rules are loaded", len(rule_set.deny), len(rule_set.accept))
        return rule_set

    def evaluate(self, entry: Entry, rule_set: Optional[RuleSet] = None) -> Optional[Entry]:
        """Return ``entry`` with its Info attached if accepted, else None."""

        rules = rule_set or self._rule_set
        denied = match_rules(rules.deny, entry)
        if denied is not None:
            LOGGER.debug("Denied %s by %s", _describe(entry), denied.rule_name)
            return None
        accepted = match_rules(rules.accept, entry)
        if accepted is None:
            return None
        LOGGER.debug("Accepted %s by %s (%s)", _describe(entry), accepted.rule_name, accepted.reason)
        return replace(entry, info=accepted.info)

    def accept(self, entries: Sequence[Entry], rule_set: Optional[RuleSet] = None) -> List[Entry]:
        """Filter a batch; every entry sees the same RuleSet."""

        rules = rule_set or self._rule_set
        accepted: List[Entry] = []
        for entry in entries:
            result = self.evaluate(entry, rules)
            if result is not None:
                accepted.append(result)
        return accepted
