"""Macro expansion for rule fragments.

A macro is a named rule fragment stored under ``defines``. Using its name as
a key inside a rule inserts the macro's own keys in place of the call, with
``$1``..``$9`` replaced by the call's argument(s):

    defines:
      fansub:
        title: "^\\[$1\\] (?<name>$2) - (?<ep>\\d+)"
        authorized: true
    accept:
      - fansub: [SomeGroup, Some Show]

Macros may call other macros. A macro whose definition is a plain string
resolves to a title-only rule.
"""

from __future__ import annotations

import re
from typing import Any, Mapping, Tuple

from core.errors import ConfigurationError

_PLACEHOLDER = re.compile(r"(?<!\\)\$([1-9])")


def apply_args(value: Any, args: Any, macro: str = "") -> Any:
    """Substitute ``$N`` placeholders in ``value`` with positional ``args``.

    A scalar ``args`` counts as a single argument. Lists are substituted
    element-wise; non-string scalars are returned unchanged.
    """

    if not isinstance(args, list):
        args = [args]

    if isinstance(value, list):
        return [apply_args(item, args, macro) for item in value]
    if not isinstance(value, str):
        return value

    def _replace(match: re.Match) -> str:
        index = int(match.group(1))
        if index > len(args):
            where = f" in macro {macro!r}" if macro else ""
            raise ConfigurationError(f"Argument ${index} to {value!r}{where} was not provided")
        arg = args[index - 1]
        return "" if arg is None else str(arg)

    return _PLACEHOLDER.sub(_replace, value)


def expand_macros(
    fragment: Any,
    defines: Mapping[str, Any],
    _stack: Tuple[str, ...] = (),
) -> dict:
    """Return ``fragment`` as a mapping with every macro call resolved.

    Keys that are not macro names are kept as written. A later key
    overrides an earlier one when a macro inserts a key that already exists.
    """

    if isinstance(fragment, str):
        return {"title": fragment}
    if not isinstance(fragment, Mapping):
        raise ConfigurationError(f"Don't know how to deal with a rule of type {type(fragment).__name__}")

    expanded: dict = {}
    for key, value in fragment.items():
        if key not in defines:
            expanded[key] = value
            continue

        if key in _stack:
            chain = " -> ".join((*_stack, key))
            raise ConfigurationError(f"Macro cycle detected: {chain}")

        definition = defines[key]
        if isinstance(definition, str):
            # A string macro stands for the whole rule.
            return {"title": apply_args(definition, value, key)}
        if not isinstance(definition, Mapping):
            raise ConfigurationError(
                f"Macro {key!r} must be a string or a mapping, got {type(definition).__name__}"
            )

        body = {sub_key: apply_args(sub_value, value, key) for sub_key, sub_value in definition.items()}
        expanded.update(expand_macros(body, defines, (*_stack, key)))

    return expanded
