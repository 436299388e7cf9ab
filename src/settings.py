"""Configuration loading for torrentsieve.

All user-editable settings (feed URL, rules, macros, tie-break order, save
actions, logging) live in a single YAML file so rules can be edited without
touching Python. The file is re-read on every poll cycle.
"""

from __future__ import annotations

import os
from typing import Any, Mapping

import yaml
from dotenv import load_dotenv

from core.config import DEFAULT_TIE_BREAK, AppConfig, FeedConfig, FilterConfig, SaveConfig
from core.errors import ConfigurationError

load_dotenv()

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


def _resolve(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(PROJECT_ROOT, path)


# Rules, feed, and save settings.
CONFIG_PATH = _resolve(os.getenv("TORRENTSIEVE_CONFIG", "torrentsieve.yaml"))

# Ledger of accepted ids, kept across restarts.
DB_PATH = _resolve(os.getenv("TORRENTSIEVE_DB", "torrentsieve.db"))

# Lock file preventing two watchers from sharing the ledger.
LOCK_PATH = _resolve(os.getenv("TORRENTSIEVE_LOCK", "torrentsieve.lock"))

DEFAULT_CONFIG = """\
---
accept:
# An entry is accepted by the first rule whose selectors all match.
# Selectors: title (a regexp), link, torrent, size, category, authorized,
# magnet, comment, date, guid, id, or any named capture of the title regexp.
# A list value accepts any of its elements.
# NOTE: underscores in titles are turned into spaces before filtering.
- title: is a regular expression
  note: a dash starts a new rule
  sample_entry: true
- examplemacro: Use macros like this
  examplemacro2: [ or this, for multiple argument, macros ]
  sample_entry: true
# Rules marked sample_entry are ignored; delete them when you are done.
deny:
# Same format as accept. Deny rules are checked first.

# Keys compared, in order, to pick the best release of the same name and ep.
# The entry with the highest value for the first differing key is kept.
tie_break: [ res, bit, ver ]
# Feed to poll.
rss: https://www.tokyotosho.info/rss.php?zwnj=0
# Seconds between polls; 0 runs once.
poll: 7200
# With no save actions, accepted entries are only logged.
save:
  # Download .torrent files into this existing directory.
  dir: torrents/
  # Append torrent URLs to a file ("-" for stdout).
  #urlfile: "-"
  # Append magnet URIs to a file ("-" for stdout).
  #magnetfile: "-"
logging:
  level: INFO
  console: true
  file:
    enabled: false
    path: logs/torrentsieve.log

defines:
# Macros usable from accept/deny rules and from other macros.
# $1..$9 insert the call's arguments; pass several as a list.
  examplemacro:
    title: $1
  examplemacro2:
    examplemacro: $1, $2 $3
    authorized: true

# Title regexp captures understood by the version deduplication:
#   (?<name>...)  series name          (?<group>...) release group
#   (?<ep>\\d+)(?:-(?<endep>\\d+))?     episode or episode range
#   (?:v(?<ver>\\d+))?                  version tag
#   (?<crc>[0-9A-Fa-f]{8})             CRC32
#   (?<res>\\d+)  vertical resolution   (?<bit>\\d+)  bit depth
"""


class ConfigMissing(FileNotFoundError):
    """No config existed; a default one was written at ``path``."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Wrote new config file to {path}")
        self.path = path


def write_default_config(path: str) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(DEFAULT_CONFIG)


def filter_doc(node: Any) -> Any:
    """Drop ``explanation`` keys and ``sample_entry`` rules, recursively."""

    if isinstance(node, dict):
        return {key: filter_doc(value) for key, value in node.items() if key != "explanation"}
    if isinstance(node, list):
        return [
            filter_doc(item)
            for item in node
            if not (isinstance(item, dict) and item.get("sample_entry"))
        ]
    return node


def _rule_list(doc: Mapping[str, Any], key: str) -> tuple:
    rules = doc.get(key) or []
    if not isinstance(rules, list):
        raise ConfigurationError(f"'{key}' must be a list of rules")
    return tuple(rules)


def _save_config(raw: Any) -> SaveConfig:
    if not isinstance(raw, dict):
        return SaveConfig()
    return SaveConfig(
        directory=raw.get("dir"),
        urlfile=raw.get("urlfile"),
        magnetfile=raw.get("magnetfile"),
    )


def parse_config(doc: Any) -> AppConfig:
    """Build an AppConfig from a decoded YAML document."""

    if not isinstance(doc, dict):
        raise ConfigurationError("Config document must be a mapping")
    doc = filter_doc(doc)

    defines = doc.get("defines") or {}
    if not isinstance(defines, dict):
        raise ConfigurationError("'defines' must be a mapping of macro names")

    tie_break = doc.get("tie_break")
    if tie_break is None:
        tie_break = list(DEFAULT_TIE_BREAK)
    if not isinstance(tie_break, list):
        raise ConfigurationError("'tie_break' must be a list of keys")

    url = doc.get("rss")
    if not url:
        raise ConfigurationError("'rss' feed URL is required")

    try:
        poll = int(doc.get("poll") or 0)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"'poll' must be a number of seconds: {exc}") from exc

    logging_config = doc.get("logging") or {}
    if not isinstance(logging_config, dict):
        raise ConfigurationError("'logging' must be a mapping")

    return AppConfig(
        feed=FeedConfig(url=str(url), poll=poll),
        filters=FilterConfig(
            defines=defines,
            accept=_rule_list(doc, "accept"),
            deny=_rule_list(doc, "deny"),
            tie_break=tuple(str(key) for key in tie_break),
        ),
        save=_save_config(doc.get("save")),
        logging=logging_config,
    )


def load_settings(path: str = CONFIG_PATH) -> AppConfig:
    """Load the YAML config, writing a default one on first run."""

    if not os.path.exists(path):
        write_default_config(path)
        raise ConfigMissing(path)

    with open(path, "r", encoding="utf-8") as handle:
        try:
            doc = yaml.safe_load(handle)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Cannot parse {path}: {exc}") from exc
    return parse_config(doc)
