"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to feedparser or any other integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Sequence

from core.errors import ExtractionError

# Capture names that feed an Info record; anything else in a title regex is
# only usable as a selector gate.
INFO_KEYS = ("name", "ep", "endep", "ver", "crc", "group", "res", "bit")
NUMERIC_INFO_KEYS = ("ep", "endep", "ver", "bit", "res")
STRING_INFO_KEYS = ("name", "crc", "group")

# Selector name used in rule documents -> Entry attribute.
SELECTOR_FIELDS = {
    "id": "id",
    "title": "title",
    "link": "link",
    "torrent": "torrent_url",
    "torrent_url": "torrent_url",
    "size": "size",
    "category": "category",
    "authorized": "authorized",
    "magnet": "magnet_uri",
    "magnet_uri": "magnet_uri",
    "comment": "comment",
    "date": "published_at",
    "published_at": "published_at",
    "guid": "guid",
}


@dataclass(frozen=True)
class RawItem:
    """One feed item exactly as the fetch collaborator hands it over."""

    title: str
    description: str
    link: str
    pub_date: Optional[str]
    guid: str
    category: str


@dataclass(frozen=True)
class Info:
    """Content identity and rendition attributes taken from named captures.

    Numeric keys are always present (``-1`` when not captured). String keys
    are ``None`` when the title regex did not capture them; ``captured``
    lists the capture names that took part so selector re-checks only look
    at keys the rule's regex actually produced.
    """

    name: Optional[str]
    ep: int
    endep: int
    ver: int = -1
    crc: Optional[str] = None
    group: Optional[str] = None
    res: int = -1
    bit: int = -1
    captured: frozenset = frozenset()

    @property
    def eps(self) -> range:
        """Inclusive episode range ``[ep, endep]``."""

        return range(self.ep, self.endep + 1)

    @property
    def identity(self) -> tuple:
        return (self.name, self.ep)

    def keys(self) -> set[str]:
        """Keys a rule selector may re-check against this Info."""

        present = set(NUMERIC_INFO_KEYS) | {"eps"}
        present.update(key for key in STRING_INFO_KEYS if key in self.captured)
        return present

    def get(self, key: str) -> Any:
        if key == "eps":
            return self.eps
        return getattr(self, key)


@dataclass(frozen=True)
class Entry:
    """One parsed feed item with extracted metadata."""

    id: Optional[int]
    title: str
    link: str
    torrent_url: str
    size: Optional[str]
    category: str
    authorized: bool
    magnet_uri: Optional[str]
    comment: Optional[str]
    published_at: Optional[str]
    guid: str
    info: Optional[Info] = None

    def selector_value(self, selector: str) -> Any:
        """Return the attribute a rule selector refers to."""

        return getattr(self, SELECTOR_FIELDS[selector])


def entry_order_key(entry: Entry) -> int:
    """Sort key for entries; unset ids cannot be ordered."""

    if entry.id is None:
        raise ExtractionError(f"Entry {entry.title!r} (guid {entry.guid!r}) has no id to order by")
    return entry.id


def _string_key(value: Optional[str]) -> tuple:
    # None sorts below any captured string.
    return (value is not None, value or "")


def info_sort_key(info: Info, tie_break: Sequence[str]) -> tuple:
    """Return a tuple ordering Infos by name, ep, then each tie-break key."""

    parts = []
    for key in ("name", "ep", *tie_break):
        value = info.get(key)
        if key in STRING_INFO_KEYS:
            parts.append(_string_key(value))
        elif key == "eps":
            parts.append((value.start, value.stop))
        else:
            parts.append(value)
    return tuple(parts)


def compare_info(left: Info, right: Info, tie_break: Sequence[str]) -> int:
    """Three-way comparison of two Infos under the given tie-break order."""

    left_key = info_sort_key(left, tie_break)
    right_key = info_sort_key(right, tie_break)
    if left_key < right_key:
        return -1
    if left_key > right_key:
        return 1
    return 0
