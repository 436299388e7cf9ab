"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and the app layer can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple

DEFAULT_TIE_BREAK = ("res", "bit", "ver")


@dataclass(frozen=True)
class FilterConfig:
    """Raw rule material: macro definitions plus deny/accept fragments."""

    defines: Mapping[str, Any] = field(default_factory=dict)
    accept: Tuple[Any, ...] = ()
    deny: Tuple[Any, ...] = ()
    tie_break: Tuple[str, ...] = DEFAULT_TIE_BREAK


@dataclass(frozen=True)
class SaveConfig:
    """Where accepted entries go. With nothing set, entries are only reported."""

    directory: Optional[str] = None
    urlfile: Optional[str] = None
    magnetfile: Optional[str] = None

    @property
    def enabled(self) -> bool:
        return any((self.directory, self.urlfile, self.magnetfile))


@dataclass(frozen=True)
class FeedConfig:
    """Feed location and polling cadence (seconds, 0 runs once)."""

    url: str
    poll: int = 0


@dataclass(frozen=True)
class AppConfig:
    feed: FeedConfig
    filters: FilterConfig
    save: SaveConfig
    logging: Mapping[str, Any] = field(default_factory=dict)
