"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for the feed fetcher and the save/report
adapters so that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import List, Protocol

from core.models import Entry, RawItem


class FeedSourcePort(Protocol):
    """Feed retrieval required by the core pipeline."""

    def fetch(self, url: str) -> List[RawItem]:
        ...


class SaverPort(Protocol):
    """Handling of accepted entries (download, record, or just report)."""

    def save(self, entry: Entry) -> None:
        ...
