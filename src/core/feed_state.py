"""Incremental feed state.

Tracker item ids grow monotonically, so a single watermark is enough to
tell new items from ones already processed in this session.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List

from core.errors import ExtractionError
from core.extractor import extract_entry
from core.models import Entry, RawItem, entry_order_key

LOGGER = logging.getLogger(__name__)


class FeedState:
    """Entries seen so far, the id watermark, and new entries per category."""

    def __init__(self) -> None:
        self.entries: List[Entry] = []
        self.watermark = -1
        self.previous_watermark = -1
        self.categories: Dict[str, List[Entry]] = {}

    def stage(self, items: Iterable[RawItem]) -> List[Entry]:
        """Return the entries above the watermark, sorted by id, without storing them.

        Items without a parseable id are skipped.
        """

        new_entries: Dict[int, Entry] = {}
        for item in items:
            try:
                entry = extract_entry(item, require_id=True)
            except ExtractionError as exc:
                LOGGER.warning("Skipping feed item %r: %s", item.title, exc)
                continue
            if entry.id > self.watermark and entry.id not in new_entries:
                new_entries[entry.id] = entry
        return sorted(new_entries.values(), key=entry_order_key)

    def commit(self, added: List[Entry]) -> None:
        """Store staged entries and advance the watermark past them."""

        watermark = self.watermark
        added = [entry for entry in added if entry.id > watermark]
        self.entries = sorted(self.entries + added, key=entry_order_key)
        for entry in added:
            self.categories.setdefault(entry.category, []).append(entry)
        self.previous_watermark = watermark
        if added:
            self.watermark = max(entry.id for entry in added)

    def update(self, items: Iterable[RawItem]) -> List[Entry]:
        """Stage and commit freshly fetched items; return the new entries by id."""

        added = self.stage(items)
        self.commit(added)
        return added
