"""Core feed processing pipeline.

This module is integration-agnostic. It only relies on ports for fetching
and saving, enabling other feed sources or outputs without changes here.

One refresh runs in a strict order:
1) Fetch raw items from the feed source
2) Extract entries and keep only those above the watermark
3) Apply deny rules, then accept rules
4) Collapse duplicate versions of the same episode
5) Commit the new entries and advance the watermark
6) Hand each remaining entry to the saver, ordered by id
"""

from __future__ import annotations

import logging
from typing import List

from core.config import FilterConfig
from core.dedup import select_best_versions
from core.feed_state import FeedState
from core.models import Entry
from core.ports import FeedSourcePort, SaverPort
from core.rules_engine import FilterEngine, RuleSet

LOGGER = logging.getLogger(__name__)


class FeedProcessor:
    """Orchestrates extraction, filtering, version dedup, and saving."""

    def __init__(
        self,
        source: FeedSourcePort,
        saver: SaverPort,
        engine: FilterEngine,
        state: FeedState | None = None,
    ) -> None:
        self._source = source
        self._saver = saver
        self._engine = engine
        self.state = state or FeedState()

    def set_saver(self, saver: SaverPort) -> None:
        self._saver = saver

    def reload(self, config: FilterConfig) -> RuleSet:
        """Swap in a freshly compiled rule set."""

        return self._engine.load(config)

    def refresh(self, url: str) -> List[Entry]:
        """Run one pass over the feed and return the entries handed to the saver."""

        # Fetch or rule errors propagate before FeedState is touched, so the
        # same entries are filtered again on the next refresh.
        items = self._source.fetch(url)
        new_entries = self.state.stage(items)
        LOGGER.info("Fetched %s items, %s new above watermark %s", len(items), len(new_entries), self.state.watermark)
        if not new_entries:
            self.state.commit(new_entries)
            return []

        rule_set = self._engine.rule_set
        accepted = self._engine.accept(new_entries, rule_set)
        selected = select_best_versions(accepted, rule_set.tie_break)
        LOGGER.info("Accepted %s entries, %s after version dedup", len(accepted), len(selected))
        self.state.commit(new_entries)

        for entry in selected:
            self._saver.save(entry)
        return selected
