"""Version deduplication helpers (core domain).

Trackers often carry several releases of the same episode (v2 fixes,
different resolutions). Entries sharing ``(info.name, info.ep)`` collapse to
the one ranking highest under the configured tie-break order.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Sequence, Tuple

from core.models import Entry, compare_info, entry_order_key

LOGGER = logging.getLogger(__name__)


def select_best_versions(entries: Iterable[Entry], tie_break: Sequence[str]) -> List[Entry]:
    """Keep the best entry per (name, ep) group; pass the rest through.

    A full tie keeps the entry seen last. Output is sorted by entry id.
    """

    passthrough: List[Entry] = []
    best: Dict[Tuple, Entry] = {}
    for entry in entries:
        info = entry.info
        if info is None or info.name is None:
            passthrough.append(entry)
            continue

        key = info.identity
        current = best.get(key)
        if current is None:
            best[key] = entry
            continue

        order = compare_info(info, current.info, tie_break)
        if order == 0:
            LOGGER.debug(
                "Version tie for %s ep %s between ids %s and %s, keeping the later one",
                info.name,
                info.ep,
                current.id,
                entry.id,
            )
        if order >= 0:
            best[key] = entry

    return sorted(passthrough + list(best.values()), key=entry_order_key)
