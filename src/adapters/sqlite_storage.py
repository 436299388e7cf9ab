"""SQLite storage adapter.

Keeps the ledger of accepted entry ids so a restart never saves the same
torrent twice.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import Optional

from core.models import Entry


class SQLiteLedger:
    """Thin SQLite wrapper holding every accepted entry id."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - accepted: one row per saved entry, keyed by the tracker id
        """

        with self._connect() as conn:
            # Fields:
            # - entry_id: tracker id parsed from the guid (PRIMARY KEY)
            # - title: entry title after underscore normalization
            # - link: download link used for the entry
            # - info_name / info_ep: derived identity, NULL without captures
            # - accepted_at: when the entry was saved
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS accepted (
                    entry_id INTEGER PRIMARY KEY,
                    title TEXT NOT NULL,
                    link TEXT,
                    info_name TEXT,
                    info_ep INTEGER,
                    accepted_at TIMESTAMP NOT NULL
                )
                """
            )

    def is_accepted(self, entry_id: Optional[int]) -> bool:
        """Check if an entry id has already been saved."""

        if entry_id is None:
            return False
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM accepted WHERE entry_id = ?",
                (entry_id,),
            ).fetchone()
        return row is not None

    def mark_accepted(self, entry: Entry) -> None:
        """Record an entry as saved; re-marking an id is a no-op."""

        now = datetime.now(timezone.utc)
        info = entry.info
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO accepted (
                    entry_id,
                    title,
                    link,
                    info_name,
                    info_ep,
                    accepted_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.id,
                    entry.title,
                    entry.torrent_url,
                    info.name if info else None,
                    info.ep if info else None,
                    now.isoformat(),
                ),
            )

    def list_accepted_ids(self) -> set[int]:
        """Return every accepted entry id."""

        with self._connect() as conn:
            rows = conn.execute("SELECT entry_id FROM accepted").fetchall()
        return {int(row["entry_id"]) for row in rows}
