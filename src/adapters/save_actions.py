"""Save/report adapter for accepted entries.

Implements the core SaverPort. With no save action configured every accepted
entry is only reported; otherwise new ids are written to the url/magnet
files, downloaded into the torrent directory, and recorded in the ledger.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional, TextIO

import httpx

from adapters.notification_formatting import format_accepted
from adapters.sqlite_storage import SQLiteLedger
from core.config import SaveConfig
from core.models import Entry

LOGGER = logging.getLogger(__name__)

STDOUT_TARGET = "-"


def torrent_filename(entry: Entry) -> str:
    """File name for a downloaded payload, safe to join onto a directory."""

    name = entry.title.replace(os.sep, "_").strip() or str(entry.id)
    if os.altsep:
        name = name.replace(os.altsep, "_")
    return f"{name}.torrent"


class SaveActions:
    """SaverPort implementation driven by the ``save`` config section."""

    def __init__(
        self,
        config: SaveConfig,
        ledger: SQLiteLedger,
        client: Optional[httpx.Client] = None,
        stdout: Optional[TextIO] = None,
    ) -> None:
        self._config = config
        self._ledger = ledger
        self._client = client
        self._stdout = stdout or sys.stdout

    def save(self, entry: Entry) -> None:
        """Report, or save and record, one accepted entry."""

        if not self._config.enabled:
            LOGGER.info(format_accepted(entry))
            return

        if self._ledger.is_accepted(entry.id):
            LOGGER.debug("Skipping already saved entry %s", entry.id)
            return

        if self._config.urlfile:
            self._append_line(self._config.urlfile, entry.torrent_url)
        if self._config.magnetfile and entry.magnet_uri:
            self._append_line(self._config.magnetfile, entry.magnet_uri)

        if self._config.directory:
            try:
                self._download(entry)
            except (httpx.HTTPError, OSError) as exc:
                # Leave the id out of the ledger so the next run tries again.
                LOGGER.error("Failed to fetch %s (%s): %s", entry.title, entry.torrent_url, exc)
                return

        self._ledger.mark_accepted(entry)
        LOGGER.info(format_accepted(entry))

    def _append_line(self, target: str, line: str) -> None:
        if target == STDOUT_TARGET:
            self._stdout.write(f"{line}\n")
            self._stdout.flush()
            return
        with open(target, "a", encoding="utf-8") as handle:
            handle.write(f"{line}\n")

    def _download(self, entry: Entry) -> None:
        if self._client is None:
            self._client = httpx.Client(follow_redirects=True, timeout=60.0)

        path = os.path.join(self._config.directory, torrent_filename(entry))
        partial = f"{path}.part"
        LOGGER.info('Fetching "%s"', os.path.basename(path))
        with self._client.stream("GET", entry.torrent_url) as response:
            response.raise_for_status()
            with open(partial, "wb") as handle:
                for chunk in response.iter_bytes():
                    handle.write(chunk)
        os.replace(partial, path)
